"""Router and device schemas."""

from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from wifimap.schemas.geometry import Point3D

# Fallbacks when a device spec has no entry for a band
DEFAULT_TX_POWER_DBM = 20.0
DEFAULT_ANTENNA_GAIN_DBI = 2.0


class FrequencyBand(str, Enum):
    BAND_2_4GHZ = "2.4GHz"
    BAND_5GHZ = "5GHz"
    BAND_6GHZ = "6GHz"

    @property
    def frequency_mhz(self) -> float:
        return _BAND_FREQUENCY_MHZ[self]

    @property
    def array_index(self) -> int:
        """Position of this band in per-band device arrays."""
        return _BAND_ORDER.index(self)


_BAND_ORDER = [FrequencyBand.BAND_2_4GHZ, FrequencyBand.BAND_5GHZ, FrequencyBand.BAND_6GHZ]

_BAND_FREQUENCY_MHZ = {
    FrequencyBand.BAND_2_4GHZ: 2400.0,
    FrequencyBand.BAND_5GHZ: 5000.0,
    FrequencyBand.BAND_6GHZ: 6000.0,
}


class WiFiStandard(str, Enum):
    WIFI_4 = "802.11n"
    WIFI_5 = "802.11ac"
    WIFI_6 = "802.11ax"
    WIFI_6E = "802.11ax-6GHz"
    WIFI_7 = "802.11be"

    @property
    def bands(self) -> Set[FrequencyBand]:
        return _STANDARD_BANDS[self]


_STANDARD_BANDS = {
    WiFiStandard.WIFI_4: {FrequencyBand.BAND_2_4GHZ, FrequencyBand.BAND_5GHZ},
    WiFiStandard.WIFI_5: {FrequencyBand.BAND_5GHZ},
    WiFiStandard.WIFI_6: {FrequencyBand.BAND_2_4GHZ, FrequencyBand.BAND_5GHZ},
    WiFiStandard.WIFI_6E: set(_BAND_ORDER),
    WiFiStandard.WIFI_7: set(_BAND_ORDER),
}


class DeviceDimensions(BaseModel):
    width: float = Field(0.2, ge=0)
    depth: float = Field(0.2, ge=0)
    height: float = Field(0.05, ge=0)

    model_config = ConfigDict(frozen=True)


class DeviceSpec(BaseModel):
    """Radio characteristics of a router or extender model.

    Per-band arrays are indexed 2.4 / 5 / 6 GHz.
    """
    model: str = Field(..., min_length=1)
    manufacturer: str = ""
    antenna_gain_dbi: List[float] = Field(default_factory=lambda: [2.0, 3.0, 3.0])
    tx_power_dbm: List[float] = Field(default_factory=lambda: [20.0, 23.0, 23.0])
    supported_standards: List[WiFiStandard] = Field(default_factory=list)
    dimensions: DeviceDimensions = Field(default_factory=DeviceDimensions)
    power_draw_w: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True)

    def tx_power_for(self, band: FrequencyBand) -> float:
        if band.array_index < len(self.tx_power_dbm):
            return self.tx_power_dbm[band.array_index]
        return DEFAULT_TX_POWER_DBM

    def antenna_gain_for(self, band: FrequencyBand) -> float:
        if band.array_index < len(self.antenna_gain_dbi):
            return self.antenna_gain_dbi[band.array_index]
        return DEFAULT_ANTENNA_GAIN_DBI

    def supported_bands(self) -> List[FrequencyBand]:
        """Bands the device radiates on, in 2.4/5/6 order. All bands if unspecified."""
        if not self.supported_standards:
            return list(_BAND_ORDER)
        bands: Set[FrequencyBand] = set()
        for standard in self.supported_standards:
            bands |= standard.bands
        return [band for band in _BAND_ORDER if band in bands]


def default_router_spec() -> DeviceSpec:
    """Generic tri-band router used when the caller names no hardware."""
    return DeviceSpec(
        model="Generic Tri-Band Router",
        manufacturer="Generic",
        antenna_gain_dbi=[2.0, 3.0, 3.0],
        tx_power_dbm=[23.0, 26.0, 26.0],
        supported_standards=[WiFiStandard.WIFI_7],
        power_draw_w=24.0,
    )


def default_extender_spec() -> DeviceSpec:
    return DeviceSpec(
        model="Generic Mesh Extender",
        manufacturer="Generic",
        antenna_gain_dbi=[2.0, 2.0, 2.0],
        tx_power_dbm=[20.0, 23.0, 23.0],
        supported_standards=[WiFiStandard.WIFI_6E],
        dimensions=DeviceDimensions(width=0.1, depth=0.1, height=0.1),
        power_draw_w=12.0,
    )


class RouterConfiguration(BaseModel):
    """One physical transmitter placed in a room."""
    id: str
    position: Point3D
    device_spec: DeviceSpec = Field(default_factory=default_router_spec)
    orientation: float = Field(0.0, description="Heading in radians")
    elevation: float = Field(0.0, description="Antenna tilt in radians")
    room_id: Optional[str] = Field(None, description="Room whose frame position is expressed in")

    model_config = ConfigDict(frozen=True)
