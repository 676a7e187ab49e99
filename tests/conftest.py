"""Pytest configuration and fixtures."""

import pytest

from wifimap.schemas.geometry import (
    BoundingBox, FurnitureItem, FurnitureType, PlacementSurface, Point3D, RoomModel,
    WallElement, WallMaterial
)
from wifimap.schemas.router import (
    DeviceSpec, FrequencyBand, RouterConfiguration, WiFiStandard
)
from wifimap.schemas.signal import BandPrediction, SignalPrediction, SignalQuality


def perimeter_walls(bounds: BoundingBox, material=WallMaterial.DRYWALL, height=3.0):
    """Four walls along the edges of a room's footprint."""
    lo, hi = bounds.min, bounds.max
    corners = [
        Point3D(x=lo.x, y=lo.y, z=lo.z),
        Point3D(x=hi.x, y=lo.y, z=lo.z),
        Point3D(x=hi.x, y=hi.y, z=lo.z),
        Point3D(x=lo.x, y=hi.y, z=lo.z),
    ]
    return [
        WallElement(id=f"outer-{i}", start=corners[i], end=corners[(i + 1) % 4],
                    height=height, material=material)
        for i in range(4)
    ]


def make_spec(tx_power=20.0, gain=2.0, standards=None):
    return DeviceSpec(
        model="Test AP",
        manufacturer="Acme",
        tx_power_dbm=[tx_power] * 3,
        antenna_gain_dbi=[gain] * 3,
        supported_standards=standards or [],
    )


def make_router(x, y, z=1.5, tx_power=20.0, gain=2.0, router_id="ap-1", room_id=None, standards=None):
    return RouterConfiguration(
        id=router_id,
        position=Point3D(x=x, y=y, z=z),
        device_spec=make_spec(tx_power, gain, standards),
        room_id=room_id,
    )


def make_prediction(rssi_dbm, location=None, band=FrequencyBand.BAND_5GHZ):
    """Single-band prediction for validation tests."""
    band_prediction = BandPrediction(
        band=band, rssi_dbm=rssi_dbm, snr_db=max(0.0, rssi_dbm + 95),
        confidence=0.8, path_loss_db=60.0,
    )
    return SignalPrediction(
        location=location or Point3D(),
        bands={band: band_prediction},
        best_rssi_dbm=rssi_dbm,
        best_band=band,
        quality=SignalQuality.from_rssi(rssi_dbm),
        confidence=0.8,
    )


@pytest.fixture
def bisected_room():
    """5m x 4m room split by a drywall wall at x=2, router corner at the origin."""
    bounds = BoundingBox(min=Point3D(x=-0.5, y=-2.0, z=0.0), max=Point3D(x=4.5, y=2.0, z=3.0))
    wall = WallElement(
        id="divider",
        start=Point3D(x=2.0, y=-2.0, z=0.0),
        end=Point3D(x=2.0, y=2.0, z=0.0),
        height=3.0,
        material=WallMaterial.DRYWALL,
    )
    return RoomModel(id="bisected", name="Bisected room", bounds=bounds, walls=[wall])


@pytest.fixture
def open_room():
    """5m x 4m room with only its outer walls."""
    bounds = BoundingBox.from_extent(5.0, 4.0, 3.0)
    return RoomModel(id="open", name="Open room", bounds=bounds, walls=perimeter_walls(bounds))


@pytest.fixture
def furnished_room():
    """6m x 5m living room with a desk, a sofa and a TV."""
    bounds = BoundingBox.from_extent(6.0, 5.0, 2.7)
    desk = FurnitureItem(
        id="desk-1",
        type=FurnitureType.DESK,
        bounds=BoundingBox(min=Point3D(x=1.0, y=3.5, z=0.0), max=Point3D(x=2.2, y=4.2, z=0.75)),
        surfaces=[PlacementSurface(id="desk-top", center=Point3D(x=1.6, y=3.85, z=0.75))],
        confidence=0.9,
    )
    sofa = FurnitureItem(
        id="sofa-1",
        type=FurnitureType.SOFA,
        bounds=BoundingBox(min=Point3D(x=3.0, y=0.5, z=0.0), max=Point3D(x=5.0, y=1.4, z=0.9)),
        surfaces=[PlacementSurface(id="sofa-seat", center=Point3D(x=4.0, y=0.95, z=0.9))],
    )
    tv = FurnitureItem(
        id="tv-1",
        type=FurnitureType.ELECTRONICS,
        bounds=BoundingBox(min=Point3D(x=2.6, y=4.6, z=0.8), max=Point3D(x=3.6, y=4.8, z=1.4)),
    )
    return RoomModel(
        id="living",
        name="Living room",
        bounds=bounds,
        walls=perimeter_walls(bounds),
        furniture=[desk, sofa, tv],
    )


@pytest.fixture
def split_hall():
    """20m x 10m hall with a concrete wall at x=10."""
    bounds = BoundingBox.from_extent(20.0, 10.0, 3.0)
    divider = WallElement(
        id="concrete-divider",
        start=Point3D(x=10.0, y=0.0, z=0.0),
        end=Point3D(x=10.0, y=10.0, z=0.0),
        height=3.0,
        material=WallMaterial.CONCRETE,
    )
    return RoomModel(id="hall", name="Hall", bounds=bounds, walls=[divider])


@pytest.fixture
def weak_router():
    """Low power 2.4 GHz router near the hall's west end."""
    return make_router(1.0, 5.0, tx_power=-15.0, gain=0.0, router_id="weak", standards=[WiFiStandard.WIFI_4])
