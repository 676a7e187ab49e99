"""Indoor RF propagation model.

Predicts received signal strength from a transmitter to a point in a room:
- Free Space Path Loss (Friis equation, MHz / metres form)
- Per-crossing wall penetration loss by material and indoor environment
- Doors, windows and open passages relieving the wall they are cut into
- Optional furniture clutter loss
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging
import math

from wifimap.core.config import settings
from wifimap.core.exceptions import CoordinateFrameMismatch
from wifimap.schemas.geometry import (
    BoundingBox, FurnitureType, OpeningType, Point3D, RoomModel, WallElement, WallMaterial
)
from wifimap.schemas.optimization import IndoorEnvironment
from wifimap.schemas.router import FrequencyBand, RouterConfiguration
from wifimap.schemas.signal import BandPrediction, SignalPrediction, SignalQuality, ThroughputEstimate

logger = logging.getLogger(__name__)


# Wall penetration loss per crossing (dB)
MATERIAL_LOSS_DB: Dict[IndoorEnvironment, Dict[WallMaterial, float]] = {
    IndoorEnvironment.RESIDENTIAL: {
        WallMaterial.DRYWALL: 3.0,
        WallMaterial.WOOD: 4.0,
        WallMaterial.GLASS: 2.0,
        WallMaterial.BRICK: 8.0,
        WallMaterial.CONCRETE: 12.0,
        WallMaterial.METAL: 25.0,
    },
    # Commercial builds: thicker boards, fire doors, coated glass
    IndoorEnvironment.ENTERPRISE: {
        WallMaterial.DRYWALL: 4.0,
        WallMaterial.WOOD: 5.0,
        WallMaterial.GLASS: 3.0,
        WallMaterial.BRICK: 10.0,
        WallMaterial.CONCRETE: 15.0,
        WallMaterial.METAL: 30.0,
    },
}

# Multiplier applied to prediction confidence per environment
ENVIRONMENT_CONFIDENCE: Dict[IndoorEnvironment, float] = {
    IndoorEnvironment.RESIDENTIAL: 0.95,
    IndoorEnvironment.ENTERPRISE: 0.9,
}

# Higher bands are harder to predict indoors
BAND_CONFIDENCE: Dict[FrequencyBand, float] = {
    FrequencyBand.BAND_2_4GHZ: 1.0,
    FrequencyBand.BAND_5GHZ: 1.0,
    FrequencyBand.BAND_6GHZ: 0.95,
}

# Furniture clutter loss when the path passes through an item (dB)
CLUTTER_LOSS_DB: Dict[FurnitureType, float] = {
    FurnitureType.CABINET: 5.0,
    FurnitureType.DRESSER: 5.0,
    FurnitureType.SHELF: 2.0,
    FurnitureType.APPLIANCE: 5.0,
}
DEFAULT_CLUTTER_LOSS_DB = 1.0
MAX_CLUTTER_LOSS_DB = 15.0

# Wall loss multiplier per band when frequency scaling is enabled
BAND_PENETRATION_SCALING: Dict[FrequencyBand, float] = {
    FrequencyBand.BAND_2_4GHZ: 1.0,
    FrequencyBand.BAND_5GHZ: 1.2,
    FrequencyBand.BAND_6GHZ: 1.4,
}

# WiFi 7 peak rate per band (Mbps)
MAX_THROUGHPUT_MBPS: Dict[FrequencyBand, float] = {
    FrequencyBand.BAND_2_4GHZ: 688.0,
    FrequencyBand.BAND_5GHZ: 2882.0,
    FrequencyBand.BAND_6GHZ: 2882.0,
}

# (minimum SNR dB, share of the peak rate)
SPECTRAL_EFFICIENCY_STEPS: List[Tuple[float, float]] = [
    (35.0, 0.9),
    (25.0, 0.75),
    (15.0, 0.6),
    (10.0, 0.4),
    (5.0, 0.2),
]
MIN_SPECTRAL_EFFICIENCY = 0.05

MIN_DISTANCE_M = 0.1

# Crossings closer than this are the same joint between two wall segments
JOINT_TOLERANCE_M = 1e-3


def calculate_fspl(distance_m: float, frequency_mhz: float) -> float:
    """
    Calculate Free Space Path Loss.

    FSPL(dB) = 20*log10(d_m) + 20*log10(f_MHz) - 27.55

    Args:
        distance_m: Distance in meters
        frequency_mhz: Frequency in MHz

    Returns:
        Path loss in dB
    """
    if distance_m < MIN_DISTANCE_M:
        distance_m = MIN_DISTANCE_M  # Minimum 10cm to avoid log(0)

    return 20 * math.log10(distance_m) + 20 * math.log10(frequency_mhz) - 27.55


def segment_intersection(
    p1x: float, p1y: float,
    p2x: float, p2y: float,
    p3x: float, p3y: float,
    p4x: float, p4y: float
) -> Optional[Tuple[float, float, float]]:
    """
    Find intersection point of two line segments.

    Returns (x, y, t) where t is the parameter along the first segment,
    or None if the segments do not meet. Uses parametric form of line equations.
    """
    # Direction vectors
    d1x = p2x - p1x
    d1y = p2y - p1y
    d2x = p4x - p3x
    d2y = p4y - p3y

    # Cross product of directions
    cross = d1x * d2y - d1y * d2x

    if abs(cross) < 1e-10:
        return None  # Parallel or coincident

    t = ((p3x - p1x) * d2y - (p3y - p1y) * d2x) / cross
    u = ((p3x - p1x) * d1y - (p3y - p1y) * d1x) / cross

    if 0 <= t <= 1 and 0 <= u <= 1:
        return (p1x + t * d1x, p1y + t * d1y, t)

    return None


def point_to_segment_distance(
    px: float, py: float,
    x1: float, y1: float,
    x2: float, y2: float
) -> float:
    """Calculate perpendicular distance from point to line segment."""
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy

    if length_sq < 1e-10:
        # Degenerate segment (point)
        return math.hypot(px - x1, py - y1)

    # Project point onto line
    t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / length_sq))

    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


def distance_to_wall(point: Point3D, wall: WallElement) -> float:
    """Horizontal distance from a point to a wall's centre line."""
    return point_to_segment_distance(
        point.x, point.y, wall.start.x, wall.start.y, wall.end.x, wall.end.y
    )


def segment_passes_through_box(start: Point3D, end: Point3D, box: BoundingBox) -> bool:
    """Slab test for a 3-D segment against an axis-aligned box."""
    t_min, t_max = 0.0, 1.0
    for origin, target, lo, hi in (
        (start.x, end.x, box.min.x, box.max.x),
        (start.y, end.y, box.min.y, box.max.y),
        (start.z, end.z, box.min.z, box.max.z),
    ):
        delta = target - origin
        if abs(delta) < 1e-12:
            if origin < lo or origin > hi:
                return False
            continue
        t1 = (lo - origin) / delta
        t2 = (hi - origin) / delta
        if t1 > t2:
            t1, t2 = t2, t1
        t_min = max(t_min, t1)
        t_max = min(t_max, t2)
        if t_min > t_max:
            return False
    return True


def get_material_loss(
    material: WallMaterial,
    environment: IndoorEnvironment = IndoorEnvironment.RESIDENTIAL,
    overrides: Optional[Dict[WallMaterial, float]] = None
) -> float:
    """Penetration loss for one crossing of a wall made of material."""
    if overrides and material in overrides:
        return overrides[material]
    return MATERIAL_LOSS_DB[environment][material]


def signal_quality_from_rssi(rssi_dbm: float) -> SignalQuality:
    return SignalQuality.from_rssi(rssi_dbm)


def spectral_efficiency(snr_db: float) -> float:
    """Share of the peak PHY rate achievable at a given SNR."""
    for threshold, efficiency in SPECTRAL_EFFICIENCY_STEPS:
        if snr_db >= threshold:
            return efficiency
    return MIN_SPECTRAL_EFFICIENCY


def estimate_throughput(band: FrequencyBand, snr_db: float) -> ThroughputEstimate:
    theoretical = MAX_THROUGHPUT_MBPS[band]
    efficiency = spectral_efficiency(snr_db)
    return ThroughputEstimate(
        band=band,
        theoretical_mbps=theoretical,
        estimated_mbps=theoretical * efficiency,
        efficiency=efficiency,
    )


@dataclass
class WallCrossing:
    """A wall the direct path passes through, and what it costs."""
    wall: WallElement
    point: Point3D
    loss_db: float
    opening_id: Optional[str] = None


class PropagationModel:
    """
    Direct-path indoor propagation model.

    Received power per band is tx power plus antenna gain, minus free space
    path loss, minus the loss of every wall and furniture item on the direct
    path. The strongest band decides the quality bucket.
    """

    def __init__(
        self,
        environment: Optional[IndoorEnvironment] = None,
        material_losses: Optional[Dict[WallMaterial, float]] = None,
        obstruction_enabled: bool = True,
        include_clutter: bool = False,
        frequency_scaling: Optional[bool] = None,
        calibration_offset_db: float = 0.0,
        signal_floor_dbm: Optional[float] = None,
        signal_ceiling_dbm: Optional[float] = None,
        min_confidence: Optional[float] = None,
        practical_range_m: Optional[float] = None,
        noise_floor_dbm: Optional[float] = None
    ):
        self.environment = IndoorEnvironment(environment or settings.INDOOR_ENVIRONMENT)
        self.material_losses = dict(material_losses or {})
        self.obstruction_enabled = obstruction_enabled
        self.include_clutter = include_clutter
        self.frequency_scaling = (
            settings.WALL_FREQUENCY_SCALING if frequency_scaling is None else frequency_scaling
        )
        self.calibration_offset_db = calibration_offset_db
        self.signal_floor_dbm = settings.SIGNAL_FLOOR_DBM if signal_floor_dbm is None else signal_floor_dbm
        self.signal_ceiling_dbm = settings.SIGNAL_CEILING_DBM if signal_ceiling_dbm is None else signal_ceiling_dbm
        self.min_confidence = settings.MIN_PREDICTION_CONFIDENCE if min_confidence is None else min_confidence
        self.practical_range_m = practical_range_m or settings.PRACTICAL_RANGE_M
        self.noise_floor_dbm = settings.NOISE_FLOOR_DBM if noise_floor_dbm is None else noise_floor_dbm

        logger.info(
            f"PropagationModel initialized: env={self.environment.value}, "
            f"obstruction={obstruction_enabled}, clutter={include_clutter}, "
            f"freq_scaling={self.frequency_scaling}, "
            f"offset={calibration_offset_db:+.1f}dB"
        )

    def material_loss(self, material: WallMaterial) -> float:
        return get_material_loss(material, self.environment, self.material_losses)

    def band_wall_loss(self, wall_db: float, band: FrequencyBand) -> float:
        """Wall loss on a band; higher bands penetrate worse when scaling is on."""
        if not self.frequency_scaling:
            return wall_db
        return wall_db * BAND_PENETRATION_SCALING[band]

    def predict(
        self,
        transmitter: RouterConfiguration,
        target: Point3D,
        room: RoomModel,
        frequency_band: Optional[FrequencyBand] = None
    ) -> SignalPrediction:
        """
        Predict received signal at target from a single transmitter.

        Args:
            transmitter: Router position and radio characteristics
            target: Receiver position in the room's frame
            room: Room geometry the path is traced through
            frequency_band: Single band to evaluate; every supported band if None

        Returns:
            SignalPrediction with per-band results

        Raises:
            CoordinateFrameMismatch: transmitter is pinned to another room
        """
        check_same_frame(transmitter, room)

        source = transmitter.position
        distance_m = source.distance_to(target)

        if self.obstruction_enabled:
            crossings = self.find_wall_crossings(source, target, room)
            wall_db = sum(c.loss_db for c in crossings)
            walls_crossed = sum(1 for c in crossings if c.loss_db > 0)
            clutter_db = self.clutter_loss(source, target, room) if self.include_clutter else 0.0
        else:
            wall_db = clutter_db = 0.0
            walls_crossed = 0

        degraded = self._is_degraded(source, distance_m, room)
        confidence = self._confidence(distance_m, walls_crossed, degraded)

        bands = [frequency_band] if frequency_band else transmitter.device_spec.supported_bands()
        band_predictions: Dict[FrequencyBand, BandPrediction] = {}

        for band in bands:
            path_loss = calculate_fspl(distance_m, band.frequency_mhz)
            obstruction_db = self.band_wall_loss(wall_db, band) + clutter_db
            eirp = (
                transmitter.device_spec.tx_power_for(band) +
                transmitter.device_spec.antenna_gain_for(band)
            )
            rssi = eirp - path_loss - obstruction_db + self.calibration_offset_db
            rssi = min(self.signal_ceiling_dbm, max(self.signal_floor_dbm, rssi))

            band_predictions[band] = BandPrediction(
                band=band,
                rssi_dbm=rssi,
                snr_db=max(0.0, rssi - self.noise_floor_dbm),
                confidence=max(self.min_confidence, confidence * BAND_CONFIDENCE[band]),
                path_loss_db=path_loss,
                obstruction_loss_db=obstruction_db,
            )

        best = max(band_predictions.values(), key=lambda p: p.rssi_dbm)
        throughput = estimate_throughput(best.band, best.snr_db)

        return SignalPrediction(
            location=target,
            bands=band_predictions,
            best_rssi_dbm=best.rssi_dbm,
            best_band=best.band,
            quality=SignalQuality.from_rssi(best.rssi_dbm),
            confidence=confidence,
            walls_crossed=walls_crossed,
            transmitter_id=transmitter.id,
            throughput=throughput,
        )

    def find_wall_crossings(
        self,
        start: Point3D,
        end: Point3D,
        room: RoomModel
    ) -> List[WallCrossing]:
        """Walls intersected by the direct path, with the loss each one adds."""
        crossings = []

        for wall in room.walls:
            hit = segment_intersection(
                start.x, start.y, end.x, end.y,
                wall.start.x, wall.start.y, wall.end.x, wall.end.y
            )
            if hit is None:
                continue

            ix, iy, t = hit
            z = start.z + t * (end.z - start.z)
            if z < wall.base_height or z > wall.top_height:
                continue  # Path passes above or below the wall

            point = Point3D(x=ix, y=iy, z=z)
            loss = self.material_loss(wall.material)
            opening_id = None

            for opening in room.openings:
                if not self._opening_covers(opening.bounds, wall, point):
                    continue
                opening_id = opening.id
                if opening.type == OpeningType.WINDOW:
                    loss = min(loss, self.material_loss(WallMaterial.GLASS))
                elif opening.type == OpeningType.DOOR and not opening.is_passable:
                    loss = min(loss, self.material_loss(WallMaterial.WOOD))
                else:
                    loss = 0.0
                break

            crossing = WallCrossing(wall=wall, point=point, loss_db=loss, opening_id=opening_id)
            joint = self._matching_crossing(crossings, point)
            if joint is None:
                crossings.append(crossing)
            elif loss > crossings[joint].loss_db:
                crossings[joint] = crossing

        return crossings

    def obstruction_loss(self, start: Point3D, end: Point3D, room: RoomModel) -> float:
        """Total wall loss along the direct path."""
        return sum(c.loss_db for c in self.find_wall_crossings(start, end, room))

    def clutter_loss(self, start: Point3D, end: Point3D, room: RoomModel) -> float:
        """Furniture loss along the direct path, capped."""
        total = 0.0
        for item in room.furniture:
            if item.bounds.contains(start) or item.bounds.contains(end):
                continue  # Device sits on or in the item
            if segment_passes_through_box(start, end, item.bounds):
                total += CLUTTER_LOSS_DB.get(item.type, DEFAULT_CLUTTER_LOSS_DB)
        return min(total, MAX_CLUTTER_LOSS_DB)

    def _matching_crossing(self, crossings: List[WallCrossing], point: Point3D) -> Optional[int]:
        """Index of a crossing at the same point, where segments of one wall meet."""
        for i, existing in enumerate(crossings):
            if math.hypot(existing.point.x - point.x, existing.point.y - point.y) <= JOINT_TOLERANCE_M:
                return i
        return None

    def _opening_covers(self, bounds: BoundingBox, wall: WallElement, point: Point3D) -> bool:
        tolerance = max(wall.thickness / 2, 0.05)
        return (
            bounds.min.x - tolerance <= point.x <= bounds.max.x + tolerance and
            bounds.min.y - tolerance <= point.y <= bounds.max.y + tolerance and
            bounds.min.z <= point.z <= bounds.max.z
        )

    def _is_degraded(self, source: Point3D, distance_m: float, room: RoomModel) -> bool:
        if room.bounds.is_degenerate:
            logger.debug(f"Room {room.id} has degenerate bounds; prediction is best-effort")
            return True
        if room.bounds.distance_to_point(source) > 1.0:
            logger.debug(f"Transmitter at {source} lies outside room {room.id}")
            return True
        if distance_m > self.practical_range_m:
            logger.debug(f"Target {distance_m:.1f}m away exceeds practical range")
            return True
        return False

    def _confidence(self, distance_m: float, walls_crossed: int, degraded: bool) -> float:
        confidence = (
            0.9 *
            (1.0 / (1.0 + distance_m / 20.0)) *
            (1.0 / (1.0 + walls_crossed * 0.1)) *
            ENVIRONMENT_CONFIDENCE[self.environment]
        )
        if degraded:
            confidence *= 0.5
        return min(1.0, max(self.min_confidence, confidence))


def check_same_frame(transmitter: RouterConfiguration, room: RoomModel) -> None:
    """Reject a transmitter whose position is expressed in another room's frame."""
    if transmitter.room_id is not None and transmitter.room_id != room.id:
        raise CoordinateFrameMismatch(room.id, transmitter.room_id)
