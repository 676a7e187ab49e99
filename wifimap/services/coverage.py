"""Coverage map generation.

Samples the propagation model over a regular grid across a room and
summarises the result: usable and redundant coverage, signal statistics
and dead zones.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence
import logging
import math
import threading
import time

import cv2
import numpy as np

from wifimap.core.config import settings
from wifimap.core.exceptions import OperationCancelled
from wifimap.schemas.geometry import BoundingBox, Point3D, RoomModel
from wifimap.schemas.router import RouterConfiguration
from wifimap.schemas.signal import (
    FAIR_THRESHOLD_DBM, CoverageCell, CoverageMap, CoverageStatistics, DeadZone, SignalQuality
)
from wifimap.services.rf_propagation import PropagationModel, check_same_frame

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Weight of each quality bucket in the overall quality score
QUALITY_WEIGHTS: Dict[SignalQuality, float] = {
    SignalQuality.EXCELLENT: 1.0,
    SignalQuality.GOOD: 0.8,
    SignalQuality.FAIR: 0.5,
    SignalQuality.POOR: 0.0,
}


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a computation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled by caller")


@dataclass
class GridRegion:
    """Connected block of grid cells found by component labelling."""
    mask: np.ndarray  # boolean (rows, cols)
    left: int
    top: int
    width: int
    height: int
    cell_count: int


def grid_shape(bounds: BoundingBox, resolution: float) -> tuple:
    """(rows, cols) needed to cover bounds with square cells."""
    cols = max(1, math.ceil(bounds.width / resolution - 1e-9))
    rows = max(1, math.ceil(bounds.depth / resolution - 1e-9))
    return rows, cols


def cell_center(bounds: BoundingBox, resolution: float, row: int, col: int, z: float) -> Point3D:
    """Centre of a grid cell. Cells on the far edges are clipped to the bounds."""
    x0 = bounds.min.x + col * resolution
    y0 = bounds.min.y + row * resolution
    x1 = min(bounds.max.x, x0 + resolution)
    y1 = min(bounds.max.y, y0 + resolution)
    return Point3D(x=(x0 + x1) / 2, y=(y0 + y1) / 2, z=z)


def find_regions(mask: np.ndarray) -> List[GridRegion]:
    """4-connected regions of True cells in a boolean grid."""
    if not mask.any():
        return []

    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
        mask.astype(np.uint8), connectivity=4
    )

    regions = []
    for i in range(1, num_labels):  # Skip background (0)
        regions.append(GridRegion(
            mask=labels == i,
            left=int(stats[i, cv2.CC_STAT_LEFT]),
            top=int(stats[i, cv2.CC_STAT_TOP]),
            width=int(stats[i, cv2.CC_STAT_WIDTH]),
            height=int(stats[i, cv2.CC_STAT_HEIGHT]),
            cell_count=int(stats[i, cv2.CC_STAT_AREA]),
        ))
    return regions


def region_bounds(region: GridRegion, grid_bounds: BoundingBox, resolution: float, z: float) -> BoundingBox:
    """Room-frame box covering a region's cells, clipped to the grid bounds."""
    min_x = grid_bounds.min.x + region.left * resolution
    min_y = grid_bounds.min.y + region.top * resolution
    max_x = min(grid_bounds.max.x, grid_bounds.min.x + (region.left + region.width) * resolution)
    max_y = min(grid_bounds.max.y, grid_bounds.min.y + (region.top + region.height) * resolution)
    return BoundingBox(min=Point3D(x=min_x, y=min_y, z=z), max=Point3D(x=max_x, y=max_y, z=z))


def calculate_coverage_percentage(grid: np.ndarray, threshold_dbm: float = -70.0) -> float:
    """
    Calculate fraction of cells with acceptable signal.

    Args:
        grid: Signal strengths in dBm
        threshold_dbm: Minimum acceptable signal strength

    Returns:
        Covered fraction (0-1)
    """
    if grid.size == 0:
        return 0.0
    return float(np.sum(grid >= threshold_dbm) / grid.size)


def calculate_signal_statistics(grid: np.ndarray) -> dict:
    """Calculate various signal statistics for the grid."""
    if grid.size == 0:
        return {"mean": -100.0, "median": -100.0, "std": 0.0, "min": -100.0, "max": -100.0}

    return {
        "mean": float(np.mean(grid)),
        "median": float(np.median(grid)),
        "std": float(np.std(grid)),
        "min": float(np.min(grid)),
        "max": float(np.max(grid)),
    }


class CoverageMapGenerator:
    """
    Builds coverage maps for a set of routers.

    Each cell takes the strongest router per band; routers never add up,
    they behave as independent access points.
    """

    def __init__(
        self,
        propagation_model: Optional[PropagationModel] = None,
        evaluation_height: Optional[float] = None,
        usable_threshold_dbm: Optional[float] = None,
        progress_interval: Optional[int] = None
    ):
        self.propagation_model = propagation_model if propagation_model is not None else PropagationModel()
        self.evaluation_height = settings.EVALUATION_HEIGHT_M if evaluation_height is None else evaluation_height
        self.usable_threshold_dbm = (
            settings.USABLE_SIGNAL_DBM if usable_threshold_dbm is None else usable_threshold_dbm
        )
        self.progress_interval = max(1, progress_interval or settings.PROGRESS_INTERVAL_CELLS)

    def generate(
        self,
        routers: Sequence[RouterConfiguration],
        room: RoomModel,
        grid_resolution: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[CoverageMap]:
        """
        Sample predicted signal over the room.

        Args:
            routers: Transmitters to evaluate
            room: Room whose bounds define the grid
            grid_resolution: Cell size in meters (defaults to settings)
            progress: Called with completed fraction every few cells and at 1.0
            cancel_token: Checked between grid rows

        Returns:
            CoverageMap, or None when no routers are configured

        Raises:
            OperationCancelled: cancel_token was set mid-run
            CoordinateFrameMismatch: a router belongs to another room
        """
        if not routers:
            logger.warning(f"No routers configured for room {room.id}; coverage unavailable")
            return None

        for router in routers:
            check_same_frame(router, room)

        resolution = settings.GRID_RESOLUTION_M if grid_resolution is None else grid_resolution
        if resolution <= 0:
            raise ValueError(f"Grid resolution must be positive, got {resolution}")

        started = time.perf_counter()
        bounds = room.bounds
        rows, cols = grid_shape(bounds, resolution)
        total = rows * cols
        z = bounds.min.z + self.evaluation_height

        if bounds.is_degenerate:
            logger.warning(f"Room {room.id} has degenerate bounds; coverage is best-effort")

        grid = np.full((rows, cols), self.propagation_model.signal_floor_dbm)
        cells: List[CoverageCell] = []
        usable_count = 0
        redundant_count = 0
        signal_sum = 0.0
        done = 0

        for row in range(rows):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            for col in range(cols):
                point = cell_center(bounds, resolution, row, col, z)
                cell = self._evaluate_cell(routers, room, point, row, col)
                cells.append(cell)
                grid[row, col] = cell.rssi_dbm

                if cell.rssi_dbm >= self.usable_threshold_dbm:
                    usable_count += 1
                if cell.covering_routers >= 2:
                    redundant_count += 1
                signal_sum += cell.rssi_dbm
                done += 1

                if progress is not None and done % self.progress_interval == 0 and done < total:
                    progress(done / total)

        if progress is not None:
            progress(1.0)

        statistics = self._build_statistics(grid, usable_count, redundant_count, signal_sum)
        dead_zones = self.find_dead_zones(grid, bounds, resolution, z)
        elapsed = time.perf_counter() - started

        logger.info(
            f"Coverage for room {room.id}: {total} cells, {len(routers)} routers, "
            f"usable={statistics.usable_coverage_percentage:.1%}, "
            f"dead_zones={len(dead_zones)} in {elapsed:.2f}s"
        )

        return CoverageMap(
            room_id=room.id,
            bounds=bounds,
            resolution=resolution,
            evaluation_height=z,
            rows=rows,
            cols=cols,
            cells=cells,
            statistics=statistics,
            dead_zones=dead_zones,
            router_ids=[r.id for r in routers],
            generation_time_s=elapsed,
        )

    def _evaluate_cell(
        self,
        routers: Sequence[RouterConfiguration],
        room: RoomModel,
        point: Point3D,
        row: int,
        col: int
    ) -> CoverageCell:
        best = None
        covering = 0
        for router in routers:
            prediction = self.propagation_model.predict(router, point, room)
            if prediction.best_rssi_dbm >= self.usable_threshold_dbm:
                covering += 1
            if best is None or prediction.best_rssi_dbm > best.best_rssi_dbm:
                best = prediction

        return CoverageCell(
            row=row,
            col=col,
            location=point,
            rssi_dbm=best.best_rssi_dbm,
            quality=best.quality,
            best_band=best.best_band,
            serving_router_id=best.transmitter_id,
            covering_routers=covering,
        )

    def _build_statistics(
        self,
        grid: np.ndarray,
        usable_count: int,
        redundant_count: int,
        signal_sum: float
    ) -> CoverageStatistics:
        total = grid.size
        stats = calculate_signal_statistics(grid)

        fractions = {quality: 0 for quality in SignalQuality}
        for value in grid.flat:
            fractions[SignalQuality.from_rssi(float(value))] += 1
        fractions = {quality: count / total for quality, count in fractions.items()}

        quality_score = sum(QUALITY_WEIGHTS[q] * f for q, f in fractions.items())

        return CoverageStatistics(
            total_points=total,
            usable_coverage_percentage=usable_count / total,
            redundant_coverage_percentage=redundant_count / total,
            average_signal_dbm=signal_sum / total,
            min_signal_dbm=stats["min"],
            max_signal_dbm=stats["max"],
            excellent_fraction=fractions[SignalQuality.EXCELLENT],
            good_fraction=fractions[SignalQuality.GOOD],
            fair_fraction=fractions[SignalQuality.FAIR],
            poor_fraction=fractions[SignalQuality.POOR],
            overall_quality_score=min(1.0, max(0.0, quality_score)),
        )

    def find_dead_zones(
        self,
        grid: np.ndarray,
        bounds: BoundingBox,
        resolution: float,
        z: float
    ) -> List[DeadZone]:
        """Connected regions below the poor threshold, worst first."""
        floor = self.propagation_model.signal_floor_dbm
        span = max(FAIR_THRESHOLD_DBM - floor, 1e-6)
        dead_zones = []

        for index, region in enumerate(find_regions(grid < FAIR_THRESHOLD_DBM), start=1):
            values = grid[region.mask]
            average = float(values.mean())
            zone_bounds = region_bounds(region, bounds, resolution, z)
            dead_zones.append(DeadZone(
                id=f"dead-zone-{index}",
                bounds=zone_bounds,
                center=zone_bounds.center,
                area_m2=region.cell_count * resolution * resolution,
                cell_count=region.cell_count,
                average_rssi_dbm=average,
                min_rssi_dbm=float(values.min()),
                severity=min(1.0, max(0.0, (FAIR_THRESHOLD_DBM - average) / span)),
            ))

        dead_zones.sort(key=lambda zone: (-zone.severity, -zone.area_m2))
        return dead_zones
