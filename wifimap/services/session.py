"""Coverage session: current room, routers and calibration state."""

from typing import Callable, Dict, List, Optional, Sequence
import logging
import threading

from wifimap.schemas.geometry import Point3D, RoomModel
from wifimap.schemas.measurement import (
    CalibrationPoint, CalibrationStatus, ValidationResults, WiFiMeasurement
)
from wifimap.schemas.optimization import RFAnalysisReport
from wifimap.schemas.router import FrequencyBand, RouterConfiguration
from wifimap.schemas.signal import CoverageMap, CoverageStatistics, SignalPrediction
from wifimap.services.coverage import CancellationToken, CoverageMapGenerator
from wifimap.services.rf_propagation import PropagationModel, check_same_frame
from wifimap.services.validation import CalibrationTracker

logger = logging.getLogger(__name__)


class CoverageSession:
    """
    Ties the engine together for one room being surveyed.

    Queries made before a room or any router is configured return None
    rather than raising.
    """

    def __init__(
        self,
        propagation_model: Optional[PropagationModel] = None,
        coverage_generator: Optional[CoverageMapGenerator] = None,
        tracker: Optional[CalibrationTracker] = None,
        auto_calibrate: bool = False
    ):
        self.propagation_model = propagation_model if propagation_model is not None else PropagationModel()
        if coverage_generator is None:
            coverage_generator = CoverageMapGenerator(self.propagation_model)
        self.coverage_generator = coverage_generator
        self.tracker = tracker if tracker is not None else CalibrationTracker()
        self.auto_calibrate = auto_calibrate

        self.room: Optional[RoomModel] = None
        self._routers: Dict[str, RouterConfiguration] = {}
        self._lock = threading.Lock()
        self._coverage: Optional[CoverageMap] = None

        self._unsubscribe = self.tracker.subscribe(self._on_calibration)

    @property
    def routers(self) -> List[RouterConfiguration]:
        with self._lock:
            return list(self._routers.values())

    @property
    def is_ready(self) -> bool:
        return self.room is not None and bool(self._routers)

    def update_room_model(self, room: RoomModel):
        """
        Switch to a new room.

        Routers pinned to another room are dropped. Unpinned routers keep
        their positions only when the same room is refreshed; switching to a
        different room drops them too, since they were placed in the old frame.
        """
        with self._lock:
            previous = self.room
            self.room = room
            if previous is not None and previous.id != room.id:
                stale = [rid for rid, r in self._routers.items() if r.room_id != room.id]
            else:
                stale = [rid for rid, r in self._routers.items() if r.room_id not in (None, room.id)]
            for rid in stale:
                del self._routers[rid]
            self._coverage = None
        if stale:
            logger.info(f"Dropped {len(stale)} routers belonging to a previous room")
        logger.info(f"Session room set to {room.id} ({room.bounds.area:.1f} m2, {len(room.walls)} walls)")

    def add_router(self, router: RouterConfiguration):
        if self.room is not None:
            check_same_frame(router, self.room)
        with self._lock:
            self._routers[router.id] = router
            self._coverage = None

    def remove_router(self, router_id: str) -> bool:
        with self._lock:
            removed = self._routers.pop(router_id, None) is not None
            if removed:
                self._coverage = None
        return removed

    def clear_routers(self):
        with self._lock:
            self._routers.clear()
            self._coverage = None

    def predict_signal_strength(
        self,
        point: Point3D,
        frequency_band: Optional[FrequencyBand] = None
    ) -> Optional[SignalPrediction]:
        """Strongest prediction across all routers, or None if not configured."""
        room = self.room
        routers = self.routers
        if room is None or not routers:
            return None

        predictions = [
            self.propagation_model.predict(router, point, room, frequency_band)
            for router in routers
        ]
        return max(predictions, key=lambda p: p.best_rssi_dbm)

    def generate_coverage_map(
        self,
        grid_resolution: Optional[float] = None,
        progress: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[CoverageMap]:
        room = self.room
        routers = self.routers
        if room is None or not routers:
            return None

        coverage = self.coverage_generator.generate(
            routers, room, grid_resolution=grid_resolution, progress=progress, cancel_token=cancel_token
        )
        with self._lock:
            self._coverage = coverage
        return coverage

    def coverage_statistics(self) -> Optional[CoverageStatistics]:
        coverage = self._coverage or self.generate_coverage_map()
        return coverage.statistics if coverage is not None else None

    def validate_predictions(self, measurements: Sequence[WiFiMeasurement]) -> ValidationResults:
        if self.room is None:
            return ValidationResults.unavailable()
        return self.tracker.validate(self.predict_signal_strength, measurements)

    def incorporate_measurement(self, measurement: WiFiMeasurement) -> Optional[CalibrationPoint]:
        if not self.is_ready:
            return None
        return self.tracker.incorporate_measurement(self.predict_signal_strength, measurement)

    def generate_analysis_report(self) -> Optional[RFAnalysisReport]:
        """Coverage, calibration and improvement suggestions for the current setup."""
        room = self.room
        if room is None:
            return None

        coverage = self._coverage or self.generate_coverage_map()
        recommendations = []

        if coverage is None:
            recommendations.append("Add a router to predict coverage")
        else:
            stats = coverage.statistics
            if stats.usable_coverage_percentage < 0.9:
                recommendations.append(
                    f"Usable coverage is {stats.usable_coverage_percentage:.0%}; "
                    "consider repositioning the router or adding an extender"
                )
            if stats.average_signal_dbm < -65.0:
                recommendations.append(
                    f"Average signal {stats.average_signal_dbm:.0f} dBm is weak; "
                    "move the router closer to where devices are used"
                )
            if coverage.dead_zones:
                recommendations.append(
                    f"{len(coverage.dead_zones)} dead zone(s) detected; "
                    "the largest needs an extender or a wired access point"
                )
            if len(coverage.router_ids) > 1 and stats.redundant_coverage_percentage < 0.3:
                recommendations.append(
                    "Little overlap between access points; roaming may drop connections"
                )

        return RFAnalysisReport(
            room_id=room.id,
            router_count=len(self.routers),
            coverage=coverage,
            calibration_points=len(self.tracker),
            validation_accuracy=self.tracker.overall_accuracy(),
            recommendations=recommendations,
        )

    def close(self):
        self._unsubscribe()

    def _on_calibration(self, status: CalibrationStatus):
        if not (self.auto_calibrate and status.needs_recalibration):
            return
        model = self.propagation_model
        model.calibration_offset_db += status.suggested_offset_db
        # Old points were predicted without the new offset
        self.tracker.clear()
        logger.info(
            f"Applied calibration offset {status.suggested_offset_db:+.1f}dB "
            f"(total {model.calibration_offset_db:+.1f}dB)"
        )
        with self._lock:
            self._coverage = None
