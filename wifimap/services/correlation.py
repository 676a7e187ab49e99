"""Correlation of survey samples with network controller reports."""

from collections import Counter, deque
from typing import Iterable, List, Optional
import logging
import threading

import numpy as np

from wifimap.core.config import settings
from wifimap.schemas.measurement import (
    CorrelatedMeasurement, CorrelationQuality, CorrelationReport, CorrelationStatus,
    CorrelationValidation, ExternalConnectionState, WiFiMeasurement
)

logger = logging.getLogger(__name__)

TIMESTAMP_WEIGHT = 0.4
LOCATION_WEIGHT = 0.3
SIGNAL_WEIGHT = 0.3

# Location confidence when either side has no position
UNKNOWN_LOCATION_CONFIDENCE = 0.5

RECENT_WINDOW = 10


def _linear_decay(delta: float, tolerance: float) -> float:
    if tolerance <= 0:
        return 1.0 if delta == 0 else 0.0
    return max(0.0, 1.0 - abs(delta) / tolerance)


class MeasurementCorrelator:
    """Matches app-side samples to the controller's view of the same client."""

    def __init__(
        self,
        time_tolerance_s: Optional[float] = None,
        distance_tolerance_m: Optional[float] = None,
        signal_tolerance_db: Optional[float] = None,
        history_limit: Optional[int] = None
    ):
        self.time_tolerance_s = time_tolerance_s or settings.CORRELATION_TIME_TOLERANCE_S
        self.distance_tolerance_m = distance_tolerance_m or settings.CORRELATION_DISTANCE_TOLERANCE_M
        self.signal_tolerance_db = signal_tolerance_db or settings.CORRELATION_SIGNAL_TOLERANCE_DB
        self._history: deque = deque(maxlen=history_limit or settings.CORRELATION_HISTORY_LIMIT)
        self._lock = threading.Lock()

    def correlate(
        self,
        measurements: Iterable[WiFiMeasurement],
        external_state: Optional[ExternalConnectionState]
    ) -> List[CorrelatedMeasurement]:
        """Score every measurement against the controller state and record it."""
        results = [self.correlate_one(m, external_state) for m in measurements]

        with self._lock:
            self._history.extend(results)

        if results:
            logger.debug(
                f"Correlated {len(results)} measurements, mean confidence "
                f"{np.mean([r.confidence for r in results]):.2f}"
            )
        return results

    def correlate_one(
        self,
        measurement: WiFiMeasurement,
        external_state: Optional[ExternalConnectionState]
    ) -> CorrelatedMeasurement:
        if external_state is None:
            return CorrelatedMeasurement(measurement=measurement)

        delta_s = abs((measurement.timestamp - external_state.timestamp).total_seconds())
        timestamp_confidence = _linear_decay(delta_s, self.time_tolerance_s)

        if measurement.location is None or external_state.location is None:
            location_confidence = UNKNOWN_LOCATION_CONFIDENCE
        else:
            distance = measurement.location.distance_to(external_state.location)
            location_confidence = _linear_decay(distance, self.distance_tolerance_m)

        signal_confidence = _linear_decay(
            measurement.signal_strength_dbm - external_state.signal_strength_dbm,
            self.signal_tolerance_db
        )

        confidence = (
            TIMESTAMP_WEIGHT * timestamp_confidence +
            LOCATION_WEIGHT * location_confidence +
            SIGNAL_WEIGHT * signal_confidence
        )

        return CorrelatedMeasurement(
            measurement=measurement,
            external_state=external_state,
            timestamp_confidence=timestamp_confidence,
            location_confidence=location_confidence,
            signal_confidence=signal_confidence,
            confidence=confidence,
            timestamp_delta_s=delta_s,
            quality=CorrelationQuality.from_confidence(confidence),
        )

    @property
    def history(self) -> List[CorrelatedMeasurement]:
        with self._lock:
            return list(self._history)

    def clear_history(self):
        with self._lock:
            self._history.clear()

    def validate_correlation_accuracy(self) -> CorrelationValidation:
        history = self.history
        if not history:
            return CorrelationValidation()

        confidences = [c.confidence for c in history]
        deltas = [c.timestamp_delta_s for c in history if c.timestamp_delta_s is not None]

        return CorrelationValidation(
            total=len(history),
            high_confidence=sum(1 for c in confidences if c > 0.7),
            medium_confidence=sum(1 for c in confidences if 0.4 <= c <= 0.7),
            low_confidence=sum(1 for c in confidences if c < 0.4),
            average_confidence=float(np.mean(confidences)),
            average_timestamp_delta_s=float(np.mean(deltas)) if deltas else 0.0,
        )

    def current_status(self) -> CorrelationStatus:
        """Quality of the most recent correlations."""
        recent = self.history[-RECENT_WINDOW:]
        if not recent:
            return CorrelationStatus(quality=CorrelationQuality.POOR, recent_count=0, average_confidence=0.0)

        average = float(np.mean([c.confidence for c in recent]))
        return CorrelationStatus(
            quality=CorrelationQuality.from_confidence(average),
            recent_count=len(recent),
            average_confidence=average,
            last_correlated_at=recent[-1].correlated_at,
        )

    def generate_report(self) -> CorrelationReport:
        validation = self.validate_correlation_accuracy()
        status = self.current_status()
        counts = Counter(c.quality for c in self.history)
        quality_counts = {quality: counts.get(quality, 0) for quality in CorrelationQuality}

        summary = [
            f"{validation.total} correlated measurements",
            f"Average confidence {validation.average_confidence:.2f}",
            f"Recent correlation quality: {status.quality.value}",
        ]
        if validation.total and validation.low_confidence > validation.total / 2:
            summary.append("Most correlations are weak; check clock sync and survey positions")

        return CorrelationReport(
            validation=validation,
            status=status,
            quality_counts=quality_counts,
            summary=summary,
        )
