"""Prediction validation against field measurements.

Every compared prediction/measurement pair is kept as a calibration point
in a bounded history. Once enough points accumulate, the recent error is
checked and subscribers are told whether the model needs recalibration.
"""

from collections import deque
from typing import Callable, Iterable, List, Optional, Sequence
import logging
import math
import threading

import numpy as np

from wifimap.core.config import settings
from wifimap.schemas.geometry import Point3D
from wifimap.schemas.measurement import (
    CalibrationPoint, CalibrationStatus, ValidationMetrics, ValidationResults, WiFiMeasurement
)
from wifimap.schemas.signal import SignalPrediction

logger = logging.getLogger(__name__)

Predictor = Callable[[Point3D], Optional[SignalPrediction]]
CalibrationListener = Callable[[CalibrationStatus], None]


def compare_predictions(predicted: Sequence[float], measured: Sequence[float]) -> ValidationMetrics:
    """
    Mean absolute error, RMSE and Pearson correlation of paired values.

    Mismatched or empty inputs give infinite errors and zero correlation.
    A constant series has no defined correlation and reports 0.
    """
    if len(predicted) != len(measured) or not predicted:
        return ValidationMetrics.unavailable()

    x = np.asarray(predicted, dtype=float)
    y = np.asarray(measured, dtype=float)
    diff = x - y

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    correlation = float(np.sum(dx * dy)) / denominator if denominator > 0 else 0.0

    return ValidationMetrics(
        mean_error=float(np.mean(np.abs(diff))),
        rmse=float(np.sqrt(np.mean(diff * diff))),
        correlation=max(-1.0, min(1.0, correlation)),
    )


class CalibrationTracker:
    """
    Compares predictions with measurements and tracks calibration state.

    Thread-safe: batches are appended and the oldest points evicted under a
    single lock, so the history never exceeds its cap.
    """

    def __init__(
        self,
        history_limit: Optional[int] = None,
        check_threshold: Optional[int] = None,
        recalibration_error_db: Optional[float] = None,
        error_normalization_db: Optional[float] = None,
        min_validation_points: Optional[int] = None
    ):
        self.history_limit = history_limit or settings.CALIBRATION_HISTORY_LIMIT
        self.check_threshold = check_threshold or settings.CALIBRATION_CHECK_THRESHOLD
        self.recalibration_error_db = recalibration_error_db or settings.RECALIBRATION_ERROR_DB
        self.error_normalization_db = error_normalization_db or settings.ERROR_NORMALIZATION_DB
        self.min_validation_points = min_validation_points or settings.MIN_VALIDATION_POINTS

        self._history: deque = deque(maxlen=self.history_limit)
        self._lock = threading.Lock()
        self._listeners: List[CalibrationListener] = []
        self._listeners_lock = threading.Lock()
        self.last_status: Optional[CalibrationStatus] = None

    def validate(
        self,
        predict: Predictor,
        measurements: Iterable[WiFiMeasurement]
    ) -> ValidationResults:
        """
        Compare predictions with measurements taken at known locations.

        Args:
            predict: Returns the prediction at a point, or None if unavailable
            measurements: Survey samples; those without a location are skipped

        Returns:
            ValidationResults; accuracy 0 and infinite error when nothing
            could be compared
        """
        points = []
        for measurement in measurements:
            if measurement.location is None:
                continue
            prediction = predict(measurement.location)
            if prediction is None:
                continue
            points.append(self._point(prediction, measurement))

        if not points:
            logger.warning("No measurement could be compared with a prediction")
            return ValidationResults.unavailable()

        metrics = compare_predictions(
            [p.prediction.rssi_for(p.measurement.band) for p in points],
            [p.measurement.signal_strength_dbm for p in points],
        )
        mean_error = metrics.mean_error
        accuracy = self.accuracy_from_error(mean_error)

        throughput_errors = []
        for p in points:
            error = p.throughput_error_mbps
            if error is not None:
                throughput_errors.append(abs(error))

        low_confidence = len(points) < self.min_validation_points

        self._record(points)

        logger.info(
            f"Validated {len(points)} measurements: mean error {mean_error:.1f}dB, "
            f"rmse {metrics.rmse:.1f}dB, r={metrics.correlation:.2f}, "
            f"accuracy {accuracy:.2f}" + (" (low confidence)" if low_confidence else "")
        )

        return ValidationResults(
            accuracy=accuracy,
            mean_error=mean_error,
            validation_points=len(points),
            low_confidence=low_confidence,
            rmse=metrics.rmse,
            correlation=metrics.correlation,
            throughput_points=len(throughput_errors),
            throughput_mean_error_mbps=float(np.mean(throughput_errors)) if throughput_errors else None,
        )

    def incorporate_measurement(
        self,
        predict: Predictor,
        measurement: WiFiMeasurement
    ) -> Optional[CalibrationPoint]:
        """Add a single measurement to the calibration history."""
        if measurement.location is None:
            return None
        prediction = predict(measurement.location)
        if prediction is None:
            return None
        point = self._point(prediction, measurement)
        self._record([point])
        return point

    def accuracy_from_error(self, mean_error: float) -> float:
        if math.isinf(mean_error) or math.isnan(mean_error):
            return 0.0
        return max(0.0, min(1.0, 1.0 - mean_error / self.error_normalization_db))

    def overall_accuracy(self) -> float:
        """Mean accuracy score across the whole history."""
        with self._lock:
            scores = [p.accuracy_score for p in self._history]
        return float(np.mean(scores)) if scores else 0.0

    @property
    def points(self) -> List[CalibrationPoint]:
        with self._lock:
            return list(self._history)

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def clear(self):
        with self._lock:
            self._history.clear()
        self.last_status = None

    def subscribe(self, listener: CalibrationListener) -> Callable[[], None]:
        """
        Register a listener for calibration checks.

        Listeners run on the thread that recorded the points.

        Returns:
            A callable that removes the listener
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def check_calibration(self) -> Optional[CalibrationStatus]:
        """Evaluate the most recent points; None until enough have accumulated."""
        with self._lock:
            if len(self._history) < self.check_threshold:
                return None
            recent = list(self._history)[-self.check_threshold:]
            count = len(self._history)

        mean_error = float(np.mean([p.error for p in recent]))
        bias = float(np.mean([p.signed_error for p in recent]))
        status = CalibrationStatus(
            point_count=count,
            mean_error_db=mean_error,
            needs_recalibration=mean_error > self.recalibration_error_db,
            suggested_offset_db=-bias,
        )
        return status

    def _point(self, prediction: SignalPrediction, measurement: WiFiMeasurement) -> CalibrationPoint:
        return CalibrationPoint(
            location=measurement.location,
            prediction=prediction,
            measurement=measurement,
            error_normalization_db=self.error_normalization_db,
        )

    def _record(self, points: List[CalibrationPoint]):
        with self._lock:
            before = len(self._history)
            self._history.extend(points)
            after = len(self._history)
            evicted = before + len(points) - after

        if evicted:
            logger.debug(f"Evicted {evicted} oldest calibration points")

        if after < self.check_threshold:
            return

        status = self.check_calibration()
        if status is None:
            return
        self.last_status = status
        if status.needs_recalibration:
            logger.warning(
                f"Recent prediction error {status.mean_error_db:.1f}dB exceeds "
                f"{self.recalibration_error_db:.1f}dB; recalibration recommended "
                f"(suggested offset {status.suggested_offset_db:+.1f}dB)"
            )

        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(status)
