"""Field measurement, calibration and correlation schemas."""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from wifimap.core.config import settings
from wifimap.schemas.geometry import Point3D
from wifimap.schemas.router import FrequencyBand
from wifimap.schemas.signal import SignalPrediction


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WiFiMeasurement(BaseModel):
    """One survey sample collected on site."""
    id: str
    location: Optional[Point3D] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    signal_strength_dbm: float = Field(..., le=0)
    network_name: str = ""
    throughput_mbps: Optional[float] = Field(None, ge=0)
    band: Optional[FrequencyBand] = None

    model_config = ConfigDict(frozen=True)


class CalibrationPoint(BaseModel):
    """A prediction matched with the measurement taken at the same spot."""
    location: Point3D
    prediction: SignalPrediction
    measurement: WiFiMeasurement
    timestamp: datetime = Field(default_factory=_utcnow)
    error_normalization_db: float = Field(default_factory=lambda: settings.ERROR_NORMALIZATION_DB, gt=0)

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def prediction_errors(self) -> Dict[FrequencyBand, float]:
        measured = self.measurement.signal_strength_dbm
        return {band: abs(p.rssi_dbm - measured) for band, p in self.prediction.bands.items()}

    @property
    def signed_error(self) -> float:
        """Predicted minus measured on the compared band."""
        predicted = self.prediction.rssi_for(self.measurement.band)
        return predicted - self.measurement.signal_strength_dbm

    @property
    def error(self) -> float:
        return abs(self.signed_error)

    @computed_field
    @property
    def accuracy_score(self) -> float:
        return max(0.0, 1.0 - self.error / self.error_normalization_db)

    @property
    def throughput_error_mbps(self) -> Optional[float]:
        """Predicted minus measured throughput, when both are known."""
        if self.measurement.throughput_mbps is None or self.prediction.throughput is None:
            return None
        return self.prediction.throughput.estimated_mbps - self.measurement.throughput_mbps


class ValidationMetrics(BaseModel):
    """Agreement between paired predicted and measured values."""
    mean_error: float = Field(..., ge=0)
    rmse: float = Field(..., ge=0)
    correlation: float = Field(0.0, ge=-1, le=1)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unavailable(cls) -> "ValidationMetrics":
        return cls(mean_error=math.inf, rmse=math.inf, correlation=0.0)


class ValidationResults(BaseModel):
    accuracy: float = Field(..., ge=0, le=1)
    mean_error: float = Field(..., ge=0)
    validation_points: int = Field(..., ge=0)
    low_confidence: bool = False
    rmse: float = Field(0.0, ge=0)
    correlation: float = Field(0.0, ge=-1, le=1)
    throughput_points: int = Field(0, ge=0)
    throughput_mean_error_mbps: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unavailable(cls) -> "ValidationResults":
        return cls(
            accuracy=0.0, mean_error=math.inf, rmse=math.inf, validation_points=0, low_confidence=True
        )

    @property
    def is_acceptable(self) -> bool:
        return self.accuracy > 0.7 and self.mean_error < 10.0 and self.validation_points >= 5


class CalibrationStatus(BaseModel):
    point_count: int = Field(..., ge=0)
    mean_error_db: float = Field(..., ge=0)
    needs_recalibration: bool
    suggested_offset_db: float = 0.0
    checked_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class ExternalConnectionState(BaseModel):
    """Connection state reported by a third-party network controller."""
    device_id: str
    band: Optional[FrequencyBand] = None
    signal_strength_dbm: float
    timestamp: datetime
    location: Optional[Point3D] = None

    model_config = ConfigDict(frozen=True)


class CorrelationQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_confidence(cls, confidence: float) -> "CorrelationQuality":
        if confidence > 0.8:
            return cls.EXCELLENT
        if confidence > 0.6:
            return cls.GOOD
        if confidence > 0.4:
            return cls.FAIR
        return cls.POOR


class CorrelatedMeasurement(BaseModel):
    measurement: WiFiMeasurement
    external_state: Optional[ExternalConnectionState] = None
    timestamp_confidence: float = Field(0.0, ge=0, le=1)
    location_confidence: float = Field(0.0, ge=0, le=1)
    signal_confidence: float = Field(0.0, ge=0, le=1)
    confidence: float = Field(0.0, ge=0, le=1)
    timestamp_delta_s: Optional[float] = Field(None, ge=0)
    quality: CorrelationQuality = CorrelationQuality.POOR
    correlated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class CorrelationValidation(BaseModel):
    total: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    average_confidence: float = 0.0
    average_timestamp_delta_s: float = 0.0

    model_config = ConfigDict(frozen=True)


class CorrelationStatus(BaseModel):
    quality: CorrelationQuality
    recent_count: int
    average_confidence: float
    last_correlated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class CorrelationReport(BaseModel):
    validation: CorrelationValidation
    status: CorrelationStatus
    quality_counts: Dict[CorrelationQuality, int]
    summary: List[str]
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)
