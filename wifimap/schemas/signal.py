"""Signal prediction and coverage map schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from wifimap.schemas.geometry import BoundingBox, Point3D
from wifimap.schemas.router import FrequencyBand

# RSSI bucket thresholds (dBm)
EXCELLENT_THRESHOLD_DBM = -50.0
GOOD_THRESHOLD_DBM = -70.0
FAIR_THRESHOLD_DBM = -85.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_rssi(cls, rssi_dbm: float) -> "SignalQuality":
        if rssi_dbm >= EXCELLENT_THRESHOLD_DBM:
            return cls.EXCELLENT
        if rssi_dbm >= GOOD_THRESHOLD_DBM:
            return cls.GOOD
        if rssi_dbm >= FAIR_THRESHOLD_DBM:
            return cls.FAIR
        return cls.POOR


class BandPrediction(BaseModel):
    band: FrequencyBand
    rssi_dbm: float
    snr_db: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0, le=1)
    path_loss_db: float
    obstruction_loss_db: float = Field(0.0, ge=0)

    model_config = ConfigDict(frozen=True)


class ThroughputEstimate(BaseModel):
    """Expected link rate derived from the SNR on one band."""
    band: FrequencyBand
    theoretical_mbps: float = Field(..., ge=0)
    estimated_mbps: float = Field(..., ge=0)
    efficiency: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class SignalPrediction(BaseModel):
    """Result of one propagation evaluation at a single point."""
    location: Point3D
    bands: Dict[FrequencyBand, BandPrediction]
    best_rssi_dbm: float
    best_band: FrequencyBand
    quality: SignalQuality
    confidence: float = Field(..., ge=0, le=1)
    walls_crossed: int = Field(0, ge=0)
    transmitter_id: Optional[str] = None
    throughput: Optional[ThroughputEstimate] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    def rssi_for(self, band: Optional[FrequencyBand]) -> float:
        """RSSI on a band, or the best band when the band was not predicted."""
        if band is not None and band in self.bands:
            return self.bands[band].rssi_dbm
        return self.best_rssi_dbm


class CoverageCell(BaseModel):
    row: int
    col: int
    location: Point3D
    rssi_dbm: float
    quality: SignalQuality
    best_band: FrequencyBand
    serving_router_id: str
    covering_routers: int = Field(0, ge=0, description="Routers above the usable threshold here")

    model_config = ConfigDict(frozen=True)


class CoverageStatistics(BaseModel):
    total_points: int = Field(..., ge=0)
    usable_coverage_percentage: float = Field(..., ge=0, le=1)
    redundant_coverage_percentage: float = Field(..., ge=0, le=1)
    average_signal_dbm: float
    min_signal_dbm: float
    max_signal_dbm: float
    excellent_fraction: float = Field(0.0, ge=0, le=1)
    good_fraction: float = Field(0.0, ge=0, le=1)
    fair_fraction: float = Field(0.0, ge=0, le=1)
    poor_fraction: float = Field(0.0, ge=0, le=1)
    overall_quality_score: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class DeadZone(BaseModel):
    """Connected region of cells below the poor threshold."""
    id: str
    bounds: BoundingBox
    center: Point3D
    area_m2: float = Field(..., ge=0)
    cell_count: int = Field(..., ge=1)
    average_rssi_dbm: float
    min_rssi_dbm: float
    severity: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class CoverageMap(BaseModel):
    """Snapshot of predicted signal over a room at one evaluation height."""
    room_id: str
    bounds: BoundingBox
    resolution: float = Field(..., gt=0)
    evaluation_height: float
    rows: int = Field(..., ge=1)
    cols: int = Field(..., ge=1)
    cells: List[CoverageCell]
    statistics: CoverageStatistics
    dead_zones: List[DeadZone] = Field(default_factory=list)
    router_ids: List[str] = Field(default_factory=list)
    generation_time_s: float = Field(0.0, ge=0)
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    def as_grid(self) -> np.ndarray:
        """Best-band RSSI as a (rows, cols) array, row index along y."""
        grid = np.full((self.rows, self.cols), np.nan)
        for cell in self.cells:
            grid[cell.row, cell.col] = cell.rssi_dbm
        return grid

    def cell_at(self, point: Point3D) -> Optional[CoverageCell]:
        col = int((point.x - self.bounds.min.x) // self.resolution)
        row = int((point.y - self.bounds.min.y) // self.resolution)
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            return None
        return self.cells[row * self.cols + col]
