"""Placement optimization schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from wifimap.schemas.geometry import BoundingBox, Point3D
from wifimap.schemas.router import RouterConfiguration
from wifimap.schemas.signal import CoverageMap


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OptimizationStrategy(str, Enum):
    COVERAGE = "coverage"
    QUALITY = "quality"
    MULTI_OBJECTIVE = "multi_objective"


class SearchIntensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IndoorEnvironment(str, Enum):
    RESIDENTIAL = "residential"
    ENTERPRISE = "enterprise"


class RouterPlacementConstraints(BaseModel):
    """Where a router may physically be installed."""
    min_height: float = Field(0.5, ge=0)
    max_height: float = Field(3.0, ge=0)
    preferred_height: float = Field(1.5, ge=0)
    min_wall_distance: float = Field(0.3, ge=0)
    requires_power_outlet: bool = True
    requires_internet_connection: bool = True
    max_power_distance: float = Field(2.0, ge=0, description="Max distance to a wall outlet in meters")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_heights(self):
        if self.min_height > self.max_height:
            raise ValueError("min_height must not exceed max_height")
        return self


class PlacementConstraints(BaseModel):
    """Deployment budget for a whole network."""
    max_devices: int = Field(5, ge=1)
    budget: float = Field(1000.0, ge=0)
    max_extenders: int = Field(3, ge=0)

    model_config = ConfigDict(frozen=True)


class QualityRequirements(BaseModel):
    minimum_coverage: float = Field(0.9, ge=0, le=1)
    minimum_signal_level: float = Field(-70.0, le=0)
    uniformity: float = Field(0.7, ge=0, le=1)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def residential(cls) -> "QualityRequirements":
        return cls(minimum_coverage=0.9, minimum_signal_level=-70.0, uniformity=0.7)

    @classmethod
    def enterprise(cls) -> "QualityRequirements":
        return cls(minimum_coverage=0.95, minimum_signal_level=-65.0, uniformity=0.85)


class SearchParameters(BaseModel):
    max_recommendations: int = Field(5, ge=1)
    search_intensity: SearchIntensity = SearchIntensity.MEDIUM
    timeout_s: float = Field(30.0, gt=0, description="Advisory time budget")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def balanced(cls) -> "SearchParameters":
        return cls(max_recommendations=5, search_intensity=SearchIntensity.MEDIUM, timeout_s=30.0)

    @classmethod
    def thorough(cls) -> "SearchParameters":
        return cls(max_recommendations=10, search_intensity=SearchIntensity.HIGH, timeout_s=60.0)


class ScoreWeights(BaseModel):
    coverage: float = Field(0.5, ge=0)
    practical: float = Field(0.3, ge=0)
    accessibility: float = Field(0.2, ge=0)

    model_config = ConfigDict(frozen=True)


class OptimizerConfiguration(BaseModel):
    environment: IndoorEnvironment = IndoorEnvironment.RESIDENTIAL
    strategy: OptimizationStrategy = OptimizationStrategy.MULTI_OBJECTIVE
    placement_constraints: PlacementConstraints = Field(default_factory=PlacementConstraints)
    quality_requirements: QualityRequirements = Field(default_factory=QualityRequirements)
    search_parameters: SearchParameters = Field(default_factory=SearchParameters)
    score_weights: ScoreWeights = Field(default_factory=ScoreWeights)

    model_config = ConfigDict(frozen=True)


class CandidateSource(str, Enum):
    CENTRAL = "central"
    ELEVATED = "elevated"
    FURNITURE = "furniture"
    GAP_CENTER = "gap_center"
    RELAY = "relay"


class CoverageQuality(BaseModel):
    coverage_percentage: float = Field(..., ge=0, le=1)
    average_signal_dbm: float
    uniformity: float = Field(..., ge=0, le=1)
    score: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class RouterLocationEvaluation(BaseModel):
    location: Point3D
    source: CandidateSource
    furniture_id: Optional[str] = None
    coverage_quality: CoverageQuality
    practical_score: float = Field(..., ge=0, le=1)
    interference_risk: float = Field(..., ge=0, le=1)
    accessibility_score: float = Field(..., ge=0, le=1)
    overall_score: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class RouterPlacementRecommendation(BaseModel):
    rank: int = Field(..., ge=1)
    location: Point3D
    evaluation: RouterLocationEvaluation
    score: float = Field(..., ge=0)
    reasoning: str

    model_config = ConfigDict(frozen=True)


class RouterPlacementResult(BaseModel):
    """Ranked recommendations. Empty with a reason when no location qualifies."""
    room_id: str
    recommendations: List[RouterPlacementRecommendation] = Field(default_factory=list)
    candidates_considered: int = Field(0, ge=0)
    candidates_valid: int = Field(0, ge=0)
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not self.recommendations

    @property
    def best(self) -> Optional[RouterPlacementRecommendation]:
        return self.recommendations[0] if self.recommendations else None


class NetworkConfiguration(BaseModel):
    """Existing transmitters the extender search builds on."""
    routers: List[RouterConfiguration] = Field(..., min_length=1)
    quality_requirements: QualityRequirements = Field(default_factory=QualityRequirements)
    placement_constraints: PlacementConstraints = Field(default_factory=PlacementConstraints)

    model_config = ConfigDict(frozen=True)


class GapPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> float:
        return {"low": 0.3, "medium": 0.6, "high": 1.0}[self.value]


class CoverageGap(BaseModel):
    id: str
    bounds: BoundingBox
    center: Point3D
    area_m2: float = Field(..., ge=0)
    average_signal_dbm: float
    priority: GapPriority
    cells: List[Point3D]

    model_config = ConfigDict(frozen=True)


class GapCharacteristics(BaseModel):
    total_gap_area_m2: float = Field(0.0, ge=0)
    gap_count: int = Field(0, ge=0)
    largest_gap_area_m2: float = Field(0.0, ge=0)
    complexity_multiplier: float = Field(1.0, ge=1, le=2)

    model_config = ConfigDict(frozen=True)


class CoverageGapAnalysis(BaseModel):
    current_coverage: float = Field(..., ge=0, le=1)
    target_coverage: float = Field(..., ge=0, le=1)
    coverage_gap: float = Field(..., ge=0, le=1)
    gaps: List[CoverageGap]
    characteristics: GapCharacteristics

    model_config = ConfigDict(frozen=True)


class InstallationComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class CoverageImprovement(BaseModel):
    additional_coverage: float = Field(..., ge=0, le=1)
    cells_covered: int = Field(..., ge=0)
    quality_improvement: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class ExtenderRecommendation(BaseModel):
    rank: int = Field(..., ge=1)
    location: Point3D
    source: CandidateSource
    target_gap_ids: List[str]
    improvement: CoverageImprovement
    backhaul_rssi_dbm: float
    installation_complexity: InstallationComplexity
    reasoning: str

    model_config = ConfigDict(frozen=True)


class CoverageProjection(BaseModel):
    current_coverage: float = Field(..., ge=0, le=1)
    projected_coverage: float = Field(..., ge=0, le=1)
    improvement: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class ExtenderPlacementStrategy(BaseModel):
    baseline: NetworkConfiguration
    coverage_analysis: CoverageGapAnalysis
    recommended_extender_count: int = Field(..., ge=0)
    recommendations: List[ExtenderRecommendation]
    projected_improvement: CoverageProjection
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class RFAnalysisReport(BaseModel):
    """Summary of a session's current coverage and calibration state."""
    room_id: str
    router_count: int
    coverage: Optional[CoverageMap] = None
    calibration_points: int = 0
    validation_accuracy: float = Field(0.0, ge=0, le=1)
    recommendations: List[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)
