# Pydantic schemas
from wifimap.schemas.geometry import (
    Point3D, BoundingBox, WallMaterial, WallElement, FurnitureType, FurnitureItem,
    PlacementSurface, SurfaceAccessibility, OpeningType, Opening, FloorPlan, RoomModel
)
from wifimap.schemas.router import (
    FrequencyBand, WiFiStandard, DeviceSpec, DeviceDimensions, RouterConfiguration,
    default_router_spec, default_extender_spec
)
from wifimap.schemas.signal import (
    SignalQuality, BandPrediction, ThroughputEstimate, SignalPrediction, CoverageCell, CoverageStatistics,
    DeadZone, CoverageMap
)
from wifimap.schemas.measurement import (
    WiFiMeasurement, CalibrationPoint, ValidationMetrics, ValidationResults, CalibrationStatus,
    ExternalConnectionState, CorrelatedMeasurement, CorrelationQuality,
    CorrelationValidation, CorrelationStatus, CorrelationReport
)
from wifimap.schemas.optimization import (
    OptimizationStrategy, SearchIntensity, IndoorEnvironment, RouterPlacementConstraints,
    PlacementConstraints, QualityRequirements, SearchParameters, ScoreWeights,
    OptimizerConfiguration, CandidateSource, CoverageQuality, RouterLocationEvaluation,
    RouterPlacementRecommendation, RouterPlacementResult, NetworkConfiguration,
    GapPriority, CoverageGap, GapCharacteristics, CoverageGapAnalysis,
    InstallationComplexity, CoverageImprovement, ExtenderRecommendation,
    CoverageProjection, ExtenderPlacementStrategy, RFAnalysisReport
)
