"""Application configuration settings."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Engine defaults loaded from environment variables."""

    # Application
    APP_NAME: str = "WiFi Coverage Planner"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Task queue
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: Optional[str] = None  # falls back to REDIS_URL
    CELERY_TASK_TIME_LIMIT: int = 600

    # Propagation
    INDOOR_ENVIRONMENT: str = "residential"  # residential | enterprise
    SIGNAL_FLOOR_DBM: float = -100.0
    SIGNAL_CEILING_DBM: float = -20.0
    MIN_PREDICTION_CONFIDENCE: float = 0.1
    PRACTICAL_RANGE_M: float = 50.0
    NOISE_FLOOR_DBM: float = -95.0
    WALL_FREQUENCY_SCALING: bool = False

    # Coverage grid
    GRID_RESOLUTION_M: float = 0.5
    EVALUATION_HEIGHT_M: float = 1.2  # device carry height above floor
    USABLE_SIGNAL_DBM: float = -70.0
    PROGRESS_INTERVAL_CELLS: int = 50

    # Placement optimizer
    OPTIMIZER_MAX_WORKERS: int = 4
    PLACEMENT_CACHE_SIZE: int = 64

    # Calibration
    CALIBRATION_HISTORY_LIMIT: int = 1000
    CALIBRATION_CHECK_THRESHOLD: int = 20
    RECALIBRATION_ERROR_DB: float = 8.0
    ERROR_NORMALIZATION_DB: float = 20.0
    MIN_VALIDATION_POINTS: int = 5

    # Measurement correlation
    CORRELATION_HISTORY_LIMIT: int = 1000
    CORRELATION_TIME_TOLERANCE_S: float = 2.0
    CORRELATION_DISTANCE_TOLERANCE_M: float = 1.0
    CORRELATION_SIGNAL_TOLERANCE_DB: float = 10.0

    @property
    def broker_url(self) -> str:
        return self.CELERY_BROKER_URL or self.REDIS_URL

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
