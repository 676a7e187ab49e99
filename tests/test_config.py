"""Tests for settings and logging setup."""

import logging

import pytest

from wifimap.core.config import Settings
from wifimap.core.logging_config import HANDLER_NAME, configure_logging
from wifimap.services.coverage import CoverageMapGenerator
from wifimap.services.rf_propagation import PropagationModel
from wifimap.schemas.optimization import IndoorEnvironment


@pytest.fixture
def clean_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(handler)
    root.setLevel(level)


class TestSettings:
    """Test environment overrides."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.SIGNAL_FLOOR_DBM == -100.0
        assert settings.SIGNAL_CEILING_DBM == -20.0
        assert settings.GRID_RESOLUTION_M == 0.5
        assert settings.broker_url == settings.REDIS_URL

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GRID_RESOLUTION_M", "0.25")
        monkeypatch.setenv("INDOOR_ENVIRONMENT", "enterprise")
        monkeypatch.setenv("CELERY_BROKER_URL", "redis://broker:6379/1")

        settings = Settings(_env_file=None)

        assert settings.GRID_RESOLUTION_M == 0.25
        assert settings.INDOOR_ENVIRONMENT == "enterprise"
        assert settings.broker_url == "redis://broker:6379/1"

    def test_components_read_settings(self, monkeypatch):
        monkeypatch.setattr("wifimap.services.rf_propagation.settings.INDOOR_ENVIRONMENT", "enterprise")
        monkeypatch.setattr("wifimap.services.coverage.settings.EVALUATION_HEIGHT_M", 1.0)

        assert PropagationModel().environment == IndoorEnvironment.ENTERPRISE
        assert CoverageMapGenerator().evaluation_height == 1.0


class TestLogging:
    """Test console logging setup."""

    def test_handler_is_not_stacked(self, clean_root_logger):
        configure_logging("DEBUG")
        configure_logging("DEBUG")

        named = [h for h in clean_root_logger.handlers if h.get_name() == HANDLER_NAME]
        assert len(named) == 1
        assert clean_root_logger.level == logging.DEBUG

    def test_level_from_argument(self, clean_root_logger):
        configure_logging("warning")
        assert clean_root_logger.level == logging.WARNING
