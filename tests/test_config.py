"""Tests for settings and logging setup."""

import pytest
import structlog
from pydantic import ValidationError
from py_powercell.config import Settings
from py_powercell.logging_config import configure_logging


class TestSettings:
    """Test configuration loading."""

    def test_defaults(self):
        """Test default tolerances."""
        settings = Settings()
        assert settings.clip_tolerance == 1e-4
        assert settings.far_factor == 4.0
        assert settings.log_format == "console"

    def test_env_override(self, monkeypatch):
        """Test that prefixed environment variables override defaults."""
        monkeypatch.setenv("POWERCELL_CLIP_TOLERANCE", "0.001")
        monkeypatch.setenv("POWERCELL_LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.clip_tolerance == 0.001
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("field,value", [
        ("clip_tolerance", 0.0),
        ("far_factor", 1.0),
        ("validation_tolerance", -1.0),
    ])
    def test_invalid_values(self, field, value):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            Settings(**{field: value})


class TestLogging:
    """Test structlog configuration."""

    @pytest.mark.parametrize("log_format", ["console", "json"])
    def test_configure(self, log_format):
        """Test that both renderers configure cleanly."""
        configure_logging(Settings(log_format=log_format))
        logger = structlog.get_logger("py_powercell.test")
        logger.info("Configured", log_format=log_format)
        structlog.reset_defaults()
