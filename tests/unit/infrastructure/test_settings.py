"""Tests for configuration management module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.marketlab.config import Settings, get_settings, reload_settings


class TestSettings:
    """Test the Settings class functionality."""

    def test_default_settings(self) -> None:
        """Test that default settings are correctly set."""
        settings = Settings()

        assert settings.app_name == "Market Lab"
        assert settings.version == "0.1.0"
        assert settings.environment == "development"
        assert settings.debug is False
        assert settings.api_port == 8000
        assert settings.cors_origins == ["*"]
        assert settings.max_firms == 10
        assert settings.max_rounds == 1000
        assert settings.decision_timeout_seconds == 60.0
        assert settings.timeout_policy == "abort"
        assert settings.default_seed is None

    def test_custom_settings(self) -> None:
        """Test that custom settings can be set."""
        settings = Settings(
            app_name="Test Lab",
            max_firms=4,
            decision_timeout_seconds=5.0,
            timeout_policy="pause",
            default_seed=42,
        )

        assert settings.app_name == "Test Lab"
        assert settings.max_firms == 4
        assert settings.decision_timeout_seconds == 5.0
        assert settings.timeout_policy == "pause"
        assert settings.default_seed == 42

    def test_timeout_policy_validation(self) -> None:
        """Test that only abort and pause are accepted as timeout policies."""
        Settings(timeout_policy="abort")
        Settings(timeout_policy="pause")

        with pytest.raises(ValidationError):
            Settings(timeout_policy="retry")

    def test_timeout_validation(self) -> None:
        """Test that the decision timeout must be positive."""
        Settings(decision_timeout_seconds=0.01)

        with pytest.raises(ValidationError):
            Settings(decision_timeout_seconds=0)

        with pytest.raises(ValidationError):
            Settings(decision_timeout_seconds=-1)

    def test_max_firms_validation(self) -> None:
        """Test that max_firms must allow at least a duopoly."""
        Settings(max_firms=2)
        Settings(max_firms=100)

        with pytest.raises(ValidationError):
            Settings(max_firms=1)

        with pytest.raises(ValidationError):
            Settings(max_firms=101)

    def test_log_level_validation(self) -> None:
        """Test that log_level only accepts known levels."""
        Settings(log_level="DEBUG")

        with pytest.raises(ValidationError):
            Settings(log_level="VERBOSE")

    def test_environment_variables(self) -> None:
        """Test that settings are read from prefixed environment variables."""
        with patch.dict(
            os.environ,
            {"MARKETLAB_MAX_FIRMS": "5", "MARKETLAB_TIMEOUT_POLICY": "pause"},
        ):
            settings = Settings()

        assert settings.max_firms == 5
        assert settings.timeout_policy == "pause"


class TestSettingsCache:
    """Test the cached settings accessors."""

    def test_get_settings_is_cached(self) -> None:
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_reload_settings_clears_cache(self) -> None:
        """Test that reload_settings picks up environment changes."""
        original = get_settings()
        with patch.dict(os.environ, {"MARKETLAB_MAX_ROUNDS": "50"}):
            reloaded = reload_settings()
            assert reloaded is not original
            assert reloaded.max_rounds == 50
        reload_settings()
