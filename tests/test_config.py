"""
Tests for settings loading and validation.
"""

import os
from unittest.mock import patch

import pytest

from status_sweeper.config import Settings


class TestSettingsDefaults:
    """Test default values."""

    def test_defaults(self):
        """Test that the quota defaults match the status API limits."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.get_credentials() == []
        assert settings.quota_per_credential == 100
        assert settings.quota_window_seconds == 60
        assert settings.fallback_interval_ms == 600
        assert settings.cache_ttl_seconds == 60
        assert settings.demand_rescan_seconds == 30
        assert settings.store_backend == "json"


class TestCredentials:
    """Test credential parsing."""

    def test_comma_separated_from_env(self):
        """Test that credentials are split and trimmed."""
        with patch.dict(
            os.environ, {"CREDENTIALS": " alpha, beta ,,gamma "}, clear=True
        ):
            settings = Settings(_env_file=None)

        assert settings.get_credentials() == ["alpha", "beta", "gamma"]

    def test_list_value(self):
        """Test that a list is accepted as-is."""
        settings = Settings(_env_file=None, credentials=["a", "b"])

        assert settings.get_credentials() == ["a", "b"]

    def test_invalid_type(self):
        """Test that non-string, non-list credentials are rejected."""
        with pytest.raises(ValueError, match="credentials must be a string or list"):
            Settings(_env_file=None, credentials=42)


class TestValidation:
    """Test field validators."""

    def test_log_level_is_normalized(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}, clear=True):
            assert Settings(_env_file=None).log_level == "DEBUG"

    def test_invalid_log_level(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "chatty"}, clear=True):
            with pytest.raises(ValueError, match="Invalid log level: chatty"):
                Settings(_env_file=None)

    def test_store_backend_is_normalized(self):
        with patch.dict(os.environ, {"STORE_BACKEND": "MEMORY"}, clear=True):
            assert Settings(_env_file=None).store_backend == "memory"

    def test_invalid_store_backend(self):
        with patch.dict(os.environ, {"STORE_BACKEND": "firestore"}, clear=True):
            with pytest.raises(ValueError, match="Invalid store backend: firestore"):
                Settings(_env_file=None)

    def test_quota_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, quota_per_credential=0)


class TestDerivedConfig:
    """Test the nested configuration views."""

    def test_admission_config(self):
        with patch.dict(
            os.environ,
            {"QUOTA_PER_CREDENTIAL": "50", "QUOTA_WINDOW_SECONDS": "30"},
            clear=True,
        ):
            config = Settings(_env_file=None).admission_config

        assert config.quota_per_credential == 50
        assert config.window_seconds == 30
        assert config.fallback_interval_ms == 600

    def test_status_api_config(self, mock_settings):
        config = mock_settings.status_api_config

        assert config.base_url == "https://api.test"
        assert config.status_path_template == "/status/{entity_id}"
        assert config.credential_param == "credential"

    def test_sweep_and_demand_config(self):
        settings = Settings(
            _env_file=None,
            entity_collection="teamMembers",
            checkpoint_document="updateState",
            demand_rescan_seconds=10,
        )

        assert settings.sweep_config.entity_collection == "teamMembers"
        assert settings.sweep_config.checkpoint_document == "updateState"
        assert settings.sweep_config.checkpoint_collection == "appState"
        assert settings.demand_config.rescan_seconds == 10
        assert settings.demand_config.cache_ttl_seconds == 60
