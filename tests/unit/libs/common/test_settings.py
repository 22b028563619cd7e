"""Tests for application settings."""

import os
import tempfile

import pytest
from pydantic import ValidationError

from libs.common.settings import Settings, get_settings


class TestSettings:
    """Test settings configuration."""

    def test_defaults(self):
        """Test settings with nothing configured."""
        settings = Settings()

        assert settings.app_env == "test"  # set by the autouse fixture
        assert settings.openai_api_key is None
        assert settings.max_search_terms == 3
        assert settings.federal_jurisdiction == "US"
        assert settings.evidence_cache_backend == "memory"
        assert settings.history_user_turns == 10

    def test_settings_from_env_file(self):
        """Test that prefixed and provider variables are read from an env file."""
        env_vars = {
            "AVENIR_LOG_LEVEL": "DEBUG",
            "AVENIR_EVIDENCE_CACHE_BACKEND": "redis",
            "AVENIR_ADAPTER_TIMEOUT_SECONDS": "5",
            "OPENAI_API_KEY": "sk-test",
            "LEGISCAN_API_KEY": "legiscan-test",
            "REDIS_URL": "redis://localhost:6379/0",
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".env", delete=False) as f:
            for key, value in env_vars.items():
                f.write(f"{key}={value}\n")
            env_file = f.name

        try:
            settings = Settings(_env_file=env_file)
            assert settings.log_level == "DEBUG"
            assert settings.evidence_cache_backend == "redis"
            assert settings.adapter_timeout_seconds == 5.0
            assert settings.openai_api_key == "sk-test"
            assert settings.legiscan_api_key == "legiscan-test"
            assert settings.redis_url == "redis://localhost:6379/0"
        finally:
            os.unlink(env_file)

    def test_provider_keys_from_environment(self, monkeypatch):
        """Provider keys keep their conventional unprefixed names."""
        monkeypatch.setenv("PINECONE_API_KEY", "pc-test")
        monkeypatch.setenv("BLS_API_KEY", "bls-test")

        settings = Settings()

        assert settings.pinecone_api_key == "pc-test"
        assert settings.bls_api_key == "bls-test"

    def test_settings_cors_origins_parsing(self, monkeypatch):
        """Test CORS origins parsing from comma-separated string."""
        monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, https://admin.example.com,")

        settings = Settings()

        assert settings.cors_origins == ["https://app.example.com", "https://admin.example.com"]

    def test_blank_cors_origins_use_localhost(self):
        settings = Settings(cors_origins_str="  ")

        assert settings.cors_origins == ["http://localhost:3000", "https://localhost:3000"]

    def test_bls_series_ids_parsing(self):
        settings = Settings(bls_series_ids_str="LNS14000000, CES0000000001")

        assert settings.bls_series_ids == ["LNS14000000", "CES0000000001"]

    @pytest.mark.parametrize("field", ["adapter_timeout_seconds", "request_timeout_seconds"])
    def test_non_positive_timeouts_rejected(self, field):
        """Test that zero or negative timeouts are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(**{field: 0})
        assert "Timeouts must be positive" in str(exc_info.value)

    def test_invalid_cache_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(evidence_cache_backend="memcached")

    def test_environment_flags(self):
        assert Settings(app_env="development").is_development
        assert Settings(app_env="production").is_production
        assert not Settings(app_env="staging").is_production

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
