"""Application settings for the Avenir benefits assistant API."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="AVENIR_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Core application settings
    app_env: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # CORS - use string to avoid JSON parsing issues
    cors_origins_str: str = Field(default="http://localhost:3000,https://localhost:3000", alias="cors_origins")

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from string."""
        if not self.cors_origins_str.strip():
            return ["http://localhost:3000", "https://localhost:3000"]
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Provider credentials keep their conventional, unprefixed names
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    pinecone_api_key: Optional[str] = Field(default=None, validation_alias="PINECONE_API_KEY")
    legiscan_api_key: Optional[str] = Field(default=None, validation_alias="LEGISCAN_API_KEY")
    bls_api_key: Optional[str] = Field(default=None, validation_alias="BLS_API_KEY")
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")

    # Models
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    web_search_model: str = "gpt-4o-mini"
    generation_temperature: float = 0.2

    # Vector index (Pinecone data plane)
    pinecone_index_host: Optional[str] = None
    pinecone_namespace: str = "ns1"
    vector_top_k: int = Field(default=5, ge=1, le=10)

    # Legislative search
    legiscan_base_url: str = "https://api.legiscan.com/"
    federal_jurisdiction: str = "US"
    legislation_results_per_jurisdiction: int = 10

    # Labor statistics
    labor_stats_enabled: bool = True
    bls_api_url: str = "https://api.bls.gov/publicAPI/v2/timeseries/data/"
    bls_series_ids_str: str = Field(default="LNS14000000,LNS11300000", alias="bls_series_ids")

    @property
    def bls_series_ids(self) -> list[str]:
        """Parse BLS series ids from string."""
        return [s.strip() for s in self.bls_series_ids_str.split(",") if s.strip()]

    # Firebase / Firestore
    firebase_admin_sdk_json: Optional[str] = None
    firebase_admin_sdk_path: Optional[str] = None
    firestore_project_id: Optional[str] = None
    firestore_database: str = "(default)"

    # Pipeline knobs
    max_search_terms: int = 3
    history_user_turns: int = 10
    adapter_timeout_seconds: float = 20.0
    request_timeout_seconds: float = 120.0

    # Evidence cache
    evidence_cache_backend: Literal["memory", "redis", "request"] = "memory"
    evidence_cache_ttl_seconds: int = 24 * 3600
    evidence_cache_max_entries: int = 512

    @field_validator("adapter_timeout_seconds", "request_timeout_seconds")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
