"""
Configuration management for the status sweeper.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StatusApiConfig(BaseModel):
    """Remote status API configuration settings."""

    base_url: str = Field(..., description="Status API base URL")
    status_path_template: str = Field(
        default="/status/{entity_id}", description="Per-entity status path"
    )
    own_status_path: str = Field(
        default="/status/me", description="Status path for the credential owner"
    )
    credential_param: str = Field(
        default="credential", description="Query parameter carrying the credential"
    )
    payload_field: str = Field(
        default="payload", description="Nested field holding the snapshot"
    )
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout")


class AdmissionConfig(BaseModel):
    """Credential quota configuration settings."""

    quota_per_credential: int = Field(
        default=100, description="Requests allowed per credential per window"
    )
    window_seconds: float = Field(default=60.0, description="Usage window length")
    fallback_interval_ms: int = Field(
        default=600, description="Tick interval used when the pool is empty"
    )


class SweepConfig(BaseModel):
    """Background sweep configuration settings."""

    entity_collection: str = Field(default="entities")
    entity_id_field: str = Field(default="entity_id")
    entity_rank_field: str = Field(default="rank")
    checkpoint_collection: str = Field(default="appState")
    checkpoint_document: str = Field(default="sweepState")


class DemandConfig(BaseModel):
    """Demand scheduler configuration settings."""

    cache_ttl_seconds: float = Field(default=60.0, description="Result cache TTL")
    rescan_seconds: float = Field(
        default=30.0, description="Interval for re-checking visible entities"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Status API configuration
    status_api_base_url: str = Field(
        default="http://localhost:8080", description="Status API base URL"
    )
    status_path_template: str = Field(default="/status/{entity_id}")
    own_status_path: str = Field(default="/status/me")
    credential_param: str = Field(default="credential")
    payload_field: str = Field(default="payload")
    request_timeout_seconds: float = Field(default=10.0)

    # Credential pool
    credentials: str | list[str] = Field(
        default="",
        description="API credentials (comma-separated)",
    )
    quota_per_credential: int = Field(default=100, ge=1)
    quota_window_seconds: float = Field(default=60.0, gt=0)
    fallback_interval_ms: int = Field(default=600, ge=1)

    # Demand scheduling
    cache_ttl_seconds: float = Field(default=60.0, gt=0)
    demand_rescan_seconds: float = Field(default=30.0, gt=0)

    # Durable store
    store_backend: str = Field(default="json", description="Store backend: json, memory")
    store_path: str = Field(
        default="./status_sweeper.json", description="JSON store file path"
    )
    entity_collection: str = Field(default="entities")
    entity_id_field: str = Field(default="entity_id")
    entity_rank_field: str = Field(default="rank")
    checkpoint_collection: str = Field(default="appState")
    checkpoint_document: str = Field(default="sweepState")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    @field_validator("credentials", mode="before")
    @classmethod
    def parse_credentials(cls, v: Any) -> list[str]:
        """Parse credentials from comma-separated string or list."""
        if isinstance(v, str):
            if not v.strip():
                return []
            return [token.strip() for token in v.split(",") if token.strip()]
        elif isinstance(v, list):
            return v
        else:
            error_msg = f"credentials must be a string or list, got {type(v)}"
            raise ValueError(error_msg)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Validate store backend."""
        allowed_backends = {"json", "memory"}
        if v.lower() not in allowed_backends:
            raise ValueError(f"Invalid store backend: {v}")
        return v.lower()

    def get_credentials(self) -> list[str]:
        """Get list of configured credentials."""
        tokens = self.credentials
        if isinstance(tokens, str):
            return [token.strip() for token in tokens.split(",") if token.strip()]
        return tokens

    @property
    def status_api_config(self) -> StatusApiConfig:
        """Get status API configuration."""
        return StatusApiConfig(
            base_url=self.status_api_base_url,
            status_path_template=self.status_path_template,
            own_status_path=self.own_status_path,
            credential_param=self.credential_param,
            payload_field=self.payload_field,
            timeout_seconds=self.request_timeout_seconds,
        )

    @property
    def admission_config(self) -> AdmissionConfig:
        """Get credential admission configuration."""
        return AdmissionConfig(
            quota_per_credential=self.quota_per_credential,
            window_seconds=self.quota_window_seconds,
            fallback_interval_ms=self.fallback_interval_ms,
        )

    @property
    def sweep_config(self) -> SweepConfig:
        """Get background sweep configuration."""
        return SweepConfig(
            entity_collection=self.entity_collection,
            entity_id_field=self.entity_id_field,
            entity_rank_field=self.entity_rank_field,
            checkpoint_collection=self.checkpoint_collection,
            checkpoint_document=self.checkpoint_document,
        )

    @property
    def demand_config(self) -> DemandConfig:
        """Get demand scheduler configuration."""
        return DemandConfig(
            cache_ttl_seconds=self.cache_ttl_seconds,
            rescan_seconds=self.demand_rescan_seconds,
        )


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
