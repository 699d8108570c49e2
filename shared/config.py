"""
Shared configuration management for the Relief Intelligence Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RELIEF_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache backend: memory | postgres | redis
    cache_backend: str = Field(default="memory")
    postgres_dsn: str = Field(default="postgres://localhost:5432/relief")
    redis_url: str = Field(default="redis://localhost:6379/0")

    # External providers
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-1.5-flash")
    gemini_vision_model: str = Field(default="gemini-1.5-flash")
    google_maps_api_key: Optional[str] = Field(default=None)
    osm_geocoding_enabled: bool = Field(default=True)
    osm_user_agent: str = Field(default="DisasterResponsePlatform/1.0")
    twitter_bearer_token: Optional[str] = Field(default=None)
    fema_scraping_enabled: bool = Field(default=False)
    fema_url: str = Field(default="https://www.fema.gov/disasters")
    provider_timeout_seconds: float = Field(default=10.0)

    # Resolver TTLs (seconds). Offline results use the *_fallback_ttl values.
    location_extract_ttl: int = Field(default=3600)
    location_extract_fallback_ttl: int = Field(default=900)
    geocode_ttl: int = Field(default=86400)
    geocode_fallback_ttl: int = Field(default=3600)
    image_verify_ttl: int = Field(default=3600)
    image_verify_fallback_ttl: int = Field(default=900)
    content_analysis_ttl: int = Field(default=3600)
    content_analysis_fallback_ttl: int = Field(default=900)
    social_media_ttl: int = Field(default=900)
    social_media_fallback_ttl: int = Field(default=300)
    official_updates_ttl: int = Field(default=3600)
    official_updates_fallback_ttl: int = Field(default=900)

    # Cleanup sweeper; 0 leaves scheduling to an external trigger
    sweep_interval_seconds: int = Field(default=0)

    # Resilience
    circuit_failure_threshold: int = Field(default=5)
    circuit_recovery_timeout: float = Field(default=60.0)

    # Realtime relay
    relay_url: str = Field(default="http://localhost:3001")
    relay_enabled: bool = Field(default=True)
    relay_timeout_seconds: float = Field(default=2.0)
    relay_emit_token: Optional[str] = Field(default=None)
    max_ws_connections: int = Field(default=5000)
    cors_origins: str = Field(default="*")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
