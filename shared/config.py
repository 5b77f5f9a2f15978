"""
Shared configuration management for the bundle service.
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BUNDLE_HEADERS = {
    "Cache-Control": "public, max-age=31536000, immutable",
}


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUNDLER_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Registry
    registry_url: str = Field(default="https://registry.npmjs.org")
    registry_timeout: float = Field(default=10.0)
    registry_retry_attempts: int = Field(default=3)
    registry_retry_base_delay: float = Field(default=0.5)

    # Bundle builder
    builder_url: str = Field(default="http://localhost:8090")
    builder_timeout: float = Field(default=120.0)
    build_timeout: float = Field(default=120.0)

    # Cache store
    cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    ecosystem: str = Field(default="npm")

    # Responses
    gzip_level: int = Field(default=6)
    additional_bundle_headers: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_BUNDLE_HEADERS)
    )


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
