"""
Shared configuration management for the Posts service.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    postgres_dsn: str = Field(default="postgres://localhost:5432/posts")
    postgres_min_pool_size: int = Field(default=2)
    postgres_max_pool_size: int = Field(default=10)
    postgres_command_timeout: float = Field(default=30.0)
    initialize_schema: bool = Field(default=True)
    search_language: str = Field(default="portuguese")

    # Security
    auth_username: str
    auth_password: str
    auth_realm: str = Field(default="Posts API - Restricted Access")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_max_requests: int = Field(default=100, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_headers_enabled: bool = Field(default=True)
    trust_forwarded_for: bool = Field(default=False)

    # Response cache
    cache_fast_ttl_seconds: float = Field(default=5.0, ge=0)
    cache_slow_ttl_seconds: float = Field(default=30.0, ge=0)

    # Requests
    max_body_bytes: int = Field(default=100 * 1024, ge=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "posts"
    host: str = "0.0.0.0"
    port: int = 8080


def get_config(**overrides) -> ServiceConfig:
    """Get configuration for the service, environment first, then overrides."""
    return ServiceConfig(**overrides)
