"""
Shared configuration management for the Budaya access gateway.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUDAYA_",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    debug: bool = Field(default=False)

    # Upstream CMS (WordPress REST API)
    wordpress_api_url: str = Field(default="http://localhost:8080/wp-json")
    wordpress_api_user: Optional[str] = Field(default=None)
    wordpress_api_pass: Optional[str] = Field(default=None)
    cms_fields_key: str = Field(default="fields")

    # Upstream identity provider (Supabase GoTrue)
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")

    # Upstream calls
    http_timeout_seconds: float = Field(default=15.0)
    service_token_ttl_seconds: int = Field(default=55 * 60)
    token_exchange_attempts: int = Field(default=3)
    token_exchange_backoff_seconds: float = Field(default=0.5)

    # Session cookie
    session_cookie_name: str = Field(default="auth_token")
    session_max_age_seconds: int = Field(default=60 * 60 * 24 * 7)

    # Authorization
    privileged_roles: List[str] = Field(default_factory=lambda: ["administrator", "editor"])

    # Rate limiting
    rate_limits_file: Optional[str] = Field(default=None)
    # Peers allowed to set X-Forwarded-For / X-Real-IP
    trusted_proxies: List[str] = Field(default_factory=list)

    # Health monitor
    error_buffer_size: int = Field(default=1000)
    health_max_critical_errors: int = Field(default=10)
    health_max_total_errors: int = Field(default=100)

    # HTTP surface
    cors_origins: List[str] = Field(default_factory=list)

    @property
    def is_local(self) -> bool:
        return self.env == "local"


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
