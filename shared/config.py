"""
Shared configuration management for the chat gateway.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # HTTP server
    service_name: str = Field(default="chat")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, gt=0)


class GatewayConfig(BaseConfig):
    """Settings for the chat gateway admission and caching layer.

    All values are deployment-time constants; the defaults mirror the
    production setup (20 requests per client per minute, 5 minute reply
    cache, 2 concurrent upstream calls, last 6 turns forwarded).
    """

    # Upstream completion service
    upstream_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CHAT_UPSTREAM_API_KEY", "GEMINI_API_KEY", "upstream_api_key"),
    )
    upstream_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    upstream_model: str = Field(default="gemini-2.5-flash")
    upstream_temperature: float = Field(default=0.6, ge=0.0)
    upstream_max_output_tokens: int = Field(default=512, gt=0)
    upstream_timeout_seconds: float = Field(default=30.0, gt=0)

    # Rate limiting
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_max_requests: int = Field(default=20, gt=0)
    rate_limit_max_clients: int = Field(default=10000, gt=0)

    # Response cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_max_entries: int = Field(default=1000, gt=0)
    fingerprint_max_length: int = Field(default=300, gt=0)

    # Admission gate
    max_concurrent_upstream: int = Field(default=2, gt=0)
    queue_poll_interval_seconds: float = Field(default=0.3, gt=0)

    # Conversation handling
    max_history_turns: int = Field(default=6, gt=0)
    fallback_reply: str = Field(default="Unable to generate a response")


def get_config(**overrides) -> GatewayConfig:
    """Get configuration for the gateway, applying explicit overrides."""
    return GatewayConfig(**overrides)
