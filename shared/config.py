"""
Shared configuration management for the schema cache layer.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    """Cache layer settings, read from ``CACHE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="info")

    # Backing store
    backend: Literal["memory", "redis", "cloudflare"] = Field(default="memory")
    key_namespace: str = Field(default="", description="Prefix applied to every stored key")
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Cloudflare Workers KV
    cloudflare_api_url: str = Field(default="https://api.cloudflare.com/client/v4")
    cloudflare_account_id: Optional[str] = Field(default=None)
    cloudflare_namespace_id: Optional[str] = Field(default=None)
    cloudflare_api_token: Optional[str] = Field(default=None)

    # Behaviour
    request_timeout_seconds: float = Field(default=5.0, gt=0)
    invalidate_concurrency: int = Field(default=10, ge=1)
    enable_metrics: bool = Field(default=True)


@lru_cache(maxsize=1)
def get_settings() -> CacheSettings:
    """Get the process-wide cache settings."""
    return CacheSettings()
