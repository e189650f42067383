"""
Key-value store adapters for the cache.

Each adapter implements ``KeyValueStore`` (get / put with expiry / delete /
list by prefix) and maps its native client errors onto
``shared.errors.CacheClientError``.
"""

from typing import Optional

from shared.config import CacheSettings
from shared.errors import CacheConfigurationError
from .base import KeyValueStore, StoredKey
from .cloudflare_kv import CloudflareKVStore
from .memory_store import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore


def create_store(settings: Optional[CacheSettings] = None) -> KeyValueStore:
    """Build the store selected by ``settings.backend``."""
    if settings is None:
        from shared.config import get_settings
        settings = get_settings()

    if settings.backend == "memory":
        return InMemoryKeyValueStore()

    if settings.backend == "redis":
        return RedisKeyValueStore(
            settings.redis_url,
            namespace=settings.key_namespace,
            socket_timeout=settings.request_timeout_seconds,
        )

    if settings.backend == "cloudflare":
        missing = [
            name for name in ("cloudflare_account_id", "cloudflare_namespace_id", "cloudflare_api_token")
            if not getattr(settings, name)
        ]
        if missing:
            raise CacheConfigurationError(
                "Cloudflare KV backend requires account, namespace and token",
                details={"missing": missing},
            )
        return CloudflareKVStore(
            settings.cloudflare_account_id,
            settings.cloudflare_namespace_id,
            settings.cloudflare_api_token,
            api_url=settings.cloudflare_api_url,
            timeout=settings.request_timeout_seconds,
        )

    raise CacheConfigurationError(f"Unknown cache backend {settings.backend!r}")


__all__ = [
    "KeyValueStore",
    "StoredKey",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "CloudflareKVStore",
    "create_store",
]
