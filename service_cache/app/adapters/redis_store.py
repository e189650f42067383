"""
Redis-backed key-value store.
"""

import re
from typing import List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import CacheClientError
from shared.logging import get_logger
from .base import StoredKey

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis MATCH glob metacharacters in ``value``."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisKeyValueStore:
    """Key-value store on top of ``redis.asyncio``."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        *,
        namespace: str = "",
        client: Optional[redis.Redis] = None,
        socket_timeout: float = 5.0,
        scan_count: int = 500,
    ):
        self.redis_url = redis_url
        self.namespace = namespace
        self.socket_timeout = socket_timeout
        self.scan_count = scan_count
        self.logger = get_logger("cache.store.redis")
        self._redis: Optional[redis.Redis] = client

    async def start(self):
        """Open the connection and verify it with PING."""
        try:
            client = await self._get_redis()
            await client.ping()
            self.logger.info("Redis store started", namespace=self.namespace or None)
        except RedisError as e:
            self.logger.error("Failed to start Redis store", error=str(e))
            raise CacheClientError("Failed to connect to Redis", cause=e) from e

    async def stop(self):
        """Close the connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis store stopped")

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            client = await self._get_redis()
            await client.ping()
            return True
        except RedisError:
            return False

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        return self._redis

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            client = await self._get_redis()
            value = await client.get(self._full_key(key))
        except RedisError as e:
            self.logger.error("Redis get failed", key=key, error=str(e))
            raise CacheClientError(f"Redis get failed for {key!r}", cause=e) from e

        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def put(self, key: str, value: str, expiration_ttl: int) -> None:
        try:
            client = await self._get_redis()
            await client.set(self._full_key(key), value, ex=expiration_ttl)
        except RedisError as e:
            self.logger.error("Redis put failed", key=key, error=str(e))
            raise CacheClientError(f"Redis put failed for {key!r}", cause=e) from e

    async def delete(self, key: str) -> None:
        try:
            client = await self._get_redis()
            await client.delete(self._full_key(key))
        except RedisError as e:
            self.logger.error("Redis delete failed", key=key, error=str(e))
            raise CacheClientError(f"Redis delete failed for {key!r}", cause=e) from e

    async def list(self, prefix: str) -> List[StoredKey]:
        pattern = f"{escape_glob(self._full_key(prefix))}*"
        names: List[StoredKey] = []
        try:
            client = await self._get_redis()
            async for raw in client.scan_iter(match=pattern, count=self.scan_count):
                name = raw.decode("utf-8") if isinstance(raw, bytes) else raw
                names.append(StoredKey(name=name[len(self.namespace):]))
        except RedisError as e:
            self.logger.error("Redis scan failed", prefix=prefix, error=str(e))
            raise CacheClientError(f"Redis list failed for prefix {prefix!r}", cause=e) from e

        return names
