"""
In-process key-value store for tests and local development.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from shared.errors import CacheClientError
from shared.logging import get_logger
from .base import StoredKey


@dataclass
class _Record:
    value: str
    expires_at: float  # epoch seconds


class InMemoryKeyValueStore:
    """Dict-backed store honouring per-key expiry."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._records: Dict[str, _Record] = {}
        self.logger = get_logger("cache.store.memory")

    async def get(self, key: str) -> Optional[str]:
        record = self._records.get(key)
        if record is None:
            return None
        if record.expires_at <= self._clock():
            # Expired entries read as absent, like a real store
            del self._records[key]
            return None
        return record.value

    async def put(self, key: str, value: str, expiration_ttl: int) -> None:
        if expiration_ttl <= 0:
            raise CacheClientError(
                "Expiration TTL must be positive",
                details={"key": key, "expiration_ttl": expiration_ttl},
            )
        self._records[key] = _Record(value=value, expires_at=self._clock() + expiration_ttl)

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def list(self, prefix: str) -> List[StoredKey]:
        now = self._clock()
        return [
            StoredKey(name=name)
            for name, record in sorted(self._records.items())
            if name.startswith(prefix) and record.expires_at > now
        ]

    def expires_at(self, key: str) -> Optional[float]:
        """Return the absolute expiry of ``key`` in epoch seconds."""
        record = self._records.get(key)
        return record.expires_at if record else None

    def raw(self, key: str) -> Optional[str]:
        """Return the stored payload regardless of expiry."""
        record = self._records.get(key)
        return record.value if record else None

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Drop every record."""
        self._records.clear()
        self.logger.debug("In-memory store cleared")
