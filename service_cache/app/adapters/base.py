"""
Key-value capability consumed by the cache.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class StoredKey:
    """A key name returned by ``KeyValueStore.list``."""

    name: str


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Minimal store interface the cache is written against.

    Implementations must raise ``shared.errors.CacheClientError`` for every
    failure; native client exceptions never leave the adapter.
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None when absent or expired."""
        ...

    async def put(self, key: str, value: str, expiration_ttl: int) -> None:
        """Store ``value`` so that it expires after ``expiration_ttl`` seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is not an error."""
        ...

    async def list(self, prefix: str) -> List[StoredKey]:
        """List every key starting with ``prefix``."""
        ...
