"""
Schema-validated compute-through cache.

Prefer ``cache()`` for reads that can be recomputed, ``version=True`` for
values whose shape evolves, and explicit invalidation after writes.
"""

from .cache_manager import CacheManager
from .codec import decode_entry, encode_entry
from .models import (
    CacheEntry,
    CacheGetOptions,
    CacheInvalidateOptions,
    CacheKeyOptions,
    CacheOptions,
    EntryState,
)
from .orchestrator import cache, classify_entry
from .primitives import (
    cache_get,
    cache_get_entry,
    cache_invalidate,
    cache_invalidate_prefix,
    cache_set,
)
from .versioning import resolve_key, resolve_version

__all__ = [
    "CacheEntry",
    "CacheGetOptions",
    "CacheInvalidateOptions",
    "CacheKeyOptions",
    "CacheManager",
    "CacheOptions",
    "EntryState",
    "cache",
    "cache_get",
    "cache_get_entry",
    "cache_invalidate",
    "cache_invalidate_prefix",
    "cache_set",
    "classify_entry",
    "decode_entry",
    "encode_entry",
    "resolve_key",
    "resolve_version",
]
