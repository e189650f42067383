"""Primitive cache operations.

Direct, schema-aware wrappers over a ``KeyValueStore``. Unlike the
orchestrator these never classify freshness: ``cache_get`` returns whatever
the store still holds, and only the store's own expiry makes it absent.
"""

import asyncio
import time
from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING, TypeVar, Union

from shared.errors import CacheClientError
from shared.logging import get_logger
from ..adapters.base import KeyValueStore
from .codec import decode_entry, encode_entry
from .models import CacheEntry, CacheKeyOptions, CacheOptions, coerce_options
from .versioning import resolve_key

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

T = TypeVar("T")

Clock = Callable[[], float]
KeyOptionsInput = Union[CacheKeyOptions, Mapping[str, Any], None]
OptionsInput = Union[CacheOptions, Mapping[str, Any]]

DEFAULT_INVALIDATE_CONCURRENCY = 10

logger = get_logger("cache.primitives")


def now_ms(clock: Optional[Clock] = None) -> int:
    """Current time in epoch milliseconds."""
    return int((clock or time.time)() * 1000)


async def store_call(
    store: KeyValueStore,
    operation: str,
    *args: Any,
    metrics: Optional["MetricsCollector"] = None,
) -> Any:
    """Invoke a store method so that every failure surfaces as CacheClientError."""
    try:
        return await getattr(store, operation)(*args)
    except CacheClientError:
        if metrics:
            metrics.increment_counter("cache_client_errors_total", operation=operation)
        raise
    except Exception as e:
        if metrics:
            metrics.increment_counter("cache_client_errors_total", operation=operation)
        logger.error("Cache store call failed", operation=operation, error=str(e))
        raise CacheClientError(f"Cache store {operation} failed: {e}", cause=e) from e


async def read_entry(
    store: KeyValueStore,
    resolved_key: str,
    schema: Any,
    *,
    metrics: Optional["MetricsCollector"] = None,
) -> Optional[CacheEntry]:
    """Read and decode the entry stored at an already-resolved key."""
    raw = await store_call(store, "get", resolved_key, metrics=metrics)
    if raw is None:
        return None
    return decode_entry(raw, schema)


async def write_entry(
    store: KeyValueStore,
    resolved_key: str,
    value: Any,
    schema: Any,
    options: CacheOptions,
    *,
    clock: Optional[Clock] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> None:
    """Encode ``value`` with the current time and store it for ``ttl + swr``."""
    payload = encode_entry(value, schema, now_ms(clock))
    await store_call(store, "put", resolved_key, payload, options.storage_ttl_seconds, metrics=metrics)
    logger.debug("Cached value", key=resolved_key, expiration_ttl=options.storage_ttl_seconds)


async def cache_get_entry(
    store: KeyValueStore,
    key: str,
    schema: Any,
    options: KeyOptionsInput = None,
    *,
    metrics: Optional["MetricsCollector"] = None,
) -> Optional[CacheEntry]:
    """Like ``cache_get`` but also returns when the value was computed."""
    opts = coerce_options(options, CacheKeyOptions)
    resolved = resolve_key(key, opts.version if opts else None, schema)
    return await read_entry(store, resolved, schema, metrics=metrics)


async def cache_get(
    store: KeyValueStore,
    key: str,
    schema: Any,
    options: KeyOptionsInput = None,
    *,
    metrics: Optional["MetricsCollector"] = None,
) -> Optional[Any]:
    """
    Get a value from cache without computing.

    Returns None when nothing is stored; absence is not an error. A stored
    payload that does not match ``schema`` raises ``SchemaDecodeError``.
    """
    entry = await cache_get_entry(store, key, schema, options, metrics=metrics)
    return entry.value if entry is not None else None


async def cache_set(
    store: KeyValueStore,
    key: str,
    value: Any,
    schema: Any,
    options: OptionsInput,
    *,
    clock: Optional[Clock] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> None:
    """Set a value in cache, expiring after ``ttl + swr``."""
    opts = coerce_options(options, CacheOptions)
    resolved = resolve_key(key, opts.version, schema)
    await write_entry(store, resolved, value, schema, opts, clock=clock, metrics=metrics)


async def cache_invalidate(
    store: KeyValueStore,
    key: str,
    options: KeyOptionsInput = None,
    *,
    schema: Optional[Any] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> None:
    """
    Invalidate a cache key.

    With ``version=True`` the schema is needed to find the hashed key. Only
    the resolved key is touched; other versions of the same raw key survive.
    """
    opts = coerce_options(options, CacheKeyOptions)
    resolved = resolve_key(key, opts.version if opts else None, schema)
    await store_call(store, "delete", resolved, metrics=metrics)
    if metrics:
        metrics.increment_counter("cache_invalidated_keys_total", kind="key")
    logger.debug("Invalidated cache key", key=resolved)


async def cache_invalidate_prefix(
    store: KeyValueStore,
    prefix: str,
    *,
    concurrency: int = DEFAULT_INVALIDATE_CONCURRENCY,
    metrics: Optional["MetricsCollector"] = None,
) -> int:
    """
    Invalidate every key starting with ``prefix``.

    Deletes run with bounded concurrency and all of them are attempted. If any
    fail, a CacheClientError listing the failed keys is raised afterwards;
    keys already deleted stay deleted. Returns the number of keys deleted.
    """
    keys = await store_call(store, "list", prefix, metrics=metrics)
    if not keys:
        return 0

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _delete(name: str) -> None:
        async with semaphore:
            await store_call(store, "delete", name, metrics=metrics)

    results = await asyncio.gather(*(_delete(k.name) for k in keys), return_exceptions=True)

    failures = []
    for stored_key, outcome in zip(keys, results):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            failures.append((stored_key.name, outcome))

    deleted = len(keys) - len(failures)
    if metrics and deleted:
        metrics.increment_counter("cache_invalidated_keys_total", amount=deleted, kind="prefix")

    if failures:
        logger.error(
            "Prefix invalidation partially failed",
            prefix=prefix,
            deleted=deleted,
            failed=len(failures),
        )
        raise CacheClientError(
            f"Failed to delete {len(failures)} of {len(keys)} keys under prefix {prefix!r}",
            cause=failures[0][1],
            details={"failed_keys": [name for name, _ in failures], "deleted": deleted},
        )

    logger.info("Invalidated cache prefix", prefix=prefix, deleted=deleted)
    return deleted
