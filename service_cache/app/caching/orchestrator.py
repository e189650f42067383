"""Cache orchestrator: compute-through caching with stale-while-revalidate.

Every call classifies what the store currently holds and acts on it:

    no entry                      -> compute inline, store, return
    age <= ttl                    -> return stored value
    ttl < age <= ttl + swr        -> return stored value, refresh in background
    age > ttl + swr               -> compute inline, store, return

There is no in-process state between calls and no single-flight: two
concurrent misses for one key both compute and the last write wins.
"""

import inspect
import time
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING, TypeVar, Union

from shared.logging import get_logger, set_cache_key
from ..adapters.base import KeyValueStore
from ..execution.context import BackgroundOperation, ExecutionContext
from .models import CacheOptions, EntryState, coerce_options
from .primitives import Clock, OptionsInput, now_ms, read_entry, write_entry
from .versioning import resolve_key

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

T = TypeVar("T")

Compute = Callable[[], Union[Awaitable[T], T]]

logger = get_logger("cache.orchestrator")


def classify_entry(age_ms: int, ttl_ms: int, swr_ms: int) -> EntryState:
    """Classify an entry of the given age against its freshness windows."""
    if age_ms <= ttl_ms:
        return EntryState.FRESH
    if swr_ms > 0 and age_ms <= ttl_ms + swr_ms:
        return EntryState.STALE
    return EntryState.EXPIRED


async def run_compute(
    compute: Compute,
    *,
    mode: str,
    metrics: Optional["MetricsCollector"] = None,
) -> Any:
    """Call ``compute`` and await its result when it returns an awaitable."""
    start = time.perf_counter()
    try:
        result = compute()
        if inspect.isawaitable(result):
            result = await result
        return result
    finally:
        if metrics:
            metrics.observe_histogram(
                "cache_compute_duration_seconds",
                time.perf_counter() - start,
                mode=mode,
            )


def _refresh_operation(
    store: KeyValueStore,
    resolved_key: str,
    compute: Compute,
    schema: Any,
    options: CacheOptions,
    clock: Optional[Clock],
    metrics: Optional["MetricsCollector"],
) -> BackgroundOperation:
    """Build the background refresh with every dependency bound by value."""

    async def refresh() -> None:
        set_cache_key(resolved_key)
        try:
            value = await run_compute(compute, mode="background", metrics=metrics)
            await write_entry(store, resolved_key, value, schema, options, clock=clock, metrics=metrics)
        except Exception:
            if metrics:
                metrics.increment_counter("cache_background_refresh_total", result="error")
            raise

        if metrics:
            metrics.increment_counter("cache_background_refresh_total", result="success")
        logger.info("Background refresh completed", key=resolved_key)

    return refresh


async def cache(
    store: KeyValueStore,
    execution: Optional[ExecutionContext],
    key: str,
    compute: Compute,
    schema: Any,
    options: OptionsInput,
    *,
    clock: Optional[Clock] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> Any:
    """
    Return the cached value for ``key``, computing it on a miss.

    Args:
        store: Backing key-value store
        execution: Background execution context; None or an unavailable
            context means stale entries are served without a refresh
        key: Raw cache key (a version prefix is applied per ``options``)
        compute: Zero-argument callable producing the value; may be async
        schema: Pydantic-compatible type the value must satisfy
        options: ``CacheOptions`` or a mapping such as ``{"ttl": 3600, "swr": 300}``
        clock: Epoch-seconds clock, ``time.time`` by default
        metrics: Optional collector for outcome counters

    Returns:
        The stored value when fresh or stale-but-usable, otherwise the value
        ``compute`` produced during this call.

    Raises:
        SchemaDecodeError: Stored payload does not match ``schema``
        SchemaEncodeError: Computed value does not match ``schema``
        CacheClientError: The backing store failed
        Exception: Whatever ``compute`` raises on the inline path, unchanged
    """
    opts = coerce_options(options, CacheOptions)
    resolved = resolve_key(key, opts.version, schema)

    entry = await read_entry(store, resolved, schema, metrics=metrics)

    if entry is None:
        outcome = "miss"
    else:
        age_ms = now_ms(clock) - entry.computed_at
        state = classify_entry(age_ms, opts.ttl_ms, opts.swr_ms)

        if state is EntryState.FRESH:
            _record(metrics, "fresh")
            logger.debug("Cache hit", key=resolved, age_ms=age_ms)
            return entry.value

        if state is EntryState.STALE:
            _record(metrics, "stale")
            if execution is not None and execution.is_available:
                execution.run_in_background(
                    _refresh_operation(store, resolved, compute, schema, opts, clock, metrics)
                )
                logger.debug("Serving stale value, refresh scheduled", key=resolved, age_ms=age_ms)
            else:
                logger.debug("Serving stale value without refresh", key=resolved, age_ms=age_ms)
            return entry.value

        outcome = "expired"

    _record(metrics, outcome)
    logger.debug("Cache miss", key=resolved, outcome=outcome)

    value = await run_compute(compute, mode="inline", metrics=metrics)
    await write_entry(store, resolved, value, schema, opts, clock=clock, metrics=metrics)
    return value


def _record(metrics: Optional["MetricsCollector"], outcome: str) -> None:
    if metrics:
        metrics.increment_counter("cache_requests_total", outcome=outcome)
