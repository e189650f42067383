"""
Cache manager bundling a store, an execution context and metrics.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry

from shared.config import CacheSettings, get_settings
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from ..adapters import create_store
from ..adapters.base import KeyValueStore
from ..execution.context import AsyncioExecutionContext, ExecutionContext
from . import orchestrator, primitives
from .orchestrator import Compute
from .primitives import Clock, KeyOptionsInput, OptionsInput

OUTCOMES = ("fresh", "stale", "miss", "expired")


class CacheManager:
    """Entry point request handlers use for cached reads and invalidation."""

    def __init__(
        self,
        store: KeyValueStore,
        execution: Optional[ExecutionContext] = None,
        *,
        metrics: Optional[MetricsCollector] = None,
        clock: Optional[Clock] = None,
        invalidate_concurrency: int = primitives.DEFAULT_INVALIDATE_CONCURRENCY,
    ):
        self.store = store
        self.execution = execution if execution is not None else AsyncioExecutionContext()
        self.metrics = metrics
        self.clock = clock
        self.invalidate_concurrency = invalidate_concurrency
        self.logger = get_logger("cache.manager")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[CacheSettings] = None,
        *,
        execution: Optional[ExecutionContext] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> "CacheManager":
        """Build a manager for the configured backend and configure logging."""
        settings = settings or get_settings()
        configure_logging("cache", settings.log_level)
        metrics = get_metrics_collector("cache", registry) if settings.enable_metrics else None
        return cls(
            create_store(settings),
            execution,
            metrics=metrics,
            invalidate_concurrency=settings.invalidate_concurrency,
        )

    async def start(self) -> None:
        """Open store connections where the store needs it."""
        start = getattr(self.store, "start", None)
        if start is not None:
            await start()
        self.logger.info("Cache manager started", store=type(self.store).__name__)

    async def close(self) -> None:
        """Let pending background refreshes finish, then close the store."""
        if isinstance(self.execution, AsyncioExecutionContext):
            await self.execution.drain()

        stop = getattr(self.store, "stop", None)
        if stop is not None:
            await stop()
        self.logger.info("Cache manager stopped")

    async def cache(
        self,
        key: str,
        compute: Compute,
        schema: Any,
        options: OptionsInput,
        *,
        execution: Optional[ExecutionContext] = None,
    ) -> Any:
        """Compute-through read; ``execution`` overrides the default context for one call."""
        return await orchestrator.cache(
            self.store,
            execution if execution is not None else self.execution,
            key,
            compute,
            schema,
            options,
            clock=self.clock,
            metrics=self.metrics,
        )

    async def get(self, key: str, schema: Any, options: KeyOptionsInput = None) -> Optional[Any]:
        """Get a cached value without computing."""
        return await primitives.cache_get(self.store, key, schema, options, metrics=self.metrics)

    async def set(self, key: str, value: Any, schema: Any, options: OptionsInput) -> None:
        """Store a value."""
        await primitives.cache_set(
            self.store, key, value, schema, options, clock=self.clock, metrics=self.metrics
        )

    async def invalidate(self, key: str, options: KeyOptionsInput = None, *, schema: Any = None) -> None:
        """Invalidate one key."""
        await primitives.cache_invalidate(self.store, key, options, schema=schema, metrics=self.metrics)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Invalidate every key under ``prefix``."""
        return await primitives.cache_invalidate_prefix(
            self.store,
            prefix,
            concurrency=self.invalidate_concurrency,
            metrics=self.metrics,
        )

    async def health_check(self) -> Dict[str, Any]:
        """Report store health and background queue depth."""
        check = getattr(self.store, "health_check", None)
        healthy = await check() if check is not None else True
        return {
            "store": type(self.store).__name__,
            "healthy": healthy,
            "background_available": self.execution.is_available,
            "background_pending": getattr(self.execution, "pending", 0),
        }

    def get_cache_stats(self) -> Dict[str, Any]:
        """Summarize read outcomes recorded so far."""
        if not self.metrics:
            return {"metrics_enabled": False}

        counts = {
            outcome: int(self.metrics.sample_value("cache_requests_total", outcome=outcome) or 0)
            for outcome in OUTCOMES
        }
        total = sum(counts.values())
        hits = counts["fresh"] + counts["stale"]
        return {
            "metrics_enabled": True,
            "requests": counts,
            "hit_rate": hits / total if total else 0.0,
        }
