"""
Background execution contexts.

An execution context answers "can I run work after I've returned?". The
cache uses it to refresh stale entries without making the caller wait.

Contract shared by every implementation:

- ``run_in_background`` captures the caller's contextvars at scheduling time
  and runs the operation inside that snapshot, so a refresh logs with the
  request id of the request that triggered it.
- Failures are contained: an exception raised by one operation is logged and
  never reaches the scheduler or any other scheduled operation.
- An unavailable context never runs the operation.
"""

import asyncio
import contextvars
import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Set, runtime_checkable

from shared.logging import get_logger

BackgroundOperation = Callable[[], Awaitable[Any]]


@runtime_checkable
class ExecutionContext(Protocol):
    """Capability for fire-and-forget work."""

    is_available: bool

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        """Keep the host alive until ``awaitable`` settles."""
        ...

    def run_in_background(self, operation: BackgroundOperation) -> None:
        """Schedule ``operation`` without waiting for it."""
        ...


async def run_contained(operation: BackgroundOperation, logger: Any, name: Optional[str] = None) -> None:
    """Await ``operation()``, logging instead of raising on failure."""
    try:
        await operation()
    except Exception as exc:
        logger.error(
            "Background task failed",
            task=name or getattr(operation, "__qualname__", repr(operation)),
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )


def _discard(awaitable: Awaitable[Any]) -> None:
    """Close a coroutine that will never be awaited."""
    if inspect.iscoroutine(awaitable):
        awaitable.close()


class AsyncioExecutionContext:
    """Runs background work as tasks on the running event loop."""

    is_available = True

    def __init__(self, name: str = "cache.background"):
        self.name = name
        self.logger = get_logger(name)
        # Strong references; the loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of scheduled operations that have not finished."""
        return len(self._tasks)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        async def _settle() -> None:
            await awaitable

        loop = asyncio.get_running_loop()
        self._track(loop.create_task(run_contained(_settle, self.logger, "wait_until")))

    def run_in_background(self, operation: BackgroundOperation) -> None:
        context = contextvars.copy_context()
        loop = asyncio.get_running_loop()
        task = loop.create_task(run_contained(operation, self.logger), context=context)
        self._track(task)
        self.logger.debug("Background task scheduled", pending=len(self._tasks))

    async def drain(self) -> None:
        """Wait for every scheduled operation, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class NoopExecutionContext:
    """Execution context for hosts that cannot run work after returning."""

    is_available = False

    def __init__(self):
        self.logger = get_logger("cache.background.noop")

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        _discard(awaitable)

    def run_in_background(self, operation: BackgroundOperation) -> None:
        self.logger.debug("Background execution unavailable; operation dropped")
