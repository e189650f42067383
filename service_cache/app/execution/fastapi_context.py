"""
FastAPI integration: refresh stale entries after the response is sent.
"""

import asyncio
import contextvars
from typing import Any, Awaitable

from fastapi import BackgroundTasks

from shared.logging import get_logger
from .context import BackgroundOperation, run_contained


class BackgroundTasksExecutionContext:
    """Execution context backed by a request's ``BackgroundTasks``."""

    is_available = True

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks
        self.logger = get_logger("cache.background.fastapi")

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        async def _settle() -> None:
            await awaitable

        self.background_tasks.add_task(run_contained, _settle, self.logger, "wait_until")

    def run_in_background(self, operation: BackgroundOperation) -> None:
        context = contextvars.copy_context()
        self.background_tasks.add_task(self._run, operation, context)

    async def _run(self, operation: BackgroundOperation, context: contextvars.Context) -> None:
        loop = asyncio.get_running_loop()
        await loop.create_task(run_contained(operation, self.logger), context=context)


def get_execution_context(background_tasks: BackgroundTasks) -> BackgroundTasksExecutionContext:
    """FastAPI dependency returning a request-scoped execution context."""
    return BackgroundTasksExecutionContext(background_tasks)
