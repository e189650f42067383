"""
Background execution contexts used for stale-while-revalidate refreshes.
"""

from .context import (
    AsyncioExecutionContext,
    BackgroundOperation,
    ExecutionContext,
    NoopExecutionContext,
    run_contained,
)
from .fastapi_context import BackgroundTasksExecutionContext, get_execution_context

__all__ = [
    "AsyncioExecutionContext",
    "BackgroundOperation",
    "BackgroundTasksExecutionContext",
    "ExecutionContext",
    "NoopExecutionContext",
    "get_execution_context",
    "run_contained",
]
