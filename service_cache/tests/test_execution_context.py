"""
Unit tests for background execution contexts.
"""

import asyncio
import inspect
from unittest.mock import MagicMock

import pytest

from service_cache.app.execution import (
    AsyncioExecutionContext,
    ExecutionContext,
    NoopExecutionContext,
    run_contained,
)
from shared.logging import request_id_var, set_request_id


class TestAsyncioExecutionContext:
    """Task-backed execution context."""

    def test_satisfies_protocol(self, execution):
        assert isinstance(execution, ExecutionContext)
        assert execution.is_available is True

    @pytest.mark.asyncio
    async def test_runs_operation_after_returning(self, execution):
        calls = []

        async def operation():
            calls.append("ran")

        execution.run_in_background(operation)

        assert calls == []
        assert execution.pending == 1

        await execution.drain()

        assert calls == ["ran"]
        assert execution.pending == 0

    @pytest.mark.asyncio
    async def test_failures_are_contained(self, execution):
        calls = []

        async def failing():
            raise RuntimeError("boom")

        async def succeeding():
            calls.append("ok")

        execution.run_in_background(failing)
        execution.run_in_background(succeeding)

        await execution.drain()

        assert calls == ["ok"]

    @pytest.mark.asyncio
    async def test_preserves_caller_context(self, execution):
        seen = []

        async def operation():
            seen.append(request_id_var.get())

        set_request_id("req-123")
        execution.run_in_background(operation)
        request_id_var.set("req-456")

        await execution.drain()

        assert seen == ["req-123"]

    @pytest.mark.asyncio
    async def test_drain_waits_for_nested_scheduling(self, execution):
        calls = []

        async def child():
            calls.append("child")

        async def parent():
            calls.append("parent")
            execution.run_in_background(child)

        execution.run_in_background(parent)
        await execution.drain()

        assert calls == ["parent", "child"]

    @pytest.mark.asyncio
    async def test_wait_until_settles_awaitable(self, execution):
        done = asyncio.Event()

        async def work():
            done.set()

        execution.wait_until(work())
        await execution.drain()

        assert done.is_set()


class TestNoopExecutionContext:
    """Unavailable execution context."""

    def test_reports_unavailable(self, noop_execution):
        assert isinstance(noop_execution, ExecutionContext)
        assert noop_execution.is_available is False

    @pytest.mark.asyncio
    async def test_never_runs_operation(self, noop_execution):
        calls = []

        async def operation():
            calls.append("ran")

        noop_execution.run_in_background(operation)
        await asyncio.sleep(0)

        assert calls == []

    def test_wait_until_closes_coroutine(self, noop_execution):
        async def work():
            return 1

        coro = work()
        noop_execution.wait_until(coro)

        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED


class TestRunContained:
    """Failure containment helper."""

    @pytest.mark.asyncio
    async def test_logs_instead_of_raising(self):
        logger = MagicMock()

        async def failing():
            raise ValueError("bad value")

        await run_contained(failing, logger, "refresh")

        logger.error.assert_called_once()
        _, kwargs = logger.error.call_args
        assert kwargs["task"] == "refresh"
        assert kwargs["error_type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        logger = MagicMock()

        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_contained(cancelled, logger)

        logger.error.assert_not_called()
