"""
Shared fixtures for cache service tests.
"""

from typing import List, Optional

import pytest
from prometheus_client import CollectorRegistry
from pydantic import BaseModel

from service_cache.app.adapters.base import StoredKey
from service_cache.app.adapters.memory_store import InMemoryKeyValueStore
from service_cache.app.execution.context import AsyncioExecutionContext, NoopExecutionContext
from shared.errors import CacheClientError
from shared.metrics import MetricsCollector

T0 = 1_700_000_000.0


class User(BaseModel):
    id: str
    name: str
    email: str


class Project(BaseModel):
    id: str
    name: str
    user_id: str


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStore:
    """Store whose every call fails, optionally with a non-cache exception."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or CacheClientError("Connection failed", cause=ConnectionRefusedError("ECONNREFUSED"))

    async def get(self, key: str) -> Optional[str]:
        raise self.error

    async def put(self, key: str, value: str, expiration_ttl: int) -> None:
        raise self.error

    async def delete(self, key: str) -> None:
        raise self.error

    async def list(self, prefix: str) -> List[StoredKey]:
        raise self.error


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def store(clock):
    """In-memory store sharing the fake clock."""
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def execution():
    """Available asyncio execution context."""
    return AsyncioExecutionContext()


@pytest.fixture
def noop_execution():
    """Unavailable execution context."""
    return NoopExecutionContext()


@pytest.fixture
def metrics():
    """Metrics collector on an isolated registry."""
    return MetricsCollector("cache", CollectorRegistry())


@pytest.fixture
def user():
    """Sample user."""
    return User(id="1", name="Test User", email="test@example.com")
