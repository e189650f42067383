"""
Integration tests for a FastAPI service reading through the cache.
"""

from typing import Dict

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry
from pydantic import BaseModel

from service_cache.app.adapters import InMemoryKeyValueStore
from service_cache.app.caching import CacheManager, CacheOptions, resolve_version
from service_cache.app.execution import ExecutionContext, get_execution_context
from shared.logging import set_request_id
from shared.metrics import MetricsCollector

PROJECT_OPTIONS = CacheOptions(ttl=60, swr=300, version=True)


class Project(BaseModel):
    id: str
    name: str
    owner_id: str


class StepClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def create_app(manager: CacheManager, database: Dict[str, Project], loads: list) -> FastAPI:
    app = FastAPI()

    @app.get("/projects/{project_id}")
    async def read_project(project_id: str, execution: ExecutionContext = Depends(get_execution_context)):
        set_request_id(f"read-{project_id}")

        async def load():
            loads.append(project_id)
            return database[project_id]

        return await manager.cache(f"project:{project_id}", load, Project, PROJECT_OPTIONS, execution=execution)

    @app.put("/projects/{project_id}")
    async def update_project(project_id: str, project: Project):
        database[project_id] = project
        await manager.invalidate(f"project:{project_id}", PROJECT_OPTIONS, schema=Project)
        return project

    @app.delete("/cache/{prefix}")
    async def invalidate_prefix(prefix: str):
        return {"deleted": await manager.invalidate_prefix(prefix)}

    @app.get("/cache/health")
    async def health():
        return await manager.health_check()

    @app.get("/cache/stats")
    async def stats():
        return manager.get_cache_stats()

    return app


class TestCacheFlow:
    """Read-through, refresh and invalidation across requests."""

    @pytest.fixture
    def clock(self):
        return StepClock()

    @pytest.fixture
    def database(self):
        return {
            "p1": Project(id="p1", name="Alpha", owner_id="u1"),
            "p2": Project(id="p2", name="Beta", owner_id="u1"),
        }

    @pytest.fixture
    def loads(self):
        return []

    @pytest.fixture
    def manager(self, clock):
        store = InMemoryKeyValueStore(clock=clock)
        metrics = MetricsCollector("cache", CollectorRegistry())
        return CacheManager(store, metrics=metrics, clock=clock)

    @pytest.fixture
    def client(self, manager, database, loads):
        return TestClient(create_app(manager, database, loads))

    def test_read_through_and_refresh(self, client, clock, database, loads):
        assert client.get("/projects/p1").json()["name"] == "Alpha"
        assert client.get("/projects/p1").json()["name"] == "Alpha"
        assert loads == ["p1"]

        database["p1"] = Project(id="p1", name="Alpha v2", owner_id="u1")
        clock.now += 120

        # Stale value served; refresh runs after the response
        assert client.get("/projects/p1").json()["name"] == "Alpha"
        assert loads == ["p1", "p1"]
        assert client.get("/projects/p1").json()["name"] == "Alpha v2"
        assert loads == ["p1", "p1"]

    def test_expired_entry_recomputed_inline(self, client, clock, database, loads):
        client.get("/projects/p1")
        database["p1"] = Project(id="p1", name="Renamed", owner_id="u1")
        clock.now += 400

        assert client.get("/projects/p1").json()["name"] == "Renamed"
        assert loads == ["p1", "p1"]

    def test_update_invalidates(self, client, loads):
        client.get("/projects/p1")

        response = client.put("/projects/p1", json={"id": "p1", "name": "Gamma", "owner_id": "u1"})

        assert response.status_code == 200
        assert client.get("/projects/p1").json()["name"] == "Gamma"
        assert loads == ["p1", "p1"]

    def test_prefix_invalidation(self, client, loads):
        client.get("/projects/p1")
        client.get("/projects/p2")

        # Schema-hash versioned keys start with the hash, not the raw key
        assert client.delete("/cache/project:").json() == {"deleted": 0}
        prefix = f"{resolve_version(Project)}:project:"
        assert client.delete(f"/cache/{prefix}").json() == {"deleted": 2}

        client.get("/projects/p1")
        assert loads == ["p1", "p2", "p1"]

    def test_stats_and_health(self, client):
        client.get("/projects/p1")
        client.get("/projects/p1")

        stats = client.get("/cache/stats").json()
        health = client.get("/cache/health").json()

        assert stats["requests"]["miss"] == 1
        assert stats["requests"]["fresh"] == 1
        assert stats["hit_rate"] == 0.5
        assert health["healthy"] is True
        assert health["store"] == "InMemoryKeyValueStore"
