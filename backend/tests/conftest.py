from __future__ import annotations

import os

# Settings are read once at import time
os.environ.setdefault("CREDIT_ENGINE_ENV", "test")
os.environ.setdefault("CREDIT_ENGINE_STORAGE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient

from credit_engine.api.main import create_app
from credit_engine.engine import CreditEngine, build_engine
from credit_engine.settings import Settings
from credit_engine.storage import Database, MemoryEventStore, SqlEventStore
from credit_engine.storage.base import EventStore


@pytest.fixture
def config() -> Settings:
    return Settings(env="test", storage_backend="memory")


@pytest.fixture
def memory_store() -> MemoryEventStore:
    return MemoryEventStore()


@pytest.fixture
def sql_store():
    database = Database("sqlite://")
    database.create_tables()
    yield SqlEventStore(database)
    database.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request) -> EventStore:
    """Run a test once per store backend."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def engine(config: Settings, memory_store: MemoryEventStore) -> CreditEngine:
    return build_engine(config, store=memory_store)


@pytest.fixture
def sql_engine(config: Settings, sql_store: SqlEventStore) -> CreditEngine:
    return build_engine(config, store=sql_store)


@pytest.fixture
def client(engine: CreditEngine, config: Settings) -> TestClient:
    return TestClient(create_app(engine=engine, config=config))
