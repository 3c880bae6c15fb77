"""Event store backends and selection by configuration."""

from credit_engine.settings import Settings, settings as default_settings
from credit_engine.storage.base import EventStore
from credit_engine.storage.db import Database
from credit_engine.storage.memory_store import MemoryEventStore
from credit_engine.storage.sql_store import SqlEventStore


def build_event_store(config: Settings | None = None) -> EventStore:
    """Create the event store named by ``storage_backend``.

    The sql backend also creates its tables, so a fresh database is usable
    immediately; production deployments run the Alembic migration instead.
    """
    config = config or default_settings
    if config.storage_backend == "memory":
        return MemoryEventStore()

    database = Database(config.database_url, echo=config.log_level == "DEBUG")
    database.create_tables()
    return SqlEventStore(database)


__all__ = [
    "Database",
    "EventStore",
    "MemoryEventStore",
    "SqlEventStore",
    "build_event_store",
]
