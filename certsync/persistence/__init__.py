"""Local persistence: SQLAlchemy engine/session and small state stores."""

from .db import Database, build_engine, get_database, reset_database
from .kv import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore
from .models import Base, CachedBlobRow, KeyValueRow

__all__ = [
    "Base",
    "CachedBlobRow",
    "Database",
    "InMemoryKeyValueStore",
    "KeyValueRow",
    "KeyValueStore",
    "SqlKeyValueStore",
    "build_engine",
    "get_database",
    "reset_database",
]
