"""Key/value stores for small persisted state.

Callers depend on the KeyValueStore protocol so tests (and ephemeral
sessions) can substitute the in-memory store.
"""

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

from .db import Database
from .models import KeyValueRow

log = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """String values under string keys."""

    def get(self, key: str) -> Optional[str]:
        """Return the value under ``key`` or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class SqlKeyValueStore:
    """Store backed by the ``kv_state`` table."""

    def __init__(self, database: Database):
        self._db = database

    def get(self, key: str) -> Optional[str]:
        with self._db.session() as db:
            row = db.get(KeyValueRow, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        with self._db.session() as db:
            row = db.get(KeyValueRow, key)
            if row is None:
                db.add(KeyValueRow(key=key, value=value))
            else:
                row.value = value

    def delete(self, key: str) -> None:
        with self._db.session() as db:
            row = db.get(KeyValueRow, key)
            if row is not None:
                db.delete(row)
