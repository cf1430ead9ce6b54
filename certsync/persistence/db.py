"""Database engine and session management for local certsync state.

SQLite is the default backend (one file per wallet installation); any
SQLAlchemy URL works.

- Database: engine + session factory for one URL
- get_database(): process-wide default built from DATABASE_URL
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from certsync.core.config import DATABASE_URL

log = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def build_engine(url: str) -> Engine:
    """Create an engine for ``url`` with SQLite-friendly defaults."""
    if url.startswith("sqlite"):
        engine_kwargs = {
            "echo": False,
            "connect_args": {"check_same_thread": False},
        }
        if _is_memory_sqlite(url):
            # Single shared connection so every session sees the same database
            engine_kwargs["poolclass"] = StaticPool
        else:
            db_path = url.replace("sqlite:///", "", 1)
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, **engine_kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    return create_engine(url, echo=False, pool_pre_ping=True)


class Database:
    """Engine and session factory for one database URL."""

    def __init__(self, url: str = DATABASE_URL):
        self.url = url
        self.engine = build_engine(url)
        # In-memory SQLite: every session uses the one StaticPool connection
        self.shares_connection = isinstance(self.engine.pool, StaticPool)
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def init(self) -> None:
        """Create all tables idempotently."""
        from certsync.persistence.models import Base

        Base.metadata.create_all(bind=self.engine)
        log.info(f"Database initialized at {self.url.split('@')[-1]}")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session scope: committed on success, rolled back on exception."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


# Module-level singleton
_database: Optional[Database] = None


def get_database() -> Database:
    """Get or create the default database (tables created on first use)."""
    global _database
    if _database is None:
        _database = Database(DATABASE_URL)
        _database.init()
    return _database


def reset_database() -> None:
    """Dispose and forget the default database (for testing)."""
    global _database
    if _database is not None:
        _database.dispose()
    _database = None
