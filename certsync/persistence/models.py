"""SQLAlchemy ORM models for local certsync state.

- cached_blobs: blob bytes keyed by content address
- kv_state: small string values under fixed keys (e.g. the hidden set)
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String, Text
from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class CachedBlobRow(Base):
    """A downloaded blob kept locally to avoid re-fetching."""

    __tablename__ = "cached_blobs"

    content_address = Column(String(128), primary_key=True)
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String(32), nullable=False, default="")
    size = Column(Integer, nullable=False, default=0)
    saved_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    def __repr__(self) -> str:
        return f"<CachedBlobRow(content_address={self.content_address!r}, size={self.size})>"


class KeyValueRow(Base):
    """A persisted string value under a fixed key."""

    __tablename__ = "kv_state"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<KeyValueRow(key={self.key!r})>"
