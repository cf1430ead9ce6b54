"""Local blob cache keyed by content address.

Content addressing means one address always denotes the same bytes, so an
entry never needs revalidation; ``put`` simply overwrites.

Growth is bounded by total size: after each ``put`` the oldest entries
(by ``saved_at``, then address) are evicted until the cache fits
``max_bytes``. The entry just written is never evicted by its own put.
``prune`` applies an explicit age and/or size bound.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from sqlalchemy import select

from certsync.core.config import BLOB_CACHE_MAX_BYTES
from certsync.persistence.db import Database
from certsync.persistence.models import CachedBlobRow

from .models import CachedBlob

log = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class CacheEntryInfo:
    """Cache entry metadata (no bytes)."""

    content_address: str
    size: int
    saved_at: datetime


@dataclass(frozen=True)
class PruneReport:
    """Result of a prune/eviction pass."""

    deleted: Tuple[str, ...]
    bytes_freed: int
    examined: int
    remaining: int


def select_eviction_candidates(
    entries: Iterable[CacheEntryInfo],
    older_than: Optional[datetime] = None,
    max_bytes: Optional[int] = None,
    keep: Optional[str] = None,
) -> Tuple[CacheEntryInfo, ...]:
    """Select entries to delete, oldest first.

    Args:
        entries: Current cache entries.
        older_than: Delete entries saved before this time.
        max_bytes: Delete oldest entries until the total fits this bound.
        keep: Address that must not be selected.

    Returns:
        Selected entries in eviction order.
    """
    if max_bytes is not None and max_bytes < 0:
        raise ValueError("max_bytes must be >= 0")

    ordered = sorted(entries, key=lambda e: (_as_utc(e.saved_at), e.content_address))
    selected: Dict[str, CacheEntryInfo] = {}

    if older_than is not None:
        cutoff = _as_utc(older_than)
        for entry in ordered:
            if entry.content_address != keep and _as_utc(entry.saved_at) < cutoff:
                selected[entry.content_address] = entry

    if max_bytes is not None:
        remaining = [e for e in ordered if e.content_address not in selected]
        remaining_bytes = sum(e.size for e in remaining)
        for entry in remaining:
            if remaining_bytes <= max_bytes:
                break
            if entry.content_address == keep:
                continue
            selected[entry.content_address] = entry
            remaining_bytes -= entry.size

    return tuple(e for e in ordered if e.content_address in selected)


@runtime_checkable
class LocalBlobCache(Protocol):
    """Capability set of a local blob cache."""

    async def has(self, content_address: str) -> bool:
        ...

    async def get(self, content_address: str) -> Optional[bytes]:
        """Return cached bytes, or None when absent (never raises for absence)."""
        ...

    async def get_entry(self, content_address: str) -> Optional[CachedBlob]:
        ...

    async def put(self, content_address: str, data: bytes, content_type: str) -> None:
        """Store bytes, overwriting any entry for the address."""
        ...

    async def delete(self, content_address: str) -> bool:
        """Remove an entry. Return True when something was deleted."""
        ...

    async def prune(
        self, older_than: Optional[datetime] = None, max_bytes: Optional[int] = None
    ) -> PruneReport:
        ...


class InMemoryBlobCache:
    """Dict-backed blob cache for tests and ephemeral sessions.

    Every operation completes without yielding to the event loop, so
    concurrent coroutines observe each put/delete atomically.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self._entries: Dict[str, CachedBlob] = {}
        self._max_bytes = max_bytes or None

    def __len__(self) -> int:
        return len(self._entries)

    async def has(self, content_address: str) -> bool:
        return content_address in self._entries

    async def get(self, content_address: str) -> Optional[bytes]:
        entry = self._entries.get(content_address)
        return entry.data if entry is not None else None

    async def get_entry(self, content_address: str) -> Optional[CachedBlob]:
        return self._entries.get(content_address)

    async def put(self, content_address: str, data: bytes, content_type: str) -> None:
        self._entries[content_address] = CachedBlob(
            content_address=content_address,
            data=bytes(data),
            content_type=content_type,
            saved_at=utc_now(),
        )
        if self._max_bytes is not None:
            self._evict(max_bytes=self._max_bytes, keep=content_address)

    async def delete(self, content_address: str) -> bool:
        return self._entries.pop(content_address, None) is not None

    async def prune(
        self, older_than: Optional[datetime] = None, max_bytes: Optional[int] = None
    ) -> PruneReport:
        return self._evict(older_than=older_than, max_bytes=max_bytes)

    def _evict(
        self,
        older_than: Optional[datetime] = None,
        max_bytes: Optional[int] = None,
        keep: Optional[str] = None,
    ) -> PruneReport:
        infos = [
            CacheEntryInfo(e.content_address, e.size, e.saved_at)
            for e in self._entries.values()
        ]
        victims = select_eviction_candidates(infos, older_than, max_bytes, keep)
        for victim in victims:
            self._entries.pop(victim.content_address, None)
        if victims:
            log.info(f"Evicted {len(victims)} cached blob(s)")
        return PruneReport(
            deleted=tuple(v.content_address for v in victims),
            bytes_freed=sum(v.size for v in victims),
            examined=len(infos),
            remaining=len(self._entries),
        )


class SqlBlobCache:
    """Durable blob cache backed by the ``cached_blobs`` table.

    Database work runs in the default executor so cache access never blocks
    the event loop. Each operation uses its own session. Operations on one
    address are serialized; operations on different addresses run
    concurrently, with file-backed SQLite relying on ``busy_timeout`` for
    writer contention. Eviction sweeps take their own lock. An in-memory
    database shares a single connection, so its work is serialized.
    """

    def __init__(self, database: Database, max_bytes: Optional[int] = BLOB_CACHE_MAX_BYTES):
        self._db = database
        self._max_bytes = max_bytes or None
        self._address_locks: Dict[str, threading.Lock] = {}
        self._address_locks_guard = threading.Lock()
        self._evict_lock = threading.Lock()
        self._connection_lock = threading.Lock() if database.shares_connection else None

    def _address_lock(self, content_address: str) -> threading.Lock:
        with self._address_locks_guard:
            return self._address_locks.setdefault(content_address, threading.Lock())

    async def _run(self, lock: threading.Lock, func: Callable[[], T]) -> T:
        def _locked() -> T:
            with lock:
                if self._connection_lock is None:
                    return func()
                with self._connection_lock:
                    return func()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _locked)

    async def has(self, content_address: str) -> bool:
        def _has() -> bool:
            with self._db.session() as db:
                stmt = select(CachedBlobRow.content_address).where(
                    CachedBlobRow.content_address == content_address
                )
                return db.execute(stmt).first() is not None

        return await self._run(self._address_lock(content_address), _has)

    async def get_entry(self, content_address: str) -> Optional[CachedBlob]:
        def _get() -> Optional[CachedBlob]:
            with self._db.session() as db:
                row = db.get(CachedBlobRow, content_address)
                if row is None:
                    return None
                return CachedBlob(
                    content_address=row.content_address,
                    data=bytes(row.data),
                    content_type=row.content_type or "",
                    saved_at=_as_utc(row.saved_at),
                )

        return await self._run(self._address_lock(content_address), _get)

    async def get(self, content_address: str) -> Optional[bytes]:
        entry = await self.get_entry(content_address)
        return entry.data if entry is not None else None

    async def put(self, content_address: str, data: bytes, content_type: str) -> None:
        def _put() -> None:
            with self._db.session() as db:
                db.merge(
                    CachedBlobRow(
                        content_address=content_address,
                        data=bytes(data),
                        content_type=content_type,
                        size=len(data),
                        saved_at=utc_now(),
                    )
                )

        await self._run(self._address_lock(content_address), _put)
        log.debug(
            f"Cached {len(data)} bytes for {content_address}",
            extra={"content_address": content_address},
        )
        if self._max_bytes is not None:
            await self._run(
                self._evict_lock,
                lambda: self._evict(max_bytes=self._max_bytes, keep=content_address),
            )

    async def delete(self, content_address: str) -> bool:
        def _delete() -> bool:
            with self._db.session() as db:
                row = db.get(CachedBlobRow, content_address)
                if row is None:
                    return False
                db.delete(row)
                return True

        return await self._run(self._address_lock(content_address), _delete)

    async def prune(
        self, older_than: Optional[datetime] = None, max_bytes: Optional[int] = None
    ) -> PruneReport:
        return await self._run(
            self._evict_lock, lambda: self._evict(older_than=older_than, max_bytes=max_bytes)
        )

    def _evict(
        self,
        older_than: Optional[datetime] = None,
        max_bytes: Optional[int] = None,
        keep: Optional[str] = None,
    ) -> PruneReport:
        with self._db.session() as db:
            rows = db.execute(
                select(CachedBlobRow.content_address, CachedBlobRow.size, CachedBlobRow.saved_at)
            ).all()
            infos = [CacheEntryInfo(r[0], r[1], _as_utc(r[2])) for r in rows]
            victims = select_eviction_candidates(infos, older_than, max_bytes, keep)
            for victim in victims:
                row = db.get(CachedBlobRow, victim.content_address)
                if row is not None:
                    db.delete(row)

        if victims:
            log.info(f"Evicted {len(victims)} cached blob(s)")
        return PruneReport(
            deleted=tuple(v.content_address for v in victims),
            bytes_freed=sum(v.size for v in victims),
            examined=len(infos),
            remaining=len(infos) - len(victims),
        )
