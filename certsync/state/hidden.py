"""User-hidden credential ids.

A purely local presentation filter: hiding never touches the ledger. The set
is stored as a JSON array of ids under one fixed key and written back after
every mutation.
"""

import json
import logging
from typing import FrozenSet, List, Set

from certsync.core.config import HIDDEN_SET_KEY
from certsync.persistence.kv import KeyValueStore

log = logging.getLogger(__name__)


class HiddenSetTracker:
    """Persisted set of hidden object ids."""

    def __init__(self, store: KeyValueStore, key: str = HIDDEN_SET_KEY):
        self._store = store
        self._key = key
        self._ids: Set[str] = self._load()

    def _load(self) -> Set[str]:
        raw = self._store.get(self._key)
        if not raw:
            return set()
        try:
            ids = json.loads(raw)
        except ValueError as e:
            log.error(f"Error loading hidden credentials: {e}")
            return set()
        if not isinstance(ids, list):
            log.error(f"Hidden credentials under {self._key!r} is not a JSON array")
            return set()
        return {str(i) for i in ids}

    def _save(self) -> None:
        self._store.set(self._key, json.dumps(sorted(self._ids)))

    def hide(self, object_id: str) -> None:
        if object_id in self._ids:
            return
        self._ids.add(object_id)
        self._save()

    def unhide(self, object_id: str) -> None:
        if object_id not in self._ids:
            return
        self._ids.discard(object_id)
        self._save()

    def is_hidden(self, object_id: str) -> bool:
        return object_id in self._ids

    def clear_all(self) -> None:
        self._ids.clear()
        self._save()

    @property
    def ids(self) -> FrozenSet[str]:
        return frozenset(self._ids)

    def sorted_ids(self) -> List[str]:
        return sorted(self._ids)

    def __len__(self) -> int:
        return len(self._ids)
