"""Shared fixtures for certsync tests."""

from typing import Any, Dict, List, Optional

import pytest

from certsync.ledger.models import LedgerCredentialObject
from certsync.persistence import Database, InMemoryKeyValueStore
from certsync.reconcile.catalog import DEFAULT_CATALOG


OWNER = "0x" + "a1" * 32


# =============================================================================
# Builders
# =============================================================================

def make_object(
    object_id: str = "0xobj1",
    title: str = "Professional Web Developer",
    issuer: str = "CertHub Academy",
    content_address: str = "blob-1",
    issue_timestamp: Optional[int] = 1_700_000_000_000,
    owner_address: str = OWNER,
) -> LedgerCredentialObject:
    """Build a decoded ledger object."""
    return LedgerCredentialObject(
        object_id=object_id,
        title=title,
        issuer=issuer,
        content_address=content_address,
        issue_timestamp=issue_timestamp,
        owner_address=owner_address,
    )


def raw_object(object_id: str, **fields: Any) -> Dict[str, Any]:
    """Build one raw ``suix_getOwnedObjects`` response item."""
    return {
        "data": {
            "objectId": object_id,
            "type": "0xpkg::diploma::Diploma",
            "content": {"dataType": "moveObject", "fields": fields},
        }
    }


def rpc_result(result: Any, request_id: int = 1) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def owned_page(items: List[Dict[str, Any]], next_cursor: Optional[str] = None) -> Dict[str, Any]:
    return {
        "data": items,
        "nextCursor": next_cursor,
        "hasNextPage": next_cursor is not None,
    }


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def owner() -> str:
    return OWNER


@pytest.fixture
def catalog():
    return DEFAULT_CATALOG


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def database():
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite://")
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def file_database(tmp_path):
    """File-backed SQLite database (survives re-opening)."""
    url = f"sqlite:///{tmp_path / 'certsync.db'}"
    db = Database(url)
    db.init()
    yield db
    db.dispose()
