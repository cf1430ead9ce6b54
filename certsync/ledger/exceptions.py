"""Ledger-specific exceptions.

- Query failures → transient, surfaced with a retry affordance
- Parse failures → per-object; the object is skipped and the query continues
"""

from certsync.exceptions import CertSyncError


class LedgerError(CertSyncError):
    """Base exception for ledger operations."""


class LedgerQueryError(LedgerError):
    """Transport or RPC failure talking to the ledger node.

    Used when:
    - Network timeout or connection failure
    - Non-2xx HTTP status
    - JSON-RPC response carries an ``error`` member
    - Response body is not a JSON-RPC envelope
    """

    def __init__(self, message: str = "Ledger query failed"):
        super().__init__("LEDGER_QUERY_FAILED", message)


class ParseError(LedgerError):
    """A single ledger object has a malformed or unexpected shape."""

    def __init__(self, message: str = "Ledger object parse failed", object_id: str = ""):
        self.object_id = object_id
        super().__init__("LEDGER_PARSE_FAILED", message)
