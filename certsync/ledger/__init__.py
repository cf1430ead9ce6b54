"""Ledger access: owned-object queries and tolerant decoding."""

from .client import LedgerRpcClient, OwnedObjectsPage
from .decode import decode_credential_object
from .exceptions import LedgerError, LedgerQueryError, ParseError
from .locator import LedgerObjectLocator
from .models import LedgerCredentialObject, LocatorResult, ObjectFailure

__all__ = [
    # Exceptions
    "LedgerError",
    "LedgerQueryError",
    "ParseError",
    # Models
    "LedgerCredentialObject",
    "LocatorResult",
    "ObjectFailure",
    # Transport
    "LedgerRpcClient",
    "OwnedObjectsPage",
    # Functions
    "decode_credential_object",
    "LedgerObjectLocator",
]
