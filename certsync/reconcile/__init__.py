"""Reconciliation of the credential catalog with ledger objects."""

from .catalog import DEFAULT_CATALOG, CredentialDescriptor, load_catalog, parse_catalog
from .matcher import (
    MatchResult,
    MatchTier,
    VerifiedCredentialRecord,
    match,
    match_objects,
    match_tier,
    normalize,
)
from .session import ReconciliationResult, ReconciliationSession

__all__ = [
    # Catalog
    "CredentialDescriptor",
    "DEFAULT_CATALOG",
    "load_catalog",
    "parse_catalog",
    # Matcher
    "MatchResult",
    "MatchTier",
    "VerifiedCredentialRecord",
    "match",
    "match_objects",
    "match_tier",
    "normalize",
    # Session
    "ReconciliationResult",
    "ReconciliationSession",
]
