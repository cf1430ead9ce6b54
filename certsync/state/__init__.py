"""Credential verification/minting state and the hidden-credential set."""

from .hidden import HiddenSetTracker
from .machine import (
    MINT_TRANSITIONS,
    VERIFICATION_TRANSITIONS,
    CredentialState,
    CredentialStateTracker,
    InvalidTransitionError,
    MintStatus,
    StateError,
    VerificationStatus,
)

__all__ = [
    "CredentialState",
    "CredentialStateTracker",
    "HiddenSetTracker",
    "InvalidTransitionError",
    "MINT_TRANSITIONS",
    "MintStatus",
    "StateError",
    "VERIFICATION_TRANSITIONS",
    "VerificationStatus",
]
