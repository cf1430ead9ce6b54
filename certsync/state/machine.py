"""Per-credential verification and minting state.

Two independent machines per credential id:

    Verification: UNVERIFIED → VERIFYING → {VERIFIED, FAILED}
                  FAILED → VERIFYING (explicit retry)
    Minting:      NOT_MINTED → MINTING → {MINTED, MINT_FAILED}
                  MINT_FAILED → MINTING (explicit retry)

VERIFIED and MINTED are terminal for the session; ``reset`` starts over
(e.g. after the wallet owner changes).

Single-flight: at most one verify and one mint operation per credential id
are in flight. A second caller for the same id joins the running operation
instead of starting another.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Optional, Tuple, TypeVar

from certsync.exceptions import CertSyncError

log = logging.getLogger(__name__)

T = TypeVar("T")


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


class MintStatus(str, Enum):
    NOT_MINTED = "not_minted"
    MINTING = "minting"
    MINTED = "minted"
    MINT_FAILED = "mint_failed"


VERIFICATION_TRANSITIONS: Dict[VerificationStatus, FrozenSet[VerificationStatus]] = {
    VerificationStatus.UNVERIFIED: frozenset({VerificationStatus.VERIFYING}),
    VerificationStatus.VERIFYING: frozenset({VerificationStatus.VERIFIED, VerificationStatus.FAILED}),
    VerificationStatus.VERIFIED: frozenset(),
    VerificationStatus.FAILED: frozenset({VerificationStatus.VERIFYING}),
}

MINT_TRANSITIONS: Dict[MintStatus, FrozenSet[MintStatus]] = {
    MintStatus.NOT_MINTED: frozenset({MintStatus.MINTING}),
    MintStatus.MINTING: frozenset({MintStatus.MINTED, MintStatus.MINT_FAILED}),
    MintStatus.MINTED: frozenset(),
    MintStatus.MINT_FAILED: frozenset({MintStatus.MINTING}),
}


class StateError(CertSyncError):
    """Base exception for credential state errors."""


class InvalidTransitionError(StateError):
    """A state change not allowed by the machine was requested."""

    def __init__(self, credential_id: str, current: Enum, requested: Enum):
        self.credential_id = credential_id
        self.current = current
        self.requested = requested
        super().__init__(
            "INVALID_STATE_TRANSITION",
            f"Credential {credential_id}: cannot move from {current.value} to {requested.value}",
        )


@dataclass(frozen=True)
class CredentialState:
    """Snapshot of one credential's state.

    Attributes:
        credential_id: Descriptor id.
        verification: Verification machine state.
        mint: Minting machine state.
        object_id: Backing ledger object once verified.
        content_address: Blob address of the credential file.
        transaction_id: Issuing transaction, when known.
        error: Message from the last failure.
        updated_at: Time of the last transition.
    """

    credential_id: str
    verification: VerificationStatus = VerificationStatus.UNVERIFIED
    mint: MintStatus = MintStatus.NOT_MINTED
    object_id: Optional[str] = None
    content_address: Optional[str] = None
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = None


class CredentialStateTracker:
    """Holds credential states and the in-flight operation handles."""

    VERIFY = "verify"
    MINT = "mint"

    def __init__(self):
        self._states: Dict[str, CredentialState] = {}
        self._in_flight: Dict[Tuple[str, str], asyncio.Task] = {}

    def get(self, credential_id: str) -> CredentialState:
        return self._states.get(credential_id) or CredentialState(credential_id)

    def all(self) -> Dict[str, CredentialState]:
        return dict(self._states)

    def reset(self, credential_id: Optional[str] = None) -> None:
        """Forget state for one credential, or for all when id is None."""
        if credential_id is None:
            self._states.clear()
        else:
            self._states.pop(credential_id, None)

    def reopen_verification(self, credential_id: str) -> CredentialState:
        """Return a VERIFIED credential to UNVERIFIED so it can be checked again.

        Mint state is kept.
        """
        current = self.get(credential_id)
        return self._store(current, verification=VerificationStatus.UNVERIFIED)

    def transition_verification(
        self, credential_id: str, status: VerificationStatus, **updates
    ) -> CredentialState:
        """Move the verification machine to ``status``.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        current = self.get(credential_id)
        if status not in VERIFICATION_TRANSITIONS[current.verification]:
            raise InvalidTransitionError(credential_id, current.verification, status)
        return self._store(current, verification=status, **updates)

    def transition_mint(
        self, credential_id: str, status: MintStatus, **updates
    ) -> CredentialState:
        """Move the minting machine to ``status``.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        current = self.get(credential_id)
        if status not in MINT_TRANSITIONS[current.mint]:
            raise InvalidTransitionError(credential_id, current.mint, status)
        return self._store(current, mint=status, **updates)

    def _store(self, current: CredentialState, **updates) -> CredentialState:
        updated = replace(current, updated_at=datetime.now(timezone.utc), **updates)
        self._states[current.credential_id] = updated
        log.debug(
            f"Credential {current.credential_id}: "
            f"verification={updated.verification.value} mint={updated.mint.value}",
            extra={"credential_id": current.credential_id},
        )
        return updated

    def is_in_flight(self, credential_id: str, kind: str) -> bool:
        return (kind, credential_id) in self._in_flight

    async def single_flight(
        self,
        credential_id: str,
        kind: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``operation`` unless one of the same kind is in flight for the id.

        Concurrent callers for the same ``(kind, credential_id)`` all await
        the one running task. The handle is cleared when the task finishes.
        """
        key = (kind, credential_id)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(operation())
            self._in_flight[key] = task

            def _clear(done: asyncio.Task, key: Tuple[str, str] = key) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_clear)
        else:
            log.info(
                f"Joining in-flight {kind} for credential {credential_id}",
                extra={"credential_id": credential_id},
            )
        return await asyncio.shield(task)
