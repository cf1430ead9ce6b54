"""Credential verification against the ledger.

A credential is verified when a reconciliation pass for the owner yields a
record for its descriptor that carries a content address (and, when file
checks are enabled, the file can be fetched).
"""

import logging
from typing import Optional

from certsync.blobs.exceptions import BlobStoreError
from certsync.blobs.resolver import BlobResolver
from certsync.reconcile.session import ReconciliationResult, ReconciliationSession
from certsync.state.machine import (
    CredentialState,
    CredentialStateTracker,
    VerificationStatus,
)

log = logging.getLogger(__name__)


class CredentialVerifier:
    """Drives the verification machine for catalog credentials."""

    def __init__(
        self,
        session: ReconciliationSession,
        tracker: Optional[CredentialStateTracker] = None,
        resolver: Optional[BlobResolver] = None,
        check_files: bool = False,
    ):
        """Initialize the verifier.

        Args:
            session: Reconciliation session used for ledger passes.
            tracker: Shared state tracker (a new one when omitted).
            resolver: Blob resolver used for file checks.
            check_files: Require the credential file to be fetchable.
        """
        if check_files and resolver is None:
            raise ValueError("check_files requires a resolver")
        self._session = session
        self._tracker = tracker or CredentialStateTracker()
        self._resolver = resolver
        self._check_files = check_files

    @property
    def tracker(self) -> CredentialStateTracker:
        return self._tracker

    @property
    def session(self) -> ReconciliationSession:
        return self._session

    async def verify(
        self, descriptor_id: str, owner: str, force: bool = False
    ) -> CredentialState:
        """Verify one credential for ``owner``.

        A credential already VERIFIED with a known object id is returned as is
        unless ``force`` is set. Concurrent calls for the same id share one
        run.
        """
        state = self._tracker.get(descriptor_id)
        if state.verification is VerificationStatus.VERIFIED:
            if state.object_id and not force:
                log.debug(f"Credential {descriptor_id} already verified, skipping")
                return state
            self._tracker.reopen_verification(descriptor_id)
        return await self._tracker.single_flight(
            descriptor_id,
            CredentialStateTracker.VERIFY,
            lambda: self._run(descriptor_id, owner),
        )

    async def _run(self, descriptor_id: str, owner: str) -> CredentialState:
        self._tracker.transition_verification(
            descriptor_id, VerificationStatus.VERIFYING, error=None
        )

        try:
            return await self._check(descriptor_id, owner)
        except BaseException as e:
            # Leave the credential retryable whatever interrupted the pass
            if self._tracker.get(descriptor_id).verification is VerificationStatus.VERIFYING:
                self._fail(descriptor_id, str(e) or type(e).__name__)
            raise

    async def _check(self, descriptor_id: str, owner: str) -> CredentialState:
        result = await self._session.reconcile(owner)
        if result.stale:
            result = self._session.latest(owner) or result

        if not result.ok:
            return self._fail(descriptor_id, result.query_error)

        record = result.record_for(descriptor_id)
        if record is None:
            return self._fail(descriptor_id, "No matching ledger object")
        if not record.has_file:
            return self._fail(descriptor_id, "Ledger object has no content address")

        if self._check_files:
            try:
                await self._resolver.fetch(record.content_address)
            except BlobStoreError as e:
                return self._fail(descriptor_id, e.message)

        log.info(
            f"Credential {descriptor_id} verified by {record.object_id}",
            extra={"credential_id": descriptor_id, "object_id": record.object_id},
        )
        return self._tracker.transition_verification(
            descriptor_id,
            VerificationStatus.VERIFIED,
            object_id=record.object_id,
            content_address=record.content_address,
            transaction_id=record.transaction_id or self._tracker.get(descriptor_id).transaction_id,
        )

    def _fail(self, descriptor_id: str, reason: Optional[str]) -> CredentialState:
        log.warning(
            f"Credential {descriptor_id} verification failed: {reason}",
            extra={"credential_id": descriptor_id},
        )
        return self._tracker.transition_verification(
            descriptor_id, VerificationStatus.FAILED, error=reason
        )

    def apply(self, result: ReconciliationResult) -> int:
        """Mark every credential matched in ``result`` as verified.

        Credentials already verified or with a verification in flight are
        left alone.

        Returns:
            Number of credentials newly marked verified.
        """
        if result.stale or not result.ok:
            return 0

        marked = 0
        for record in result.records:
            if not record.has_file:
                continue
            descriptor_id = record.descriptor_id
            state = self._tracker.get(descriptor_id)
            if state.verification is VerificationStatus.VERIFIED:
                continue
            if self._tracker.is_in_flight(descriptor_id, CredentialStateTracker.VERIFY):
                continue
            self._tracker.transition_verification(descriptor_id, VerificationStatus.VERIFYING)
            self._tracker.transition_verification(
                descriptor_id,
                VerificationStatus.VERIFIED,
                object_id=record.object_id,
                content_address=record.content_address,
                transaction_id=record.transaction_id,
                error=None,
            )
            marked += 1
        return marked

    async def sync(self, owner: str) -> ReconciliationResult:
        """Reconcile ``owner`` and apply the result to all credentials."""
        result = await self._session.reconcile(owner)
        marked = self.apply(result)
        if marked:
            log.info(f"Found {marked} verified credential(s) on-chain", extra={"owner": owner})
        return result
