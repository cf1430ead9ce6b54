"""Verify-and-claim flow for catalog credentials.

Claiming a credential stores its file in the blob store, submits an
"issue credential" transaction for the owner, and then verifies the result
against the ledger:

    upload file → submit issue call → MINTED → verification pass

Transaction signing and execution belong to the wallet; this module only
consumes a TransactionSubmitter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from certsync.blobs.client import BlobStoreClient
from certsync.core.config import DEFAULT_ISSUE_SCORE, MINT_VERIFY_DELAY_SECONDS
from certsync.exceptions import CertSyncError
from certsync.reconcile.catalog import CredentialDescriptor
from certsync.state.machine import CredentialState, CredentialStateTracker, MintStatus
from certsync.verification import CredentialVerifier

log = logging.getLogger(__name__)


class IssuanceError(CertSyncError):
    """Claiming a credential failed; the mint machine is in MINT_FAILED."""

    def __init__(self, message: str = "Credential issuance failed"):
        super().__init__("ISSUANCE_FAILED", message)


@dataclass(frozen=True)
class IssueCredentialCall:
    """Arguments of the ledger's issue-credential entry point.

    Attributes:
        owner_address: Recipient address.
        title: Credential title.
        issuer: Issuer display name.
        score: Score recorded on the credential.
        content_address: Blob address of the credential file.
        timestamp_ms: Issue time in epoch milliseconds.
    """

    owner_address: str
    title: str
    issuer: str
    score: int
    content_address: str
    timestamp_ms: int


@runtime_checkable
class TransactionSubmitter(Protocol):
    """Signs and executes an issue call; returns the transaction id."""

    async def submit(self, call: IssueCredentialCall) -> str:
        ...


class CredentialIssuer:
    """Drives the minting machine for catalog credentials."""

    def __init__(
        self,
        blob_client: BlobStoreClient,
        submitter: TransactionSubmitter,
        verifier: CredentialVerifier,
        score: int = DEFAULT_ISSUE_SCORE,
        verify_delay: float = MINT_VERIFY_DELAY_SECONDS,
    ):
        self._blobs = blob_client
        self._submitter = submitter
        self._verifier = verifier
        self._score = score
        self._verify_delay = verify_delay

    @property
    def tracker(self) -> CredentialStateTracker:
        return self._verifier.tracker

    async def issue(
        self,
        descriptor: CredentialDescriptor,
        owner: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> CredentialState:
        """Upload the credential file and mint the credential for ``owner``.

        Concurrent calls for the same descriptor share one run. An already
        minted credential is returned unchanged.

        Raises:
            IssuanceError: If no owner is given, or upload/submission fails.
        """
        if not owner:
            raise IssuanceError("No wallet address connected")

        state = self.tracker.get(descriptor.id)
        if state.mint is MintStatus.MINTED:
            return state

        return await self.tracker.single_flight(
            descriptor.id,
            CredentialStateTracker.MINT,
            lambda: self._run(descriptor, owner, data, content_type),
        )

    async def _run(
        self,
        descriptor: CredentialDescriptor,
        owner: str,
        data: bytes,
        content_type: Optional[str],
    ) -> CredentialState:
        tracker = self.tracker
        tracker.transition_mint(descriptor.id, MintStatus.MINTING, error=None)

        try:
            content_address = await self._blobs.upload(data, content_type)
            call = IssueCredentialCall(
                owner_address=owner,
                title=descriptor.title,
                issuer=descriptor.issuer,
                score=self._score,
                content_address=content_address,
                timestamp_ms=int(time.time() * 1000),
            )
            transaction_id = await self._submitter.submit(call)
        except Exception as e:
            log.error(
                f"Mint failed for credential {descriptor.id}: {e}",
                extra={"credential_id": descriptor.id, "owner": owner},
            )
            tracker.transition_mint(descriptor.id, MintStatus.MINT_FAILED, error=str(e))
            raise IssuanceError(f"Mint failed for {descriptor.title}: {e}") from e
        except BaseException as e:
            log.warning(
                f"Mint interrupted for credential {descriptor.id}: {type(e).__name__}",
                extra={"credential_id": descriptor.id, "owner": owner},
            )
            tracker.transition_mint(
                descriptor.id, MintStatus.MINT_FAILED, error=str(e) or type(e).__name__
            )
            raise

        tracker.transition_mint(
            descriptor.id,
            MintStatus.MINTED,
            content_address=content_address,
            transaction_id=transaction_id,
        )
        log.info(
            f"Credential {descriptor.id} minted in {transaction_id}",
            extra={"credential_id": descriptor.id, "content_address": content_address},
        )

        if self._verify_delay > 0:
            await asyncio.sleep(self._verify_delay)
        return await self._verifier.verify(descriptor.id, owner)
