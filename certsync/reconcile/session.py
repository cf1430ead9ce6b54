"""Reconciliation passes for owner addresses.

A pass locates the owner's ledger objects, matches them to the catalog and
(optionally) resolves each match's originating transaction in parallel.

Ordering: every dispatch for an owner gets a new generation number. When a
pass completes after a newer pass for the same owner was dispatched, its
result is marked stale and not published, so the last dispatched query wins.

Failure policy: per-object parse failures are reported alongside the records;
a failed ledger query keeps the previously published result in place.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence

from certsync.core.config import TX_LOOKUP_TIMEOUT_SECONDS
from certsync.ledger.exceptions import LedgerQueryError
from certsync.ledger.locator import LedgerObjectLocator
from certsync.ledger.models import ObjectFailure
from certsync.state.hidden import HiddenSetTracker

from .catalog import DEFAULT_CATALOG, CredentialDescriptor
from .matcher import VerifiedCredentialRecord, match_objects

log = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass.

    Attributes:
        owner: Owner address the pass ran for.
        records: Verified records, in ledger-object order.
        unmatched: Object ids that matched no descriptor.
        failures: Per-object (or whole-query) failures.
        generation: Dispatch number of this pass for the owner.
        stale: True when a newer pass was dispatched before this one finished.
        query_error: Message when the ledger query itself failed.
    """

    owner: str
    records: List[VerifiedCredentialRecord] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    failures: List[ObjectFailure] = field(default_factory=list)
    generation: int = 0
    stale: bool = False
    query_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.query_error is None

    def record_for(self, descriptor_id: str) -> Optional[VerifiedCredentialRecord]:
        for record in self.records:
            if record.descriptor_id == descriptor_id:
                return record
        return None

    def verified_ids(self) -> List[str]:
        return [record.descriptor_id for record in self.records]


class ReconciliationSession:
    """Runs and publishes reconciliation passes for owner addresses.

    Usage:
        session = ReconciliationSession(LedgerObjectLocator())
        result = await session.reconcile(owner)
        for record in session.visible(result.records):
            ...
    """

    def __init__(
        self,
        locator: LedgerObjectLocator,
        descriptors: Sequence[CredentialDescriptor] = DEFAULT_CATALOG,
        hidden: Optional[HiddenSetTracker] = None,
        resolve_transactions: bool = True,
        tx_lookup_timeout: float = TX_LOOKUP_TIMEOUT_SECONDS,
    ):
        self._locator = locator
        self._descriptors = tuple(descriptors)
        self._hidden = hidden
        self._resolve_transactions = resolve_transactions
        self._tx_lookup_timeout = tx_lookup_timeout
        self._generations: Dict[str, int] = {}
        self._published: Dict[str, ReconciliationResult] = {}

    @property
    def descriptors(self) -> tuple:
        return self._descriptors

    def descriptor(self, descriptor_id: str) -> Optional[CredentialDescriptor]:
        for descriptor in self._descriptors:
            if descriptor.id == descriptor_id:
                return descriptor
        return None

    def latest(self, owner: str) -> Optional[ReconciliationResult]:
        """Newest published result for ``owner``."""
        return self._published.get(owner)

    def forget(self, owner: str) -> None:
        """Drop published state for ``owner`` (e.g. wallet disconnected)."""
        self._published.pop(owner, None)
        self._generations[owner] = self._generations.get(owner, 0) + 1

    def visible(
        self, records: Iterable[VerifiedCredentialRecord]
    ) -> List[VerifiedCredentialRecord]:
        """Filter out records whose object the user has hidden."""
        if self._hidden is None:
            return list(records)
        return [r for r in records if not self._hidden.is_hidden(r.object_id)]

    async def reconcile(self, owner: Optional[str]) -> ReconciliationResult:
        """Run one reconciliation pass for ``owner``.

        Returns:
            ReconciliationResult; ``stale`` is set when a newer pass for the
            same owner was dispatched while this one ran.
        """
        if not owner:
            return ReconciliationResult(owner="")

        generation = self._generations.get(owner, 0) + 1
        self._generations[owner] = generation

        try:
            located = await self._locator.locate(owner)
        except LedgerQueryError as e:
            log.error(
                f"Failed to fetch ledger credentials for {owner}: {e.message}",
                extra={"owner": owner},
            )
            previous = self._published.get(owner)
            return ReconciliationResult(
                owner=owner,
                records=list(previous.records) if previous else [],
                unmatched=list(previous.unmatched) if previous else [],
                failures=[ObjectFailure("", e.code, e.message)],
                generation=generation,
                stale=self._generations.get(owner) != generation,
                query_error=e.message,
            )

        matched = match_objects(self._descriptors, located.objects)
        records = matched.records
        if self._resolve_transactions and records:
            records = await self._attach_transaction_ids(records)

        result = ReconciliationResult(
            owner=owner,
            records=records,
            unmatched=matched.unmatched,
            failures=located.failures,
            generation=generation,
        )

        if self._generations.get(owner) != generation:
            log.info(
                f"Discarding superseded reconciliation pass {generation} for {owner}",
                extra={"owner": owner},
            )
            result.stale = True
            return result

        self._published[owner] = result
        log.info(
            f"Reconciled {len(records)} verified credential(s) for {owner} "
            f"({len(matched.unmatched)} unmatched, {len(located.failures)} failed)",
            extra={"owner": owner},
        )
        return result

    async def _attach_transaction_ids(
        self, records: List[VerifiedCredentialRecord]
    ) -> List[VerifiedCredentialRecord]:
        """Resolve originating transactions for all records in parallel.

        Each lookup writes only its own object's key. Lookups still pending at
        the timeout leave their transaction id empty.
        """
        digests: Dict[str, Optional[str]] = {}

        async def lookup(object_id: str) -> None:
            digests[object_id] = await self._locator.resolve_transaction_id(object_id)

        try:
            async with asyncio.timeout(self._tx_lookup_timeout):
                results = await asyncio.gather(
                    *(lookup(record.object_id) for record in records),
                    return_exceptions=True,
                )
            for record, outcome in zip(records, results):
                if isinstance(outcome, Exception):
                    log.warning(
                        f"Transaction lookup failed for {record.object_id}: {outcome}",
                        extra={"object_id": record.object_id},
                    )
        except TimeoutError:
            log.warning(
                f"Transaction lookups timed out after {self._tx_lookup_timeout}s "
                f"({len(digests)}/{len(records)} resolved)"
            )

        return [
            replace(record, transaction_id=digests.get(record.object_id))
            for record in records
        ]
