"""Reconciliation of ledger objects with credential descriptors.

For each ledger object, descriptors are tried in catalog order and the first
descriptor that qualifies under any tier is taken:

1. EXACT: normalized title and normalized issuer both equal
2. TITLE: normalized titles equal and non-empty (issuer may differ)
3. SUBSTRING: both normalized titles longer than SUBSTRING_MATCH_MIN_LENGTH
   and one contains the other

Normalization is trim + case-fold. There is no scoring: identical inputs give
identical output, in ledger-object order. A descriptor is claimed by the
first object that matches it for a given owner; later objects of that owner
matching the same descriptor are reported as duplicates.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence

from certsync.core.config import SUBSTRING_MATCH_MIN_LENGTH
from certsync.ledger.models import LedgerCredentialObject

from .catalog import CredentialDescriptor

log = logging.getLogger(__name__)


class MatchTier(IntEnum):
    EXACT = 1
    TITLE = 2
    SUBSTRING = 3


@dataclass(frozen=True)
class VerifiedCredentialRecord:
    """A descriptor confirmed by a ledger object for one owner.

    Attributes:
        descriptor_id: Matched descriptor.
        object_id: Backing ledger object.
        content_address: Blob store address of the credential file.
        owner_address: Owner the pass ran for.
        tier: Tier that produced the match.
        transaction_id: Originating transaction, when resolved.
        minted_at: Issue time in epoch milliseconds, when known.
    """

    descriptor_id: str
    object_id: str
    content_address: str
    owner_address: str
    tier: MatchTier
    transaction_id: Optional[str] = None
    minted_at: Optional[int] = None

    @property
    def has_file(self) -> bool:
        return bool(self.content_address.strip())


@dataclass
class MatchResult:
    """Output of one matching pass."""

    records: List[VerifiedCredentialRecord] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)


def normalize(text: Optional[str]) -> str:
    return (text or "").strip().casefold()


def match_tier(
    descriptor: CredentialDescriptor, obj: LedgerCredentialObject
) -> Optional[MatchTier]:
    """Return the tier under which ``obj`` matches ``descriptor``, if any."""
    object_title = normalize(obj.title)
    if not object_title:
        return None
    descriptor_title = normalize(descriptor.title)

    if descriptor_title == object_title:
        if normalize(descriptor.issuer) == normalize(obj.issuer):
            return MatchTier.EXACT
        return MatchTier.TITLE

    if (
        len(descriptor_title) > SUBSTRING_MATCH_MIN_LENGTH
        and len(object_title) > SUBSTRING_MATCH_MIN_LENGTH
        and (descriptor_title in object_title or object_title in descriptor_title)
    ):
        return MatchTier.SUBSTRING

    return None


def find_descriptor(
    descriptors: Sequence[CredentialDescriptor], obj: LedgerCredentialObject
) -> Optional[tuple]:
    """Return ``(descriptor, tier)`` for the first qualifying descriptor."""
    for descriptor in descriptors:
        tier = match_tier(descriptor, obj)
        if tier is not None:
            return descriptor, tier
    return None


def match_objects(
    descriptors: Sequence[CredentialDescriptor],
    ledger_objects: Sequence[LedgerCredentialObject],
) -> MatchResult:
    """Match ledger objects to descriptors, reporting unmatched objects."""
    result = MatchResult()
    claimed = set()

    for obj in ledger_objects:
        found = find_descriptor(descriptors, obj)
        if found is None:
            log.info(
                f"No matching credential for {obj.title!r} from {obj.issuer!r}",
                extra={"object_id": obj.object_id},
            )
            result.unmatched.append(obj.object_id)
            continue

        descriptor, tier = found
        claim = (descriptor.id, obj.owner_address)
        if claim in claimed:
            log.info(
                f"Descriptor {descriptor.id} already matched; ignoring {obj.object_id}",
                extra={"object_id": obj.object_id},
            )
            result.duplicates.append(obj.object_id)
            continue

        if tier is not MatchTier.EXACT:
            log.info(
                f"{tier.name.title()} match: {descriptor.title!r} vs {obj.title!r}",
                extra={"object_id": obj.object_id},
            )
        claimed.add(claim)
        result.records.append(
            VerifiedCredentialRecord(
                descriptor_id=descriptor.id,
                object_id=obj.object_id,
                content_address=obj.content_address,
                owner_address=obj.owner_address,
                tier=tier,
                minted_at=obj.issue_timestamp,
            )
        )

    return result


def match(
    descriptors: Sequence[CredentialDescriptor],
    ledger_objects: Sequence[LedgerCredentialObject],
) -> List[VerifiedCredentialRecord]:
    """Return verified-credential records for ``ledger_objects``."""
    return match_objects(descriptors, ledger_objects).records
