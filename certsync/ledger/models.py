"""Ledger data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LedgerCredentialObject:
    """A credential object reported by the ledger for an owner.

    Produced by read-only queries and never mutated locally. Text fields are
    empty strings when the ledger object does not carry them.

    Attributes:
        object_id: Ledger object id.
        title: Course/credential title.
        issuer: Issuer display name.
        content_address: Blob store address of the credential file.
        issue_timestamp: Issue time in epoch milliseconds, if present.
        owner_address: Address the object was listed for.
        recipient: Recipient address recorded on the object, if any.
        score: Score recorded on the object, if any.
    """

    object_id: str
    title: str
    issuer: str
    content_address: str
    issue_timestamp: Optional[int]
    owner_address: str
    recipient: str = ""
    score: Optional[int] = None


@dataclass(frozen=True)
class ObjectFailure:
    """A ledger object (or whole query) that could not be used in a pass."""

    object_id: str
    code: str
    message: str


@dataclass
class LocatorResult:
    """Decoded objects plus per-object failures from one owner query."""

    objects: list[LedgerCredentialObject]
    failures: list[ObjectFailure]
