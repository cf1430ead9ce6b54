"""Tolerant decoding of ledger credential objects.

Ledger objects were written by several contract revisions, so one logical
field can appear under different keys. Each field has an explicit alias list
tried in order; the first present, non-empty value wins.

Object envelope (as returned by ``suix_getOwnedObjects`` with showContent):
    {"data": {"objectId": "0x..", "content": {"fields": {...}}}}
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .exceptions import ParseError
from .models import LedgerCredentialObject

log = logging.getLogger(__name__)

TITLE_ALIASES: Tuple[str, ...] = ("course_name", "title", "name", "courseName")
ISSUER_ALIASES: Tuple[str, ...] = ("issuer_name", "issuer", "issuerName")
CONTENT_ADDRESS_ALIASES: Tuple[str, ...] = ("blob_id", "blobId", "image_url", "imageUrl")
ISSUE_DATE_ALIASES: Tuple[str, ...] = ("issue_date", "issueDate", "date", "minted_at", "mintedAt")
RECIPIENT_ALIASES: Tuple[str, ...] = ("recipient", "owner")
SCORE_ALIASES: Tuple[str, ...] = ("score",)


@dataclass(frozen=True)
class FieldValue:
    """Outcome of extracting one logical field.

    Exactly one of the states holds:
    - present: ``value`` is set and ``key`` names the alias it came from
    - missing: no alias carried a usable value (``value`` is None, ``error`` empty)
    - malformed: an alias was present with an unusable value (``error`` set)
    """

    value: Any = None
    key: Optional[str] = None
    error: str = ""

    @property
    def present(self) -> bool:
        return self.value is not None

    @property
    def malformed(self) -> bool:
        return bool(self.error)


MISSING = FieldValue()


def _first_alias(fields: Mapping[str, Any], aliases: Tuple[str, ...]) -> Tuple[Optional[str], Any]:
    for key in aliases:
        value = fields.get(key)
        if value is None or value == "":
            continue
        return key, value
    return None, None


def extract_text(fields: Mapping[str, Any], aliases: Tuple[str, ...]) -> FieldValue:
    """Extract a text field, accepting strings and numbers."""
    key, value = _first_alias(fields, aliases)
    if key is None:
        return MISSING
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return FieldValue(key=key, error=f"'{key}' must be text, got {type(value).__name__}")
    return FieldValue(value=str(value), key=key)


def extract_int(fields: Mapping[str, Any], aliases: Tuple[str, ...]) -> FieldValue:
    """Extract an integer field; u64 values arrive as numeric strings."""
    key, value = _first_alias(fields, aliases)
    if key is None:
        return MISSING
    if isinstance(value, bool):
        return FieldValue(key=key, error=f"'{key}' must be integer, got bool")
    if isinstance(value, int):
        return FieldValue(value=value, key=key)
    if isinstance(value, str):
        try:
            return FieldValue(value=int(value.strip()), key=key)
        except ValueError:
            return FieldValue(key=key, error=f"'{key}' is not numeric: {value[:32]!r}")
    return FieldValue(key=key, error=f"'{key}' must be integer, got {type(value).__name__}")


def extract_fields(raw: Any) -> Tuple[str, Mapping[str, Any]]:
    """Unwrap an owned-object envelope into ``(object_id, fields)``.

    Accepts both the ``{"data": {...}}`` response item and the bare object
    data.

    Raises:
        ParseError: If the object id or content fields are missing/invalid.
    """
    if not isinstance(raw, Mapping):
        raise ParseError(f"Ledger object must be object, got {type(raw).__name__}")

    data = raw.get("data", raw)
    if not isinstance(data, Mapping):
        raise ParseError(f"Ledger object data must be object, got {type(data).__name__}")

    object_id = data.get("objectId")
    if not isinstance(object_id, str) or not object_id:
        raise ParseError("Ledger object has no objectId")

    content = data.get("content")
    if not isinstance(content, Mapping):
        raise ParseError("Ledger object has no content", object_id=object_id)

    fields = content.get("fields")
    if not isinstance(fields, Mapping):
        raise ParseError("Ledger object content has no fields", object_id=object_id)

    return object_id, fields


def decode_credential_object(raw: Any, owner_address: str) -> LedgerCredentialObject:
    """Decode one raw owned object into a LedgerCredentialObject.

    Missing title/issuer/content address decode to empty strings. A field that
    is present but of the wrong type makes the whole object malformed, except
    score, which is informational and decodes to None when malformed.

    Args:
        raw: One item of the owned-objects response ``data`` array.
        owner_address: Address the query was issued for.

    Returns:
        LedgerCredentialObject in canonical shape.

    Raises:
        ParseError: If the envelope or any present field is malformed.
    """
    object_id, fields = extract_fields(raw)

    title = extract_text(fields, TITLE_ALIASES)
    issuer = extract_text(fields, ISSUER_ALIASES)
    address = extract_text(fields, CONTENT_ADDRESS_ALIASES)
    issued = extract_int(fields, ISSUE_DATE_ALIASES)
    recipient = extract_text(fields, RECIPIENT_ALIASES)
    score = extract_int(fields, SCORE_ALIASES)

    for result in (title, issuer, address, issued, recipient):
        if result.malformed:
            raise ParseError(result.error, object_id=object_id)
    if score.malformed:
        log.debug(f"Ignoring score of ledger object {object_id}: {score.error}")

    if not title.present:
        log.debug(f"Ledger object {object_id} has no title field (keys: {sorted(fields)})")

    return LedgerCredentialObject(
        object_id=object_id,
        title=title.value or "",
        issuer=issuer.value or "",
        content_address=address.value or "",
        issue_timestamp=issued.value,
        owner_address=owner_address,
        recipient=recipient.value or "",
        score=score.value,
    )
