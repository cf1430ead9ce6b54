"""Content-type resolution for downloaded blobs.

The store does not reliably report a media type, so classification falls
back through, in order:

1. transport-reported Content-Type header
2. the body's self-reported type (e.g. the type recorded when it was cached)
3. PDF signature on the first bytes
4. size: bodies over PDF_SIZE_THRESHOLD_BYTES are "pdf", otherwise "image"

The chain must stay stable: cached entries were classified with it.
"""

from typing import Optional

from certsync.core.config import PDF_SIGNATURE, PDF_SIZE_THRESHOLD_BYTES

from .models import FileKind

# Types that carry no information about the payload
GENERIC_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})


def classify_media_type(media_type: Optional[str]) -> Optional[FileKind]:
    """Map a reported media type to a classification, or None if generic."""
    if not media_type:
        return None
    lowered = media_type.strip().lower()
    base = lowered.split(";")[0].strip()
    if base in GENERIC_TYPES:
        return None
    if "pdf" in lowered:
        return "pdf"
    if "image" in lowered:
        return "image"
    return None


def has_pdf_signature(data: bytes) -> bool:
    return data[: len(PDF_SIGNATURE)] == PDF_SIGNATURE


def resolve_content_type(
    data: bytes,
    header_type: Optional[str] = None,
    reported_type: Optional[str] = None,
) -> FileKind:
    """Classify a blob as "pdf" or "image".

    Args:
        data: Blob bytes.
        header_type: Content-Type reported by the transport.
        reported_type: Type the body reports for itself, if any.

    Returns:
        "pdf" or "image".
    """
    kind = classify_media_type(header_type)
    if kind is not None:
        return kind

    kind = classify_media_type(reported_type)
    if kind is not None:
        return kind

    if has_pdf_signature(data):
        return "pdf"

    return "pdf" if len(data) > PDF_SIZE_THRESHOLD_BYTES else "image"


def suggested_filename(title: str, content_type: str) -> str:
    """Download filename for a credential file."""
    extension = "pdf" if content_type == "pdf" else "jpg"
    return f"{'_'.join(title.split())}_walrus.{extension}"
