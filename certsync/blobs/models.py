"""Blob store wire models.

The publisher answers an upload with one of three JSON shapes:

    {"newlyCreated": {"blobObject": {"blobId": "..."}}}
    {"alreadyCertified": {"blobId": "..."}}
    {"blobId": "..."}

All three normalize to the same content address string.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

FileKind = Literal["pdf", "image"]


class BlobObject(BaseModel):
    model_config = ConfigDict(extra="allow")

    blobId: str


class NewlyCreated(BaseModel):
    """A blob the store did not hold before this upload."""
    model_config = ConfigDict(extra="allow")

    blobObject: BlobObject


class AlreadyCertified(BaseModel):
    """Reference to an identical blob the store already holds."""
    model_config = ConfigDict(extra="allow")

    blobId: str


class UploadResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    newlyCreated: Optional[NewlyCreated] = None
    alreadyCertified: Optional[AlreadyCertified] = None
    blobId: Optional[str] = None

    def content_address(self) -> Optional[str]:
        """Return the content address carried by whichever shape is present."""
        if self.newlyCreated is not None and self.newlyCreated.blobObject.blobId:
            return self.newlyCreated.blobObject.blobId
        if self.alreadyCertified is not None and self.alreadyCertified.blobId:
            return self.alreadyCertified.blobId
        return self.blobId or None


def parse_upload_response(body: Any) -> Optional[str]:
    """Normalize a publisher response body to its content address.

    Returns:
        The content address, or None when the body matches no known shape.
    """
    if not isinstance(body, dict):
        return None
    try:
        return UploadResponse.model_validate(body).content_address()
    except ValidationError:
        return None


@dataclass(frozen=True)
class DownloadedBlob:
    """Bytes fetched from the aggregator with their resolved classification."""

    content_address: str
    data: bytes
    content_type: FileKind
    reported_type: str = ""
    from_cache: bool = False


@dataclass(frozen=True)
class CachedBlob:
    """One locally cached blob.

    Attributes:
        content_address: Store address (cache key).
        data: Blob bytes.
        content_type: Classification ("pdf" or "image").
        saved_at: When the entry was written (UTC).
    """

    content_address: str
    data: bytes
    content_type: str
    saved_at: datetime

    @property
    def size(self) -> int:
        return len(self.data)
