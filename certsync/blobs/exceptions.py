"""Blob store exceptions.

- Not found → distinct from transient failure; not auto-retried
- Aggregate upload failure → every publisher failed; manual retry
"""

from typing import List, Tuple

from certsync.exceptions import CertSyncError


class BlobStoreError(CertSyncError):
    """Base exception for blob store operations."""


class BlobNotFoundError(BlobStoreError):
    """The aggregator answered with a non-success status for an address."""

    def __init__(self, content_address: str, status_code: int = 404):
        self.content_address = content_address
        self.status_code = status_code
        super().__init__(
            "BLOB_NOT_FOUND",
            f"Blob not found: {content_address} (HTTP {status_code})",
        )


class BlobFetchError(BlobStoreError):
    """Transient network failure while downloading a blob."""

    def __init__(self, message: str = "Blob fetch failed"):
        super().__init__("BLOB_FETCH_FAILED", message)


class UploadError(BlobStoreError):
    """A single publisher endpoint rejected or failed an upload.

    Used when:
    - Network timeout or connection failure
    - Non-success HTTP status
    - Response body is not one of the recognized upload shapes
    """

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__("BLOB_UPLOAD_FAILED", f"{endpoint}: {message}")


class AggregateUploadError(BlobStoreError):
    """Every publisher endpoint failed.

    Attributes:
        causes: ``(endpoint, error)`` pairs in the order endpoints were tried.
    """

    def __init__(self, causes: List[Tuple[str, Exception]]):
        self.causes = list(causes)
        detail = "; ".join(f"{endpoint}: {error}" for endpoint, error in self.causes)
        super().__init__(
            "BLOB_UPLOAD_ALL_FAILED",
            f"Blob upload failed on all {len(self.causes)} endpoint(s). {detail}",
        )
