"""Content-addressed blob store access and local caching."""

from .cache import (
    CacheEntryInfo,
    InMemoryBlobCache,
    LocalBlobCache,
    PruneReport,
    SqlBlobCache,
    select_eviction_candidates,
)
from .client import BlobStoreClient
from .exceptions import (
    AggregateUploadError,
    BlobFetchError,
    BlobNotFoundError,
    BlobStoreError,
    UploadError,
)
from .models import CachedBlob, DownloadedBlob, FileKind, parse_upload_response
from .resolver import BlobResolver
from .sniff import resolve_content_type, suggested_filename

__all__ = [
    # Exceptions
    "BlobStoreError",
    "BlobNotFoundError",
    "BlobFetchError",
    "UploadError",
    "AggregateUploadError",
    # Models
    "CachedBlob",
    "DownloadedBlob",
    "FileKind",
    "parse_upload_response",
    # Cache
    "CacheEntryInfo",
    "InMemoryBlobCache",
    "LocalBlobCache",
    "PruneReport",
    "SqlBlobCache",
    "select_eviction_candidates",
    # Client
    "BlobStoreClient",
    "BlobResolver",
    # Functions
    "resolve_content_type",
    "suggested_filename",
]
