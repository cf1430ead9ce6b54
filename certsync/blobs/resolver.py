"""Cache-first resolution of credential files.

A cached entry with bytes is served without touching the network. On a miss
(or an empty cached entry) the blob is downloaded; PDFs are written back to
the cache. A failed cache write never fails the fetch.
"""

import logging
from typing import Optional

from .cache import LocalBlobCache
from .client import BlobStoreClient
from .models import DownloadedBlob
from .sniff import resolve_content_type

log = logging.getLogger(__name__)

# Only these classifications are written to the local cache
CACHEABLE_TYPES = frozenset({"pdf"})


class BlobResolver:
    """Resolves content addresses through the local cache, then the store."""

    def __init__(self, client: BlobStoreClient, cache: LocalBlobCache):
        self._client = client
        self._cache = cache

    @property
    def cache(self) -> LocalBlobCache:
        return self._cache

    async def fetch(
        self, content_address: str, reported_type: Optional[str] = None
    ) -> DownloadedBlob:
        """Return the blob for ``content_address``.

        Raises:
            BlobNotFoundError: If the store reports the blob missing.
            BlobFetchError: On transient network failure.
        """
        entry = await self._cache.get_entry(content_address)
        if entry is not None and entry.data:
            log.info(
                f"Blob cache hit: {content_address}",
                extra={"content_address": content_address},
            )
            content_type = resolve_content_type(entry.data, None, entry.content_type)
            return DownloadedBlob(
                content_address=content_address,
                data=entry.data,
                content_type=content_type,
                reported_type=entry.content_type,
                from_cache=True,
            )

        if entry is not None:
            log.warning(
                f"Cached entry for {content_address} is empty, re-fetching",
                extra={"content_address": content_address},
            )
        else:
            log.debug(f"Blob cache miss: {content_address}")

        blob = await self._client.download(content_address, reported_type)

        if blob.content_type in CACHEABLE_TYPES:
            try:
                await self._cache.put(content_address, blob.data, blob.content_type)
            except Exception as e:
                log.error(
                    f"Failed to cache blob {content_address}: {e}",
                    extra={"content_address": content_address},
                )
        return blob
