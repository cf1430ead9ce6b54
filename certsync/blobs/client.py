"""Content-addressed blob store client.

Upload goes to an ordered list of publisher endpoints: the first endpoint
that answers with a recognized response wins; failures accumulate and are
raised together only when every endpoint failed.

Download is a single aggregator request followed by content-type resolution
(see sniff.py).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence, Tuple

import httpx

from certsync.core.config import (
    BLOB_AGGREGATOR_URL,
    BLOB_DOWNLOAD_TIMEOUT_SECONDS,
    BLOB_PUBLISHER_URLS,
    BLOB_STORE_EPOCHS,
    BLOB_UPLOAD_TIMEOUT_SECONDS,
)

from .exceptions import AggregateUploadError, BlobFetchError, BlobNotFoundError, UploadError
from .models import DownloadedBlob, parse_upload_response
from .sniff import resolve_content_type

log = logging.getLogger(__name__)

DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"


class BlobStoreClient:
    """Async client for a publisher/aggregator blob store.

    Usage:
        client = BlobStoreClient()
        address = await client.upload(pdf_bytes, "application/pdf")
        blob = await client.download(address)
    """

    def __init__(
        self,
        publisher_urls: Sequence[str] = BLOB_PUBLISHER_URLS,
        aggregator_url: str = BLOB_AGGREGATOR_URL,
        epochs: int = BLOB_STORE_EPOCHS,
        upload_timeout: float = BLOB_UPLOAD_TIMEOUT_SECONDS,
        download_timeout: float = BLOB_DOWNLOAD_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            publisher_urls: Publisher base URLs, primary first.
            aggregator_url: Aggregator base URL used for reads.
            epochs: Storage duration requested on upload.
            upload_timeout: Per-endpoint upload timeout in seconds.
            download_timeout: Download timeout in seconds.
            http_client: Shared AsyncClient; a short-lived client is created
                per call when omitted.
        """
        if not publisher_urls:
            raise ValueError("At least one publisher URL is required")
        self._publishers = [url.rstrip("/") for url in publisher_urls]
        self._aggregator = aggregator_url.rstrip("/")
        self._epochs = epochs
        self._upload_timeout = upload_timeout
        self._download_timeout = download_timeout
        self._http_client = http_client

    @property
    def publisher_urls(self) -> List[str]:
        return list(self._publishers)

    def blob_url(self, content_address: str) -> str:
        """Public aggregator URL for a content address."""
        return f"{self._aggregator}/v1/blobs/{content_address}"

    @asynccontextmanager
    async def _session(self, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                yield client

    async def _upload_once(
        self, endpoint: str, data: bytes, content_type: str
    ) -> str:
        """Upload to one publisher.

        Raises:
            UploadError: On any failure of this endpoint.
        """
        url = f"{endpoint}/v1/blobs"
        try:
            async with self._session(self._upload_timeout) as client:
                response = await client.put(
                    url,
                    params={"epochs": self._epochs},
                    content=data,
                    headers={"Content-Type": content_type},
                    timeout=self._upload_timeout,
                )
        except httpx.TimeoutException:
            raise UploadError(endpoint, f"timeout after {self._upload_timeout}s")
        except httpx.RequestError as e:
            raise UploadError(endpoint, f"request failed: {e}")

        if not response.is_success:
            raise UploadError(
                endpoint, f"HTTP {response.status_code} {response.reason_phrase}"
            )

        try:
            body = response.json()
        except ValueError:
            raise UploadError(endpoint, "response is not JSON")

        content_address = parse_upload_response(body)
        if not content_address:
            log.error(f"Unrecognized upload response from {endpoint}: {str(body)[:200]}")
            raise UploadError(endpoint, "invalid response format")

        if isinstance(body, dict) and "alreadyCertified" in body:
            log.info(
                f"Blob already stored: {content_address}",
                extra={"content_address": content_address},
            )
        else:
            log.info(
                f"Blob uploaded via {endpoint}: {content_address}",
                extra={"content_address": content_address},
            )
        return content_address

    async def upload(self, data: bytes, content_type_hint: Optional[str] = None) -> str:
        """Upload bytes, failing over across publisher endpoints.

        Args:
            data: File bytes.
            content_type_hint: Media type sent with the upload.

        Returns:
            Content address of the stored blob.

        Raises:
            AggregateUploadError: If every endpoint failed; carries each cause.
        """
        content_type = content_type_hint or DEFAULT_UPLOAD_CONTENT_TYPE
        causes: List[Tuple[str, Exception]] = []

        for endpoint in self._publishers:
            try:
                return await self._upload_once(endpoint, data, content_type)
            except UploadError as e:
                log.warning(f"Blob upload failed, trying next endpoint: {e.message}")
                causes.append((endpoint, e))

        log.error(f"Blob upload failed on all {len(causes)} endpoint(s)")
        raise AggregateUploadError(causes)

    async def download(
        self, content_address: str, reported_type: Optional[str] = None
    ) -> DownloadedBlob:
        """Download a blob and classify its content type.

        Args:
            content_address: Store address of the blob.
            reported_type: Type the caller already knows for this blob.

        Returns:
            DownloadedBlob with bytes and "pdf"/"image" classification.

        Raises:
            BlobNotFoundError: On a non-success response.
            BlobFetchError: On timeout or network failure.
        """
        url = self.blob_url(content_address)
        try:
            async with self._session(self._download_timeout) as client:
                response = await client.get(
                    url, headers={"Accept": "*/*"}, timeout=self._download_timeout
                )
        except httpx.TimeoutException:
            raise BlobFetchError(
                f"Timeout after {self._download_timeout}s fetching {content_address}"
            )
        except httpx.RequestError as e:
            raise BlobFetchError(f"Request failed for {content_address}: {e}")

        if not response.is_success:
            raise BlobNotFoundError(content_address, response.status_code)

        data = response.content
        header_type = response.headers.get("content-type", "")
        content_type = resolve_content_type(data, header_type, reported_type)
        log.debug(
            f"Downloaded {len(data)} bytes for {content_address} "
            f"(header={header_type or '-'}, type={content_type})",
            extra={"content_address": content_address},
        )
        return DownloadedBlob(
            content_address=content_address,
            data=data,
            content_type=content_type,
            reported_type=header_type,
        )
