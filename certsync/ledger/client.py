"""JSON-RPC transport for the ledger full node.

Implements the two read-only calls the reconciliation core consumes:
- ``suix_getOwnedObjects``: objects of one struct type owned by an address
- ``suix_queryTransactionBlocks``: transaction that took an object as input

All httpx failures are translated to LedgerQueryError here.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from certsync.core.config import LEDGER_PAGE_LIMIT, LEDGER_RPC_URL, LEDGER_TIMEOUT_SECONDS

from .exceptions import LedgerQueryError

log = logging.getLogger(__name__)


@dataclass
class OwnedObjectsPage:
    """One page of ``suix_getOwnedObjects`` results.

    Attributes:
        data: Raw response items (``{"data": {...}}`` envelopes).
        next_cursor: Cursor for the next page, if any.
        has_next_page: Whether another page is available.
    """

    data: List[Any] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next_page: bool = False


class LedgerRpcClient:
    """Minimal async JSON-RPC 2.0 client for a ledger full node.

    Usage:
        client = LedgerRpcClient("https://fullnode.testnet.sui.io:443")
        page = await client.get_owned_objects(owner, struct_type)
    """

    def __init__(
        self,
        rpc_url: str = LEDGER_RPC_URL,
        timeout: float = LEDGER_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            rpc_url: Full node JSON-RPC URL.
            timeout: Per-request timeout in seconds.
            http_client: Shared AsyncClient; a short-lived client is created
                per call when omitted.
        """
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._http_client = http_client
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def call(self, method: str, params: List[Any]) -> Any:
        """Invoke one JSON-RPC method and return its ``result`` member.

        Raises:
            LedgerQueryError: On transport failure, HTTP error status, or an
                RPC-level error.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self._rpc_url, json=payload, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException:
            raise LedgerQueryError(f"{method} timed out after {self._timeout}s")
        except httpx.HTTPStatusError as e:
            raise LedgerQueryError(
                f"{method} failed: HTTP {e.response.status_code}"
            )
        except httpx.RequestError as e:
            raise LedgerQueryError(f"{method} request failed: {e}")
        except ValueError as e:
            raise LedgerQueryError(f"{method} returned invalid JSON: {e}")

        if not isinstance(body, dict):
            raise LedgerQueryError(f"{method} returned non-object response")

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise LedgerQueryError(f"{method} RPC error: {message}")

        if "result" not in body:
            raise LedgerQueryError(f"{method} response has no result")
        return body["result"]

    async def get_owned_objects(
        self,
        owner: str,
        struct_type: str,
        cursor: Optional[str] = None,
        limit: int = LEDGER_PAGE_LIMIT,
    ) -> OwnedObjectsPage:
        """Fetch one page of objects of ``struct_type`` owned by ``owner``."""
        query = {
            "filter": {"StructType": struct_type},
            "options": {"showContent": True, "showType": True},
        }
        result = await self.call("suix_getOwnedObjects", [owner, query, cursor, limit])
        if not isinstance(result, dict):
            raise LedgerQueryError("suix_getOwnedObjects result is not an object")

        data = result.get("data") or []
        if not isinstance(data, list):
            raise LedgerQueryError("suix_getOwnedObjects data is not a list")

        return OwnedObjectsPage(
            data=data,
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    async def query_transaction_digest(self, object_id: str) -> Optional[str]:
        """Return the digest of a transaction that took ``object_id`` as input.

        Returns:
            Transaction digest, or None when the node reports none.
        """
        query: Dict[str, Any] = {"filter": {"InputObject": object_id}}
        result = await self.call("suix_queryTransactionBlocks", [query, None, 1, False])
        data = result.get("data") if isinstance(result, dict) else None
        if not isinstance(data, list) or not data:
            return None
        digest = data[0].get("digest") if isinstance(data[0], dict) else None
        return digest or None
