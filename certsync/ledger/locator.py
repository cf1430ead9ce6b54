"""Ledger object locator.

Lists the credential objects owned by an address and decodes each one
independently: a malformed object is skipped and reported, never fatal to
the query.
"""

import logging
from typing import Optional

from certsync.core.config import CREDENTIAL_STRUCT_TYPE, LEDGER_MAX_PAGES

from .client import LedgerRpcClient
from .decode import decode_credential_object
from .exceptions import LedgerQueryError, ParseError
from .models import LedgerCredentialObject, LocatorResult, ObjectFailure

log = logging.getLogger(__name__)


class LedgerObjectLocator:
    """Read-only query of credential objects owned by an address."""

    def __init__(
        self,
        client: Optional[LedgerRpcClient] = None,
        struct_type: str = CREDENTIAL_STRUCT_TYPE,
        max_pages: int = LEDGER_MAX_PAGES,
    ):
        self._client = client or LedgerRpcClient()
        self._struct_type = struct_type
        self._max_pages = max_pages

    @property
    def client(self) -> LedgerRpcClient:
        return self._client

    async def locate(self, owner_address: Optional[str]) -> LocatorResult:
        """Query and decode all credential objects owned by ``owner_address``.

        Args:
            owner_address: Owner address; empty/None yields an empty result.

        Returns:
            LocatorResult with decoded objects and per-object parse failures.

        Raises:
            LedgerQueryError: On transport/RPC failure of any page.
        """
        if not owner_address:
            return LocatorResult(objects=[], failures=[])

        raw_objects = []
        cursor = None
        for _ in range(self._max_pages):
            page = await self._client.get_owned_objects(
                owner_address, self._struct_type, cursor=cursor
            )
            raw_objects.extend(page.data)
            if not page.has_next_page or not page.next_cursor:
                break
            cursor = page.next_cursor
        else:
            log.warning(
                f"Stopped paging owned objects for {owner_address} "
                f"after {self._max_pages} pages",
                extra={"owner": owner_address},
            )

        log.info(
            f"Found {len(raw_objects)} credential object(s) for {owner_address}",
            extra={"owner": owner_address},
        )

        objects = []
        failures = []
        for raw in raw_objects:
            try:
                objects.append(decode_credential_object(raw, owner_address))
            except ParseError as e:
                log.warning(
                    f"Skipping malformed ledger object {e.object_id or '<unknown>'}: {e.message}",
                    extra={"owner": owner_address, "object_id": e.object_id},
                )
                failures.append(ObjectFailure(e.object_id, e.code, e.message))

        return LocatorResult(objects=objects, failures=failures)

    async def list_owned_credentials(
        self, owner_address: Optional[str]
    ) -> list[LedgerCredentialObject]:
        """Return decoded credential objects owned by ``owner_address``.

        Raises:
            LedgerQueryError: On transport/RPC failure.
        """
        result = await self.locate(owner_address)
        return result.objects

    async def resolve_transaction_id(self, object_id: str) -> Optional[str]:
        """Best-effort lookup of the transaction that created ``object_id``.

        Failures are logged and yield None; they are not retried.
        """
        try:
            return await self._client.query_transaction_digest(object_id)
        except LedgerQueryError as e:
            log.warning(
                f"Could not fetch transaction for object {object_id}: {e.message}",
                extra={"object_id": object_id},
            )
            return None
