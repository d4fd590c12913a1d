"""Jamf Pro API adapter for one prestage collection.

This adapter implements IPrestageAPI and wraps JamfClient to provide the
prestage record, scope and scope-index endpoints of a single collection.
"""

import logging
from typing import TYPE_CHECKING, Any

from ..domain.entities import PrestageCollection
from ..domain.ports import IPrestageAPI

if TYPE_CHECKING:
    from ...api.client import JamfClient, PaginationConfig

logger = logging.getLogger(__name__)


class JamfPrestageAPI(IPrestageAPI):
    """Jamf Pro API adapter for computer or mobile device prestages.

    Example:
        api = JamfPrestageAPI(client, COMPUTER_PRESTAGES)
        scope = await api.fetch_scope("1")
    """

    def __init__(
        self,
        client: "JamfClient",
        collection: PrestageCollection,
        pagination_config: "PaginationConfig | None" = None,
    ):
        self.client = client
        self.collection = collection
        self._pagination_config = pagination_config

    @property
    def pagination_config(self) -> "PaginationConfig":
        if self._pagination_config is None:
            from ...api.client import PRESTAGES_PAGINATION
            self._pagination_config = PRESTAGES_PAGINATION
        return self._pagination_config

    # ----------------------------------------
    # Prestage records
    # ----------------------------------------

    async def list_prestages(
        self,
        sort: str | None = None,
        page_size: int | None = None,
    ) -> list[dict[str, Any]]:
        if page_size is not None:
            params: dict[str, Any] = {"page": 0, "page-size": page_size}
            if sort:
                params["sort"] = sort
            data = await self.client.get(self.collection.list_path, params=params)
            return data.get("results", [])

        return await self.client.fetch_all(
            self.collection.list_path,
            config=self.pagination_config,
            params={"sort": sort} if sort else None,
        )

    async def fetch_prestage(self, prestage_id: str) -> dict[str, Any]:
        return await self.client.get(self.collection.resource_path(prestage_id))

    async def update_prestage(self, prestage_id: str, body: dict[str, Any]) -> dict[str, Any]:
        logger.info(f"Saving {self.collection.label} {prestage_id}")
        return await self.client.put(self.collection.resource_path(prestage_id), json_body=body)

    async def valid_id(self, ident: Any) -> str | None:
        """Resolve an id or display name to an id.

        Ids win over names, so a prestage named "2" never shadows id 2.
        """
        if ident is None:
            return None

        records = await self.list_prestages()
        wanted = str(ident)

        for record in records:
            if str(record.get("id")) == wanted:
                return wanted

        for record in records:
            if record.get("displayName") == wanted:
                return str(record["id"])

        return None

    async def display_name(self, prestage_id: str) -> str | None:
        for record in await self.list_prestages():
            if str(record.get("id")) == str(prestage_id):
                return record.get("displayName")
        return None

    # ----------------------------------------
    # Scope
    # ----------------------------------------

    async def fetch_scope_index(self) -> dict[str, Any]:
        logger.debug(f"Fetching scope index from {self.collection.scope_index_path}")
        return await self.client.get(self.collection.scope_index_path)

    async def fetch_scope(self, prestage_id: str) -> dict[str, Any]:
        return await self.client.get(self.collection.scope_path(prestage_id))

    async def update_scope(
        self,
        prestage_id: str,
        serial_numbers: list[str],
        version_lock: int | None,
    ) -> dict[str, Any]:
        payload = {
            "serialNumbers": serial_numbers,
            "versionLock": version_lock,
        }
        return await self.client.put(self.collection.scope_path(prestage_id), json_body=payload)
