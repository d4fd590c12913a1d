"""Resolve Scope Use Case - read the authoritative scope of a prestage."""

import logging

from ...api.exceptions import VersionLockError
from ..domain.entities import Prestage, PrestageCollection, PrestageScope
from ..domain.ports import IFieldMapper, IPrestageAPI

logger = logging.getLogger(__name__)


class ScopeResolver:
    """Fetches and deserializes prestage scopes straight from the server.

    Example:
        resolver = ScopeResolver(api, PrestageFieldMapper(), COMPUTER_PRESTAGES)
        scope = await resolver.fetch_scope_for_id("1")
    """

    def __init__(
        self,
        api: IPrestageAPI,
        mapper: IFieldMapper,
        collection: PrestageCollection,
    ):
        self.api = api
        self.mapper = mapper
        self.collection = collection

    async def fetch_scope_for_id(self, prestage_id: str) -> PrestageScope:
        """Fetch the current scope of a prestage, by id.

        No prestage record is needed; used by the mutator before a write.
        """
        raw = await self.api.fetch_scope(prestage_id)
        scope = self.mapper.map_scope(prestage_id, raw)
        logger.debug(
            f"{self.collection.label} {prestage_id} scope: "
            f"{len(scope)} serial(s), versionLock={scope.version_lock}"
        )
        return scope

    async def fetch_scope(
        self,
        prestage: Prestage,
        cached_scope: PrestageScope | None = None,
    ) -> PrestageScope:
        """Fetch the scope of an already-loaded prestage.

        When the instance held a scope before (``cached_scope``), the new
        scope's versionLock must match the held one. A mismatch means the
        scope changed elsewhere since it was loaded. The prestage record
        carries its own versionLock and is not compared here.

        Args:
            prestage: The prestage held in memory
            cached_scope: The scope previously held for this prestage, if any

        Raises:
            VersionLockError: If the prestage was modified since it was fetched
        """
        scope = await self.fetch_scope_for_id(prestage.id)

        if cached_scope is not None and scope.version_lock != cached_scope.version_lock:
            logger.warning(
                f"{self.collection.label} {prestage.id} scope versionLock moved from "
                f"{cached_scope.version_lock} to {scope.version_lock}"
            )
            raise VersionLockError(
                f"The {self.collection.label} '{prestage.display_name or prestage.id}' "
                "has been modified since it was fetched. Please refetch and try again",
                prestage_id=prestage.id,
                prestage_name=prestage.display_name,
            )

        return scope
