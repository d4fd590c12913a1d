#!/usr/bin/env python3
"""Prestage scope management for Jamf Pro.

This module provides PrestageManager, the entry point for reading and
changing which serial numbers are scoped to computer or mobile device
prestages, and BoundPrestage, the same operations bound to one prestage
held in memory.

Architecture:
    PrestageManager composes the use cases:
    - ScopeCache: serial -> prestage id index (membership queries)
    - ScopeResolver: authoritative scope reads
    - ScopeMutator: version-checked assign/unassign

    Reads of "who is assigned where" go through the cache. Writes always
    read the live scope and its versionLock first.

Example:
    async with JamfClient(token_manager) as client:
        prestages = PrestageManager.for_client(client, COMPUTER_PRESTAGES)

        scope = await prestages.assign(["C02XK1JDJGH5"], to_prestage="Staff Macs")
        await prestages.unassign(["C02XK1JDJGH5"], from_prestage="Staff Macs")

        staff = await prestages.fetch_bound("Staff Macs")
        print(await staff.assigned_sns())
"""
import logging
from typing import TYPE_CHECKING, Any, Iterable

from ..api.exceptions import ConflictError, VersionLockError
from .adapters import DeviceEnrollmentPool, JamfPrestageAPI, PrestageFieldMapper
from .domain.entities import (
    COMPUTER_PRESTAGES,
    Prestage,
    PrestageCollection,
    PrestageKind,
    PrestageScope,
)
from .domain.ports import IDevicePool, IFieldMapper, IPrestageAPI
from .use_cases import ScopeCache, ScopeMutator, ScopeResolver

if TYPE_CHECKING:
    from ..api.client import JamfClient

logger = logging.getLogger(__name__)

DEFAULT_SORT = "defaultPrestage:desc"


class PrestageManager:
    """Collection-level prestage scope operations.

    Attributes:
        api: Port for the prestage collection endpoints
        device_pool: Port for Device Enrollment serial numbers
        collection: Which prestage collection this manager works on
        cache: Reverse index for this collection
    """

    def __init__(
        self,
        api: IPrestageAPI,
        device_pool: IDevicePool,
        collection: PrestageCollection = COMPUTER_PRESTAGES,
        *,
        cache: ScopeCache | None = None,
        mapper: IFieldMapper | None = None,
    ):
        self.api = api
        self.device_pool = device_pool
        self.collection = collection
        self.mapper = mapper or PrestageFieldMapper()
        self.cache = cache or ScopeCache(api, self.mapper)
        self.resolver = ScopeResolver(api, self.mapper, collection)
        self.mutator = ScopeMutator(api, device_pool, self.cache, self.resolver, collection)

    @classmethod
    def for_client(
        cls,
        client: "JamfClient",
        collection: PrestageCollection = COMPUTER_PRESTAGES,
    ) -> "PrestageManager":
        """Build a manager wired to the Jamf Pro API adapters."""
        return cls(
            api=JamfPrestageAPI(client, collection),
            device_pool=DeviceEnrollmentPool(client),
            collection=collection,
        )

    @property
    def kind(self) -> PrestageKind:
        return self.collection.kind

    # ----------------------------------------
    # Prestage records
    # ----------------------------------------

    async def all(self) -> list[Prestage]:
        return [self.mapper.map_prestage(raw) for raw in await self.api.list_prestages()]

    async def fetch(self, prestage_ident: Any) -> Prestage:
        """Fetch one prestage by id or display name.

        Raises:
            NoSuchItemError: If nothing matches
        """
        prestage_id = await self.mutator.resolve_id(prestage_ident)
        return self.mapper.map_prestage(await self.api.fetch_prestage(prestage_id))

    async def default(self) -> Prestage | None:
        """The prestage new serial numbers are assigned to, if any.

        Only one prestage can be the default, so sorting descending on the
        flag puts it first. If the first record's flag is not set there is
        no default and None is returned.
        """
        head = await self.api.list_prestages(sort=DEFAULT_SORT, page_size=1)
        if not head or not head[0].get("defaultPrestage"):
            return None

        return self.mapper.map_prestage(await self.api.fetch_prestage(str(head[0]["id"])))

    def bind(self, prestage: Prestage) -> "BoundPrestage":
        return BoundPrestage(self, prestage)

    async def fetch_bound(self, prestage_ident: Any) -> "BoundPrestage":
        return self.bind(await self.fetch(prestage_ident))

    # ----------------------------------------
    # Scope queries (served from the cache)
    # ----------------------------------------

    async def serials_by_prestage_id(self, *, refresh: bool = False) -> dict[str, str]:
        """Every assigned serial number and the id of its prestage."""
        return await self.cache.reverse_index(refresh=refresh)

    async def serials_for_prestage(
        self,
        prestage_ident: Any,
        *,
        refresh: bool = False,
    ) -> list[str]:
        """Serial numbers assigned to one prestage, per the reverse index.

        Raises:
            NoSuchItemError: If the prestage does not exist
        """
        prestage_id = await self.mutator.resolve_id(prestage_ident)
        index = await self.cache.reverse_index(refresh=refresh)
        return [sn for sn, psid in index.items() if psid == prestage_id]

    async def assigned_prestage_id(
        self,
        serial_number: str,
        *,
        refresh: bool = False,
    ) -> str | None:
        """Id of the prestage this serial is assigned to.

        None means unassigned, or not in Device Enrollment at all.
        """
        return await self.cache.lookup(serial_number, refresh=refresh)

    async def is_assigned(
        self,
        serial_number: str,
        prestage: Any = None,
        *,
        refresh: bool = False,
    ) -> bool:
        """Is the serial assigned to any prestage, or to the given one?

        Raises:
            NoSuchItemError: If ``prestage`` is given and does not exist
        """
        assigned_id = await self.assigned_prestage_id(serial_number, refresh=refresh)
        if assigned_id is None:
            return False

        if prestage is not None:
            return await self.mutator.resolve_id(prestage) == assigned_id

        return True

    async def unassigned_sns(self) -> list[str]:
        """Serials in Device Enrollment that no prestage of this kind scopes."""
        return sorted(await self.mutator.unassigned_serials())

    async def scope_for(self, prestage_ident: Any) -> PrestageScope:
        """Live scope of a prestage, by id or name."""
        prestage_id = await self.mutator.resolve_id(prestage_ident)
        return await self.resolver.fetch_scope_for_id(prestage_id)

    # ----------------------------------------
    # Scope changes
    # ----------------------------------------

    async def assign(
        self,
        serial_numbers: Iterable[Any] | str,
        *,
        to_prestage: Any,
    ) -> PrestageScope:
        """Assign serials to a prestage. See ScopeMutator.assign."""
        return await self.mutator.assign(serial_numbers, to_prestage)

    async def unassign(
        self,
        serial_numbers: Iterable[Any] | str,
        *,
        from_prestage: Any,
    ) -> PrestageScope:
        """Unassign serials from a prestage. See ScopeMutator.unassign."""
        return await self.mutator.unassign(serial_numbers, from_prestage)


class BoundPrestage:
    """One prestage held in memory, with its scope cached alongside.

    The cached scope is dropped whenever the prestage record is saved or
    refreshed, and replaced after every assign/unassign. The record and the
    scope each carry their own versionLock: ``version_lock`` is the record
    token sent by save(), the held scope keeps the scope token.
    """

    def __init__(self, manager: PrestageManager, prestage: Prestage):
        self.manager = manager
        self.prestage = prestage
        self._scope: PrestageScope | None = None

    def __repr__(self) -> str:
        return (
            f"BoundPrestage(id={self.prestage.id!r}, "
            f"display_name={self.prestage.display_name!r}, "
            f"version_lock={self.prestage.version_lock!r})"
        )

    @property
    def id(self) -> str:
        return self.prestage.id

    @property
    def display_name(self) -> str | None:
        return self.prestage.display_name

    @property
    def version_lock(self) -> int | None:
        return self.prestage.version_lock

    async def scope(self, refresh: bool = False) -> PrestageScope:
        """The scope of this prestage, fetched on first use.

        Raises:
            VersionLockError: On refresh, if the prestage was modified
                elsewhere since it was loaded
        """
        if self._scope is not None and not refresh:
            return self._scope

        previous, self._scope = self._scope, None
        self._scope = await self.manager.resolver.fetch_scope(self.prestage, cached_scope=previous)
        return self._scope

    async def assigned_sns(self) -> list[str]:
        return (await self.scope()).serial_numbers

    async def is_assigned(self, serial_number: str) -> bool:
        return serial_number in await self.scope()

    async def assign(self, serial_numbers: Iterable[Any] | str) -> PrestageScope:
        self._scope = await self.manager.assign(serial_numbers, to_prestage=self.prestage.id)
        return self._scope

    async def unassign(self, serial_numbers: Iterable[Any] | str) -> PrestageScope:
        self._scope = await self.manager.unassign(serial_numbers, from_prestage=self.prestage.id)
        return self._scope

    async def save(self) -> Prestage:
        """Write the prestage record back and forget the cached scope.

        Raises:
            VersionLockError: If the record changed on the server since it
                was fetched
        """
        collection = self.manager.collection
        try:
            raw = await self.manager.api.update_prestage(self.prestage.id, self.prestage.to_payload())
        except ConflictError as e:
            raise VersionLockError(
                f"The {collection.label} '{self.display_name or self.id}' has been modified "
                "since it was fetched. Please refetch and try again",
                prestage_id=self.id,
                prestage_name=self.display_name,
                cause=e,
            )

        self.prestage = self.manager.mapper.map_prestage(raw)
        self._scope = None
        logger.info(f"Saved {collection.label} {self.id} (versionLock={self.version_lock})")
        return self.prestage

    async def refresh(self) -> Prestage:
        """Refetch the prestage record and forget the cached scope."""
        raw = await self.manager.api.fetch_prestage(self.prestage.id)
        self.prestage = self.manager.mapper.map_prestage(raw)
        self._scope = None
        return self.prestage
