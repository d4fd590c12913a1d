"""Mutate Scope Use Case - assign and unassign serial numbers.

Scope writes are optimistic compare-and-swap operations. The server never
locks a scope; instead every PUT carries the versionLock that was read
just before it, and the server answers 409 if someone else wrote in
between.

Workflow (assign and unassign):
1. Resolve the prestage identifier to an id
2. Normalize serials (upper case, de-duplicated)
3. Assign only: every serial must be in Device Enrollment and unassigned
4. Fetch the current scope and its versionLock from the server
5. Compute the new serial list (union or difference)
6. PUT the new list with the versionLock read in step 4
7. On success drop the reverse-index cache and return the new scope
8. On 409 raise VersionLockError; nothing is retried
"""

import logging
from typing import Any, Iterable

from ...api.exceptions import (
    AssignmentPreconditionError,
    ConflictError,
    JamfError,
    NoSuchItemError,
    ValidationError,
    VersionLockError,
)
from ..domain.entities import PrestageCollection, PrestageScope
from ..domain.ports import IDevicePool, IPrestageAPI
from .resolve_scope import ScopeResolver
from .scope_cache import ScopeCache

logger = logging.getLogger(__name__)


def normalize_serials(serial_numbers: Iterable[Any] | str) -> list[str]:
    """Upper-case and de-duplicate serial numbers, keeping first-seen order."""
    if isinstance(serial_numbers, str):
        serial_numbers = [serial_numbers]

    normalized: list[str] = []
    for sn in serial_numbers:
        sn = str(sn).strip().upper()
        if sn and sn not in normalized:
            normalized.append(sn)
    return normalized


class ScopeMutator:
    """Version-checked read-modify-write of prestage scopes.

    Example:
        mutator = ScopeMutator(api, device_pool, cache, resolver, COMPUTER_PRESTAGES)
        scope = await mutator.assign(["C02XK1JDJGH5"], "Staff Macs")
    """

    def __init__(
        self,
        api: IPrestageAPI,
        device_pool: IDevicePool,
        cache: ScopeCache,
        resolver: ScopeResolver,
        collection: PrestageCollection,
    ):
        self.api = api
        self.device_pool = device_pool
        self.cache = cache
        self.resolver = resolver
        self.collection = collection

    # ----------------------------------------
    # Validation Helpers
    # ----------------------------------------

    async def resolve_id(self, prestage_ident: Any) -> str:
        """Resolve an id or name to a prestage id.

        Raises:
            NoSuchItemError: If nothing matches
        """
        prestage_id = await self.api.valid_id(prestage_ident)
        if prestage_id is None:
            raise NoSuchItemError(self.collection.label, prestage_ident)
        return prestage_id

    def _validate_serials(self, serial_numbers: Iterable[Any] | str) -> list[str]:
        serials = normalize_serials(serial_numbers)
        if not serials:
            raise ValidationError(
                "At least one serial number is required",
                field="serial_numbers",
            )
        return serials

    async def unassigned_serials(self) -> set[str]:
        """Serials in Device Enrollment that no prestage of this kind scopes.

        Derived from the scope index rather than device enrollment status,
        which lags behind real assignments. The index is refreshed first.
        """
        pool = await self.device_pool.device_serial_numbers(self.collection.kind)
        index = await self.cache.reverse_index(refresh=True)
        return pool - index.keys()

    async def _check_assignable(self, serials: list[str]) -> None:
        pool = await self.device_pool.device_serial_numbers(self.collection.kind)

        not_in_pool = [sn for sn in serials if sn not in pool]
        if not_in_pool:
            raise AssignmentPreconditionError(
                "These SNs are not in any Device Enrollment instance: "
                f"{', '.join(not_in_pool)}",
                serial_numbers=not_in_pool,
                reason=AssignmentPreconditionError.NOT_IN_DEVICE_ENROLLMENT,
            )

        index = await self.cache.reverse_index(refresh=True)
        already_assigned = [sn for sn in serials if sn in index]
        if already_assigned:
            raise AssignmentPreconditionError(
                "These SNs are already assigned to a prestage: "
                f"{', '.join(already_assigned)}",
                serial_numbers=already_assigned,
                reason=AssignmentPreconditionError.ALREADY_ASSIGNED,
            )

    # ----------------------------------------
    # Assign / Unassign
    # ----------------------------------------

    async def assign(
        self,
        serial_numbers: Iterable[Any] | str,
        prestage_ident: Any,
    ) -> PrestageScope:
        """Assign serial numbers to a prestage.

        Args:
            serial_numbers: Serials to add; case is normalized
            prestage_ident: Id or display name of the prestage

        Returns:
            The new scope, including its new versionLock

        Raises:
            NoSuchItemError: If the prestage does not exist
            ValidationError: If no serial numbers were given
            AssignmentPreconditionError: If any serial is not in Device
                Enrollment or is already assigned; nothing is written
            VersionLockError: If the scope changed between read and write
        """
        prestage_id = await self.resolve_id(prestage_ident)
        serials = self._validate_serials(serial_numbers)
        await self._check_assignable(serials)

        scope = await self.resolver.fetch_scope_for_id(prestage_id)

        new_serials = scope.serial_numbers
        new_serials += [sn for sn in serials if sn not in new_serials]

        new_scope = await self._update_scope(prestage_id, new_serials, scope.version_lock)
        logger.info(
            f"Assigned {len(serials)} serial(s) to {self.collection.label} {prestage_id}"
        )
        return new_scope

    async def unassign(
        self,
        serial_numbers: Iterable[Any] | str,
        prestage_ident: Any,
    ) -> PrestageScope:
        """Remove serial numbers from a prestage's scope.

        Serials not in the scope are ignored. If none of them are, nothing
        is written and the current scope is returned.

        Raises:
            NoSuchItemError: If the prestage does not exist
            ValidationError: If no serial numbers were given
            VersionLockError: If the scope changed between read and write
        """
        prestage_id = await self.resolve_id(prestage_ident)
        serials = self._validate_serials(serial_numbers)

        scope = await self.resolver.fetch_scope_for_id(prestage_id)

        current = scope.serial_numbers
        new_serials = [sn for sn in current if sn not in serials]

        if len(new_serials) == len(current):
            logger.debug(
                f"None of {serials} in {self.collection.label} {prestage_id}, skipping update"
            )
            return scope

        new_scope = await self._update_scope(prestage_id, new_serials, scope.version_lock)
        logger.info(
            f"Unassigned {len(current) - len(new_serials)} serial(s) from "
            f"{self.collection.label} {prestage_id}"
        )
        return new_scope

    async def _update_scope(
        self,
        prestage_id: str,
        new_serials: list[str],
        version_lock: int | None,
    ) -> PrestageScope:
        try:
            raw = await self.api.update_scope(prestage_id, new_serials, version_lock)
        except ConflictError as e:
            try:
                name = await self.api.display_name(prestage_id)
            except JamfError as lookup_error:
                logger.warning(
                    f"Could not look up the name of {self.collection.label} {prestage_id}: {lookup_error}"
                )
                name = None
            logger.warning(
                f"versionLock {version_lock} rejected for {self.collection.label} {prestage_id}"
            )
            raise VersionLockError(
                f"The {self.collection.label} '{name or prestage_id}' was modified by "
                "another process during this operation. Please refetch and try again",
                prestage_id=prestage_id,
                prestage_name=name,
                cause=e,
            )

        self.cache.invalidate()
        return self.resolver.mapper.map_scope(prestage_id, raw)
