"""Tests for the ScopeMutator use case.

These tests run against in-memory ports, so every property of the
read-modify-write cycle (preconditions, versionLock, cache coherence)
is checked without a server.
"""

from unittest.mock import AsyncMock

import pytest

from src.jamf.api.exceptions import (
    AssignmentPreconditionError,
    ConflictError,
    NoSuchItemError,
    ServerError,
    ValidationError,
    VersionLockError,
)
from src.jamf.prestage.adapters.field_mapper import PrestageFieldMapper
from src.jamf.prestage.domain.entities import COMPUTER_PRESTAGES, MOBILE_DEVICE_PRESTAGES
from src.jamf.prestage.use_cases import (
    ScopeCache,
    ScopeMutator,
    ScopeResolver,
    normalize_serials,
)


def make_mutator(api, device_pool, collection=COMPUTER_PRESTAGES) -> ScopeMutator:
    mapper = PrestageFieldMapper()
    return ScopeMutator(
        api=api,
        device_pool=device_pool,
        cache=ScopeCache(api, mapper),
        resolver=ScopeResolver(api, mapper, collection),
        collection=collection,
    )


@pytest.fixture
def mutator(api, device_pool):
    return make_mutator(api, device_pool)


class TestNormalizeSerials:
    """Tests for serial number normalization."""

    def test_upper_cases_and_strips(self):
        assert normalize_serials([" c02aaa ", "C02bbb"]) == ["C02AAA", "C02BBB"]

    def test_deduplicates_keeping_order(self):
        assert normalize_serials(["b", "A", "B", "a"]) == ["B", "A"]

    def test_single_string(self):
        assert normalize_serials("c02aaa") == ["C02AAA"]

    def test_drops_blanks(self):
        assert normalize_serials(["", "  "]) == []


class TestAssign:
    """Tests for ScopeMutator.assign."""

    @pytest.mark.asyncio
    async def test_assign_adds_serials(self, api, mutator):
        scope = await mutator.assign(["a", "b"], "1")

        assert scope.serial_numbers == ["A", "B"]
        assert scope.version_lock == 1
        assert api.scope_puts == [("1", ["A", "B"], 0)]

    @pytest.mark.asyncio
    async def test_assign_by_display_name(self, api, mutator):
        scope = await mutator.assign(["C"], "Lab Macs")

        assert scope.prestage_id == "2"
        assert api.scopes["2"]["serials"] == ["C"]

    @pytest.mark.asyncio
    async def test_assign_appends_to_existing_scope(self, api, mutator):
        await mutator.assign(["A"], "1")
        scope = await mutator.assign(["B", "b"], "1")

        assert scope.serial_numbers == ["A", "B"]

    @pytest.mark.asyncio
    async def test_unknown_prestage(self, api, mutator):
        with pytest.raises(NoSuchItemError) as exc:
            await mutator.assign(["A"], "Nope")

        assert exc.value.identifier == "Nope"
        assert api.scope_puts == []

    @pytest.mark.asyncio
    async def test_empty_serial_list(self, api, mutator):
        with pytest.raises(ValidationError) as exc:
            await mutator.assign([], "1")

        assert exc.value.details["field"] == "serial_numbers"
        assert api.scope_puts == []

    @pytest.mark.asyncio
    async def test_serial_not_in_device_enrollment_fails_before_put(self, api, mutator):
        with pytest.raises(AssignmentPreconditionError) as exc:
            await mutator.assign(["A", "ZZZ"], "1")

        assert exc.value.reason == AssignmentPreconditionError.NOT_IN_DEVICE_ENROLLMENT
        assert exc.value.serial_numbers == ["ZZZ"]
        assert "These SNs are not in any Device Enrollment instance: ZZZ" in exc.value.message
        assert api.scope_puts == []

    @pytest.mark.asyncio
    async def test_pool_check_runs_before_assignment_check(self, api, mutator):
        """Both problems present: the pool failure is the one reported."""
        api.scopes["2"]["serials"] = ["A"]

        with pytest.raises(AssignmentPreconditionError) as exc:
            await mutator.assign(["A", "ZZZ"], "1")

        assert exc.value.reason == AssignmentPreconditionError.NOT_IN_DEVICE_ENROLLMENT

    @pytest.mark.asyncio
    async def test_already_assigned_elsewhere(self, api, mutator):
        api.scopes["2"]["serials"] = ["B"]

        with pytest.raises(AssignmentPreconditionError) as exc:
            await mutator.assign(["A", "B"], "1")

        assert exc.value.reason == AssignmentPreconditionError.ALREADY_ASSIGNED
        assert exc.value.serial_numbers == ["B"]
        assert "These SNs are already assigned to a prestage: B" in exc.value.message
        assert api.scope_puts == []

    @pytest.mark.asyncio
    async def test_already_assigned_check_refreshes_index(self, api, mutator):
        """A serial assigned since the index was loaded is still caught."""
        await mutator.cache.reverse_index()
        api.scopes["2"]["serials"] = ["C"]

        with pytest.raises(AssignmentPreconditionError):
            await mutator.assign(["C"], "1")

    @pytest.mark.asyncio
    async def test_mobile_serial_not_assignable_to_computer_prestage(self, api, mutator):
        with pytest.raises(AssignmentPreconditionError):
            await mutator.assign(["IPAD1"], "1")


class TestUnassign:
    """Tests for ScopeMutator.unassign."""

    @pytest.mark.asyncio
    async def test_unassign_removes_serials(self, api, mutator):
        api.scopes["1"]["serials"] = ["A", "B", "C"]

        scope = await mutator.unassign(["b"], "1")

        assert scope.serial_numbers == ["A", "C"]
        assert api.scope_puts == [("1", ["A", "C"], 0)]

    @pytest.mark.asyncio
    async def test_unassign_absent_serial_is_a_noop(self, api, mutator):
        api.scopes["1"]["serials"] = ["A"]

        scope = await mutator.unassign(["B"], "1")

        assert scope.serial_numbers == ["A"]
        assert scope.version_lock == 0
        assert api.scope_puts == []

    @pytest.mark.asyncio
    async def test_unassign_twice_is_idempotent(self, api, mutator):
        api.scopes["1"]["serials"] = ["A", "B"]

        first = await mutator.unassign(["A"], "1")
        second = await mutator.unassign(["A"], "1")

        assert first.serial_numbers == second.serial_numbers == ["B"]
        assert len(api.scope_puts) == 1

    @pytest.mark.asyncio
    async def test_unassign_skips_device_enrollment_check(self, api, device_pool, mutator):
        """A serial that left Device Enrollment can still be removed."""
        api.scopes["1"]["serials"] = ["GONE"]

        scope = await mutator.unassign(["GONE"], "1")

        assert scope.serial_numbers == []
        assert device_pool.calls == []

    @pytest.mark.asyncio
    async def test_unassign_empty_list(self, mutator):
        with pytest.raises(ValidationError):
            await mutator.unassign([" "], "1")

    @pytest.mark.asyncio
    async def test_unassign_unknown_prestage(self, mutator):
        with pytest.raises(NoSuchItemError):
            await mutator.unassign(["A"], "42")


class TestVersionLockConflicts:
    """A write carrying a stale versionLock fails and changes nothing."""

    @pytest.mark.asyncio
    async def test_concurrent_write_raises_version_lock_error(self, api, mutator):
        api.scopes["1"]["serials"] = ["A"]
        api.before_scope_put = lambda psid: api.write_scope_elsewhere(psid, ["A", "C"])

        with pytest.raises(VersionLockError) as exc:
            await mutator.unassign(["A"], "1")

        assert "Staff Macs" in exc.value.message
        assert "was modified by another process" in exc.value.message
        assert exc.value.prestage_id == "1"
        assert exc.value.cause is not None
        # The other writer's payload stands; ours was not applied
        assert api.scopes["1"]["serials"] == ["A", "C"]

    @pytest.mark.asyncio
    async def test_conflict_is_not_retried(self, api, mutator):
        api.before_scope_put = lambda psid: api.write_scope_elsewhere(psid, [])

        with pytest.raises(VersionLockError):
            await mutator.assign(["A"], "1")

        assert len(api.scope_puts) == 1

    @pytest.mark.asyncio
    async def test_conflict_keeps_cached_index(self, api, mutator):
        api.before_scope_put = lambda psid: api.write_scope_elsewhere(psid, [])

        with pytest.raises(VersionLockError):
            await mutator.assign(["A"], "1")

        assert mutator.cache.is_loaded

    @pytest.mark.asyncio
    async def test_conflict_names_prestage_by_id_when_lookup_fails(self, api, mutator):
        api.before_scope_put = lambda psid: api.write_scope_elsewhere(psid, [])
        api.display_name = AsyncMock(side_effect=ServerError(status_code=503))

        with pytest.raises(VersionLockError) as exc:
            await mutator.assign(["A"], "1")

        assert "'1' was modified by another process" in exc.value.message
        assert exc.value.prestage_id == "1"
        assert exc.value.details.get("prestage_name") is None
        assert isinstance(exc.value.cause, ConflictError)


class TestCacheCoherence:
    """The reverse index never outlives a successful write."""

    @pytest.mark.asyncio
    async def test_successful_assign_invalidates_index(self, api, mutator):
        await mutator.assign(["A"], "1")

        assert not mutator.cache.is_loaded
        assert await mutator.cache.lookup("A") == "1"

    @pytest.mark.asyncio
    async def test_successful_unassign_invalidates_index(self, api, mutator):
        api.scopes["1"]["serials"] = ["A"]
        assert await mutator.cache.lookup("A") == "1"

        await mutator.unassign(["A"], "1")

        assert await mutator.cache.lookup("A") is None


class TestUnassignedSerials:
    """Tests for ScopeMutator.unassigned_serials."""

    @pytest.mark.asyncio
    async def test_pool_minus_assigned(self, api, mutator):
        api.scopes["2"]["serials"] = ["B"]

        assert await mutator.unassigned_serials() == {"A", "C"}

    @pytest.mark.asyncio
    async def test_per_kind(self, api, device_pool):
        """Mobile device pool is compared against mobile prestages only."""
        mobile_api = type(api)([{"id": "10", "displayName": "iPads", "serials": ["IPAD1"]}])
        mobile = make_mutator(mobile_api, device_pool, MOBILE_DEVICE_PRESTAGES)

        assert await mobile.unassigned_serials() == {"IPAD2"}


class TestAssignUnassignScenario:
    """Pool {A, B, C}; move A from P1 to P2 the only legal way."""

    @pytest.mark.asyncio
    async def test_move_requires_unassign_first(self, api, mutator):
        scope = await mutator.assign(["a"], "1")
        assert scope.serial_numbers == ["A"]

        with pytest.raises(AssignmentPreconditionError) as exc:
            await mutator.assign(["A"], "2")
        assert exc.value.reason == AssignmentPreconditionError.ALREADY_ASSIGNED

        scope = await mutator.unassign(["A"], "1")
        assert scope.serial_numbers == []

        scope = await mutator.assign(["A"], "2")
        assert scope.serial_numbers == ["A"]
        assert await mutator.cache.lookup("A") == "2"

    @pytest.mark.asyncio
    async def test_serial_unique_across_prestages(self, api, mutator):
        await mutator.assign(["A", "B"], "1")
        await mutator.unassign(["B"], "1")
        await mutator.assign(["B", "C"], "2")

        index = await mutator.cache.reverse_index()
        all_serials = api.scopes["1"]["serials"] + api.scopes["2"]["serials"]

        assert sorted(all_serials) == ["A", "B", "C"]
        assert index == {"A": "1", "B": "2", "C": "2"}
