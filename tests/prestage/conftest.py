"""Shared in-memory ports for the prestage tests.

MockPrestageAPI behaves like one Jamf Pro prestage collection: it keeps
records and scopes, bumps versionLock on every write and answers a stale
versionLock with ConflictError, the same as the real client does on 409.
"""

from typing import Any, Callable

import pytest

from src.jamf.api.exceptions import ConflictError, NotFoundError
from src.jamf.prestage.domain.entities import PrestageKind
from src.jamf.prestage.domain.ports import IDevicePool, IPrestageAPI


class MockPrestageAPI(IPrestageAPI):
    """In-memory implementation of IPrestageAPI for testing."""

    def __init__(self, prestages: list[dict[str, Any]] | None = None):
        self.records: dict[str, dict[str, Any]] = {}
        self.scopes: dict[str, dict[str, Any]] = {}
        for record in prestages or []:
            self.add_prestage(**record)

        self.scope_puts: list[tuple[str, list[str], int | None]] = []
        self.prestage_puts: list[tuple[str, dict[str, Any]]] = []
        self.index_fetches = 0
        self.list_calls: list[tuple[str | None, int | None]] = []

        # Runs just before a scope PUT is applied, to simulate another writer
        self.before_scope_put: Callable[[str], None] | None = None

    # ----------------------------------------
    # Test helpers
    # ----------------------------------------

    def add_prestage(
        self,
        id: str,
        displayName: str,
        defaultPrestage: bool = False,
        serials: list[str] | None = None,
    ) -> None:
        self.records[id] = {
            "id": id,
            "displayName": displayName,
            "defaultPrestage": defaultPrestage,
            "versionLock": 0,
        }
        self.scopes[id] = {"serials": list(serials or []), "versionLock": 0}

    def write_scope_elsewhere(self, prestage_id: str, serials: list[str]) -> None:
        """Change a scope as another process would, bumping its versionLock."""
        scope = self.scopes[prestage_id]
        scope["serials"] = list(serials)
        scope["versionLock"] += 1

    def scope_payload(self, prestage_id: str) -> dict[str, Any]:
        scope = self.scopes[prestage_id]
        return {
            "prestageId": prestage_id,
            "assignments": [
                {
                    "serialNumber": sn,
                    "assignmentDate": "2024-05-01T12:00:00.000Z",
                    "userAssigned": "api-client",
                }
                for sn in scope["serials"]
            ],
            "versionLock": scope["versionLock"],
        }

    # ----------------------------------------
    # IPrestageAPI
    # ----------------------------------------

    async def list_prestages(
        self,
        sort: str | None = None,
        page_size: int | None = None,
    ) -> list[dict[str, Any]]:
        self.list_calls.append((sort, page_size))
        records = [dict(r) for r in self.records.values()]
        if sort == "defaultPrestage:desc":
            records.sort(key=lambda r: r["defaultPrestage"], reverse=True)
        if page_size is not None:
            records = records[:page_size]
        return records

    async def fetch_prestage(self, prestage_id: str) -> dict[str, Any]:
        if prestage_id not in self.records:
            raise NotFoundError("Prestage", prestage_id)
        return dict(self.records[prestage_id])

    async def update_prestage(self, prestage_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.prestage_puts.append((prestage_id, body))
        record = self.records[prestage_id]
        if body.get("versionLock") != record["versionLock"]:
            raise ConflictError(endpoint=f"/v2/computer-prestages/{prestage_id}", method="PUT")
        record.update(body)
        record["versionLock"] += 1
        return dict(record)

    async def valid_id(self, ident: Any) -> str | None:
        if ident is None:
            return None
        wanted = str(ident)
        if wanted in self.records:
            return wanted
        for record in self.records.values():
            if record["displayName"] == wanted:
                return record["id"]
        return None

    async def display_name(self, prestage_id: str) -> str | None:
        record = self.records.get(str(prestage_id))
        return record["displayName"] if record else None

    async def fetch_scope_index(self) -> dict[str, Any]:
        self.index_fetches += 1
        return {
            "serialsByPrestageId": {
                sn: psid
                for psid, scope in self.scopes.items()
                for sn in scope["serials"]
            }
        }

    async def fetch_scope(self, prestage_id: str) -> dict[str, Any]:
        return self.scope_payload(prestage_id)

    async def update_scope(
        self,
        prestage_id: str,
        serial_numbers: list[str],
        version_lock: int | None,
    ) -> dict[str, Any]:
        self.scope_puts.append((prestage_id, list(serial_numbers), version_lock))
        if self.before_scope_put:
            self.before_scope_put(prestage_id)

        scope = self.scopes[prestage_id]
        if version_lock != scope["versionLock"]:
            raise ConflictError(
                endpoint=f"/v2/computer-prestages/{prestage_id}/scope", method="PUT"
            )

        scope["serials"] = list(serial_numbers)
        scope["versionLock"] += 1
        return self.scope_payload(prestage_id)


class MockDevicePool(IDevicePool):
    """Device Enrollment serials, per kind."""

    def __init__(
        self,
        computers: set[str] | None = None,
        mobile_devices: set[str] | None = None,
    ):
        self.serials = {
            PrestageKind.COMPUTER: set(computers or ()),
            PrestageKind.MOBILE_DEVICE: set(mobile_devices or ()),
        }
        self.calls: list[PrestageKind] = []

    async def device_serial_numbers(self, kind: PrestageKind) -> set[str]:
        self.calls.append(kind)
        return set(self.serials[kind])


@pytest.fixture
def api():
    """Two computer prestages; P1 is the default and scopes nothing yet."""
    return MockPrestageAPI([
        {"id": "1", "displayName": "Staff Macs", "defaultPrestage": True},
        {"id": "2", "displayName": "Lab Macs"},
    ])


@pytest.fixture
def device_pool():
    return MockDevicePool(
        computers={"A", "B", "C"},
        mobile_devices={"IPAD1", "IPAD2"},
    )
