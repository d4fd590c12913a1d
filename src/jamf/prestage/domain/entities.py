"""Domain entities for prestage scope management.

These are pure data structures with no infrastructure dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PrestageKind(str, Enum):
    """Prestage collection types. Each is an independent assignment domain."""

    COMPUTER = "computers"
    MOBILE_DEVICE = "mobiledevices"


@dataclass(frozen=True)
class PrestageCollection:
    """Where a prestage collection lives in the Jamf Pro API.

    Attributes:
        kind: Which device kind the collection enrolls
        rsrc_path: Collection path segment, e.g. "computer-prestages"
        rsrc_version: API version segment
        label: Human-readable name used in error messages
    """

    kind: PrestageKind
    rsrc_path: str
    rsrc_version: str = "v2"
    label: str = "Prestage"

    @property
    def list_path(self) -> str:
        return f"/{self.rsrc_version}/{self.rsrc_path}"

    @property
    def scope_index_path(self) -> str:
        """Aggregate scope endpoint: every assigned serial and its prestage id."""
        return f"{self.list_path}/scope"

    def resource_path(self, prestage_id: str) -> str:
        return f"{self.list_path}/{prestage_id}"

    def scope_path(self, prestage_id: str) -> str:
        return f"{self.list_path}/{prestage_id}/scope"


COMPUTER_PRESTAGES = PrestageCollection(
    kind=PrestageKind.COMPUTER,
    rsrc_path="computer-prestages",
    label="ComputerPrestage",
)

MOBILE_DEVICE_PRESTAGES = PrestageCollection(
    kind=PrestageKind.MOBILE_DEVICE,
    rsrc_path="mobile-device-prestages",
    label="MobileDevicePrestage",
)


@dataclass
class Prestage:
    """Domain entity representing a computer or mobile device prestage.

    version_lock tracks the prestage record itself. The scope sub-resource
    carries its own token (see PrestageScope).
    """

    id: str
    display_name: str | None = None
    is_default: bool = False
    version_lock: int | None = None

    # Full API record, sent back on save
    raw_data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Record body for a PUT, carrying the current version lock."""
        payload = dict(self.raw_data)
        payload["id"] = self.id
        if self.display_name is not None:
            payload["displayName"] = self.display_name
        payload["defaultPrestage"] = self.is_default
        payload["versionLock"] = self.version_lock
        return payload


@dataclass(frozen=True)
class ScopeAssignment:
    """One serial number assigned to a prestage."""

    serial_number: str
    assignment_date: datetime | None = None
    user_assigned: str | None = None


@dataclass
class PrestageScope:
    """The set of serial numbers assigned to one prestage.

    Serial numbers are unique within a scope; order is as the server
    returned them.
    """

    prestage_id: str
    assignments: list[ScopeAssignment] = field(default_factory=list)
    version_lock: int | None = None

    @property
    def serial_numbers(self) -> list[str]:
        return [a.serial_number for a in self.assignments]

    def __contains__(self, serial_number: object) -> bool:
        return serial_number in self.serial_numbers

    def __len__(self) -> int:
        return len(self.assignments)
