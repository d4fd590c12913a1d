"""Port interfaces for prestage scope operations.

Ports define the contracts between the use cases and the infrastructure.
Use cases depend only on these abstract base classes; adapters implement
them on top of JamfClient.
"""

from abc import ABC, abstractmethod
from typing import Any

from .entities import Prestage, PrestageKind, PrestageScope


class IPrestageAPI(ABC):
    """Port for one prestage collection in the Jamf Pro API.

    An implementation is bound to a single collection (computer or mobile
    device prestages), so no method takes a collection argument.
    """

    @abstractmethod
    async def list_prestages(
        self,
        sort: str | None = None,
        page_size: int | None = None,
    ) -> list[dict[str, Any]]:
        """List prestage records.

        Args:
            sort: Jamf sort expression, e.g. "defaultPrestage:desc"
            page_size: When given, only the first page of this size is read

        Returns:
            Raw prestage dictionaries
        """
        ...

    @abstractmethod
    async def fetch_prestage(self, prestage_id: str) -> dict[str, Any]:
        """Fetch one prestage record by id."""
        ...

    @abstractmethod
    async def update_prestage(self, prestage_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace a prestage record. The body carries its versionLock."""
        ...

    @abstractmethod
    async def valid_id(self, ident: Any) -> str | None:
        """Resolve an id or display name to a prestage id, or None."""
        ...

    @abstractmethod
    async def display_name(self, prestage_id: str) -> str | None:
        """Display name of the prestage with this id, or None."""
        ...

    @abstractmethod
    async def fetch_scope_index(self) -> dict[str, Any]:
        """Fetch the raw aggregate scope payload (``serialsByPrestageId``)."""
        ...

    @abstractmethod
    async def fetch_scope(self, prestage_id: str) -> dict[str, Any]:
        """Fetch the raw scope payload of one prestage."""
        ...

    @abstractmethod
    async def update_scope(
        self,
        prestage_id: str,
        serial_numbers: list[str],
        version_lock: int | None,
    ) -> dict[str, Any]:
        """Replace the scope of one prestage.

        Raises:
            ConflictError: If version_lock no longer matches the server
        """
        ...


class IDevicePool(ABC):
    """Port for the set of serial numbers known to Device Enrollment."""

    @abstractmethod
    async def device_serial_numbers(self, kind: PrestageKind) -> set[str]:
        """Serial numbers of devices of this kind that can be enrolled."""
        ...


class IFieldMapper(ABC):
    """Port for mapping raw API payloads to prestage domain entities."""

    @abstractmethod
    def map_prestage(self, raw: dict[str, Any]) -> Prestage:
        """Transform a prestage record into a Prestage entity."""
        ...

    @abstractmethod
    def map_scope(self, prestage_id: str, raw: dict[str, Any]) -> PrestageScope:
        """Transform a scope payload into a PrestageScope entity."""
        ...

    @abstractmethod
    def map_scope_index(self, raw: dict[str, Any]) -> dict[str, str]:
        """Normalize the aggregate scope payload to serial -> prestage id."""
        ...
