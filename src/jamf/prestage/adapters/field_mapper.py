"""Field mapper adapter for Jamf Pro prestage payloads.

Implements IFieldMapper: turns prestage records, scope payloads and the
aggregate scope index into domain entities.
"""

from datetime import datetime
from typing import Any

from ..domain.entities import Prestage, PrestageScope, ScopeAssignment
from ..domain.ports import IFieldMapper

SERIALS_KEY = "serialsByPrestageId"


class PrestageFieldMapper(IFieldMapper):
    """Maps Jamf Pro prestage API responses to domain entities.

    Ids are normalized to strings: the API returns them as strings in
    records but callers often hold integers.
    """

    def map_prestage(self, raw: dict[str, Any]) -> Prestage:
        return Prestage(
            id=str(raw["id"]),
            display_name=raw.get("displayName"),
            is_default=bool(raw.get("defaultPrestage", False)),
            version_lock=raw.get("versionLock"),
            raw_data=raw,
        )

    def map_scope(self, prestage_id: str, raw: dict[str, Any]) -> PrestageScope:
        """Transform a scope payload into a PrestageScope.

        Payload shape::

            {"prestageId": "1",
             "assignments": [{"serialNumber": "C02X", "assignmentDate": "...",
                              "userAssigned": "admin"}],
             "versionLock": 3}
        """
        assignments = [
            ScopeAssignment(
                serial_number=str(item["serialNumber"]),
                assignment_date=self._parse_timestamp(item.get("assignmentDate")),
                user_assigned=item.get("userAssigned"),
            )
            for item in raw.get("assignments") or []
        ]
        return PrestageScope(
            prestage_id=str(raw.get("prestageId", prestage_id)),
            assignments=assignments,
            version_lock=raw.get("versionLock"),
        )

    def map_scope_index(self, raw: dict[str, Any]) -> dict[str, str]:
        serials = raw.get(SERIALS_KEY) or {}
        return {str(sn): str(psid) for sn, psid in serials.items()}

    @staticmethod
    def _parse_timestamp(iso_string: str | None) -> datetime | None:
        """Parse ISO 8601 timestamp string (may end with 'Z')."""
        if not iso_string:
            return None
        return datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
