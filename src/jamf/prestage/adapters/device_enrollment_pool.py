"""Device pool adapter backed by Jamf Pro Device Enrollment instances.

Serial numbers come from every Automated Device Enrollment instance
configured in Jamf Pro. A prestage can only scope serials found here.
"""

import logging
from typing import TYPE_CHECKING

from ..domain.entities import PrestageKind
from ..domain.ports import IDevicePool

if TYPE_CHECKING:
    from ...api.client import JamfClient, PaginationConfig

logger = logging.getLogger(__name__)

COMPUTER_FAMILIES = frozenset({"Mac"})


class DeviceEnrollmentPool(IDevicePool):
    """Reads enrollable serial numbers from Jamf Pro Device Enrollments.

    Devices whose ``deviceFamily`` is "Mac" are computers; every other
    family (iPhone, iPad, AppleTV, ...) counts as a mobile device.
    """

    ENDPOINT = "/v1/device-enrollments"

    def __init__(
        self,
        client: "JamfClient",
        pagination_config: "PaginationConfig | None" = None,
    ):
        self.client = client
        self._pagination_config = pagination_config

    @property
    def pagination_config(self) -> "PaginationConfig":
        if self._pagination_config is None:
            from ...api.client import ENROLLMENT_DEVICES_PAGINATION
            self._pagination_config = ENROLLMENT_DEVICES_PAGINATION
        return self._pagination_config

    async def device_serial_numbers(self, kind: PrestageKind) -> set[str]:
        instances = await self.client.fetch_all(self.ENDPOINT, config=self.pagination_config)

        serials: set[str] = set()
        for instance in instances:
            devices = await self.client.fetch_all(
                f"{self.ENDPOINT}/{instance['id']}/devices",
                config=self.pagination_config,
            )
            for device in devices:
                serial = device.get("serialNumber")
                if serial and self._kind_of(device) == kind:
                    serials.add(str(serial))

        logger.debug(
            f"Device pool: {len(serials)} {kind.value} across {len(instances)} instance(s)"
        )
        return serials

    @staticmethod
    def _kind_of(device: dict) -> PrestageKind:
        if device.get("deviceFamily") in COMPUTER_FAMILIES:
            return PrestageKind.COMPUTER
        return PrestageKind.MOBILE_DEVICE
