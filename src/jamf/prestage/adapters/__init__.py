"""Adapters layer - Jamf Pro implementations of the prestage ports.

- JamfPrestageAPI: IPrestageAPI over JamfClient
- DeviceEnrollmentPool: IDevicePool over the Device Enrollment endpoints
- PrestageFieldMapper: IFieldMapper for prestage and scope payloads
"""

from .device_enrollment_pool import DeviceEnrollmentPool
from .field_mapper import PrestageFieldMapper
from .jamf_prestage_api import JamfPrestageAPI

__all__ = [
    "DeviceEnrollmentPool",
    "JamfPrestageAPI",
    "PrestageFieldMapper",
]
