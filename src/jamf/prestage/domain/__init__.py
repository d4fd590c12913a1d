"""Domain layer - Pure domain entities and port interfaces.

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    COMPUTER_PRESTAGES,
    MOBILE_DEVICE_PRESTAGES,
    Prestage,
    PrestageCollection,
    PrestageKind,
    PrestageScope,
    ScopeAssignment,
)
from .ports import IDevicePool, IFieldMapper, IPrestageAPI

__all__ = [
    # Entities
    "Prestage",
    "PrestageScope",
    "ScopeAssignment",
    # Collections
    "PrestageKind",
    "PrestageCollection",
    "COMPUTER_PRESTAGES",
    "MOBILE_DEVICE_PRESTAGES",
    # Ports
    "IPrestageAPI",
    "IDevicePool",
    "IFieldMapper",
]
