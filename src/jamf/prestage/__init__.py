"""Prestage Scope Module.

This module manages which serial numbers are scoped to Jamf Pro computer
and mobile device prestages:
- Look up which prestage a serial number is assigned to
- List serials in Device Enrollment that no prestage scopes yet
- Assign and unassign serials with versionLock conflict detection
- Find the default prestage

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
from .domain import (
    COMPUTER_PRESTAGES,
    MOBILE_DEVICE_PRESTAGES,
    Prestage,
    PrestageCollection,
    PrestageKind,
    PrestageScope,
    ScopeAssignment,
)
from .manager import BoundPrestage, PrestageManager

__all__ = [
    "PrestageManager",
    "BoundPrestage",
    "Prestage",
    "PrestageScope",
    "ScopeAssignment",
    "PrestageKind",
    "PrestageCollection",
    "COMPUTER_PRESTAGES",
    "MOBILE_DEVICE_PRESTAGES",
]
