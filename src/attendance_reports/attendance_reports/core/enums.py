from __future__ import annotations

from enum import Enum


class HierarchyLevel(str, Enum):
    """Organisational levels that own a denormalized lookup table."""

    DIVISION = "division"
    SECTION = "section"
    SUBSECTION = "subsection"


class CacheTier(str, Enum):
    """Where a cached answer was served from."""

    L0 = "L0"
    L1 = "L1"
    L2 = "L2"


class ReportType(str, Enum):
    DIVISION = "division"
    SECTION = "section"
    EMPLOYEE = "employee"
    SUMMARY = "summary"
    GROUP = "group"
    DASHBOARD = "dashboard"


class SharedTierState(str, Enum):
    CONNECTED = "connected"
    DEGRADED = "degraded"
    DISABLED = "disabled"
