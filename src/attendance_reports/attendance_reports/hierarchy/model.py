from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ..core.enums import HierarchyLevel
from .ordering import path_sort_key

LEVEL_CODE_COLUMNS = {
    HierarchyLevel.DIVISION: ("division_code",),
    HierarchyLevel.SECTION: ("division_code", "section_code"),
    HierarchyLevel.SUBSECTION: ("division_code", "section_code", "subsection_code"),
}


@dataclass(frozen=True)
class HierarchyNode:
    """A division, section or subsection as supplied by the HR roster source."""

    level: HierarchyLevel
    code: str
    name: Optional[str]
    parent_code: Optional[str] = None


@dataclass(frozen=True)
class EmployeeIdentity:
    """Roster entry. ``subsection_code`` is only set from an active transfer override."""

    employee_id: str
    employee_name: Optional[str]
    division_code: Optional[str]
    section_code: Optional[str]
    subsection_code: Optional[str] = None


@dataclass(frozen=True)
class TransferRecord:
    employee_id: str
    subsection_id: str
    active: bool = True


@dataclass(frozen=True)
class LevelIndexRow:
    """One row of a level table.

    ``codes`` holds exactly the hierarchy path of ``level`` (division; division+section;
    division+section+subsection) and ``name`` the name of the level's own node, so a
    division row never carries section or subsection data.
    """

    level: HierarchyLevel
    codes: Tuple[str, ...]
    name: Optional[str]
    employee_id: str
    employee_name: Optional[str]
    synced_at: Optional[datetime] = None

    def __post_init__(self):
        expected = len(LEVEL_CODE_COLUMNS[self.level])
        if len(self.codes) != expected:
            raise ValueError(f"{self.level.value} row needs {expected} codes, got {len(self.codes)}")

    @property
    def division_code(self) -> str:
        return self.codes[0]

    @property
    def section_code(self) -> Optional[str]:
        return self.codes[1] if len(self.codes) > 1 else None

    @property
    def subsection_code(self) -> Optional[str]:
        return self.codes[2] if len(self.codes) > 2 else None

    @property
    def unique_key(self) -> tuple:
        return self.codes + (self.employee_id,)

    @property
    def sort_key(self) -> tuple:
        return path_sort_key(self.codes, self.employee_id)

    def as_dict(self) -> dict:
        out = dict(zip(LEVEL_CODE_COLUMNS[self.level], self.codes))
        out[f"{self.level.value}_name"] = self.name
        out["employee_id"] = self.employee_id
        out["employee_name"] = self.employee_name
        out["synced_at"] = self.synced_at.isoformat() if self.synced_at else None
        return out


@dataclass(frozen=True)
class HierarchyFilter:
    division_code: Optional[str] = None
    section_code: Optional[str] = None
    subsection_code: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.division_code or self.section_code or self.subsection_code)


@dataclass(frozen=True)
class EmployeeRef:
    employee_id: str
    employee_name: Optional[str] = None


@dataclass(frozen=True)
class RowOutcome:
    """Result of writing a single row during incremental sync."""

    row: LevelIndexRow
    inserted: bool
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class LevelBuildResult:
    level: HierarchyLevel
    inserted: int = 0
    already_present: int = 0
    skipped_missing_division: int = 0
    skipped_missing_section: int = 0
    skipped_unknown_subsection: int = 0
    failed: int = 0
    new_rows: list[LevelIndexRow] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.skipped_missing_division + self.skipped_missing_section + self.skipped_unknown_subsection

    def as_dict(self) -> dict:
        return {
            "level": self.level.value,
            "inserted": self.inserted,
            "already_present": self.already_present,
            "skipped_missing_division": self.skipped_missing_division,
            "skipped_missing_section": self.skipped_missing_section,
            "skipped_unknown_subsection": self.skipped_unknown_subsection,
            "failed": self.failed,
            "new_rows": [r.as_dict() for r in self.new_rows],
        }


@dataclass
class IndexRunReport:
    mode: str
    triggered_by: str
    started_at: datetime
    roster_size: int = 0
    roster_quality_skips: int = 0
    duration_seconds: float = 0.0
    levels: dict[HierarchyLevel, LevelBuildResult] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "triggered_by": self.triggered_by,
            "started_at": self.started_at.isoformat(),
            "roster_size": self.roster_size,
            "roster_quality_skips": self.roster_quality_skips,
            "duration_seconds": round(self.duration_seconds, 3),
            "levels": {level.value: r.as_dict() for level, r in self.levels.items()},
        }
