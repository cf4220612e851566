from __future__ import annotations

from datetime import date
from typing import Any, Protocol, Sequence

from ..hierarchy.selector import LevelSelection


class AttendanceReportRepository(Protocol):
    """Aggregate queries over the daily attendance fact table, scoped by a level selection."""

    def division_stats(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        raise NotImplementedError

    def section_stats(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        raise NotImplementedError

    def employee_totals(self, scope: LevelSelection, start: date, end: date) -> dict[str, Any]:
        raise NotImplementedError

    def summary(self, scope: LevelSelection, start: date, end: date) -> dict[str, Any]:
        raise NotImplementedError

    def group_rows(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        raise NotImplementedError
