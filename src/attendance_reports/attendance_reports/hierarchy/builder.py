"""Hierarchical index builder.

Denormalizes the active roster into three pre-sorted lookup tables (by division, by section,
by subsection). A full rebuild replaces each table through the store's shadow-and-swap; an
incremental sync only inserts rows that are not there yet.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..core.enums import HierarchyLevel
from ..core.exceptions import RebuildFailure, RebuildInProgress, RosterQualityError
from .model import (
    EmployeeIdentity,
    HierarchyNode,
    IndexRunReport,
    LevelBuildResult,
    LevelIndexRow,
    TransferRecord,
)
from .ordering import path_sort_key
from .repository import HierarchySource, LevelIndexStore

logger = logging.getLogger(__name__)

LEVELS = (HierarchyLevel.DIVISION, HierarchyLevel.SECTION, HierarchyLevel.SUBSECTION)


@dataclass(frozen=True)
class _Snapshot:
    roster: Sequence[EmployeeIdentity]
    nodes: Sequence[HierarchyNode]
    transfers: Sequence[TransferRecord]


@dataclass(frozen=True)
class LevelPlan:
    rows: list[LevelIndexRow]
    result: LevelBuildResult


def _clean(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = str(code).strip()
    return code or None


def roster_sort_key(emp: EmployeeIdentity) -> tuple:
    return path_sort_key(
        (_clean(emp.division_code), _clean(emp.section_code), _clean(emp.subsection_code)),
        emp.employee_id,
    )


def apply_transfers(roster: Sequence[EmployeeIdentity], transfers: Sequence[TransferRecord]) -> list[EmployeeIdentity]:
    """Set ``subsection_code`` from active transfers; recalled (inactive) records are ignored."""
    active = {str(t.employee_id): str(t.subsection_id) for t in transfers if t.active}
    out: list[EmployeeIdentity] = []
    for emp in roster:
        sub = active.get(str(emp.employee_id))
        out.append(replace(emp, subsection_code=sub) if sub else replace(emp, subsection_code=None))
    return out


def require_division(emp: EmployeeIdentity) -> str:
    code = _clean(emp.division_code)
    if not code:
        raise RosterQualityError(emp.employee_id, "division")
    return code


def plan_level_rows(
    roster: Sequence[EmployeeIdentity],
    nodes: Sequence[HierarchyNode],
    transfers: Sequence[TransferRecord],
    *,
    synced_at: datetime,
) -> tuple[dict[HierarchyLevel, LevelPlan], int]:
    """Compute the rows of every level table, each list sorted in clustered order.

    Returns the per-level plans and the number of employees skipped for missing a division.
    """

    by_level: dict[HierarchyLevel, dict[str, HierarchyNode]] = {level: {} for level in LEVELS}
    for node in nodes:
        by_level[node.level][str(node.code)] = node
    divisions = by_level[HierarchyLevel.DIVISION]
    sections = by_level[HierarchyLevel.SECTION]
    subsections = by_level[HierarchyLevel.SUBSECTION]

    results = {level: LevelBuildResult(level=level) for level in LEVELS}
    rows: dict[HierarchyLevel, list[LevelIndexRow]] = {level: [] for level in LEVELS}
    seen: dict[HierarchyLevel, set] = {level: set() for level in LEVELS}
    quality_skips = 0

    def add(row: LevelIndexRow) -> None:
        if row.unique_key in seen[row.level]:
            results[row.level].already_present += 1
            return
        seen[row.level].add(row.unique_key)
        rows[row.level].append(row)

    for emp in sorted(apply_transfers(roster, transfers), key=roster_sort_key):
        try:
            div = require_division(emp)
        except RosterQualityError as e:
            logger.debug("Skipping roster entry: %s", e)
            quality_skips += 1
            for level in LEVELS:
                if level is not HierarchyLevel.SUBSECTION or emp.subsection_code:
                    results[level].skipped_missing_division += 1
            continue

        div_node = divisions.get(div)
        add(
            LevelIndexRow(
                level=HierarchyLevel.DIVISION,
                codes=(div,),
                name=div_node.name if div_node else None,
                employee_id=emp.employee_id,
                employee_name=emp.employee_name,
                synced_at=synced_at,
            )
        )

        sec = _clean(emp.section_code)
        if sec:
            sec_node = sections.get(sec)
            add(
                LevelIndexRow(
                    level=HierarchyLevel.SECTION,
                    codes=(div, sec),
                    name=sec_node.name if sec_node else None,
                    employee_id=emp.employee_id,
                    employee_name=emp.employee_name,
                    synced_at=synced_at,
                )
            )
        else:
            results[HierarchyLevel.SECTION].skipped_missing_section += 1

        sub = _clean(emp.subsection_code)
        if not sub:
            continue
        sub_node = subsections.get(sub)
        if sub_node is None:
            results[HierarchyLevel.SUBSECTION].skipped_unknown_subsection += 1
            continue
        # The subsection's own place in the tree wins over the employee's nominal section.
        sub_sec = _clean(sub_node.parent_code) or sec
        parent = sections.get(sub_sec) if sub_sec else None
        sub_div = _clean(parent.parent_code) if parent else None
        if not sub_sec:
            results[HierarchyLevel.SUBSECTION].skipped_missing_section += 1
            continue
        add(
            LevelIndexRow(
                level=HierarchyLevel.SUBSECTION,
                codes=(sub_div or div, sub_sec, sub),
                name=sub_node.name,
                employee_id=emp.employee_id,
                employee_name=emp.employee_name,
                synced_at=synced_at,
            )
        )

    plans = {}
    for level in LEVELS:
        level_rows = sorted(rows[level], key=lambda r: r.sort_key)
        plans[level] = LevelPlan(rows=level_rows, result=results[level])
    return plans, quality_skips


class HierarchicalIndexBuilder:
    """Owns the level tables. Rebuilds and syncs are mutually exclusive; readers never block."""

    def __init__(
        self,
        source: HierarchySource,
        store: LevelIndexStore,
        *,
        clock: Callable[[], datetime] = datetime.now,
        on_change: Optional[Callable[[IndexRunReport], None]] = None,
    ):
        self._source = source
        self._store = store
        self._clock = clock
        self._on_change = on_change
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _snapshot(self) -> _Snapshot:
        try:
            return _Snapshot(
                roster=list(self._source.fetch_active_roster()),
                nodes=list(self._source.fetch_hierarchy_nodes()),
                transfers=list(self._source.fetch_active_transfers()),
            )
        except Exception as e:
            raise RebuildFailure(f"could not read roster source: {e}") from e

    def _acquire(self, mode: str) -> None:
        if not self._lock.acquire(blocking=False):
            raise RebuildInProgress(f"index {mode} already in progress")

    def full_rebuild(self, *, triggered_by: str = "system") -> IndexRunReport:
        self._acquire("rebuild")
        try:
            started = time.perf_counter()
            snapshot = self._snapshot()
            now = self._clock()
            plans, quality_skips = plan_level_rows(snapshot.roster, snapshot.nodes, snapshot.transfers, synced_at=now)
            report = IndexRunReport(
                mode="rebuild",
                triggered_by=triggered_by,
                started_at=now,
                roster_size=len(snapshot.roster),
                roster_quality_skips=quality_skips,
            )

            for level in LEVELS:
                plan = plans[level]
                try:
                    written = self._store.replace_level(level, plan.rows)
                except Exception as e:
                    logger.error("Rebuild of %s table failed", level.value, exc_info=True)
                    raise RebuildFailure(f"rebuild of {level.value} table failed: {e}", level=level.value) from e
                plan.result.inserted = written
                report.levels[level] = plan.result
                logger.info(
                    "Rebuilt %s table: %d rows (%d skipped)",
                    level.value,
                    written,
                    plan.result.skipped,
                )

            report.duration_seconds = time.perf_counter() - started
            if quality_skips:
                logger.info("Rebuild skipped %d employees without a division code", quality_skips)
        finally:
            self._lock.release()

        self._notify(report)
        return report

    def incremental_sync(self, *, triggered_by: str = "system") -> IndexRunReport:
        self._acquire("sync")
        try:
            started = time.perf_counter()
            snapshot = self._snapshot()
            now = self._clock()
            plans, quality_skips = plan_level_rows(snapshot.roster, snapshot.nodes, snapshot.transfers, synced_at=now)
            report = IndexRunReport(
                mode="sync",
                triggered_by=triggered_by,
                started_at=now,
                roster_size=len(snapshot.roster),
                roster_quality_skips=quality_skips,
            )

            for level in LEVELS:
                plan = plans[level]
                result = plan.result
                try:
                    outcomes = self._store.insert_missing(level, plan.rows)
                except Exception as e:
                    raise RebuildFailure(f"sync of {level.value} table failed: {e}", level=level.value) from e

                for outcome in outcomes:
                    if outcome.failed:
                        result.failed += 1
                        logger.warning(
                            "Sync of %s row for employee %s failed: %s",
                            level.value,
                            outcome.row.employee_id,
                            outcome.error,
                        )
                    elif outcome.inserted:
                        result.inserted += 1
                        result.new_rows.append(outcome.row)
                    else:
                        result.already_present += 1
                report.levels[level] = result
                logger.info(
                    "Synced %s table: %d new, %d existing, %d failed",
                    level.value,
                    result.inserted,
                    result.already_present,
                    result.failed,
                )

            report.duration_seconds = time.perf_counter() - started
        finally:
            self._lock.release()

        if any(r.inserted for r in report.levels.values()):
            self._notify(report)
        return report

    def _notify(self, report: IndexRunReport) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(report)
        except Exception:
            logger.warning("Index change listener failed", exc_info=True)
