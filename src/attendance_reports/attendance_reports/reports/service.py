from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Any, Callable, Optional

from ..cache.keys import report_prefix
from ..cache.tier_manager import CacheTierManager
from ..common.datetime_utils import now_local
from ..core.enums import ReportType
from ..core.exceptions import ValidationError
from ..hierarchy.selector import LevelSelection, select_level
from .aggregator import ParallelAggregator
from .model import ReportFilter, ReportResult, SubQuery
from .repository import AttendanceReportRepository

logger = logging.getLogger(__name__)

CACHEABLE_REPORTS = (
    ReportType.DIVISION,
    ReportType.SECTION,
    ReportType.EMPLOYEE,
    ReportType.SUMMARY,
    ReportType.GROUP,
)

DASHBOARD_PARTS = (
    ("divisions", ReportType.DIVISION),
    ("sections", ReportType.SECTION),
    ("employees", ReportType.EMPLOYEE),
    ("summary", ReportType.SUMMARY),
)


def parse_report_type(value: ReportType | str) -> ReportType:
    try:
        rt = ReportType(value)
    except ValueError as e:
        raise ValidationError(f"unknown report type: {value}") from e
    if rt not in CACHEABLE_REPORTS:
        raise ValidationError(f"{rt.value} is not a single report")
    return rt


class ReportService:
    """Serves attendance reports through the cache tiers.

    The hierarchy filter picks the narrowest level table; the cache key carries the filter
    codes and date range so different scopes never share an entry.
    """

    def __init__(
        self,
        repo: AttendanceReportRepository,
        cache: CacheTierManager,
        *,
        l0_ttl: Optional[float] = None,
        l1_ttl: Optional[float] = None,
    ):
        self._repo = repo
        self._cache = cache
        self._l0_ttl = l0_ttl
        self._l1_ttl = l1_ttl

    def _query(self, rt: ReportType) -> Callable[[LevelSelection, Any, Any], Any]:
        return {
            ReportType.DIVISION: self._repo.division_stats,
            ReportType.SECTION: self._repo.section_stats,
            ReportType.EMPLOYEE: self._repo.employee_totals,
            ReportType.SUMMARY: self._repo.summary,
            ReportType.GROUP: self._repo.group_rows,
        }[rt]

    def report(self, report_type: ReportType | str, flt: ReportFilter) -> ReportResult:
        rt = parse_report_type(report_type)
        scope = select_level(flt.hierarchy)
        key = flt.cache_key(rt)
        query = self._query(rt)

        def _producer():
            logger.debug("Computing %s via %s", key, scope.discriminator)
            return query(scope, flt.start, flt.end)

        lookup = self._cache.get(key, _producer, l0_ttl=self._l0_ttl, l1_ttl=self._l1_ttl)
        logger.debug("%s served from %s", key, lookup.tier.value)
        return ReportResult(report_type=rt, key=key, data=lookup.value, tier=lookup.tier)

    def invalidate(self, report_type: ReportType | str | None = None) -> dict:
        """Drop cached reports of one type, or of every type when none is given."""
        types = CACHEABLE_REPORTS if report_type is None else (parse_report_type(report_type),)
        removed = {"l0_removed": 0, "l1_removed": 0}
        for rt in types:
            res = self._cache.invalidate_prefix(report_prefix(rt.value))
            removed["l0_removed"] += res["l0_removed"]
            removed["l1_removed"] += res["l1_removed"] or 0
        return removed


class DashboardService:
    """Builds the dashboard by fanning its four parts out through the aggregator."""

    def __init__(
        self,
        reports: ReportService,
        aggregator: ParallelAggregator,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._reports = reports
        self._aggregator = aggregator
        self._clock = clock

    def dashboard(self, flt: ReportFilter) -> dict:
        subqueries = [SubQuery(name, partial(self._reports.report, rt, flt)) for name, rt in DASHBOARD_PARTS]
        outcome = self._aggregator.aggregate(subqueries)

        payload: dict[str, Any] = {name: res.data for name, res in outcome.values.items()}
        payload["generated_at"] = self._clock().isoformat()
        payload["tiers"] = {name: res.tier.value for name, res in outcome.values.items()}
        if outcome.failed:
            payload["failed"] = dict(outcome.failed)
        return payload
