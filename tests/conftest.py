from __future__ import annotations

from datetime import date, datetime

import pytest

from src.attendance_reports.attendance_reports.cache.circuit_breaker import CircuitBreaker
from src.attendance_reports.attendance_reports.cache.deduplicator import RequestDeduplicator
from src.attendance_reports.attendance_reports.cache.local_tier import LocalTier
from src.attendance_reports.attendance_reports.cache.model import CacheSettings
from src.attendance_reports.attendance_reports.cache.shared_tier import SharedTier
from src.attendance_reports.attendance_reports.cache.tier_manager import CacheTierManager
from src.attendance_reports.attendance_reports.reports.model import ReportFilter
from tests.fakes import (
    FakeRedis,
    FakeReportRepo,
    InMemoryHierarchySource,
    InMemoryLevelIndexStore,
    ManualClock,
    division,
    employee,
    section,
    subsection,
    transfer,
)


@pytest.fixture
def fixed_now():
    return datetime(2026, 2, 1, 6, 30, 0)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def org_source():
    roster = [
        employee("E10", "66", "3"),
        employee("E02", "1", "12"),
        employee("E01", "1", "2"),
        employee("E05", "ADM", "9"),
        employee("E07", "1", "2"),
        employee("E99", None, "2"),
        employee("E50", "66", None),
    ]
    nodes = [
        division("1", "Plant 1"),
        division("66", "Office"),
        division("ADM", "Admin"),
        section("2", "Cutting", "1"),
        section("12", "Sewing", "1"),
        section("3", "Payroll", "66"),
        section("9", "Legal", "ADM"),
        subsection("501", "Line A", "2"),
        subsection("502", "Line B", "12"),
    ]
    transfers = [
        transfer("E01", "502", active=False),
        transfer("E01", "501"),
        transfer("E07", "999"),
        transfer("E10", "502"),
    ]
    return InMemoryHierarchySource(roster, nodes, transfers)


@pytest.fixture
def level_store():
    return InMemoryLevelIndexStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def settings():
    return CacheSettings(
        l0_ttl_seconds=60,
        l1_ttl_seconds=120,
        compression_threshold_bytes=256,
        dedup_grace_seconds=0.1,
        l0_max_entries=100,
        shared_failure_threshold=2,
        shared_reset_seconds=30,
        shared_retry_attempts=1,
    )


@pytest.fixture
def make_manager(settings, clock):
    def _make(redis_client=None, *, breaker_clock=None, grace_clock=None):
        shared = SharedTier(
            redis_client,
            breaker=CircuitBreaker(
                settings.shared_failure_threshold,
                settings.shared_reset_seconds,
                clock=breaker_clock or clock,
            ),
            retry_attempts=settings.shared_retry_attempts,
        )
        return CacheTierManager(
            settings,
            local=LocalTier(settings.l0_ttl_seconds, settings.l0_max_entries, clock=clock),
            shared=shared,
            deduplicator=RequestDeduplicator(settings.dedup_grace_seconds, clock=grace_clock or clock),
        )

    return _make


@pytest.fixture
def report_repo():
    return FakeReportRepo()


@pytest.fixture
def january():
    return ReportFilter(start=date(2026, 1, 1), end=date(2026, 1, 31))
