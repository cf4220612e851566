from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .cache.circuit_breaker import CircuitBreaker
from .cache.local_tier import LocalTier
from .cache.model import CacheSettings
from .cache.shared_tier import SharedTier, build_redis_client
from .cache.tier_manager import CacheTierManager
from .core.exceptions import SharedTierUnavailable, ValidationError
from .database.connection import DBConfig, DatabaseConnection
from .hierarchy.builder import HierarchicalIndexBuilder
from .hierarchy.model import IndexRunReport
from .hierarchy.mysql_hierarchy_source import MySQLHierarchySource
from .hierarchy.mysql_level_index_store import MySQLLevelIndexStore
from .hierarchy.selector import LevelSelector
from .reports.aggregator import AggregationPolicy, FailFastPolicy, ParallelAggregator, PartialResultsPolicy
from .reports.mysql_report_repository import MySQLAttendanceReportRepository
from .reports.service import DashboardService, ReportService

logger = logging.getLogger(__name__)

AGGREGATION_POLICIES = {
    "fail_fast": FailFastPolicy,
    "partial": PartialResultsPolicy,
}


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    hierarchy_source: MySQLHierarchySource
    level_store: MySQLLevelIndexStore
    report_repo: MySQLAttendanceReportRepository

    cache: CacheTierManager
    aggregator: ParallelAggregator

    index_builder: HierarchicalIndexBuilder
    level_selector: LevelSelector
    report_service: ReportService
    dashboard_service: DashboardService

    def close(self) -> None:
        self.aggregator.shutdown(wait=False)


def build_cache(settings: CacheSettings, redis_config: Optional[dict]) -> CacheTierManager:
    shared = SharedTier(
        build_redis_client(redis_config),
        breaker=CircuitBreaker(settings.shared_failure_threshold, settings.shared_reset_seconds),
        retry_attempts=settings.shared_retry_attempts,
    )
    if shared.enabled:
        try:
            shared.ping()
            logger.info("Shared cache tier connected")
        except SharedTierUnavailable as e:
            # Startup continues in degraded mode; the tier already logged the outage.
            logger.debug("Initial shared tier ping failed: %s", e)
    else:
        logger.info("Shared cache tier disabled; using local cache only")
    return CacheTierManager(
        settings,
        local=LocalTier(settings.l0_ttl_seconds, settings.l0_max_entries),
        shared=shared,
    )


def check_pool_capacity(db: DBConfig, settings: CacheSettings) -> bool:
    """A pool smaller than the dashboard fan-out makes sub-queries queue for connections."""
    if 0 < db.pool_size < settings.aggregator_max_workers:
        logger.warning(
            "DB pool_size=%d is below aggregator_max_workers=%d; dashboard sub-queries will wait up to %.1fs for a connection",
            db.pool_size,
            settings.aggregator_max_workers,
            db.pool_wait_seconds,
        )
        return False
    return True


def resolve_policy(name: Optional[str]) -> AggregationPolicy:
    key = (name or "fail_fast").strip().lower()
    if key not in AGGREGATION_POLICIES:
        raise ValidationError(f"unknown aggregation policy: {name}")
    return AGGREGATION_POLICIES[key]()


def build_container(
    *,
    db_config: dict,
    redis_config: Optional[dict] = None,
    cache_config: Optional[dict] = None,
    aggregation_policy: Optional[str] = None,
) -> Container:
    db = DBConfig.from_mapping(db_config)
    settings = CacheSettings.from_mapping(cache_config)
    check_pool_capacity(db, settings)
    conn = DatabaseConnection(db)

    hierarchy_source = MySQLHierarchySource(conn)
    level_store = MySQLLevelIndexStore(conn)
    report_repo = MySQLAttendanceReportRepository(conn)

    cache = build_cache(settings, redis_config)
    aggregator = ParallelAggregator(settings.aggregator_max_workers, policy=resolve_policy(aggregation_policy))

    report_service = ReportService(report_repo, cache)
    dashboard_service = DashboardService(report_service, aggregator)

    def _on_index_change(report: IndexRunReport) -> None:
        removed = report_service.invalidate()
        logger.info(
            "Index %s changed membership; dropped %d local and %d shared report entries",
            report.mode,
            removed["l0_removed"],
            removed["l1_removed"],
        )

    index_builder = HierarchicalIndexBuilder(hierarchy_source, level_store, on_change=_on_index_change)
    level_selector = LevelSelector(level_store, hierarchy_source)

    return Container(
        conn=conn,
        hierarchy_source=hierarchy_source,
        level_store=level_store,
        report_repo=report_repo,
        cache=cache,
        aggregator=aggregator,
        index_builder=index_builder,
        level_selector=level_selector,
        report_service=report_service,
        dashboard_service=dashboard_service,
    )
