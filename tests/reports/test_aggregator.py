from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.attendance_reports.attendance_reports.core.exceptions import AggregateSubQueryFailure, ValidationError
from src.attendance_reports.attendance_reports.reports.aggregator import ParallelAggregator, PartialResultsPolicy
from src.attendance_reports.attendance_reports.reports.model import SubQuery


def _after(delay, value):
    def run():
        time.sleep(delay)
        return value

    return run


def test_results_follow_declaration_order_not_completion_order():
    with ParallelAggregator(max_workers=4) as agg:
        result = agg.aggregate(
            [
                SubQuery("divisions", _after(0.15, "d")),
                SubQuery("sections", _after(0.0, "s")),
                SubQuery("employees", _after(0.05, "e")),
                SubQuery("summary", _after(0.1, "x")),
            ]
        )

    assert list(result.values) == ["divisions", "sections", "employees", "summary"]
    assert result.values == {"divisions": "d", "sections": "s", "employees": "e", "summary": "x"}
    assert result.complete


def test_sub_queries_run_in_parallel():
    with ParallelAggregator(max_workers=4) as agg:
        started = time.perf_counter()
        agg.aggregate([SubQuery(f"q{i}", _after(0.2, i)) for i in range(4)])
        elapsed = time.perf_counter() - started

    assert elapsed < 0.6


def test_fail_fast_raises_named_failure_without_waiting_for_slow_parts():
    release = threading.Event()

    def slow():
        release.wait(timeout=5)
        return 0

    def boom():
        raise RuntimeError("section query failed")

    agg = ParallelAggregator(max_workers=2)
    try:
        started = time.perf_counter()
        with pytest.raises(AggregateSubQueryFailure) as exc:
            agg.aggregate([SubQuery("divisions", slow), SubQuery("sections", boom)])
        elapsed = time.perf_counter() - started
    finally:
        release.set()
        agg.shutdown()

    assert exc.value.name == "sections"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert "sections" in str(exc.value)
    assert elapsed < 2


def test_partial_policy_reports_failures_by_name():
    def boom():
        raise RuntimeError("timeout")

    with ParallelAggregator(max_workers=2, policy=PartialResultsPolicy()) as agg:
        result = agg.aggregate([SubQuery("a", lambda: 1), SubQuery("b", boom), SubQuery("c", lambda: 3)])

    assert result.values == {"a": 1, "c": 3}
    assert result.failed == {"b": "timeout"}
    assert not result.complete


def test_duplicate_names_are_rejected():
    with ParallelAggregator(max_workers=2) as agg:
        with pytest.raises(ValidationError):
            agg.aggregate([SubQuery("a", lambda: 1), SubQuery("a", lambda: 2)])


def test_empty_fan_out_returns_empty_result():
    with ParallelAggregator(max_workers=2) as agg:
        assert agg.aggregate([]).values == {}


def test_cache_backed_sub_queries_share_work_across_aggregates(make_manager, fake_redis):
    manager = make_manager(fake_redis)
    calls = []

    def summary():
        calls.append(1)
        time.sleep(0.2)
        return {"total_records": 94}

    def cached(key, producer):
        return lambda: manager.get(key, producer).value

    parts = [SubQuery("summary", cached("summary:*/*/*:2026-01-01:2026-01-31", summary))]
    with ParallelAggregator(max_workers=8) as agg:
        with ThreadPoolExecutor(max_workers=4) as callers:
            results = list(callers.map(lambda _: agg.aggregate(parts), range(4)))

    assert len(calls) == 1
    assert all(r.values == {"summary": {"total_records": 94}} for r in results)
