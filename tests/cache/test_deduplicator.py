from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import pytest

from src.attendance_reports.attendance_reports.cache.deduplicator import RequestDeduplicator


def test_concurrent_callers_share_one_execution():
    dedup = RequestDeduplicator(grace_seconds=0.1)
    calls = []
    gate = threading.Barrier(50)

    def producer():
        calls.append(1)
        time.sleep(0.2)
        return {"rows": [1, 2, 3]}

    def caller(_):
        gate.wait()
        return dedup.run_once("division:*/*/*:2026-01-01:2026-01-31", producer)

    with ThreadPoolExecutor(max_workers=50) as pool:
        results = list(pool.map(caller, range(50)))

    assert len(calls) == 1
    assert all(r is results[0] for r in results)
    stats = dedup.stats()
    assert stats["executions"] == 1
    assert stats["collapsed"] == 49
    assert stats["in_flight"] == 0


def test_failure_reaches_every_waiter_and_is_not_remembered():
    dedup = RequestDeduplicator(grace_seconds=10)
    started = threading.Event()
    release = threading.Event()

    def failing():
        started.set()
        release.wait(timeout=5)
        raise ValueError("report query timed out")

    errors = []

    def caller():
        try:
            dedup.run_once("k", failing)
        except ValueError as e:
            errors.append(e)

    owner = threading.Thread(target=caller)
    owner.start()
    assert started.wait(timeout=5)
    waiters = [threading.Thread(target=caller) for _ in range(5)]
    for t in waiters:
        t.start()
    # Let the waiters attach to the in-flight ticket before releasing the producer.
    deadline = time.monotonic() + 5
    while dedup.stats()["collapsed"] < 5 and time.monotonic() < deadline:
        time.sleep(0.01)
    release.set()
    for t in [owner, *waiters]:
        t.join(timeout=5)

    assert len(errors) == 6
    assert all(str(e) == "report query timed out" for e in errors)

    # The failed key is released immediately despite the long grace window.
    assert dedup.run_once("k", lambda: "fresh") == "fresh"
    assert dedup.stats()["executions"] == 2


def test_result_is_reused_within_grace_window(clock):
    dedup = RequestDeduplicator(grace_seconds=0.1, clock=clock)
    assert dedup.run_once("k", lambda: 1) == 1

    clock.advance(0.05)
    assert dedup.run_once("k", lambda: 2) == 1

    clock.advance(0.1)
    assert dedup.run_once("k", lambda: 3) == 3


def test_different_keys_do_not_collapse():
    dedup = RequestDeduplicator(grace_seconds=0.1)
    assert dedup.run_once("a", lambda: "A") == "A"
    assert dedup.run_once("b", lambda: "B") == "B"
    assert dedup.stats()["executions"] == 2


def test_waiter_timeout_abandons_only_that_caller():
    dedup = RequestDeduplicator(grace_seconds=0.1)
    started = threading.Event()
    release = threading.Event()
    owner_result = []

    def slow():
        started.set()
        release.wait(timeout=5)
        return "done"

    owner = threading.Thread(target=lambda: owner_result.append(dedup.run_once("k", slow)))
    owner.start()
    assert started.wait(timeout=5)

    with pytest.raises(FutureTimeout):
        dedup.run_once("k", slow, timeout=0.05)

    release.set()
    owner.join(timeout=5)
    assert owner_result == ["done"]


def test_forget_drops_settled_results(clock):
    dedup = RequestDeduplicator(grace_seconds=1, clock=clock)
    dedup.run_once("k", lambda: 1)
    dedup.forget("k")
    assert dedup.run_once("k", lambda: 2) == 2


def test_forget_detaches_a_running_producer(clock):
    dedup = RequestDeduplicator(grace_seconds=10, clock=clock)
    started = threading.Event()
    release = threading.Event()
    owner_result = []

    def before_rebuild():
        started.set()
        release.wait(timeout=5)
        return "before"

    owner = threading.Thread(target=lambda: owner_result.append(dedup.run_once("k", before_rebuild)))
    owner.start()
    assert started.wait(timeout=5)

    dedup.forget(prefix="k")
    assert dedup.run_once("k", lambda: "after") == "after"

    release.set()
    owner.join(timeout=5)
    assert owner_result == ["before"]
    # Still inside the grace window, yet the detached run is not handed out.
    assert dedup.run_once("k", lambda: "unused") == "after"
