from __future__ import annotations

import logging

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.attendance_reports.attendance_reports.cache.circuit_breaker import CircuitBreaker
from src.attendance_reports.attendance_reports.cache.shared_tier import SharedTier, build_redis_client
from src.attendance_reports.attendance_reports.core.enums import SharedTierState
from src.attendance_reports.attendance_reports.core.exceptions import SharedTierUnavailable
from tests.fakes import FakeRedis

SHARED_LOGGER = "src.attendance_reports.attendance_reports.cache.shared_tier"


def _tier(client, clock, *, threshold=2, attempts=1):
    return SharedTier(client, breaker=CircuitBreaker(threshold, 30, clock=clock), retry_attempts=attempts)


def test_values_are_namespaced_and_expire_with_ttl(fake_redis, clock):
    tier = _tier(fake_redis, clock)
    tier.set("summary:*/*/*:a:b", b"JSON:{}", ttl_seconds=3600)

    assert tier.get("summary:*/*/*:a:b") == b"JSON:{}"
    assert list(fake_redis.store) == ["attendance-reports:summary:*/*/*:a:b"]
    assert fake_redis.ttls["attendance-reports:summary:*/*/*:a:b"] == 3600
    assert tier.state is SharedTierState.CONNECTED


def test_outage_degrades_and_warns_once(fake_redis, clock, caplog):
    tier = _tier(fake_redis, clock, threshold=5)
    fake_redis.down = True
    caplog.set_level(logging.WARNING, logger=SHARED_LOGGER)

    for _ in range(3):
        with pytest.raises(SharedTierUnavailable):
            tier.get("k")

    assert tier.state is SharedTierState.DEGRADED
    warnings = [r for r in caplog.records if r.name == SHARED_LOGGER and r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Connection refused" in tier.last_error


def test_open_circuit_stops_calling_redis(fake_redis, clock):
    tier = _tier(fake_redis, clock, threshold=2)
    fake_redis.down = True
    for _ in range(2):
        with pytest.raises(SharedTierUnavailable):
            tier.get("k")
    calls = fake_redis.calls

    with pytest.raises(SharedTierUnavailable, match="circuit is open"):
        tier.get("k")

    assert fake_redis.calls == calls


def test_recovery_after_reset_timeout_logs_reconnect(fake_redis, clock, caplog):
    tier = _tier(fake_redis, clock, threshold=1)
    fake_redis.down = True
    with pytest.raises(SharedTierUnavailable):
        tier.get("k")

    fake_redis.down = False
    clock.advance(30)
    caplog.set_level(logging.INFO, logger=SHARED_LOGGER)

    assert tier.get("k") is None
    assert tier.state is SharedTierState.CONNECTED
    assert tier.last_error is None
    assert any("reconnected" in r.getMessage() for r in caplog.records)


class _FlakyRedis(FakeRedis):
    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def get(self, key):
        if self.failures:
            self.failures -= 1
            self.calls += 1
            raise RedisConnectionError("reset by peer")
        return super().get(key)


def test_transient_error_is_retried(clock):
    client = _FlakyRedis(failures=1)
    client.store["attendance-reports:k"] = b"JSON:1"
    tier = _tier(client, clock, attempts=2)

    assert tier.get("k") == b"JSON:1"
    assert tier.state is SharedTierState.CONNECTED
    assert tier.breaker.failure_count == 0


def test_delete_prefix_only_touches_matching_keys(fake_redis, clock):
    tier = _tier(fake_redis, clock)
    tier.set("division:1/*/*:a:b", b"x", 60)
    tier.set("division:66/*/*:a:b", b"x", 60)
    tier.set("summary:*/*/*:a:b", b"x", 60)
    fake_redis.store["someone-else:division:1"] = b"keep"

    assert tier.delete_prefix("division:") == 2
    assert tier.clear() == 1
    assert list(fake_redis.store) == ["someone-else:division:1"]


def test_delete_prefix_treats_star_in_keys_literally(fake_redis, clock):
    tier = _tier(fake_redis, clock)
    tier.set("division:*/*/*:a:b", b"x", 60)
    tier.set("division:1/*/*:a:b", b"x", 60)

    assert tier.delete_prefix("division:*/") == 1
    assert list(fake_redis.store) == ["attendance-reports:division:1/*/*:a:b"]


def test_disabled_tier_never_connects(clock):
    tier = _tier(None, clock)

    assert tier.state is SharedTierState.DISABLED
    assert not tier.enabled
    with pytest.raises(SharedTierUnavailable):
        tier.get("k")


def test_build_redis_client_respects_enabled_flag():
    assert build_redis_client({"enabled": False}) is None
    assert build_redis_client({"host": "cache.local", "port": 6380}) is not None
