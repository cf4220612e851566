from __future__ import annotations

import logging
import re
import threading
from typing import Any, Callable, Mapping, Optional, TypeVar

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.enums import SharedTierState
from ..core.exceptions import SharedTierUnavailable
from .circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NAMESPACE = "attendance-reports:"

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(text: str) -> str:
    """Escape SCAN MATCH metacharacters; cache keys use ``*`` for absent filter parts."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def build_redis_client(redis_config: Optional[Mapping[str, Any]]) -> Optional[redis.Redis]:
    """Returns None when the shared tier is switched off. Construction does not connect."""
    cfg = dict(redis_config or {})
    if not cfg.get("enabled", True):
        return None
    if cfg.get("url"):
        return redis.Redis.from_url(
            cfg["url"],
            socket_timeout=cfg.get("socket_timeout", 1.0),
            socket_connect_timeout=cfg.get("connect_timeout", 1.0),
        )
    return redis.Redis(
        host=cfg.get("host", "localhost"),
        port=int(cfg.get("port", 6379)),
        db=int(cfg.get("db", 0)),
        password=cfg.get("password") or None,
        socket_timeout=cfg.get("socket_timeout", 1.0),
        socket_connect_timeout=cfg.get("connect_timeout", 1.0),
    )


class SharedTier:
    """
    L1 cache shared across processes, backed by Redis.

    Every call goes through a circuit breaker and a short tenacity retry on transient
    connection errors. Any failure surfaces as SharedTierUnavailable and the tier flips to
    DEGRADED, which is logged once; the next successful call logs the recovery.
    """

    def __init__(
        self,
        client: Optional[redis.Redis],
        *,
        breaker: Optional[CircuitBreaker] = None,
        retry_attempts: int = 2,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        self._client = client
        self._breaker = breaker or CircuitBreaker()
        self._namespace = namespace
        self._retrying = Retrying(
            stop=stop_after_attempt(max(1, int(retry_attempts))),
            wait=wait_exponential(multiplier=0.05, max=0.5),
            retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
            reraise=True,
        )
        self._state_lock = threading.Lock()
        self._state = SharedTierState.DISABLED if client is None else SharedTierState.CONNECTED
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SharedTierState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def _mark_degraded(self, error: Exception) -> None:
        with self._state_lock:
            self.last_error = str(error)
            if self._state is SharedTierState.DEGRADED:
                return
            self._state = SharedTierState.DEGRADED
        logger.warning("Shared cache tier unavailable, serving from local cache and producers: %s", error)

    def _mark_connected(self) -> None:
        with self._state_lock:
            if self._state is not SharedTierState.DEGRADED:
                return
            self._state = SharedTierState.CONNECTED
            self.last_error = None
        logger.info("Shared cache tier reconnected")

    def _call(self, op: Callable[[], T]) -> T:
        if self._client is None:
            raise SharedTierUnavailable("shared cache tier is disabled")
        if not self._breaker.can_execute():
            raise SharedTierUnavailable("shared cache tier circuit is open")
        try:
            result = self._retrying(op)
        except RedisError as e:
            self._breaker.record_failure()
            self._mark_degraded(e)
            raise SharedTierUnavailable(str(e)) from e
        self._breaker.record_success()
        self._mark_connected()
        return result

    def ping(self) -> bool:
        return bool(self._call(lambda: self._client.ping()))

    def get(self, key: str) -> Optional[bytes]:
        return self._call(lambda: self._client.get(self._key(key)))

    def set(self, key: str, data: bytes, ttl_seconds: float) -> None:
        ttl = max(1, int(ttl_seconds))
        self._call(lambda: self._client.set(self._key(key), data, ex=ttl))

    def delete(self, key: str) -> int:
        return int(self._call(lambda: self._client.delete(self._key(key))) or 0)

    def delete_prefix(self, prefix: str = "") -> int:
        pattern = f"{escape_glob(self._key(prefix))}*"

        def _op() -> int:
            removed = 0
            batch: list = []
            for k in self._client.scan_iter(match=pattern, count=500):
                batch.append(k)
                if len(batch) >= 500:
                    removed += int(self._client.delete(*batch) or 0)
                    batch = []
            if batch:
                removed += int(self._client.delete(*batch) or 0)
            return removed

        return self._call(_op)

    def clear(self) -> int:
        return self.delete_prefix("")
