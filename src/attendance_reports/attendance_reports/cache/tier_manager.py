from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Optional

from ..core.enums import CacheTier, SharedTierState
from ..core.exceptions import SharedTierUnavailable
from .codec import CodecError, PayloadCodec, deserialize
from .deduplicator import RequestDeduplicator
from .local_tier import LocalTier
from .model import CacheLookup, CacheSettings, CacheStats
from .shared_tier import SharedTier

logger = logging.getLogger(__name__)

_MISSING = object()

# Invalidations remembered for producers that were already running when they happened.
INVALIDATION_HISTORY = 1024


class CacheTierManager:
    """
    Three-tier read-through cache: L0 (this process), L1 (shared Redis), L2 (the producer).

    Producer output is normalized through the JSON codec before it is stored, so a caller sees
    the same shape whichever tier answered. The L1 tier is optional: while it is unreachable
    every request falls back to L0 and L2 and reads never fail because of it.
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        *,
        local: Optional[LocalTier] = None,
        shared: Optional[SharedTier] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
        codec: Optional[PayloadCodec] = None,
    ):
        self._settings = settings or CacheSettings()
        self._local = local or LocalTier(self._settings.l0_ttl_seconds, self._settings.l0_max_entries)
        self._shared = shared or SharedTier(None)
        self._dedup = deduplicator or RequestDeduplicator(self._settings.dedup_grace_seconds)
        self._codec = codec or PayloadCodec(self._settings.compression_threshold_bytes)
        self._stats = CacheStats()
        self._stats_lock = threading.Lock()
        self._generation = 0
        self._invalidations: deque = deque(maxlen=INVALIDATION_HISTORY)

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def local(self) -> LocalTier:
        return self._local

    @property
    def shared(self) -> SharedTier:
        return self._shared

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._dedup

    def _bump(self, **deltas) -> None:
        with self._stats_lock:
            for name, delta in deltas.items():
                setattr(self._stats, name, getattr(self._stats, name) + delta)

    # ----------------------------
    # Read path
    # ----------------------------
    def get(
        self,
        key: str,
        producer: Callable[[], Any],
        *,
        l0_ttl: Optional[float] = None,
        l1_ttl: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CacheLookup:
        entry = self._local.get(key)
        if entry is not None:
            self._bump(l0_hits=1)
            return CacheLookup(entry.value, CacheTier.L0)
        self._bump(l0_misses=1)

        value = self._read_shared(key, l0_ttl)
        if value is not _MISSING:
            return CacheLookup(value, CacheTier.L1)

        self._bump(misses=1)
        value = self._dedup.run_once(key, lambda: self._produce(key, producer, l0_ttl, l1_ttl), timeout=timeout)
        return CacheLookup(value, CacheTier.L2)

    def _read_shared(self, key: str, l0_ttl: Optional[float]) -> Any:
        if not self._shared.enabled:
            return _MISSING
        try:
            data = self._shared.get(key)
        except SharedTierUnavailable:
            self._bump(l1_errors=1)
            return _MISSING
        if data is None:
            self._bump(l1_misses=1)
            return _MISSING
        try:
            decoded = self._codec.decode(data)
        except (CodecError, ValueError) as e:
            logger.warning("Discarding unreadable L1 entry %s: %s", key, e)
            self._bump(l1_misses=1)
            return _MISSING
        self._bump(l1_hits=1, decompression_ms=decoded.elapsed_ms)
        self._local.set(key, decoded.value, l0_ttl)
        return decoded.value

    def _produce(self, key: str, producer: Callable[[], Any], l0_ttl: Optional[float], l1_ttl: Optional[float]) -> Any:
        started = self._current_generation()
        try:
            raw_value = producer()
        except Exception:
            self._bump(producer_failures=1)
            raise
        self._bump(l2_computations=1)

        encoded = self._codec.encode(raw_value)
        value = deserialize(encoded.raw)
        if encoded.compressed:
            self._bump(compressed_writes=1, compression_ms=encoded.elapsed_ms)

        if self._invalidated_since(key, started):
            logger.debug("Not storing %s: invalidated while it was computed", key)
            self._bump(stale_discards=1)
            return value

        if self._shared.enabled:
            try:
                self._shared.set(key, encoded.data, self._settings.l1_ttl_seconds if l1_ttl is None else l1_ttl)
            except SharedTierUnavailable:
                self._bump(l1_errors=1)
        self._local.set(key, value, l0_ttl)

        # An invalidation may have landed between the check above and the writes.
        if self._invalidated_since(key, started):
            self._local.invalidate(key)
            self._shared_admin(lambda: self._shared.delete(key))
            self._bump(stale_discards=1)
        return value

    def _current_generation(self) -> int:
        with self._stats_lock:
            return self._generation

    def _record_invalidation(self, *, key: Optional[str] = None, prefix: Optional[str] = None) -> None:
        with self._stats_lock:
            self._generation += 1
            self._invalidations.append((self._generation, key, prefix))

    def _invalidated_since(self, key: str, generation: int) -> bool:
        with self._stats_lock:
            if self._generation == generation:
                return False
            history = list(self._invalidations)
        if not history or history[0][0] > generation + 1:
            # Part of the history was dropped; treat the value as stale.
            return True
        for gen, k, prefix in history:
            if gen <= generation:
                continue
            if k == key or (prefix is not None and key.startswith(prefix)):
                return True
        return False

    # ----------------------------
    # Admin
    # ----------------------------
    def invalidate(self, key: str) -> dict:
        self._record_invalidation(key=key)
        removed_l0 = self._local.invalidate(key)
        self._dedup.forget(key)
        removed_l1 = self._shared_admin(lambda: self._shared.delete(key))
        logger.info("Invalidated cache key %s", key)
        return {"key": key, "l0_removed": int(removed_l0), "l1_removed": removed_l1}

    def invalidate_prefix(self, prefix: str) -> dict:
        self._record_invalidation(prefix=prefix)
        removed_l0 = self._local.invalidate_prefix(prefix)
        self._dedup.forget(prefix=prefix)
        removed_l1 = self._shared_admin(lambda: self._shared.delete_prefix(prefix))
        logger.info("Invalidated cache prefix %r (L0=%d, L1=%s)", prefix, removed_l0, removed_l1)
        return {"prefix": prefix, "l0_removed": removed_l0, "l1_removed": removed_l1}

    def clear(self) -> dict:
        self._record_invalidation(prefix="")
        removed_l0 = self._local.clear()
        self._dedup.forget()
        removed_l1 = self._shared_admin(self._shared.clear)
        logger.info("Cleared report cache (L0=%d, L1=%s)", removed_l0, removed_l1)
        return {"l0_removed": removed_l0, "l1_removed": removed_l1}

    def _shared_admin(self, op: Callable[[], int]) -> Optional[int]:
        """None means L1 was not touched (disabled or unreachable)."""
        if not self._shared.enabled:
            return None
        try:
            return int(op())
        except SharedTierUnavailable:
            self._bump(l1_errors=1)
            return None

    def cleanup_expired(self) -> int:
        return self._local.cleanup_expired()

    def reset_stats(self) -> None:
        with self._stats_lock:
            self._stats = CacheStats()
        self._dedup.reset_stats()

    def get_stats(self) -> dict:
        with self._stats_lock:
            out = self._stats.as_dict()
        out.update(
            {
                "l0_entries": len(self._local),
                "l0_evictions": self._local.evictions,
                "l1_state": self._shared.state.value,
                "compression_threshold_bytes": self._codec.threshold_bytes,
                "dedup": self._dedup.stats(),
            }
        )
        return out

    def hit_rate(self) -> float:
        with self._stats_lock:
            return self._stats.hit_rate

    def health(self) -> dict:
        if self._shared.enabled:
            try:
                self._shared.ping()
            except SharedTierUnavailable as e:
                # State and last_error already reflect the failure.
                logger.debug("Health ping failed: %s", e)
        state = self._shared.state
        return {
            "status": "degraded" if state is SharedTierState.DEGRADED else "healthy",
            "l0": "active",
            "l1": state.value,
            "l1_circuit_open": self._shared.breaker.is_open,
            "l1_last_error": self._shared.last_error,
            "stats": self.get_stats(),
        }
