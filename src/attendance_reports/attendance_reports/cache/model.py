from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional

from ..common.validators import require_non_negative, require_positive
from ..core import constants
from ..core.enums import CacheTier
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class CacheSettings:
    l0_ttl_seconds: float = constants.DEFAULT_L0_TTL_SECONDS
    l1_ttl_seconds: float = constants.DEFAULT_L1_TTL_SECONDS
    compression_threshold_bytes: int = constants.DEFAULT_COMPRESSION_THRESHOLD_BYTES
    dedup_grace_seconds: float = constants.DEFAULT_DEDUP_GRACE_SECONDS
    l0_max_entries: int = constants.DEFAULT_L0_MAX_ENTRIES
    shared_failure_threshold: int = constants.DEFAULT_SHARED_FAILURE_THRESHOLD
    shared_reset_seconds: float = constants.DEFAULT_SHARED_RESET_SECONDS
    shared_retry_attempts: int = constants.DEFAULT_SHARED_RETRY_ATTEMPTS
    aggregator_max_workers: int = constants.DEFAULT_AGGREGATOR_MAX_WORKERS

    def __post_init__(self):
        require_positive(self.l0_ttl_seconds, "l0_ttl_seconds")
        require_positive(self.l1_ttl_seconds, "l1_ttl_seconds")
        require_positive(self.compression_threshold_bytes, "compression_threshold_bytes")
        require_non_negative(self.dedup_grace_seconds, "dedup_grace_seconds")
        require_positive(self.l0_max_entries, "l0_max_entries")
        require_positive(self.shared_failure_threshold, "shared_failure_threshold")
        require_non_negative(self.shared_reset_seconds, "shared_reset_seconds")
        require_positive(self.shared_retry_attempts, "shared_retry_attempts")
        require_positive(self.aggregator_max_workers, "aggregator_max_workers")

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "CacheSettings":
        values = values or {}
        kwargs: dict[str, Any] = {}
        for name, f in cls.__dataclass_fields__.items():
            raw = values.get(name)
            if raw is None or raw == "":
                continue
            # Annotations are strings here (postponed evaluation).
            caster = int if f.type in ("int", int) else float
            try:
                kwargs[name] = caster(raw)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"{name} must be a number, got {raw!r}") from e
        return cls(**kwargs)


@dataclass(frozen=True)
class CacheEntry:
    """An L0 entry. L0 payloads are never compressed."""

    key: str
    value: Any
    expires_at: float
    tier: CacheTier = CacheTier.L0
    compressed: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheLookup(NamedTuple):
    value: Any
    tier: CacheTier


@dataclass
class CacheStats:
    l0_hits: int = 0
    l0_misses: int = 0
    l1_hits: int = 0
    l1_misses: int = 0
    l1_errors: int = 0
    # Requests that fell through every cache tier, collapsed waiters included.
    misses: int = 0
    l2_computations: int = 0
    producer_failures: int = 0
    # Computed values not stored because the key was invalidated meanwhile.
    stale_discards: int = 0
    compressed_writes: int = 0
    compression_ms: float = 0.0
    decompression_ms: float = 0.0

    @property
    def hits(self) -> int:
        return self.l0_hits + self.l1_hits

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 2)

    def as_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_pct": self.hit_rate,
            "l0_hits": self.l0_hits,
            "l0_misses": self.l0_misses,
            "l1_hits": self.l1_hits,
            "l1_misses": self.l1_misses,
            "l1_errors": self.l1_errors,
            "l2_computations": self.l2_computations,
            "producer_failures": self.producer_failures,
            "stale_discards": self.stale_discards,
            "compressed_writes": self.compressed_writes,
            "compression_ms": round(self.compression_ms, 3),
            "decompression_ms": round(self.decompression_ms, 3),
        }
