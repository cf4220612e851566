from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from .model import CacheEntry

logger = logging.getLogger(__name__)


class LocalTier:
    """
    Process-local (L0) cache.

    Thread-safe LRU with per-entry TTL. Expired entries are dropped lazily on read,
    or in bulk through cleanup_expired().
    """

    def __init__(
        self,
        default_ttl_seconds: float,
        max_entries: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._default_ttl = float(default_ttl_seconds)
        self._max_entries = int(max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.evictions = 0
        self.expirations = 0

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.expirations += 1
                return None
            self._entries.move_to_end(key)
            return entry

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> CacheEntry:
        ttl = self._default_ttl if ttl_seconds is None else float(ttl_seconds)
        entry = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = entry
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug("L0 evicted %s", evicted)
        return entry

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
            return n

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            doomed = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in doomed:
                del self._entries[k]
            self.expirations += len(doomed)
        if doomed:
            logger.debug("L0 cleanup removed %d expired entries", len(doomed))
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
