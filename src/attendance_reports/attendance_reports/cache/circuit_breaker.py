from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Circuit breaker for the shared cache tier.
    Opens after N consecutive failures; after ``reset_seconds`` one trial call is let through.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_seconds: float = 30,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = int(failure_threshold)
        self.reset_seconds = float(reset_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def record_success(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold:
                if self.opened_at is None:
                    logger.debug("Circuit breaker opened after %d consecutive failures", self.failure_count)
                self.opened_at = self._clock()

    def can_execute(self) -> bool:
        with self._lock:
            if self.opened_at is None:
                return True
            if self._clock() - self.opened_at >= self.reset_seconds:
                # Half-open: allow a trial call; a failure re-opens with a fresh timestamp.
                self.opened_at = None
                self.failure_count = self.failure_threshold - 1
                return True
            return False
