from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Ticket:
    future: Future = field(default_factory=Future)
    settled_at: Optional[float] = None


class RequestDeduplicator:
    """
    Collapses concurrent calls for the same key onto a single producer run.

    The first caller runs the producer; everyone arriving while it runs, or within the grace
    window after it succeeded, receives the same value. A failure is delivered to every waiter
    and the key is released at once, so the next caller retries.
    """

    def __init__(self, grace_seconds: float = 0.1, *, clock: Callable[[], float] = time.monotonic):
        self._grace = float(grace_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._tickets: dict[str, _Ticket] = {}
        self.executions = 0
        self.collapsed = 0

    def _purge(self, now: float) -> None:
        stale = [
            k for k, t in self._tickets.items() if t.settled_at is not None and now - t.settled_at >= self._grace
        ]
        for k in stale:
            del self._tickets[k]

    def run_once(self, key: str, producer: Callable[[], T], *, timeout: Optional[float] = None) -> T:
        """``timeout`` bounds only this caller's wait; the producer keeps running for the others."""
        with self._lock:
            self._purge(self._clock())
            ticket = self._tickets.get(key)
            owner = ticket is None
            if owner:
                ticket = _Ticket()
                self._tickets[key] = ticket
                self.executions += 1
            else:
                self.collapsed += 1

        if not owner:
            return ticket.future.result(timeout=timeout)

        try:
            value = producer()
        except BaseException as e:
            with self._lock:
                if self._tickets.get(key) is ticket:
                    del self._tickets[key]
            ticket.future.set_exception(e)
            raise

        with self._lock:
            # A ticket detached by forget() must not serve its result to later callers.
            if self._tickets.get(key) is ticket:
                ticket.settled_at = self._clock()
        ticket.future.set_result(value)
        return value

    def in_flight(self) -> int:
        with self._lock:
            return sum(1 for t in self._tickets.values() if t.settled_at is None)

    def forget(self, key: Optional[str] = None, *, prefix: Optional[str] = None) -> None:
        """Detach tickets so the next call recomputes.

        A producer that is still running finishes for the callers already waiting on it, but
        callers arriving after this start a fresh run.
        """
        with self._lock:
            if key is not None:
                self._tickets.pop(key, None)
            elif prefix is not None:
                for k in [k for k in self._tickets if k.startswith(prefix)]:
                    del self._tickets[k]
            else:
                self._tickets.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "executions": self.executions,
                "collapsed": self.collapsed,
                "in_flight": sum(1 for t in self._tickets.values() if t.settled_at is None),
                "grace_seconds": self._grace,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self.executions = 0
            self.collapsed = 0
