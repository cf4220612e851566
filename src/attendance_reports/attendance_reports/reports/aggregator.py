from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Mapping, Optional, Protocol, Sequence

from ..core.exceptions import AggregateSubQueryFailure, ValidationError
from .model import AggregateResult, SubQuery

logger = logging.getLogger(__name__)


class AggregationPolicy(Protocol):
    """Decides what a fan-out returns once its sub-queries are submitted."""

    def collect(self, futures: Mapping[str, Future]) -> AggregateResult:
        raise NotImplementedError


class FailFastPolicy:
    """First failure wins: pending sub-queries are cancelled and the aggregate raises."""

    def collect(self, futures: Mapping[str, Future]) -> AggregateResult:
        names = {f: n for n, f in futures.items()}
        for fut in as_completed(list(futures.values())):
            exc = fut.exception()
            if exc is None:
                continue
            for other in futures.values():
                other.cancel()
            logger.warning("Sub-query %s failed; abandoning aggregate", names[fut])
            raise AggregateSubQueryFailure(names[fut], exc) from exc
        return AggregateResult(values={n: f.result() for n, f in futures.items()})


class PartialResultsPolicy:
    """Waits for everything; successes are returned and failures reported by name."""

    def collect(self, futures: Mapping[str, Future]) -> AggregateResult:
        result = AggregateResult()
        for name, fut in futures.items():
            exc = fut.exception()
            if exc is None:
                result.values[name] = fut.result()
            else:
                logger.warning("Sub-query %s failed: %s", name, exc)
                result.failed[name] = str(exc)
        return result


class ParallelAggregator:
    """Runs independent sub-queries on a bounded thread pool.

    Output keys follow the order the sub-queries were given, not completion order.
    """

    def __init__(
        self,
        max_workers: int = 8,
        *,
        policy: Optional[AggregationPolicy] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._policy = policy or FailFastPolicy()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-agg")

    @property
    def policy(self) -> AggregationPolicy:
        return self._policy

    def aggregate(self, subqueries: Sequence[SubQuery]) -> AggregateResult:
        """Run every sub-query concurrently and join them under the configured policy.

        Each ``SubQuery.run`` is expected to be cache-backed, i.e. to go through
        ``CacheTierManager.get`` (``DashboardService`` wires report parts that way), so concurrent
        aggregates asking for the same part share one computation. Results keep the order of
        ``subqueries``, not completion order.
        """
        seen: set[str] = set()
        for q in subqueries:
            if q.name in seen:
                raise ValidationError(f"duplicate sub-query name: {q.name}")
            seen.add(q.name)
        if not subqueries:
            return AggregateResult()

        futures = {q.name: self._executor.submit(q.run) for q in subqueries}
        return self._policy.collect(futures)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "ParallelAggregator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
