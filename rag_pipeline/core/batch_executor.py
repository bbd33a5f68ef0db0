"""
Bounded-concurrency batch executor.

Splits items into ordered batches, runs at most ``max_concurrent`` batches
at once, bounds every attempt with a hard timeout and retries failed
batches with exponential backoff. A batch that exhausts its retries yields
one BatchFailure marker per item, so callers always receive exactly one
result or marker per input item.

Dependencies: asyncio, tenacity (via core.retry)
System role: Generic batching primitive for embedding/indexing/search fan-out
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from rag_pipeline.configs.performance import PerformanceSettings
from rag_pipeline.core.exceptions import (
    ErrorKind,
    OperationTimeoutError,
    ValidationError,
    classify_error,
)
from rag_pipeline.core.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProcessFn = Callable[[list[T]], Awaitable[Sequence[R]]]


@dataclass(frozen=True)
class BatchFailure(Generic[T]):
    """Per-item marker for an item whose batch exhausted its retries."""

    item: T
    error: str
    error_kind: ErrorKind
    batch_index: int


@dataclass
class BatchStats:
    """Running counters for observability."""

    batches_processed: int = 0
    items_processed: int = 0
    errors: int = 0
    retries: int = 0
    latency_window: int = 100
    _latencies_ms: deque = field(default_factory=deque, repr=False)

    def record_latency(self, latency_ms: float) -> None:
        self._latencies_ms.append(latency_ms)
        while len(self._latencies_ms) > self.latency_window:
            self._latencies_ms.popleft()

    @property
    def average_latency_ms(self) -> float:
        if not self._latencies_ms:
            return 0.0
        return sum(self._latencies_ms) / len(self._latencies_ms)

    def as_dict(self) -> dict[str, Any]:
        return {
            "batches_processed": self.batches_processed,
            "items_processed": self.items_processed,
            "errors": self.errors,
            "retries": self.retries,
            "average_latency_ms": round(self.average_latency_ms, 2),
        }


def split_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split items into ordered batches of at most ``batch_size``."""
    if batch_size < 1:
        raise ValidationError("batch_size must be >= 1", field="batch_size")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class BatchExecutor:
    """
    Run a coroutine over batches with bounded concurrency, timeouts and retries.

    ``process_fn`` receives one batch and must return one result per item,
    in the same order. A length mismatch is a ValidationError and is not
    retried.
    """

    def __init__(
        self,
        batch_size: int = 10,
        max_concurrent: int = 10,
        max_retries: int = 3,
        retry_delay_s: float = 1.0,
        batch_timeout_s: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize executor limits.

        Args:
            batch_size: Items per batch
            max_concurrent: Batches in flight at once
            max_retries: Attempts per batch (first attempt included)
            retry_delay_s: Backoff base; retry n waits base * 2^n
            batch_timeout_s: Hard timeout per attempt
            sleep: Sleep coroutine used for backoff (injectable for tests)
        """
        if max_concurrent < 1:
            raise ValidationError("max_concurrent must be >= 1", field="max_concurrent")
        if max_retries < 1:
            raise ValidationError("max_retries must be >= 1", field="max_retries")
        self.batch_size = batch_size
        self.max_concurrent = max_concurrent
        self.batch_timeout_s = batch_timeout_s
        self._policy = RetryPolicy(
            max_attempts=max_retries,
            base_delay_s=retry_delay_s,
            give_up_on=(ValidationError,),
        )
        self._sleep = sleep
        self._stats = BatchStats()

    @classmethod
    def from_settings(cls, settings: PerformanceSettings) -> "BatchExecutor":
        """Build an executor from performance settings."""
        return cls(
            batch_size=settings.batch_size,
            max_concurrent=settings.max_concurrent,
            max_retries=settings.max_retries,
            retry_delay_s=settings.retry_delay_s,
            batch_timeout_s=settings.batch_timeout_s,
        )

    @property
    def stats(self) -> BatchStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = BatchStats()

    async def run(
        self,
        items: Sequence[T],
        process_fn: ProcessFn,
        batch_size: int | None = None,
        max_concurrent: int | None = None,
    ) -> list[R | BatchFailure[T]]:
        """
        Process all items in batches.

        Args:
            items: Items to process
            process_fn: Coroutine processing one batch
            batch_size: Override for this run
            max_concurrent: Override for this run

        Returns:
            list: One result or BatchFailure per input item, in input order
        """
        if not items:
            return []

        batches = split_batches(items, batch_size or self.batch_size)
        semaphore = asyncio.Semaphore(max_concurrent or self.max_concurrent)

        logger.info(
            f"{__name__}:run - {len(items)} items in {len(batches)} batches "
            f"(max_concurrent={max_concurrent or self.max_concurrent})"
        )

        async def _guarded(index: int, batch: list[T]) -> list[R | BatchFailure[T]]:
            async with semaphore:
                return await self._run_batch(index, batch, process_fn)

        per_batch = await asyncio.gather(
            *(_guarded(index, batch) for index, batch in enumerate(batches))
        )

        results: list[R | BatchFailure[T]] = []
        for batch_results in per_batch:
            results.extend(batch_results)

        failed = sum(1 for r in results if isinstance(r, BatchFailure))
        if failed:
            logger.warning(
                f"{__name__}:run - Partial failure: {failed}/{len(results)} items failed",
                extra={"stats": self._stats.as_dict()},
            )
        return results

    async def _run_batch(
        self,
        index: int,
        batch: list[T],
        process_fn: ProcessFn,
    ) -> list[R | BatchFailure[T]]:
        """Run one batch through the retry policy; never raises."""

        def _on_retry(attempt_number: int, exc: BaseException, delay: float) -> None:
            self._stats.retries += 1
            logger.warning(
                f"{__name__}:_run_batch - Batch {index} attempt {attempt_number} failed "
                f"({type(exc).__name__}: {exc}); retrying in {delay:.2f}s"
            )

        try:
            results = await call_with_retry(
                self._attempt,
                index,
                batch,
                process_fn,
                policy=self._policy,
                on_retry=_on_retry,
                sleep=self._sleep,
            )
        except Exception as e:
            self._stats.errors += 1
            kind = classify_error(e)
            logger.error(
                f"{__name__}:_run_batch - Batch {index} gave up after retries: "
                f"{type(e).__name__}: {e}"
            )
            return [
                BatchFailure(item=item, error=str(e), error_kind=kind, batch_index=index)
                for item in batch
            ]

        self._stats.batches_processed += 1
        self._stats.items_processed += len(batch)
        return list(results)

    async def _attempt(
        self,
        index: int,
        batch: list[T],
        process_fn: ProcessFn,
    ) -> Sequence[R]:
        """One timed attempt; validates the result length."""
        started = time.perf_counter()
        try:
            results = await asyncio.wait_for(process_fn(batch), timeout=self.batch_timeout_s)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"Batch {index} exceeded {self.batch_timeout_s}s",
                operation="batch",
                timeout_s=self.batch_timeout_s,
            ) from e

        if results is None or len(results) != len(batch):
            raise ValidationError(
                f"Batch {index} returned {0 if results is None else len(results)} results "
                f"for {len(batch)} items",
                field="results",
            )

        self._stats.record_latency((time.perf_counter() - started) * 1000)
        return results
