"""
Test suite for BatchExecutor.

Tests batching, result ordering, bounded concurrency, per-batch timeouts,
retries with backoff and per-item failure markers.

System role: Verification of the generic batching primitive
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rag_pipeline.configs.performance import PerformanceSettings
from rag_pipeline.core.batch_executor import BatchExecutor, BatchFailure, split_batches
from rag_pipeline.core.exceptions import ErrorKind, ValidationError


async def _double(batch: list[int]) -> list[int]:
    return [item * 2 for item in batch]


class TestSplitBatches:
    """Test suite for split_batches."""

    def test_should_keep_order_and_remainder(self) -> None:
        """Test ordered batches with a short tail."""
        assert split_batches([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_should_reject_non_positive_batch_size(self) -> None:
        """Test batch_size < 1 is a validation error."""
        with pytest.raises(ValidationError):
            split_batches([1], 0)


class TestBatchExecutorRun:
    """Test suite for BatchExecutor.run."""

    @pytest.mark.asyncio
    async def test_run_should_return_one_result_per_item_in_order(self, no_sleep: AsyncMock) -> None:
        """Test results line up with input items across batches."""
        # Arrange
        executor = BatchExecutor(batch_size=3, max_concurrent=2, sleep=no_sleep)

        # Act
        results = await executor.run(list(range(10)), _double)

        # Assert
        assert results == [item * 2 for item in range(10)]
        assert executor.stats.batches_processed == 4
        assert executor.stats.items_processed == 10

    @pytest.mark.asyncio
    async def test_run_should_return_empty_for_no_items(self, no_sleep: AsyncMock) -> None:
        """Test empty input short-circuits."""
        executor = BatchExecutor(sleep=no_sleep)
        assert await executor.run([], _double) == []

    @pytest.mark.asyncio
    async def test_run_should_bound_concurrent_batches(self, no_sleep: AsyncMock) -> None:
        """Test no more than max_concurrent batches run at once."""
        # Arrange
        executor = BatchExecutor(batch_size=1, max_concurrent=2, sleep=no_sleep)
        in_flight = 0
        peak = 0

        async def _track(batch: list[int]) -> list[int]:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return batch

        # Act
        results = await executor.run(list(range(6)), _track)

        # Assert
        assert results == list(range(6))
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_run_should_retry_failed_batch_then_succeed(self, no_sleep: AsyncMock) -> None:
        """Test a flaky batch succeeds on a later attempt."""
        # Arrange
        executor = BatchExecutor(batch_size=2, max_retries=3, retry_delay_s=1.0, sleep=no_sleep)
        attempts = {"count": 0}

        async def _flaky(batch: list[int]) -> list[int]:
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise ConnectionError("transient")
            return batch

        # Act
        results = await executor.run([1, 2], _flaky)

        # Assert
        assert results == [1, 2]
        assert executor.stats.retries == 2
        assert [call.args[0] for call in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_run_should_mark_items_of_exhausted_batch(self, no_sleep: AsyncMock) -> None:
        """Test a batch that never succeeds yields one failure marker per item."""
        # Arrange
        executor = BatchExecutor(batch_size=2, max_retries=2, sleep=no_sleep)

        async def _fail_second(batch: list[int]) -> list[int]:
            if 3 in batch:
                raise ConnectionError("store down")
            return batch

        # Act
        results = await executor.run([1, 2, 3, 4, 5], _fail_second)

        # Assert
        assert results[:2] == [1, 2]
        assert results[4] == 5
        failures = results[2:4]
        assert all(isinstance(f, BatchFailure) for f in failures)
        assert [f.item for f in failures] == [3, 4]
        assert all(f.error_kind == ErrorKind.CONNECTIVITY for f in failures)
        assert all(f.batch_index == 1 for f in failures)
        assert executor.stats.errors == 1

    @pytest.mark.asyncio
    async def test_run_should_time_out_slow_batch(self, no_sleep: AsyncMock) -> None:
        """Test an attempt exceeding batch_timeout_s counts as a timeout failure."""
        # Arrange
        executor = BatchExecutor(batch_size=5, max_retries=1, batch_timeout_s=0.01, sleep=no_sleep)

        async def _slow(batch: list[int]) -> list[int]:
            await asyncio.sleep(1)
            return batch

        # Act
        results = await executor.run([1, 2], _slow)

        # Assert
        assert all(isinstance(r, BatchFailure) for r in results)
        assert results[0].error_kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_run_should_not_retry_result_length_mismatch(self, no_sleep: AsyncMock) -> None:
        """Test a wrong-length result is a validation failure without retries."""
        # Arrange
        executor = BatchExecutor(batch_size=3, max_retries=3, sleep=no_sleep)
        process = AsyncMock(return_value=[1])

        # Act
        results = await executor.run([1, 2, 3], process)

        # Assert
        assert process.await_count == 1
        assert all(r.error_kind == ErrorKind.VALIDATION for r in results)

    @pytest.mark.asyncio
    async def test_run_should_apply_per_run_overrides(self, no_sleep: AsyncMock) -> None:
        """Test batch_size override changes batch boundaries."""
        # Arrange
        executor = BatchExecutor(batch_size=10, sleep=no_sleep)
        seen: list[list[int]] = []

        async def _record(batch: list[int]) -> list[int]:
            seen.append(batch)
            return batch

        # Act
        await executor.run([1, 2, 3], _record, batch_size=1, max_concurrent=1)

        # Assert
        assert seen == [[1], [2], [3]]


class TestBatchExecutorConfig:
    """Test suite for executor construction."""

    def test_from_settings_should_convert_milliseconds(self) -> None:
        """Test millisecond settings become seconds."""
        # Arrange
        settings = PerformanceSettings(_env_file=None, batch_size=4, batch_timeout_ms=2500)

        # Act
        executor = BatchExecutor.from_settings(settings)

        # Assert
        assert executor.batch_size == 4
        assert executor.batch_timeout_s == 2.5

    def test_init_should_reject_zero_concurrency(self) -> None:
        """Test max_concurrent must be positive."""
        with pytest.raises(ValidationError):
            BatchExecutor(max_concurrent=0)

    def test_reset_stats_should_clear_counters(self) -> None:
        """Test reset returns fresh counters."""
        executor = BatchExecutor()
        executor.stats.errors = 4
        executor.reset_stats()
        assert executor.stats.as_dict()["errors"] == 0
