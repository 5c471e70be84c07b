# tests/test_validation_processor.py

"""Tests for the background validation processor."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from conftest import ManualClock
from padelrank.config import ValidationConfig
from padelrank.services.validation_processor import BackgroundValidationProcessor
from padelrank.services.validation_service import BatchResult


class GatedClock(ManualClock):
    """Sleeps of ``gate`` seconds or more block until ``tick()``."""

    def __init__(self, gate: float) -> None:
        super().__init__()
        self.gate = gate
        self._ticks = asyncio.Semaphore(0)

    def tick(self) -> None:
        self._ticks.release()

    async def sleep(self, seconds: float) -> None:
        if seconds < self.gate:
            await super().sleep(seconds)
            return
        self.sleeps.append(seconds)
        await self._ticks.acquire()
        self.current += timedelta(seconds=seconds)


async def settle() -> None:
    """Lets background tasks run until they block."""
    for _ in range(20):
        await asyncio.sleep(0)


def clean(n: int = 1) -> BatchResult:
    return BatchResult(processed=n, succeeded=n, failed=0)


def failing(n: int = 1) -> BatchResult:
    return BatchResult(
        processed=n,
        succeeded=0,
        failed=n,
        errors=[f"Match {i}: boom" for i in range(n)],
    )


def make_service(*results) -> AsyncMock:
    service = AsyncMock()
    service.process_expired_validations.side_effect = list(results)
    return service


# =============================================================================
# Single runs
# =============================================================================


@pytest.mark.asyncio
async def test_clean_run_updates_stats(clock):
    service = make_service(clean(3))
    processor = BackgroundValidationProcessor(service, clock=clock)

    assert await processor.process_now() is True

    service.process_expired_validations.assert_awaited_once_with(50)
    assert processor.total_processed == 3
    assert processor.total_succeeded == 3
    assert processor.total_failed == 0
    assert processor.last_processed_at == clock.now()
    assert processor.last_success_at == clock.now()
    assert processor.consecutive_failures == 0
    assert processor.success_rate == 100
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_empty_batch_resets_failures(clock):
    processor = BackgroundValidationProcessor(make_service(BatchResult()), clock=clock)
    processor.consecutive_failures = 2

    assert await processor.process_now() is True

    assert processor.consecutive_failures == 0
    assert processor.last_success_at is None
    assert processor.success_rate == 0


@pytest.mark.asyncio
async def test_partial_failure_is_retried_after_backoff(clock):
    partial = BatchResult(processed=2, succeeded=1, failed=1, errors=["Match 7: boom"])
    service = make_service(partial, clean(1))
    processor = BackgroundValidationProcessor(service, clock=clock)

    assert await processor.process_now() is True

    assert service.process_expired_validations.await_count == 2
    assert clock.sleeps == [1.0]
    assert processor.total_processed == 3
    assert processor.total_succeeded == 2
    assert processor.total_failed == 1
    assert processor.consecutive_failures == 0
    assert processor.errors[0].endswith("Match 7: boom")


@pytest.mark.asyncio
async def test_exhausted_retries_count_one_failed_run(clock):
    service = make_service(*[failing()] * 4)
    processor = BackgroundValidationProcessor(service, clock=clock)

    assert await processor.process_now() is False

    # One initial attempt plus three retries, backing off 1s, 2s, 4s.
    assert service.process_expired_validations.await_count == 4
    assert clock.sleeps == [1.0, 2.0, 4.0]
    assert processor.consecutive_failures == 1
    assert processor.total_failed == 4
    assert len(processor.errors) == 4


@pytest.mark.asyncio
async def test_raised_batches_are_retried_and_logged(clock):
    service = AsyncMock()
    service.process_expired_validations.side_effect = RuntimeError("db down")
    processor = BackgroundValidationProcessor(service, clock=clock)

    assert await processor.process_now() is False

    assert service.process_expired_validations.await_count == 4
    assert clock.sleeps == [1.0, 2.0, 4.0]
    assert processor.consecutive_failures == 1
    assert processor.total_processed == 0
    assert processor.errors[0] == f"{clock.now().isoformat()}: Critical processing error: db down"


@pytest.mark.asyncio
async def test_success_after_exception_resets_failures(clock):
    service = make_service(RuntimeError("flaky"), clean(2))
    processor = BackgroundValidationProcessor(service, clock=clock)
    processor.consecutive_failures = 3

    assert await processor.process_now() is True

    assert processor.consecutive_failures == 0
    assert processor.total_succeeded == 2


@pytest.mark.asyncio
async def test_partial_success_resets_failures_even_without_clean_attempt(clock):
    mixed = BatchResult(processed=2, succeeded=1, failed=1, errors=["Match 1: boom"])
    config = ValidationConfig(max_retry_attempts=0)
    processor = BackgroundValidationProcessor(make_service(mixed), config, clock)
    processor.consecutive_failures = 1

    assert await processor.process_now() is False

    assert processor.consecutive_failures == 0


@pytest.mark.asyncio
async def test_error_log_keeps_most_recent_first_and_is_bounded(clock):
    config = ValidationConfig(max_retry_attempts=0)
    processor = BackgroundValidationProcessor(make_service(failing(25)), config, clock)

    await processor.process_now()

    assert len(processor.errors) == 20
    assert processor.errors[0] == f"{clock.now().isoformat()}: Match 24: boom"
    assert processor.errors[-1].endswith("Match 5: boom")


# =============================================================================
# Suspension
# =============================================================================


@pytest.mark.asyncio
async def test_processor_suspends_after_consecutive_failures(clock):
    config = ValidationConfig(max_retry_attempts=0, max_consecutive_failures=2)
    service = make_service(failing(), failing(), clean())
    processor = BackgroundValidationProcessor(service, config, clock)

    await processor.process_now()
    assert processor.is_healthy
    await processor.process_now()

    assert processor.consecutive_failures == 2
    assert not processor.is_healthy
    assert not processor.is_active

    # Suspended: no further batches until resumed
    assert await processor.process_now() is False
    assert service.process_expired_validations.await_count == 2


@pytest.mark.asyncio
async def test_resume_clears_suspension_and_restarts():
    clock = GatedClock(gate=300)
    config = ValidationConfig(max_retry_attempts=0, max_consecutive_failures=1)
    service = make_service(failing(), clean())
    processor = BackgroundValidationProcessor(service, config, clock)

    await processor.process_now()
    assert not processor.is_healthy
    processor.start()
    assert not processor.is_active

    await processor.resume()
    await settle()

    assert processor.is_active
    assert processor.is_healthy
    assert processor.consecutive_failures == 0
    assert service.process_expired_validations.await_count == 2

    await processor.stop()


@pytest.mark.asyncio
async def test_loop_stops_itself_when_suspended():
    clock = GatedClock(gate=300)
    config = ValidationConfig(max_retry_attempts=0, max_consecutive_failures=1)
    service = make_service(failing(), clean())
    processor = BackgroundValidationProcessor(service, config, clock)

    processor.start()
    await settle()
    clock.tick()
    await settle()

    assert not processor.is_active
    assert clock.sleeps == []
    assert service.process_expired_validations.await_count == 1


# =============================================================================
# Scheduling and concurrency
# =============================================================================


@pytest.mark.asyncio
async def test_start_runs_immediately_then_on_interval():
    clock = GatedClock(gate=300)
    service = make_service(clean(), clean(), clean())
    processor = BackgroundValidationProcessor(service, clock=clock)

    processor.start()
    await settle()

    assert processor.is_active
    assert service.process_expired_validations.await_count == 1
    assert clock.sleeps == [300]
    assert processor.next_processing_estimate == processor.last_processed_at + timedelta(
        seconds=300
    )

    clock.tick()
    await settle()

    assert service.process_expired_validations.await_count == 2

    await processor.stop()

    assert not processor.is_active
    assert service.process_expired_validations.await_count == 2


@pytest.mark.asyncio
async def test_start_is_idempotent():
    clock = GatedClock(gate=300)
    service = make_service(clean(), clean())
    processor = BackgroundValidationProcessor(service, clock=clock)

    processor.start()
    processor.start()
    await settle()

    assert service.process_expired_validations.await_count == 1
    await processor.stop()


@pytest.mark.asyncio
async def test_manual_trigger_during_run_is_ignored(clock):
    release = asyncio.Event()

    async def slow_batch(limit):
        await release.wait()
        return clean()

    service = AsyncMock()
    service.process_expired_validations.side_effect = slow_batch
    processor = BackgroundValidationProcessor(service, clock=clock)

    first = asyncio.create_task(processor.process_now())
    await settle()

    assert processor.is_processing
    assert await processor.process_now() is False

    release.set()
    assert await first is True
    assert not processor.is_processing
    assert service.process_expired_validations.await_count == 1


@pytest.mark.asyncio
async def test_stop_interrupts_retry_backoff():
    clock = GatedClock(gate=1)
    service = make_service(failing(), clean())
    processor = BackgroundValidationProcessor(service, clock=clock)

    run = asyncio.create_task(processor.process_now())
    await settle()
    assert clock.sleeps == [1.0]

    await processor.stop()

    assert await run is False
    # The retry never happened
    assert service.process_expired_validations.await_count == 1


# =============================================================================
# Derived values
# =============================================================================


@pytest.mark.asyncio
async def test_snapshot_and_reset(clock):
    partial = BatchResult(processed=4, succeeded=3, failed=1, errors=["Match 2: boom"])
    config = ValidationConfig(max_retry_attempts=0)
    processor = BackgroundValidationProcessor(make_service(partial), config, clock)

    await processor.process_now()
    snapshot = processor.snapshot()

    assert snapshot.success_rate == 75
    assert snapshot.total_processed == 4
    assert snapshot.is_healthy
    assert not snapshot.is_active
    assert snapshot.next_processing_estimate == clock.now() + timedelta(minutes=5)
    assert len(snapshot.errors) == 1

    processor.reset_stats()

    assert processor.total_processed == 0
    assert processor.errors == []
    assert processor.last_processed_at is None
    assert processor.next_processing_estimate is None
