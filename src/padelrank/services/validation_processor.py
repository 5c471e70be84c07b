# src/padelrank/services/validation_processor.py

"""Recurring job that finalizes matches whose validation window has closed.

The processor owns an asyncio task that runs one batch immediately on
``start()`` and then every ``processing_interval_seconds``. A batch with
failures (or one that raises) is retried with exponential backoff. Runs that
keep failing push ``consecutive_failures`` up until the processor suspends
itself; it stays suspended until ``resume()``.

All waiting goes through the injected clock and is cut short by ``stop()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from padelrank.clock import Clock, SystemClock
from padelrank.config import ValidationConfig
from padelrank.services.validation_service import BatchResult

logger = logging.getLogger(__name__)


class BatchRunner(Protocol):
    async def process_expired_validations(self, limit: int | None = None) -> BatchResult:
        ...


@dataclass(frozen=True)
class ProcessorSnapshot:
    """Point-in-time copy of the processor statistics."""

    total_processed: int
    total_succeeded: int
    total_failed: int
    last_processed_at: datetime | None
    last_success_at: datetime | None
    consecutive_failures: int
    is_active: bool
    is_processing: bool
    is_healthy: bool
    success_rate: int
    next_processing_estimate: datetime | None
    errors: list[str]


class BackgroundValidationProcessor:
    """Scheduled, retrying driver of ``MatchValidationService``."""

    def __init__(
        self,
        service: BatchRunner,
        config: ValidationConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._service = service
        self._config = config or ValidationConfig()
        self._clock = clock or SystemClock()

        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._active = False
        self._processing = False

        self._reset_counters()

    def _reset_counters(self) -> None:
        self.total_processed = 0
        self.total_succeeded = 0
        self.total_failed = 0
        self.last_processed_at: datetime | None = None
        self.last_success_at: datetime | None = None
        self.consecutive_failures = 0
        self._errors: deque[str] = deque(maxlen=self._config.error_history_limit)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_suspended(self) -> bool:
        return self.consecutive_failures >= self._config.max_consecutive_failures

    @property
    def is_healthy(self) -> bool:
        return not self.is_suspended

    @property
    def success_rate(self) -> int:
        """Whole percent of processed items that succeeded, 0 when idle."""
        if self.total_processed == 0:
            return 0
        return round(self.total_succeeded / self.total_processed * 100)

    @property
    def next_processing_estimate(self) -> datetime | None:
        if self.last_processed_at is None:
            return None
        return self.last_processed_at + timedelta(
            seconds=self._config.processing_interval_seconds
        )

    @property
    def errors(self) -> list[str]:
        """Recent errors, most recent first."""
        return list(self._errors)

    def snapshot(self) -> ProcessorSnapshot:
        return ProcessorSnapshot(
            total_processed=self.total_processed,
            total_succeeded=self.total_succeeded,
            total_failed=self.total_failed,
            last_processed_at=self.last_processed_at,
            last_success_at=self.last_success_at,
            consecutive_failures=self.consecutive_failures,
            is_active=self.is_active,
            is_processing=self.is_processing,
            is_healthy=self.is_healthy,
            success_rate=self.success_rate,
            next_processing_estimate=self.next_processing_estimate,
            errors=self.errors,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Starts the recurring loop; a no-op when already running."""
        if self._task is not None and not self._task.done():
            return
        if self.is_suspended:
            logger.error(
                "Refusing to start a suspended processor; call resume()",
                extra={"consecutive_failures": self.consecutive_failures},
            )
            return

        logger.info(
            "Starting validation processor",
            extra={"interval_seconds": self._config.processing_interval_seconds},
        )
        self._stop_event.clear()
        self._active = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stops scheduling; a run in flight finishes without retrying further."""
        logger.info("Stopping validation processor")
        self._active = False
        self._stop_event.set()
        if self._task is not None and self._task is not asyncio.current_task():
            await self._task
        self._task = None

    async def resume(self) -> None:
        """Clears a suspension and restarts the loop."""
        logger.info(
            "Resuming validation processor",
            extra={"consecutive_failures": self.consecutive_failures},
        )
        if self._task is not None:
            await self.stop()
        self.consecutive_failures = 0
        self.start()

    def reset_stats(self) -> None:
        logger.info("Resetting validation processor statistics")
        self._reset_counters()

    async def _run_loop(self) -> None:
        while self._active:
            await self.process_now()
            if not self._active:
                break
            if await self._wait(self._config.processing_interval_seconds):
                break
        logger.info("Validation processor loop exited")

    async def _wait(self, seconds: float) -> bool:
        """Sleeps on the clock; returns True if ``stop()`` cut the wait short."""
        if self._stop_event.is_set():
            return True

        sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        _, pending = await asyncio.wait(
            {sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_now(self) -> bool:
        """Runs one batch with retries.

        Returns:
            True if the run ended with a clean attempt, False if it failed,
            was skipped because another run is in flight, or the processor
            is suspended.
        """
        if self._processing:
            logger.warning("Processing already in progress, ignoring trigger")
            return False
        if self.is_suspended:
            logger.error(
                "Processing suspended after consecutive failures",
                extra={"consecutive_failures": self.consecutive_failures},
            )
            return False

        self._processing = True
        try:
            return await self._run_with_retries()
        finally:
            self._processing = False

    async def _run_with_retries(self) -> bool:
        any_succeeded = False
        clean = False

        for attempt in range(self._config.max_retry_attempts + 1):
            if attempt > 0:
                delay = self._config.retry_delay(attempt - 1)
                logger.warning(
                    "Retrying validation batch",
                    extra={"attempt": attempt + 1, "delay_seconds": delay},
                )
                if await self._wait(delay):
                    break

            logger.debug(
                "Starting validation batch",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": self._config.max_retry_attempts + 1,
                },
            )
            try:
                result = await self._service.process_expired_validations(
                    self._config.batch_size_limit
                )
            except Exception as e:
                logger.error(
                    "Validation batch raised",
                    extra={"attempt": attempt + 1, "error": str(e)},
                    exc_info=True,
                )
                self._record_errors([f"Critical processing error: {e}"])
                continue

            self._record_batch(result)
            if result.succeeded > 0:
                any_succeeded = True
            if result.failed == 0:
                clean = True
                break

        if any_succeeded or clean:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1
            logger.error(
                "Validation run failed",
                extra={"consecutive_failures": self.consecutive_failures},
            )
            if self.is_suspended:
                self._suspend()
        return clean

    def _record_batch(self, result: BatchResult) -> None:
        now = self._clock.now()
        self.total_processed += result.processed
        self.total_succeeded += result.succeeded
        self.total_failed += result.failed
        self.last_processed_at = now
        if result.succeeded > 0:
            self.last_success_at = now
        self._record_errors(result.errors)

        logger.info(
            "Validation batch processed",
            extra={
                "processed": result.processed,
                "succeeded": result.succeeded,
                "failed": result.failed,
            },
        )

    def _record_errors(self, messages: list[str]) -> None:
        stamp = self._clock.now().isoformat()
        # Newest first; the deque drops the oldest beyond capacity.
        for message in messages:
            self._errors.appendleft(f"{stamp}: {message}")

    def _suspend(self) -> None:
        logger.error(
            "Suspending validation processor",
            extra={
                "consecutive_failures": self.consecutive_failures,
                "max_consecutive_failures": self._config.max_consecutive_failures,
            },
        )
        self._active = False
        self._stop_event.set()
