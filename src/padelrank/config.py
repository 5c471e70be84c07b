# src/padelrank/config.py

"""Tunable knobs for match validation and background processing."""

import os
from dataclasses import dataclass
from datetime import timedelta


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class ValidationConfig:
    """Validation window and processor configuration.

    Attributes:
        dispute_window_hours: How long participants may report a result.
        dispute_threshold: Distinct reports needed to dispute a match.
        rejection_threshold: Score rejections needed to dispute a match.
        processing_interval_seconds: Delay between scheduled processor runs.
        batch_size_limit: Max matches finalized per processor attempt.
        max_retry_attempts: Retries of a failed batch within one run.
        retry_delay_base_seconds: Base of the exponential retry backoff.
        max_consecutive_failures: Failed runs before the processor suspends.
        error_history_limit: Capacity of the processor's error log.
        long_stop_hours: Hours past the deadline after which an
            unresolvable match is expired instead of retried.
    """

    dispute_window_hours: float = 24.0
    dispute_threshold: int = 2
    rejection_threshold: int = 2
    processing_interval_seconds: float = 5 * 60
    batch_size_limit: int = 50
    max_retry_attempts: int = 3
    retry_delay_base_seconds: float = 1.0
    max_consecutive_failures: int = 5
    error_history_limit: int = 20
    long_stop_hours: float = 72.0

    @property
    def dispute_window(self) -> timedelta:
        return timedelta(hours=self.dispute_window_hours)

    @property
    def long_stop(self) -> timedelta:
        return timedelta(hours=self.long_stop_hours)

    def retry_delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (``base * 2^attempt``)."""
        return self.retry_delay_base_seconds * 2**attempt

    @classmethod
    def from_env(cls) -> "ValidationConfig":
        """Reads every knob from ``PADELRANK_*`` environment variables."""
        defaults = cls()
        return cls(
            dispute_window_hours=_env_float(
                "PADELRANK_DISPUTE_WINDOW_HOURS", defaults.dispute_window_hours
            ),
            dispute_threshold=_env_int(
                "PADELRANK_DISPUTE_THRESHOLD", defaults.dispute_threshold
            ),
            rejection_threshold=_env_int(
                "PADELRANK_REJECTION_THRESHOLD", defaults.rejection_threshold
            ),
            processing_interval_seconds=_env_float(
                "PADELRANK_PROCESSING_INTERVAL_SECONDS",
                defaults.processing_interval_seconds,
            ),
            batch_size_limit=_env_int(
                "PADELRANK_BATCH_SIZE_LIMIT", defaults.batch_size_limit
            ),
            max_retry_attempts=_env_int(
                "PADELRANK_MAX_RETRY_ATTEMPTS", defaults.max_retry_attempts
            ),
            retry_delay_base_seconds=_env_float(
                "PADELRANK_RETRY_DELAY_BASE_SECONDS", defaults.retry_delay_base_seconds
            ),
            max_consecutive_failures=_env_int(
                "PADELRANK_MAX_CONSECUTIVE_FAILURES", defaults.max_consecutive_failures
            ),
            error_history_limit=_env_int(
                "PADELRANK_ERROR_HISTORY_LIMIT", defaults.error_history_limit
            ),
            long_stop_hours=_env_float(
                "PADELRANK_LONG_STOP_HOURS", defaults.long_stop_hours
            ),
        )


def processor_enabled() -> bool:
    """Whether the app lifespan should start the background processor."""
    return os.getenv("PADELRANK_PROCESSOR_ENABLED", "true").lower() == "true"
