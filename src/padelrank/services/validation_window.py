# src/padelrank/services/validation_window.py

"""Validation window arithmetic: is a recorded result still contestable?"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from padelrank.clock import Clock, ensure_aware
from padelrank.config import ValidationConfig
from padelrank.db import models

_ZERO = timedelta(0)


@dataclass(frozen=True)
class ValidationWindowInfo:
    """Derived, never persisted."""

    is_open: bool
    deadline: datetime | None
    time_remaining: timedelta

    @property
    def hours_remaining(self) -> int:
        return int(self.time_remaining.total_seconds() // 3600)

    @property
    def minutes_remaining(self) -> int:
        """Minutes past the last whole hour."""
        return int(self.time_remaining.total_seconds() % 3600 // 60)


CLOSED_WITHOUT_DEADLINE = ValidationWindowInfo(
    is_open=False, deadline=None, time_remaining=_ZERO
)


def window_from_deadline(deadline: datetime, now: datetime) -> ValidationWindowInfo:
    deadline = ensure_aware(deadline)
    now = ensure_aware(now)
    return ValidationWindowInfo(
        is_open=now < deadline,
        deadline=deadline,
        time_remaining=max(_ZERO, deadline - now),
    )


def compute_window(
    completed_at: datetime | None, dispute_window_hours: float, now: datetime
) -> ValidationWindowInfo:
    """Maps a completion time to its dispute window as seen at ``now``.

    Raises:
        ValueError: If the match has no completion time yet; callers check
            for a recorded result first.
    """
    if completed_at is None:
        raise ValueError("Cannot compute a validation window without completed_at")
    deadline = ensure_aware(completed_at) + timedelta(hours=dispute_window_hours)
    return window_from_deadline(deadline, now)


def window_for_match(
    match: models.Match, config: ValidationConfig, clock: Clock
) -> ValidationWindowInfo:
    """The window of a stored match; closed and deadline-less without a result.

    A stored ``validation_deadline`` wins over recomputing from
    ``completed_at``.
    """
    now = clock.now()
    if match.validation_deadline is not None:
        return window_from_deadline(match.validation_deadline, now)
    if match.completed_at is None:
        return CLOSED_WITHOUT_DEADLINE
    return compute_window(match.completed_at, config.dispute_window_hours, now)
