# tests/test_validation_window.py

"""Tests for validation window arithmetic."""

from datetime import datetime, timedelta, timezone

import pytest
from padelrank.config import ValidationConfig
from padelrank.db.models import Match
from padelrank.services.validation_window import (
    CLOSED_WITHOUT_DEADLINE,
    compute_window,
    window_for_match,
)

T = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        return None


def test_window_open_one_minute_before_deadline():
    info = compute_window(T, 24, now=T + timedelta(hours=23, minutes=59))

    assert info.is_open
    assert info.deadline == T + timedelta(hours=24)
    assert info.time_remaining == timedelta(minutes=1)
    assert info.hours_remaining == 0
    assert info.minutes_remaining == 1


def test_window_closed_one_second_after_deadline():
    info = compute_window(T, 24, now=T + timedelta(hours=24, seconds=1))

    assert not info.is_open
    assert info.time_remaining == timedelta(0)
    assert info.hours_remaining == 0
    assert info.minutes_remaining == 0


def test_window_closes_exactly_at_deadline():
    info = compute_window(T, 24, now=T + timedelta(hours=24))

    assert not info.is_open


def test_hours_and_minutes_remaining_split():
    info = compute_window(T, 24, now=T + timedelta(hours=2, minutes=30))

    assert info.hours_remaining == 21
    assert info.minutes_remaining == 30


def test_naive_completion_time_is_treated_as_utc():
    naive = T.replace(tzinfo=None)

    info = compute_window(naive, 24, now=T + timedelta(hours=1))

    assert info.is_open
    assert info.deadline == T + timedelta(hours=24)


def test_completion_time_in_other_offset_is_converted_to_utc():
    local = T.astimezone(timezone(timedelta(hours=2)))

    info = compute_window(local, 24, now=T + timedelta(hours=24, minutes=30))

    assert not info.is_open
    assert info.deadline == T + timedelta(hours=24)
    assert info.deadline.utcoffset() == timedelta(0)


def test_missing_completion_time_raises():
    with pytest.raises(ValueError):
        compute_window(None, 24, now=T)


def test_match_without_result_has_closed_window():
    match = Match(player1_id=1, player2_id=2, player3_id=3, player4_id=4)

    info = window_for_match(match, ValidationConfig(), FixedClock(T))

    assert info == CLOSED_WITHOUT_DEADLINE


def test_stored_deadline_wins_over_configured_window():
    match = Match(
        player1_id=1,
        player2_id=2,
        player3_id=3,
        player4_id=4,
        completed_at=T,
        validation_deadline=T + timedelta(hours=48),
    )
    config = ValidationConfig(dispute_window_hours=24)

    info = window_for_match(match, config, FixedClock(T + timedelta(hours=30)))

    assert info.is_open
    assert info.deadline == T + timedelta(hours=48)


def test_deadline_computed_from_completion_when_not_stored():
    match = Match(player1_id=1, player2_id=2, player3_id=3, player4_id=4, completed_at=T)
    config = ValidationConfig(dispute_window_hours=12)

    info = window_for_match(match, config, FixedClock(T + timedelta(hours=13)))

    assert not info.is_open
    assert info.deadline == T + timedelta(hours=12)
