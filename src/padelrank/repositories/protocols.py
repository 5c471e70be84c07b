# src/padelrank/repositories/protocols.py

"""Read/write contracts the validation services need from persistence.

The services only talk to these protocols, so any store that honours the
atomicity notes below can back them. ``SqlAlchemyValidationStore`` is the
bundled implementation.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Callable, Mapping, Protocol

from padelrank.db import models
from padelrank.rating.glicko2_engine import GlickoRating


class MatchStore(Protocol):
    async def get_match(self, match_id: int) -> models.Match | None:
        ...

    async def list_matches_past_deadline(
        self, now: datetime, limit: int
    ) -> list[models.Match]:
        """Pending, unapplied matches whose deadline is at or before ``now``."""
        ...

    async def update_match_status(
        self,
        match_id: int,
        status: models.ValidationStatus,
        rating_applied: bool,
        *,
        expected_rating_applied: bool = False,
        at: datetime | None = None,
    ) -> bool:
        """Moves a PENDING match to ``status``.

        Must be a single atomic compare-and-set: the write only happens when
        the match is still PENDING and ``rating_applied`` equals
        ``expected_rating_applied``. Returns whether the write happened.
        """
        ...

    async def increment_report_count(self, match_id: int) -> int:
        """Atomically bumps ``report_count`` and returns the new value."""
        ...


class ReportStore(Protocol):
    async def insert_report(
        self,
        match_id: int,
        reporter_id: int,
        reason: models.ReportReason,
        details: str | None,
    ) -> models.MatchReport:
        """Inserts a report.

        Raises:
            DuplicateReportError: If ``(match_id, reporter_id)`` already exists.
        """
        ...

    async def list_reports(self, match_id: int) -> list[models.MatchReport]:
        ...

    async def count_reports(self, match_id: int) -> int:
        ...

    async def has_reported(self, match_id: int, reporter_id: int) -> bool:
        ...


class ConfirmationStore(Protocol):
    async def insert_confirmation(
        self,
        match_id: int,
        player_id: int,
        status: models.ConfirmationStatus,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> models.MatchConfirmation:
        """Records a player's answer to the recorded score.

        Raises:
            DuplicateConfirmationError: If ``(match_id, player_id)`` already
                answered.
        """
        ...

    async def get_confirmation(
        self, match_id: int, player_id: int
    ) -> models.MatchConfirmation | None:
        ...

    async def list_confirmations(
        self, match_id: int
    ) -> list[models.MatchConfirmation]:
        """Answers in the order they were given."""
        ...


class RatingStore(Protocol):
    async def get_rating(self, player_id: int) -> GlickoRating:
        """Raises PlayerNotFoundError for unknown players."""
        ...

    async def set_ratings(self, ratings: Mapping[int, GlickoRating]) -> None:
        """Writes every rating of one match as a single batch."""
        ...

    async def record_rating_changes(
        self,
        match_id: int,
        before: Mapping[int, GlickoRating],
        after: Mapping[int, GlickoRating],
    ) -> None:
        ...


class ValidationStore(
    MatchStore, ReportStore, ConfirmationStore, RatingStore, Protocol
):
    """All stores sharing one unit of work."""

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


# Opens a fresh unit of work, e.g. one database session per match.
StoreFactory = Callable[[], AbstractAsyncContextManager[ValidationStore]]
