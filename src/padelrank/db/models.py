# src/padelrank/db/models.py

"""Database models for the PadelRank application."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, TypedDict

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import (
    Mapped,
    declarative_base,
    mapped_column,
    relationship,
)

Base = declarative_base()


# ===============================================
# Enumerations
# ===============================================


class MatchStatus(str, Enum):
    """Lifecycle of the match itself (scheduling and result entry)."""

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    RECRUITING = "recruiting"


class ValidationStatus(str, Enum):
    """Trust lifecycle of a recorded result.

    PENDING is entered when a result is recorded; the other three states
    are terminal.
    """

    PENDING = "pending"
    VALIDATED = "validated"
    DISPUTED = "disputed"
    EXPIRED = "expired"


# Stored column values of the terminal states
TERMINAL_VALIDATION_STATUSES = frozenset(
    status.value
    for status in (
        ValidationStatus.VALIDATED,
        ValidationStatus.DISPUTED,
        ValidationStatus.EXPIRED,
    )
)


class ConfirmationStatus(str, Enum):
    """A participant's answer to the recorded score."""

    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ReportReason(str, Enum):
    """Why a participant objects to a recorded result."""

    INCORRECT_SCORE = "incorrect_score"
    WRONG_PLAYERS = "wrong_players"
    MATCH_NOT_PLAYED = "match_not_played"
    DUPLICATE_MATCH = "duplicate_match"
    OTHER = "other"


# ===============================================
# Type Definitions for JSON Fields
# ===============================================


class RatingInfo(TypedDict):
    """Standard rating info structure for Glicko-2.

    Keys:
        rating: The player's skill rating (default: 1500.0)
        rd: Rating deviation / uncertainty (default: 350.0)
        vol: Volatility / consistency (default: 0.06)
    """

    rating: float
    rd: float
    vol: float


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def played_sets(
    pairs: list[tuple[int | None, int | None]],
) -> list[tuple[int, int]]:
    """Drops the (team1, team2) pairs of sets that were not played."""
    return [(t1, t2) for t1, t2 in pairs if t1 is not None and t2 is not None]


def count_sets_won(set_scores: list[tuple[int, int]]) -> tuple[int, int]:
    """Sets won by each team; a tied set counts for neither."""
    team1 = sum(1 for t1, t2 in set_scores if t1 > t2)
    team2 = sum(1 for t1, t2 in set_scores if t2 > t1)
    return team1, team2


def winning_team(set_scores: list[tuple[int, int]]) -> int:
    """1 or 2 for the team with more sets, 0 for a tie."""
    team1, team2 = count_sets_won(set_scores)
    if team1 == team2:
        return 0
    return 1 if team1 > team2 else 2


# ===============================================
# Mixins for Common Columns
# ===============================================


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None, onupdate=_utcnow, nullable=True
    )


class VersionMixin:
    """Mixin providing optimistic locking via version column."""

    version: Mapped[int] = mapped_column(default=1, nullable=False)


# ===============================================
# Players
# ===============================================


class Player(Base, TimestampMixin, VersionMixin):
    """A person who plays padel, together with their current rating."""

    __tablename__ = "players"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    # Rating info for Glicko-2: {'rating': 1500.0, 'rd': 350.0, 'vol': 0.06}
    # See RatingInfo TypedDict for structure documentation
    rating_info: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: {"rating": 1500.0, "rd": 350.0, "vol": 0.06},
    )

    def __init__(self, name: str, **kw: Any):
        super().__init__(**kw)
        self.name = name

    @classmethod
    async def find_many(cls, db: AsyncSession, player_ids: list[int]) -> list[Player]:
        """Fetch several players by ID in a single query."""
        result = await db.execute(select(cls).where(cls.id.in_(player_ids)))
        return list(result.scalars().all())


# ===============================================
# Match and Validation Tables
# ===============================================


class Match(Base, TimestampMixin, VersionMixin):
    """A doubles match: players 1 and 2 against players 3 and 4."""

    __tablename__ = "matches"
    id: Mapped[int] = mapped_column(primary_key=True)

    player1_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    player2_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    player3_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    player4_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)

    # Games per set; set 3 is only played when sets are split.
    team1_score_set1: Mapped[int | None] = mapped_column(nullable=True)
    team2_score_set1: Mapped[int | None] = mapped_column(nullable=True)
    team1_score_set2: Mapped[int | None] = mapped_column(nullable=True)
    team2_score_set2: Mapped[int | None] = mapped_column(nullable=True)
    team1_score_set3: Mapped[int | None] = mapped_column(nullable=True)
    team2_score_set3: Mapped[int | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String, default=MatchStatus.SCHEDULED.value, nullable=False
    )
    start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    region: Mapped[str | None] = mapped_column(String, nullable=True)
    court: Mapped[str | None] = mapped_column(String, nullable=True)

    # Validation lifecycle, unset until a result is recorded
    validation_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    validation_status: Mapped[str | None] = mapped_column(
        String, nullable=True, index=True
    )
    report_count: Mapped[int] = mapped_column(default=0, nullable=False)
    # Guards at-most-once rating application; only flipped by a conditional UPDATE
    rating_applied: Mapped[bool] = mapped_column(default=False, nullable=False)
    disputed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    validation_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    reports: Mapped[List["MatchReport"]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )
    confirmations: Mapped[List["MatchConfirmation"]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )
    rating_changes: Mapped[List["MatchRatingChange"]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)

    @property
    def player_ids(self) -> list[int]:
        return [self.player1_id, self.player2_id, self.player3_id, self.player4_id]

    def has_participant(self, player_id: int) -> bool:
        return player_id in self.player_ids

    @property
    def set_scores(self) -> list[tuple[int, int]]:
        """The (team1, team2) games of every set that was played."""
        return played_sets(
            [
                (self.team1_score_set1, self.team2_score_set1),
                (self.team1_score_set2, self.team2_score_set2),
                (self.team1_score_set3, self.team2_score_set3),
            ]
        )

    def sets_won(self) -> tuple[int, int]:
        """Sets won by each team; a tied set counts for neither."""
        return count_sets_won(self.set_scores)

    @property
    def winner_team(self) -> int:
        """1 or 2 for the team with more sets, 0 for a tie."""
        return winning_team(self.set_scores)


class MatchReport(Base):
    """One participant's formal objection to a match's recorded result."""

    __tablename__ = "match_reports"
    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id"), nullable=False, index=True
    )
    reporter_id: Mapped[int] = mapped_column(
        ForeignKey("players.id"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(String, nullable=False)
    additional_details: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    match: Mapped["Match"] = relationship(back_populates="reports")

    # At most one report per user per match
    __table_args__ = (
        UniqueConstraint("match_id", "reporter_id", name="_match_reporter_uc"),
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)


class MatchConfirmation(Base):
    """One participant's confirmation or rejection of a recorded score."""

    __tablename__ = "match_confirmations"
    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id"), nullable=False, index=True
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    responded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    match: Mapped["Match"] = relationship(back_populates="confirmations")

    # One answer per player per match
    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="_match_confirmer_uc"),
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)


class MatchRatingChange(Base):
    """Audit trail of a rating update applied for a validated match."""

    __tablename__ = "match_rating_changes"
    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id"), nullable=False, index=True
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id"), nullable=False, index=True
    )

    rating_before: Mapped[float] = mapped_column(nullable=False)
    rd_before: Mapped[float] = mapped_column(nullable=False)
    vol_before: Mapped[float] = mapped_column(nullable=False)
    rating_after: Mapped[float] = mapped_column(nullable=False)
    rd_after: Mapped[float] = mapped_column(nullable=False)
    vol_after: Mapped[float] = mapped_column(nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    match: Mapped["Match"] = relationship(back_populates="rating_changes")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="_match_player_change_uc"),
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)
