# src/padelrank/schemas/match.py

"""Pydantic schemas for the Match resource."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from padelrank.db.models import played_sets, winning_team

# ===============================================
# == Match Schemas
# ===============================================


class MatchBase(BaseModel):
    """Shared properties for a match.

    Team 1 is players 1 and 2, team 2 is players 3 and 4.
    """

    player1_id: int
    player2_id: int
    player3_id: int
    player4_id: int

    start_time: datetime | None = None
    region: str | None = None
    court: str | None = None

    @property
    def player_ids(self) -> list[int]:
        return [self.player1_id, self.player2_id, self.player3_id, self.player4_id]


class MatchCreate(MatchBase):
    """Properties to receive via API on create."""

    pass


class MatchRead(MatchBase):
    """Properties to return to the client for a match."""

    id: int
    status: str

    team1_score_set1: int | None = None
    team2_score_set1: int | None = None
    team1_score_set2: int | None = None
    team2_score_set2: int | None = None
    team1_score_set3: int | None = None
    team2_score_set3: int | None = None

    completed_at: datetime | None = None
    validation_deadline: datetime | None = None
    validation_status: str | None = None
    report_count: int = 0
    rating_applied: bool = False
    disputed_at: datetime | None = None
    validation_completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def winner_team(self) -> int | None:
        """1 or 2 by sets won, 0 for a tie, None before a result exists."""
        if self.completed_at is None:
            return None
        return winning_team(
            played_sets(
                [
                    (self.team1_score_set1, self.team2_score_set1),
                    (self.team1_score_set2, self.team2_score_set2),
                    (self.team1_score_set3, self.team2_score_set3),
                ]
            )
        )


# ===============================================
# == Result Schemas
# ===============================================


class SetScore(BaseModel):
    """Games won by each team in one set."""

    team1: int = Field(..., ge=0, description="Games won by team 1")
    team2: int = Field(..., ge=0, description="Games won by team 2")


class MatchResultCreate(BaseModel):
    """
    Properties to receive when recording a played match.
    One to three sets, in the order they were played.
    """

    sets: list[SetScore]

    # Optional: when the match finished (defaults to now if not provided)
    completed_at: datetime | None = Field(
        default=None,
        description="When the match finished (ISO format). Defaults to current time.",
    )


# ===============================================
# == Validation Schemas
# ===============================================


class ValidationWindowRead(BaseModel):
    """Validation state of one match as seen right now."""

    match_id: int
    validation_status: str | None
    report_count: int
    rating_applied: bool
    is_open: bool
    deadline: datetime | None
    hours_remaining: int
    minutes_remaining: int


class ValidationStatusesRequest(BaseModel):
    """Bulk status lookup payload."""

    match_ids: list[int] = Field(..., max_length=200)


class ValidationStatusesRead(BaseModel):
    """Validation status per known match; unknown IDs are omitted."""

    statuses: dict[int, str | None]


# ===============================================
# == Rating History
# ===============================================


class RatingChangeRead(BaseModel):
    """One player's rating movement from a validated match."""

    match_id: int
    player_id: int
    rating_before: float
    rd_before: float
    vol_before: float
    rating_after: float
    rd_after: float
    vol_after: float
    applied_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def rating_change(self) -> float:
        return round(self.rating_after - self.rating_before, 2)
