# src/padelrank/schemas/confirmation.py

"""Pydantic schemas for score confirmations and rejections."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from padelrank.db.models import ConfirmationStatus


class ConfirmationCreate(BaseModel):
    """Properties to receive when a participant confirms the score."""

    player_id: int


class RejectionCreate(BaseModel):
    """Properties to receive when a participant rejects the score."""

    player_id: int
    reason: str | None = Field(default=None, max_length=1000)


class ConfirmationRead(BaseModel):
    """One participant's answer to the recorded score."""

    id: int
    match_id: int
    player_id: int
    status: ConfirmationStatus
    reason: str | None = None
    responded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConfirmationSummaryRead(BaseModel):
    """Tally of confirmations for a match."""

    match_id: int
    validation_status: str | None = None
    confirmed_count: int
    rejected_count: int
    pending_count: int
    all_confirmed: bool
    should_dispute: bool
    can_apply_ratings: bool
    confirmations: list[ConfirmationRead]

    model_config = ConfigDict(from_attributes=True)


class ConfirmationEligibilityRead(BaseModel):
    """Whether a user may confirm or reject a match's score, and why not."""

    can_confirm: bool
    refusal: str | None = None
    reason: str


class ConfirmationResultRead(BaseModel):
    """Outcome of a confirm or reject submission.

    Refusals are returned here with ``success=False`` rather than as HTTP
    errors.
    """

    success: bool
    error: str | None = None
    refusal: str | None = None
    confirmation: ConfirmationRead | None = None
    validated: bool = False
    disputed: bool = False
    summary: ConfirmationSummaryRead | None = None
