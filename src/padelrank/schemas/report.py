# src/padelrank/schemas/report.py

"""Pydantic schemas for match reports and reporting eligibility."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from padelrank.db.models import ReportReason

from .match import ValidationWindowRead


class ReportCreate(BaseModel):
    """Properties to receive when a participant reports a match."""

    reporter_id: int
    reason: ReportReason
    additional_details: str | None = Field(default=None, max_length=1000)


class ReportRead(BaseModel):
    """Properties to return to the client for a report."""

    id: int
    match_id: int
    reporter_id: int
    reason: ReportReason
    additional_details: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EligibilityRead(BaseModel):
    """Whether a user may report a match, and why not."""

    can_report: bool
    refusal: str | None = None
    reason: str


class ReportSubmitRead(BaseModel):
    """Outcome of a report submission.

    Refusals are returned here with ``success=False`` rather than as HTTP
    errors.
    """

    success: bool
    error: str | None = None
    refusal: str | None = None
    report: ReportRead | None = None
    disputed: bool = False


class ReportingSnapshotRead(BaseModel):
    """Current reporting state of a match for one user."""

    match_id: int
    validation: ValidationWindowRead
    eligibility: EligibilityRead
    user_has_reported: bool
    reports: list[ReportRead]
