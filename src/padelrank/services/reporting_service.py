# src/padelrank/services/reporting_service.py

"""Business logic for reporting (disputing) a recorded match result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from padelrank.clock import Clock, SystemClock
from padelrank.config import ValidationConfig
from padelrank.db import models
from padelrank.exceptions import DuplicateReportError, MatchNotFoundError
from padelrank.repositories.protocols import ValidationStore
from padelrank.services.events import (
    NullEventSink,
    ValidationEventSink,
    publish_status_change,
)
from padelrank.services.validation_window import ValidationWindowInfo, window_for_match

logger = logging.getLogger(__name__)


class ReportRefusal(str, Enum):
    """Why a user may not report a match."""

    NOT_AUTHENTICATED = "not_authenticated"
    MATCH_NOT_FOUND = "match_not_found"
    NOT_PARTICIPANT = "not_participant"
    ALREADY_REPORTED = "already_reported"
    ALREADY_RESOLVED = "already_resolved"
    WINDOW_CLOSED = "window_closed"


_REFUSAL_MESSAGES = {
    ReportRefusal.NOT_AUTHENTICATED: "Not authenticated",
    ReportRefusal.MATCH_NOT_FOUND: "Match not found",
    ReportRefusal.NOT_PARTICIPANT: "Only players in this match can report it",
    ReportRefusal.ALREADY_REPORTED: "You have already reported this match",
    ReportRefusal.ALREADY_RESOLVED: "This match has already been resolved",
    ReportRefusal.WINDOW_CLOSED: "The reporting window for this match has closed",
}


@dataclass(frozen=True)
class ReportEligibility:
    """Answer to "may this user report this match?"."""

    can_report: bool
    refusal: ReportRefusal | None = None
    reason: str = ""

    @classmethod
    def allowed(cls) -> "ReportEligibility":
        return cls(can_report=True, reason="You can report this match")

    @classmethod
    def refused(cls, refusal: ReportRefusal) -> "ReportEligibility":
        return cls(can_report=False, refusal=refusal, reason=_REFUSAL_MESSAGES[refusal])


@dataclass(frozen=True)
class ReportResult:
    """Outcome of a report submission."""

    success: bool
    error: str | None = None
    refusal: ReportRefusal | None = None
    report: models.MatchReport | None = None
    disputed: bool = False


@dataclass(frozen=True)
class ReportingSnapshot:
    """Everything a client needs to render a match's reporting state."""

    match_id: int
    validation_status: str | None
    report_count: int
    window: ValidationWindowInfo
    eligibility: ReportEligibility
    user_has_reported: bool
    reports: list[models.MatchReport] = field(default_factory=list)


class MatchReportingService:
    """Enforces who may report a match and tallies reports into disputes."""

    def __init__(
        self,
        store: ValidationStore,
        config: ValidationConfig | None = None,
        clock: Clock | None = None,
        events: ValidationEventSink | None = None,
    ) -> None:
        self._store = store
        self._config = config or ValidationConfig()
        self._clock = clock or SystemClock()
        self._events = events or NullEventSink()

    async def _require_match(self, match_id: int) -> models.Match:
        match = await self._store.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        return match

    def _eligibility_for(
        self, match: models.Match, user_id: int, already_reported: bool
    ) -> ReportEligibility:
        if not match.has_participant(user_id):
            return ReportEligibility.refused(ReportRefusal.NOT_PARTICIPANT)
        if already_reported:
            return ReportEligibility.refused(ReportRefusal.ALREADY_REPORTED)
        if match.validation_status in models.TERMINAL_VALIDATION_STATUSES:
            return ReportEligibility.refused(ReportRefusal.ALREADY_RESOLVED)
        if not window_for_match(match, self._config, self._clock).is_open:
            return ReportEligibility.refused(ReportRefusal.WINDOW_CLOSED)
        return ReportEligibility.allowed()

    async def can_user_report_match(
        self, match_id: int, user_id: int | None
    ) -> ReportEligibility:
        """Checks whether ``user_id`` may report ``match_id`` right now.

        Never raises for caller mistakes; every refusal comes back as a
        structured ``ReportEligibility``.
        """
        if user_id is None:
            return ReportEligibility.refused(ReportRefusal.NOT_AUTHENTICATED)

        match = await self._store.get_match(match_id)
        if match is None:
            return ReportEligibility.refused(ReportRefusal.MATCH_NOT_FOUND)

        already_reported = await self._store.has_reported(match_id, user_id)
        return self._eligibility_for(match, user_id, already_reported)

    async def report_match(
        self,
        match_id: int,
        reporter_id: int | None,
        reason: models.ReportReason,
        additional_details: str | None = None,
    ) -> ReportResult:
        """
        Records a report against a match.

        When the report count reaches the dispute threshold the match is
        disputed immediately, without waiting for the window to close.
        """
        eligibility = await self.can_user_report_match(match_id, reporter_id)
        if not eligibility.can_report:
            logger.info(
                "Report refused",
                extra={
                    "match_id": match_id,
                    "reporter_id": reporter_id,
                    "refusal": eligibility.refusal.value if eligibility.refusal else None,
                },
            )
            return ReportResult(
                success=False, error=eligibility.reason, refusal=eligibility.refusal
            )
        assert reporter_id is not None

        try:
            try:
                report = await self._store.insert_report(
                    match_id, reporter_id, reason, additional_details
                )
            except DuplicateReportError:
                # Lost a race with the same user's concurrent submission;
                # nothing was written in this unit of work.
                refusal = ReportRefusal.ALREADY_REPORTED
                return ReportResult(
                    success=False, error=_REFUSAL_MESSAGES[refusal], refusal=refusal
                )

            report_count = await self._store.increment_report_count(match_id)
            disputed = False
            if report_count >= self._config.dispute_threshold:
                disputed = await self._store.update_match_status(
                    match_id,
                    models.ValidationStatus.DISPUTED,
                    rating_applied=False,
                    expected_rating_applied=False,
                    at=self._clock.now(),
                )
            await self._store.commit()

        except Exception as e:
            logger.error(
                "Failed to record match report",
                extra={"match_id": match_id, "reporter_id": reporter_id, "error": str(e)},
                exc_info=True,
            )
            await self._store.rollback()
            raise

        logger.info(
            "Match reported",
            extra={
                "match_id": match_id,
                "reporter_id": reporter_id,
                "reason": reason.value,
                "report_count": report_count,
            },
        )
        if disputed:
            logger.warning(
                "Match disputed by reports",
                extra={"match_id": match_id, "report_count": report_count},
            )
            await publish_status_change(
                self._events,
                match_id,
                models.ValidationStatus.PENDING,
                models.ValidationStatus.DISPUTED,
            )

        return ReportResult(success=True, report=report, disputed=disputed)

    async def get_match_reports(self, match_id: int) -> list[models.MatchReport]:
        """All reports for a match, newest first."""
        await self._require_match(match_id)
        return await self._store.list_reports(match_id)

    async def get_validation_window(self, match_id: int) -> ValidationWindowInfo:
        match = await self._require_match(match_id)
        return window_for_match(match, self._config, self._clock)

    async def get_validation_statuses(
        self, match_ids: list[int]
    ) -> dict[int, str | None]:
        """Validation status per known match; unknown IDs are left out."""
        statuses: dict[int, str | None] = {}
        for match_id in match_ids:
            match = await self._store.get_match(match_id)
            if match is not None:
                statuses[match_id] = match.validation_status
        return statuses

    async def refresh(self, match_id: int, user_id: int | None) -> ReportingSnapshot:
        """Pulls the current reporting state of a match for one user."""
        match = await self._require_match(match_id)
        reports = await self._store.list_reports(match_id)
        user_has_reported = user_id is not None and any(
            r.reporter_id == user_id for r in reports
        )

        if user_id is None:
            eligibility = ReportEligibility.refused(ReportRefusal.NOT_AUTHENTICATED)
        else:
            eligibility = self._eligibility_for(match, user_id, user_has_reported)

        return ReportingSnapshot(
            match_id=match.id,
            validation_status=match.validation_status,
            report_count=match.report_count,
            window=window_for_match(match, self._config, self._clock),
            eligibility=eligibility,
            user_has_reported=user_has_reported,
            reports=reports,
        )
