# src/padelrank/services/confirmation_service.py

"""Business logic for participants confirming or rejecting a recorded score.

Confirmation is the fast path out of the validation window: once all four
players confirm, the match is validated and rated at once instead of
waiting for the deadline. Enough rejections dispute it instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from padelrank.clock import Clock, SystemClock
from padelrank.config import ValidationConfig
from padelrank.db import models
from padelrank.exceptions import (
    DuplicateConfirmationError,
    InconsistentMatchError,
    MatchNotFoundError,
    PlayerNotFoundError,
)
from padelrank.rating.glicko2_engine import Glicko2Engine
from padelrank.repositories.protocols import ValidationStore
from padelrank.services.events import (
    NullEventSink,
    ValidationEventSink,
    publish_status_change,
)
from padelrank.services.validation_service import claim_and_rate, load_pre_match_ratings
from padelrank.services.validation_window import window_for_match

logger = logging.getLogger(__name__)

PLAYERS_PER_MATCH = 4


class ConfirmationRefusal(str, Enum):
    """Why a user may not confirm or reject a match's score."""

    NOT_AUTHENTICATED = "not_authenticated"
    MATCH_NOT_FOUND = "match_not_found"
    NOT_PARTICIPANT = "not_participant"
    NO_RESULT = "no_result"
    ALREADY_RESPONDED = "already_responded"
    ALREADY_RESOLVED = "already_resolved"
    WINDOW_CLOSED = "window_closed"


_REFUSAL_MESSAGES = {
    ConfirmationRefusal.NOT_AUTHENTICATED: "Not authenticated",
    ConfirmationRefusal.MATCH_NOT_FOUND: "Match not found",
    ConfirmationRefusal.NOT_PARTICIPANT: "Only players in this match can confirm it",
    ConfirmationRefusal.NO_RESULT: "This match has no recorded result yet",
    ConfirmationRefusal.ALREADY_RESPONDED: "You have already responded to this score",
    ConfirmationRefusal.ALREADY_RESOLVED: "This match has already been resolved",
    ConfirmationRefusal.WINDOW_CLOSED: (
        "The confirmation window for this match has closed"
    ),
}


@dataclass(frozen=True)
class ConfirmationEligibility:
    """Answer to "may this user confirm or reject this score?"."""

    can_confirm: bool
    refusal: ConfirmationRefusal | None = None
    reason: str = ""

    @classmethod
    def allowed(cls) -> "ConfirmationEligibility":
        return cls(can_confirm=True, reason="You can confirm this match")

    @classmethod
    def refused(cls, refusal: ConfirmationRefusal) -> "ConfirmationEligibility":
        return cls(
            can_confirm=False, refusal=refusal, reason=_REFUSAL_MESSAGES[refusal]
        )


@dataclass(frozen=True)
class ConfirmationSummary:
    """Tally of the answers given to a match's score."""

    match_id: int
    validation_status: str | None
    rating_applied: bool
    confirmed_count: int
    rejected_count: int
    pending_count: int
    all_confirmed: bool
    should_dispute: bool
    confirmations: list[models.MatchConfirmation] = field(default_factory=list)

    @property
    def can_apply_ratings(self) -> bool:
        return self.all_confirmed and not self.rating_applied


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of a confirm or reject submission."""

    success: bool
    error: str | None = None
    refusal: ConfirmationRefusal | None = None
    confirmation: models.MatchConfirmation | None = None
    validated: bool = False
    disputed: bool = False
    summary: ConfirmationSummary | None = None

    @classmethod
    def refused(cls, refusal: ConfirmationRefusal) -> "ConfirmationResult":
        return cls(success=False, error=_REFUSAL_MESSAGES[refusal], refusal=refusal)


class MatchConfirmationService:
    """Collects per-player answers to a score and resolves the match early."""

    def __init__(
        self,
        store: ValidationStore,
        config: ValidationConfig | None = None,
        clock: Clock | None = None,
        engine: Glicko2Engine | None = None,
        events: ValidationEventSink | None = None,
    ) -> None:
        self._store = store
        self._config = config or ValidationConfig()
        self._clock = clock or SystemClock()
        self._engine = engine or Glicko2Engine()
        self._events = events or NullEventSink()

    def _summarize(
        self,
        match: models.Match,
        confirmations: list[models.MatchConfirmation],
    ) -> ConfirmationSummary:
        confirmed = sum(
            1 for c in confirmations if c.status == models.ConfirmationStatus.CONFIRMED
        )
        rejected = sum(
            1 for c in confirmations if c.status == models.ConfirmationStatus.REJECTED
        )
        return ConfirmationSummary(
            match_id=match.id,
            validation_status=match.validation_status,
            rating_applied=match.rating_applied,
            confirmed_count=confirmed,
            rejected_count=rejected,
            pending_count=PLAYERS_PER_MATCH - confirmed - rejected,
            all_confirmed=confirmed == PLAYERS_PER_MATCH,
            should_dispute=rejected >= self._config.rejection_threshold,
            confirmations=confirmations,
        )

    async def can_user_confirm_match(
        self, match_id: int, user_id: int | None
    ) -> ConfirmationEligibility:
        """Checks whether ``user_id`` may answer ``match_id``'s score right now."""
        if user_id is None:
            return ConfirmationEligibility.refused(ConfirmationRefusal.NOT_AUTHENTICATED)

        match = await self._store.get_match(match_id)
        if match is None:
            return ConfirmationEligibility.refused(ConfirmationRefusal.MATCH_NOT_FOUND)
        if not match.has_participant(user_id):
            return ConfirmationEligibility.refused(ConfirmationRefusal.NOT_PARTICIPANT)
        if match.completed_at is None or match.validation_status is None:
            return ConfirmationEligibility.refused(ConfirmationRefusal.NO_RESULT)
        if await self._store.get_confirmation(match_id, user_id) is not None:
            return ConfirmationEligibility.refused(ConfirmationRefusal.ALREADY_RESPONDED)
        if match.validation_status in models.TERMINAL_VALIDATION_STATUSES:
            return ConfirmationEligibility.refused(ConfirmationRefusal.ALREADY_RESOLVED)
        if not window_for_match(match, self._config, self._clock).is_open:
            return ConfirmationEligibility.refused(ConfirmationRefusal.WINDOW_CLOSED)
        return ConfirmationEligibility.allowed()

    async def get_confirmation_summary(self, match_id: int) -> ConfirmationSummary:
        match = await self._store.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        confirmations = await self._store.list_confirmations(match_id)
        return self._summarize(match, confirmations)

    async def confirm_match_score(
        self, match_id: int, player_id: int | None
    ) -> ConfirmationResult:
        """
        Records that ``player_id`` agrees with the recorded score.

        The fourth confirmation validates the match and applies ratings in
        the same transaction. The processor's at-most-once guard applies, so
        a match the processor already finalized is never rated twice.
        """
        return await self._respond(
            match_id, player_id, models.ConfirmationStatus.CONFIRMED, None
        )

    async def reject_match_score(
        self, match_id: int, player_id: int | None, reason: str | None = None
    ) -> ConfirmationResult:
        """
        Records that ``player_id`` disagrees with the recorded score.

        Reaching ``rejection_threshold`` rejections disputes the match.
        """
        return await self._respond(
            match_id, player_id, models.ConfirmationStatus.REJECTED, reason
        )

    async def _respond(
        self,
        match_id: int,
        player_id: int | None,
        answer: models.ConfirmationStatus,
        reason: str | None,
    ) -> ConfirmationResult:
        eligibility = await self.can_user_confirm_match(match_id, player_id)
        if not eligibility.can_confirm:
            logger.info(
                "Score response refused",
                extra={
                    "match_id": match_id,
                    "player_id": player_id,
                    "answer": answer.value,
                    "refusal": eligibility.refusal.value if eligibility.refusal else None,
                },
            )
            assert eligibility.refusal is not None
            return ConfirmationResult.refused(eligibility.refusal)
        assert player_id is not None

        now = self._clock.now()
        validated = disputed = False
        try:
            try:
                confirmation = await self._store.insert_confirmation(
                    match_id, player_id, answer, reason, at=now
                )
            except DuplicateConfirmationError:
                return ConfirmationResult.refused(ConfirmationRefusal.ALREADY_RESPONDED)

            match = await self._store.get_match(match_id)
            assert match is not None
            summary = self._summarize(
                match, await self._store.list_confirmations(match_id)
            )

            if summary.should_dispute:
                disputed = await self._store.update_match_status(
                    match_id,
                    models.ValidationStatus.DISPUTED,
                    rating_applied=False,
                    expected_rating_applied=False,
                    at=now,
                )
            elif summary.can_apply_ratings:
                validated = await self._validate(match, now)

            await self._store.commit()

        except Exception as e:
            logger.error(
                "Failed to record score response",
                extra={"match_id": match_id, "player_id": player_id, "error": str(e)},
                exc_info=True,
            )
            await self._store.rollback()
            raise

        logger.info(
            "Score response recorded",
            extra={
                "match_id": match_id,
                "player_id": player_id,
                "answer": answer.value,
                "confirmed": summary.confirmed_count,
                "rejected": summary.rejected_count,
            },
        )
        if disputed:
            logger.warning(
                "Match disputed by score rejections",
                extra={"match_id": match_id, "rejected": summary.rejected_count},
            )
            await publish_status_change(
                self._events,
                match_id,
                models.ValidationStatus.PENDING,
                models.ValidationStatus.DISPUTED,
            )
        if validated:
            await publish_status_change(
                self._events,
                match_id,
                models.ValidationStatus.PENDING,
                models.ValidationStatus.VALIDATED,
            )

        return ConfirmationResult(
            success=True,
            confirmation=confirmation,
            validated=validated,
            disputed=disputed,
            summary=await self.get_confirmation_summary(match_id),
        )

    async def _validate(self, match: models.Match, now: datetime) -> bool:
        try:
            ratings_before = await load_pre_match_ratings(self._store, match)
        except (InconsistentMatchError, PlayerNotFoundError) as e:
            # Left pending; the processor retries and eventually expires it.
            logger.warning(
                "Fully confirmed match cannot be rated yet",
                extra={"match_id": match.id, "error": e.message},
            )
            return False
        return await claim_and_rate(
            self._store, match, ratings_before, self._engine, now
        )
