# src/padelrank/services/validation_service.py

"""Finalizes matches whose validation window has closed.

Each match is finalized in its own unit of work:

- fewer reports than the dispute threshold -> VALIDATED, ratings applied
- reports at or above the threshold       -> DISPUTED, ratings untouched
- unresolvable past the long-stop         -> EXPIRED, ratings untouched

The VALIDATED transition flips ``rating_applied`` with a conditional update
before any rating is written, so repeated or racing runs apply a match at
most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from padelrank.clock import Clock, SystemClock, ensure_aware
from padelrank.config import ValidationConfig
from padelrank.db import models
from padelrank.exceptions import (
    InconsistentMatchError,
    MatchNotFoundError,
    PlayerNotFoundError,
)
from padelrank.rating.glicko2_engine import Glicko2Engine, GlickoRating
from padelrank.repositories.protocols import StoreFactory, ValidationStore
from padelrank.services.events import (
    NullEventSink,
    ValidationEventSink,
    publish_status_change,
)

logger = logging.getLogger(__name__)


class FinalizeOutcome(str, Enum):
    VALIDATED = "validated"
    DISPUTED = "disputed"
    EXPIRED = "expired"
    # Nothing to do: already resolved elsewhere or window still open
    SKIPPED = "skipped"


_OUTCOME_STATUS = {
    FinalizeOutcome.VALIDATED: models.ValidationStatus.VALIDATED,
    FinalizeOutcome.DISPUTED: models.ValidationStatus.DISPUTED,
    FinalizeOutcome.EXPIRED: models.ValidationStatus.EXPIRED,
}


@dataclass
class BatchResult:
    """Counts for one pass over the elapsed matches."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: dict[int, FinalizeOutcome] = field(default_factory=dict)


class MatchValidationService:
    """Applies the terminal validation state to elapsed matches."""

    def __init__(
        self,
        store_factory: StoreFactory,
        config: ValidationConfig | None = None,
        clock: Clock | None = None,
        engine: Glicko2Engine | None = None,
        events: ValidationEventSink | None = None,
    ) -> None:
        self._store_factory = store_factory
        self._config = config or ValidationConfig()
        self._clock = clock or SystemClock()
        self._engine = engine or Glicko2Engine()
        self._events = events or NullEventSink()

    async def process_expired_validations(self, limit: int | None = None) -> BatchResult:
        """Finalizes up to ``limit`` pending matches whose deadline passed.

        A failure on one match is recorded and does not stop the batch.
        Failing to list the batch at all propagates to the caller.
        """
        limit = limit if limit is not None else self._config.batch_size_limit
        now = self._clock.now()

        async with self._store_factory() as store:
            matches = await store.list_matches_past_deadline(now, limit)
            match_ids = [m.id for m in matches]

        result = BatchResult(processed=len(match_ids))
        for match_id in match_ids:
            try:
                outcome = await self.finalize_match(match_id)
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Match {match_id}: {e}")
                logger.error(
                    "Failed to finalize match",
                    extra={"match_id": match_id, "error": str(e)},
                    exc_info=True,
                )
            else:
                result.succeeded += 1
                result.outcomes[match_id] = outcome

        logger.info(
            "Validation batch complete",
            extra={
                "processed": result.processed,
                "succeeded": result.succeeded,
                "failed": result.failed,
            },
        )
        return result

    async def finalize_match(self, match_id: int) -> FinalizeOutcome:
        """Resolves one match in its own transaction."""
        async with self._store_factory() as store:
            try:
                outcome = await self._finalize(store, match_id)
                await store.commit()
            except Exception:
                await store.rollback()
                raise

        if outcome in _OUTCOME_STATUS:
            await publish_status_change(
                self._events,
                match_id,
                models.ValidationStatus.PENDING,
                _OUTCOME_STATUS[outcome],
            )
        return outcome

    async def _finalize(self, store: ValidationStore, match_id: int) -> FinalizeOutcome:
        match = await store.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)

        if (
            match.validation_status != models.ValidationStatus.PENDING
            or match.rating_applied
        ):
            logger.debug(
                "Match already resolved, skipping",
                extra={"match_id": match_id, "status": match.validation_status},
            )
            return FinalizeOutcome.SKIPPED

        now = self._clock.now()
        if match.validation_deadline is None or ensure_aware(
            match.validation_deadline
        ) > now:
            return FinalizeOutcome.SKIPPED

        if match.report_count >= self._config.dispute_threshold:
            # Threshold reached but the report path did not flip the status.
            moved = await store.update_match_status(
                match_id, models.ValidationStatus.DISPUTED, False, at=now
            )
            if moved:
                logger.warning(
                    "Match disputed at window close",
                    extra={"match_id": match_id, "report_count": match.report_count},
                )
            return FinalizeOutcome.DISPUTED if moved else FinalizeOutcome.SKIPPED

        try:
            ratings_before = await load_pre_match_ratings(store, match)
        except (InconsistentMatchError, PlayerNotFoundError) as e:
            long_stop_at = ensure_aware(match.validation_deadline) + self._config.long_stop
            if now < long_stop_at:
                raise
            moved = await store.update_match_status(
                match_id, models.ValidationStatus.EXPIRED, False, at=now
            )
            logger.warning(
                "Expired unresolvable match",
                extra={"match_id": match_id, "error": e.message},
            )
            return FinalizeOutcome.EXPIRED if moved else FinalizeOutcome.SKIPPED

        claimed = await claim_and_rate(store, match, ratings_before, self._engine, now)
        if not claimed:
            logger.info(
                "Match claimed by another run, skipping",
                extra={"match_id": match_id},
            )
            return FinalizeOutcome.SKIPPED
        return FinalizeOutcome.VALIDATED


def _check_consistency(match: models.Match) -> None:
    if match.completed_at is None:
        raise InconsistentMatchError(match.id, "no completion time recorded")
    if not match.set_scores:
        raise InconsistentMatchError(match.id, "no set scores recorded")
    if len(set(match.player_ids)) != 4:
        raise InconsistentMatchError(match.id, "players are not four distinct")


async def load_pre_match_ratings(
    store: ValidationStore, match: models.Match
) -> dict[int, GlickoRating]:
    """
    Reads the current rating of all four players of a rateable match.

    Raises:
        InconsistentMatchError: If the stored result cannot be rated
        PlayerNotFoundError: If a player no longer exists
    """
    _check_consistency(match)
    return {player_id: await store.get_rating(player_id) for player_id in match.player_ids}


async def claim_and_rate(
    store: ValidationStore,
    match: models.Match,
    ratings_before: dict[int, GlickoRating],
    engine: Glicko2Engine,
    now: datetime,
) -> bool:
    """
    Moves a pending match to VALIDATED and writes its ratings.

    The match is claimed with a conditional update before any rating is
    written; returns False, writing nothing, when another caller holds the
    claim. The caller commits.
    """
    claimed = await store.update_match_status(
        match.id,
        models.ValidationStatus.VALIDATED,
        rating_applied=True,
        expected_rating_applied=False,
        at=now,
    )
    if not claimed:
        return False

    team1_sets, team2_sets = match.sets_won()
    updated = engine.compute_match_ratings(
        ratings_before[match.player1_id],
        ratings_before[match.player2_id],
        ratings_before[match.player3_id],
        ratings_before[match.player4_id],
        team1_sets,
        team2_sets,
    )
    ratings_after = dict(zip(match.player_ids, updated))
    await store.set_ratings(ratings_after)
    await store.record_rating_changes(match.id, ratings_before, ratings_after)

    logger.info(
        "Match validated and ratings applied",
        extra={
            "match_id": match.id,
            "sets_won": (team1_sets, team2_sets),
            "changes": {
                pid: round(ratings_after[pid].rating - ratings_before[pid].rating, 2)
                for pid in match.player_ids
            },
        },
    )
    return True
