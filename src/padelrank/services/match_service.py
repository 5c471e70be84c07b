# src/padelrank/services/match_service.py

"""Business logic for match-related operations."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelrank.clock import Clock, SystemClock, ensure_aware
from padelrank.config import ValidationConfig
from padelrank.db import models
from padelrank.exceptions import (
    DuplicatePlayerError,
    InvalidScoreError,
    MatchCancelledError,
    MatchNotFoundError,
    MatchResultAlreadyRecordedError,
    PlayerNotFoundError,
)
from padelrank.schemas import match as match_schema

logger = logging.getLogger(__name__)

MAX_SETS = 3


async def _validate_players(db: AsyncSession, player_ids: list[int]) -> None:
    """
    Validates the four player slots of a doubles match.

    Raises:
        DuplicatePlayerError: If any player_id fills more than one slot
        PlayerNotFoundError: If any player_id does not exist
    """
    seen: set[int] = set()
    duplicates: list[int] = []
    for pid in player_ids:
        if pid in seen:
            duplicates.append(pid)
        seen.add(pid)

    if duplicates:
        raise DuplicatePlayerError(sorted(set(duplicates)))

    # Validate all players exist (single query for efficiency)
    query = select(models.Player.id).where(models.Player.id.in_(player_ids))
    result = await db.execute(query)
    existing_ids = set(result.scalars().all())

    missing_ids = set(player_ids) - existing_ids
    if missing_ids:
        # Raise for the first missing player (consistent behavior)
        raise PlayerNotFoundError(min(missing_ids))

    logger.debug("Player validation passed")


def validate_sets(sets: list[match_schema.SetScore]) -> None:
    """
    Checks the shape of a submitted result.

    Raises:
        InvalidScoreError: Unless there are one to three sets of
            non-negative games
    """
    if not sets:
        raise InvalidScoreError("at least one set is required")
    if len(sets) > MAX_SETS:
        raise InvalidScoreError(f"at most {MAX_SETS} sets can be recorded")
    for number, score in enumerate(sets, start=1):
        if score.team1 < 0 or score.team2 < 0:
            raise InvalidScoreError(f"set {number} has a negative game count")


async def process_new_match(
    db: AsyncSession, match_in: match_schema.MatchCreate
) -> models.Match:
    """
    Creates a scheduled doubles match.

    No ratings are touched here; they change only once a recorded result
    has been validated.

    Raises:
        DuplicatePlayerError: If same player appears multiple times
        PlayerNotFoundError: If a player_id doesn't exist
    """
    logger.info("Processing new match", extra={"player_ids": match_in.player_ids})

    try:
        await _validate_players(db, match_in.player_ids)

        new_match = models.Match(**match_in.model_dump(exclude_none=True))
        db.add(new_match)
        await db.commit()
        await db.refresh(new_match)

        logger.info("Match created", extra={"match_id": new_match.id})
        return new_match

    except Exception as e:
        logger.error(
            "Failed to create match",
            extra={"player_ids": match_in.player_ids, "error": str(e)},
            exc_info=True,
        )
        await db.rollback()
        raise


async def record_match_result(
    db: AsyncSession,
    match_id: int,
    result_in: match_schema.MatchResultCreate,
    config: ValidationConfig | None = None,
    clock: Clock | None = None,
) -> models.Match:
    """
    Records the set scores of a played match and opens its dispute window.

    The match enters validation as PENDING with a deadline of
    ``completed_at + dispute window``. Ratings are applied later by the
    validation processor.

    Raises:
        MatchNotFoundError: If the match doesn't exist
        MatchCancelledError: If the match was cancelled
        MatchResultAlreadyRecordedError: If a result was recorded before
        InvalidScoreError: If the set scores are malformed
    """
    config = config or ValidationConfig()
    clock = clock or SystemClock()

    try:
        match = await db.get(models.Match, match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        if match.status == models.MatchStatus.CANCELLED:
            raise MatchCancelledError(match_id)
        if match.completed_at is not None or match.validation_status is not None:
            raise MatchResultAlreadyRecordedError(match_id)

        validate_sets(result_in.sets)

        completed_at: datetime = ensure_aware(result_in.completed_at or clock.now())
        for number, score in enumerate(result_in.sets, start=1):
            setattr(match, f"team1_score_set{number}", score.team1)
            setattr(match, f"team2_score_set{number}", score.team2)

        match.status = models.MatchStatus.COMPLETED.value
        match.completed_at = completed_at
        match.validation_deadline = completed_at + config.dispute_window
        match.validation_status = models.ValidationStatus.PENDING.value
        match.report_count = 0
        match.rating_applied = False
        match.version += 1

        await db.commit()
        await db.refresh(match)

        logger.info(
            "Match result recorded",
            extra={
                "match_id": match_id,
                "sets_won": match.sets_won(),
                "validation_deadline": match.validation_deadline.isoformat(),
            },
        )
        return match

    except Exception as e:
        logger.error(
            "Failed to record match result",
            extra={"match_id": match_id, "error": str(e)},
            exc_info=True,
        )
        await db.rollback()
        raise
