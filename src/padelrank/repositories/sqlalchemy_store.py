# src/padelrank/repositories/sqlalchemy_store.py

"""SQLAlchemy implementation of the validation store contracts."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from padelrank.clock import ensure_aware
from padelrank.db import models
from padelrank.exceptions import (
    DuplicateConfirmationError,
    DuplicateReportError,
    PlayerNotFoundError,
)
from padelrank.rating.glicko2_engine import GlickoRating

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


class SqlAlchemyValidationStore:
    """Match, report and rating stores over one ``AsyncSession``.

    The session is the unit of work: nothing is visible to other sessions
    until ``commit()``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def get_match(self, match_id: int) -> models.Match | None:
        return await self._session.get(models.Match, match_id)

    async def list_matches_past_deadline(
        self, now: datetime, limit: int
    ) -> list[models.Match]:
        query = (
            select(models.Match)
            .where(
                models.Match.validation_status == models.ValidationStatus.PENDING.value,
                models.Match.rating_applied.is_(False),
                models.Match.validation_deadline.is_not(None),
                models.Match.validation_deadline <= ensure_aware(now),
            )
            .order_by(models.Match.validation_deadline, models.Match.id)
            .limit(limit)
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def update_match_status(
        self,
        match_id: int,
        status: models.ValidationStatus,
        rating_applied: bool,
        *,
        expected_rating_applied: bool = False,
        at: datetime | None = None,
    ) -> bool:
        values: dict = {
            "validation_status": status.value,
            "rating_applied": rating_applied,
            "version": models.Match.version + 1,
        }
        if at is not None:
            at = ensure_aware(at)
            values["validation_completed_at"] = at
            if status == models.ValidationStatus.DISPUTED:
                values["disputed_at"] = at

        # Compare-and-set: only a still-pending row with the expected flag
        # is written, so racing callers cannot both win.
        stmt = (
            update(models.Match)
            .where(
                models.Match.id == match_id,
                models.Match.validation_status
                == models.ValidationStatus.PENDING.value,
                models.Match.rating_applied.is_(expected_rating_applied),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        updated = result.rowcount == 1  # type: ignore[attr-defined]
        if updated:
            await self._reload(match_id)
        logger.debug(
            "Conditional match status update",
            extra={"match_id": match_id, "status": status.value, "updated": updated},
        )
        return updated

    async def increment_report_count(self, match_id: int) -> int:
        await self._session.execute(
            update(models.Match)
            .where(models.Match.id == match_id)
            .values(report_count=models.Match.report_count + 1)
            .execution_options(synchronize_session=False)
        )
        match = await self._reload(match_id)
        return match.report_count if match is not None else 0

    async def _reload(self, match_id: int) -> models.Match | None:
        # Bulk UPDATEs bypass the identity map; re-read so loaded objects
        # never hold stale (or expired, lazy-loading) attributes.
        return await self._session.get(models.Match, match_id, populate_existing=True)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def insert_report(
        self,
        match_id: int,
        reporter_id: int,
        reason: models.ReportReason,
        details: str | None,
    ) -> models.MatchReport:
        values = {
            "match_id": match_id,
            "reporter_id": reporter_id,
            "reason": reason.value,
            "additional_details": details,
        }
        inserted = await self._insert_unique(
            models.MatchReport, values, ["match_id", "reporter_id"]
        )
        if not inserted:
            raise DuplicateReportError(match_id, reporter_id)
        report = await self._find_report(match_id, reporter_id)
        assert report is not None
        return report

    async def _insert_unique(
        self, model: type, values: dict, unique_columns: list[str]
    ) -> bool:
        """Inserts one row; returns False when ``unique_columns`` already exist."""
        dialect_name = self._session.get_bind().dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect_name)

        if insert_fn is not None:
            # ON CONFLICT DO NOTHING keeps the session usable on a duplicate.
            stmt = (
                insert_fn(model.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=unique_columns)
            )
            result = await self._session.execute(stmt)
            return result.rowcount != 0  # type: ignore[attr-defined]

        try:
            self._session.add(model(**values))
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            return False
        return True

    async def _find_report(
        self, match_id: int, reporter_id: int
    ) -> models.MatchReport | None:
        result = await self._session.execute(
            select(models.MatchReport).where(
                models.MatchReport.match_id == match_id,
                models.MatchReport.reporter_id == reporter_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_reports(self, match_id: int) -> list[models.MatchReport]:
        result = await self._session.execute(
            select(models.MatchReport)
            .where(models.MatchReport.match_id == match_id)
            .order_by(models.MatchReport.created_at.desc(), models.MatchReport.id.desc())
        )
        return list(result.scalars().all())

    async def count_reports(self, match_id: int) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(models.MatchReport)
            .where(models.MatchReport.match_id == match_id)
        )
        return int(result.scalar_one())

    async def has_reported(self, match_id: int, reporter_id: int) -> bool:
        return await self._find_report(match_id, reporter_id) is not None

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    async def insert_confirmation(
        self,
        match_id: int,
        player_id: int,
        status: models.ConfirmationStatus,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> models.MatchConfirmation:
        values: dict = {
            "match_id": match_id,
            "player_id": player_id,
            "status": status.value,
            "reason": reason,
        }
        if at is not None:
            values["responded_at"] = ensure_aware(at)
        inserted = await self._insert_unique(
            models.MatchConfirmation, values, ["match_id", "player_id"]
        )
        if not inserted:
            raise DuplicateConfirmationError(match_id, player_id)
        confirmation = await self.get_confirmation(match_id, player_id)
        assert confirmation is not None
        return confirmation

    async def get_confirmation(
        self, match_id: int, player_id: int
    ) -> models.MatchConfirmation | None:
        result = await self._session.execute(
            select(models.MatchConfirmation).where(
                models.MatchConfirmation.match_id == match_id,
                models.MatchConfirmation.player_id == player_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_confirmations(
        self, match_id: int
    ) -> list[models.MatchConfirmation]:
        result = await self._session.execute(
            select(models.MatchConfirmation)
            .where(models.MatchConfirmation.match_id == match_id)
            .order_by(
                models.MatchConfirmation.responded_at, models.MatchConfirmation.id
            )
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    async def get_rating(self, player_id: int) -> GlickoRating:
        player = await self._session.get(models.Player, player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)
        return GlickoRating.from_dict(player.rating_info or {})

    async def set_ratings(self, ratings: Mapping[int, GlickoRating]) -> None:
        players = await models.Player.find_many(self._session, list(ratings))
        found = {p.id: p for p in players}
        missing = set(ratings) - set(found)
        if missing:
            raise PlayerNotFoundError(min(missing))

        for player_id, rating in ratings.items():
            player = found[player_id]
            # Assign a new dict so the JSON column is marked dirty.
            player.rating_info = rating.as_dict()
            player.version += 1
            self._session.add(player)

        # Flush but don't commit; the caller owns the transaction boundary.
        await self._session.flush()

    async def record_rating_changes(
        self,
        match_id: int,
        before: Mapping[int, GlickoRating],
        after: Mapping[int, GlickoRating],
    ) -> None:
        for player_id, new in after.items():
            old = before[player_id]
            self._session.add(
                models.MatchRatingChange(
                    match_id=match_id,
                    player_id=player_id,
                    rating_before=old.rating,
                    rd_before=old.rd,
                    vol_before=old.vol,
                    rating_after=new.rating,
                    rd_after=new.rd,
                    vol_after=new.vol,
                )
            )
        await self._session.flush()


def session_store_factory(session_maker: async_sessionmaker):
    """Builds a ``StoreFactory`` that opens one session per unit of work."""

    @asynccontextmanager
    async def open_store() -> AsyncIterator[SqlAlchemyValidationStore]:
        async with session_maker() as session:
            yield SqlAlchemyValidationStore(session)

    return open_store
