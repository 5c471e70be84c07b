# tests/test_confirmation_service.py

"""Tests for score confirmation, rejection and early validation."""

from unittest.mock import AsyncMock, patch

import pytest
from padelrank.db.models import (
    Match,
    MatchRatingChange,
    Player,
    ValidationStatus,
)
from padelrank.exceptions import MatchNotFoundError
from padelrank.rating.glicko2_engine import GlickoRating, compute_match_ratings
from padelrank.repositories.sqlalchemy_store import SqlAlchemyValidationStore
from padelrank.services.confirmation_service import (
    ConfirmationRefusal,
    MatchConfirmationService,
)
from padelrank.services.validation_service import MatchValidationService
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def events() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(db_session: AsyncSession, clock, events) -> MatchConfirmationService:
    return MatchConfirmationService(
        SqlAlchemyValidationStore(db_session), clock=clock, events=events
    )


async def count_rating_changes(db: AsyncSession, match_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(MatchRatingChange)
        .where(MatchRatingChange.match_id == match_id)
    )
    return result.scalar_one()


async def confirm_all(service, match_id, players):
    results = []
    for player in players:
        results.append(await service.confirm_match_score(match_id, player.id))
    return results


# =============================================================================
# Eligibility
# =============================================================================


@pytest.mark.asyncio
async def test_participant_may_confirm_inside_window(service, make_match, players):
    match = await make_match()

    eligibility = await service.can_user_confirm_match(match.id, players[3].id)

    assert eligibility.can_confirm
    assert eligibility.refusal is None


@pytest.mark.asyncio
async def test_anonymous_user_is_refused(service, make_match):
    match = await make_match()

    eligibility = await service.can_user_confirm_match(match.id, None)

    assert eligibility.refusal == ConfirmationRefusal.NOT_AUTHENTICATED


@pytest.mark.asyncio
async def test_non_participant_is_refused(service, make_match, db_session):
    match = await make_match()
    outsider = Player(name="Spectator")
    db_session.add(outsider)
    await db_session.commit()

    result = await service.confirm_match_score(match.id, outsider.id)

    assert not result.success
    assert result.refusal == ConfirmationRefusal.NOT_PARTICIPANT
    assert result.error == "Only players in this match can confirm it"


@pytest.mark.asyncio
async def test_match_without_result_is_refused(service, db_session, players):
    match = Match(
        player1_id=players[0].id,
        player2_id=players[1].id,
        player3_id=players[2].id,
        player4_id=players[3].id,
        status="scheduled",
    )
    db_session.add(match)
    await db_session.commit()

    eligibility = await service.can_user_confirm_match(match.id, players[0].id)

    assert eligibility.refusal == ConfirmationRefusal.NO_RESULT


@pytest.mark.asyncio
async def test_unknown_match_is_refused(service, players):
    result = await service.confirm_match_score(9999, players[0].id)

    assert result.refusal == ConfirmationRefusal.MATCH_NOT_FOUND


@pytest.mark.asyncio
async def test_second_answer_from_same_player_is_refused(service, make_match, players):
    match = await make_match()
    await service.confirm_match_score(match.id, players[0].id)

    result = await service.reject_match_score(match.id, players[0].id, "changed my mind")

    assert not result.success
    assert result.refusal == ConfirmationRefusal.ALREADY_RESPONDED


@pytest.mark.asyncio
async def test_closed_window_is_refused(service, make_match, players, clock):
    match = await make_match()
    clock.advance(hours=24)

    result = await service.confirm_match_score(match.id, players[0].id)

    assert result.refusal == ConfirmationRefusal.WINDOW_CLOSED


@pytest.mark.asyncio
async def test_resolved_match_is_refused(service, make_match, players):
    match = await make_match(validation_status="validated", rating_applied=True)

    result = await service.confirm_match_score(match.id, players[0].id)

    assert result.refusal == ConfirmationRefusal.ALREADY_RESOLVED


# =============================================================================
# Confirming
# =============================================================================


@pytest.mark.asyncio
async def test_partial_confirmation_keeps_match_pending(
    service, make_match, players, db_session
):
    match = await make_match()

    results = await confirm_all(service, match.id, players[:3])

    assert all(r.success for r in results)
    assert not any(r.validated for r in results)
    summary = results[-1].summary
    assert summary.confirmed_count == 3
    assert summary.pending_count == 1
    assert not summary.all_confirmed
    await db_session.refresh(match)
    assert match.validation_status == ValidationStatus.PENDING.value
    assert match.rating_applied is False


@pytest.mark.asyncio
async def test_fourth_confirmation_validates_and_rates(
    service, make_match, players, db_session, events
):
    match = await make_match(sets=((6, 2), (6, 3)))
    before = [GlickoRating.from_dict(p.rating_info) for p in players]

    results = await confirm_all(service, match.id, players)

    last = results[-1]
    assert last.validated
    assert last.summary.all_confirmed
    assert last.summary.validation_status == ValidationStatus.VALIDATED.value
    assert not last.summary.can_apply_ratings

    await db_session.refresh(match)
    assert match.validation_status == ValidationStatus.VALIDATED.value
    assert match.rating_applied is True
    assert await count_rating_changes(db_session, match.id) == 4

    expected = compute_match_ratings(*before, 2, 0)
    for player, want in zip(players, expected):
        await db_session.refresh(player)
        assert player.rating_info["rating"] == pytest.approx(want.rating)

    events.validation_status_changed.assert_awaited_once_with(
        match.id, ValidationStatus.PENDING, ValidationStatus.VALIDATED
    )


@pytest.mark.asyncio
async def test_confirmed_match_is_skipped_by_processor(
    service, make_match, players, store_factory, clock, db_session
):
    match = await make_match()
    await confirm_all(service, match.id, players)
    clock.advance(hours=25)

    result = await MatchValidationService(
        store_factory, clock=clock
    ).process_expired_validations()

    assert result.processed == 0
    assert await count_rating_changes(db_session, match.id) == 4


@pytest.mark.asyncio
async def test_processor_validates_partly_confirmed_match(
    service, make_match, players, store_factory, clock, db_session
):
    match = await make_match()
    await confirm_all(service, match.id, players[:3])
    clock.advance(hours=25)

    result = await MatchValidationService(
        store_factory, clock=clock
    ).process_expired_validations()

    assert result.succeeded == 1
    assert await count_rating_changes(db_session, match.id) == 4


@pytest.mark.asyncio
async def test_ratings_already_applied_are_not_applied_again(
    service, make_match, players, db_session
):
    match = await make_match(rating_applied=True)

    results = await confirm_all(service, match.id, players)

    assert not results[-1].validated
    assert await count_rating_changes(db_session, match.id) == 0


# =============================================================================
# Rejecting
# =============================================================================


@pytest.mark.asyncio
async def test_single_rejection_does_not_dispute(service, make_match, players):
    match = await make_match()

    result = await service.reject_match_score(match.id, players[2].id, "It was 6-4 4-6")

    assert result.success
    assert not result.disputed
    assert result.confirmation.reason == "It was 6-4 4-6"
    assert result.summary.rejected_count == 1
    assert not result.summary.should_dispute


@pytest.mark.asyncio
async def test_rejection_threshold_disputes_without_rating(
    service, make_match, players, db_session, events
):
    match = await make_match()
    await service.reject_match_score(match.id, players[2].id)

    result = await service.reject_match_score(match.id, players[3].id)

    assert result.disputed
    assert result.summary.should_dispute
    await db_session.refresh(match)
    assert match.validation_status == ValidationStatus.DISPUTED.value
    assert match.disputed_at is not None
    assert match.rating_applied is False
    assert await count_rating_changes(db_session, match.id) == 0
    events.validation_status_changed.assert_awaited_once_with(
        match.id, ValidationStatus.PENDING, ValidationStatus.DISPUTED
    )


@pytest.mark.asyncio
async def test_disputed_match_cannot_be_confirmed(service, make_match, players):
    match = await make_match()
    await service.reject_match_score(match.id, players[2].id)
    await service.reject_match_score(match.id, players[3].id)

    result = await service.confirm_match_score(match.id, players[0].id)

    assert result.refusal == ConfirmationRefusal.ALREADY_RESOLVED


@pytest.mark.asyncio
async def test_one_rejection_blocks_early_validation(
    service, make_match, players, db_session
):
    match = await make_match()
    await service.reject_match_score(match.id, players[0].id)

    results = await confirm_all(service, match.id, players[1:])

    assert not any(r.validated for r in results)
    assert results[-1].summary.pending_count == 0
    await db_session.refresh(match)
    assert match.validation_status == ValidationStatus.PENDING.value


# =============================================================================
# Reads and failures
# =============================================================================


@pytest.mark.asyncio
async def test_summary_lists_answers_in_order(service, make_match, players, clock):
    match = await make_match()
    await service.confirm_match_score(match.id, players[1].id)
    clock.advance(minutes=5)
    await service.reject_match_score(match.id, players[2].id, "wrong")

    summary = await service.get_confirmation_summary(match.id)

    assert [c.player_id for c in summary.confirmations] == [
        players[1].id,
        players[2].id,
    ]
    assert (summary.confirmed_count, summary.rejected_count) == (1, 1)
    assert summary.pending_count == 2


@pytest.mark.asyncio
async def test_summary_of_unknown_match_raises(service):
    with pytest.raises(MatchNotFoundError):
        await service.get_confirmation_summary(9999)


@pytest.mark.asyncio
async def test_store_failure_rolls_back_and_propagates(
    service, make_match, players, session_maker
):
    match = await make_match()
    match_id, player_id = match.id, players[0].id

    with patch.object(
        SqlAlchemyValidationStore,
        "list_confirmations",
        AsyncMock(side_effect=RuntimeError("database went away")),
    ):
        with pytest.raises(RuntimeError):
            await service.confirm_match_score(match_id, player_id)

    async with session_maker() as session:
        store = SqlAlchemyValidationStore(session)
        assert await store.get_confirmation(match_id, player_id) is None
