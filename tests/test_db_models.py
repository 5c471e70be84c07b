# tests/test_db_models.py

"""Tests for the database models."""

from datetime import datetime, timezone

import pytest
from padelrank.db.models import Match, MatchReport, Player
from padelrank.schemas.match import MatchRead
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.mark.asyncio
async def test_create_player(db_session: AsyncSession):
    """Test creating a Player instance in the database."""
    new_player = Player(name="TestPlayer")

    db_session.add(new_player)
    await db_session.commit()
    await db_session.refresh(new_player)

    assert new_player.id is not None
    assert new_player.rating_info == {"rating": 1500.0, "rd": 350.0, "vol": 0.06}
    assert new_player.version == 1

    result = await db_session.execute(select(Player).where(Player.name == "TestPlayer"))
    player_from_db = result.scalar_one_or_none()

    assert player_from_db is not None
    assert player_from_db.id == new_player.id


@pytest.mark.asyncio
async def test_find_many_players(db_session: AsyncSession, players):
    found = await Player.find_many(db_session, [players[0].id, players[2].id, 999])

    assert {p.name for p in found} == {"Alice", "Carla"}


def test_match_sets_and_winner():
    match = Match(
        player1_id=1,
        player2_id=2,
        player3_id=3,
        player4_id=4,
        team1_score_set1=6,
        team2_score_set1=7,
        team1_score_set2=6,
        team2_score_set2=2,
        team1_score_set3=10,
        team2_score_set3=8,
    )

    assert match.set_scores == [(6, 7), (6, 2), (10, 8)]
    assert match.sets_won() == (2, 1)
    assert match.winner_team == 1
    assert match.has_participant(3)
    assert not match.has_participant(5)


def test_unplayed_sets_are_ignored():
    match = Match(
        player1_id=1,
        player2_id=2,
        player3_id=3,
        player4_id=4,
        team1_score_set1=5,
        team2_score_set1=5,
        team1_score_set2=4,
    )

    assert match.set_scores == [(5, 5)]
    assert match.sets_won() == (0, 0)
    assert match.winner_team == 0


@pytest.mark.asyncio
async def test_one_report_per_reporter_per_match(
    db_session: AsyncSession, make_match, players
):
    match = await make_match()
    db_session.add(
        MatchReport(match_id=match.id, reporter_id=players[0].id, reason="other")
    )
    await db_session.commit()

    db_session.add(
        MatchReport(match_id=match.id, reporter_id=players[0].id, reason="other")
    )
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.parametrize(
    "sets, winner",
    [
        ({"team1_score_set1": 6, "team2_score_set1": 3}, 1),
        ({"team1_score_set1": 6, "team2_score_set1": 6, "team1_score_set2": 4}, 0),
        (
            {
                "team1_score_set1": 7,
                "team2_score_set1": 6,
                "team1_score_set2": 2,
                "team2_score_set2": 6,
                "team1_score_set3": 3,
                "team2_score_set3": 6,
            },
            2,
        ),
    ],
)
def test_match_read_winner_agrees_with_model(sets, winner):
    match = Match(
        id=1,
        player1_id=1,
        player2_id=2,
        player3_id=3,
        player4_id=4,
        status="completed",
        completed_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        report_count=0,
        rating_applied=False,
        **sets,
    )

    read = MatchRead.model_validate(match)

    assert match.winner_team == winner
    assert read.winner_team == winner


def test_match_read_has_no_winner_before_result():
    match = Match(
        id=1,
        player1_id=1,
        player2_id=2,
        player3_id=3,
        player4_id=4,
        status="scheduled",
        report_count=0,
        rating_applied=False,
    )

    assert MatchRead.model_validate(match).winner_team is None
