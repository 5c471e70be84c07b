# tests/test_api_players.py

"""Tests for the Player API endpoints."""

import pytest
from httpx import AsyncClient
from padelrank.services.validation_service import MatchValidationService


async def create_player(client: AsyncClient, name: str) -> int:
    """Helper to create a player and return its ID."""
    res = await client.post("/players/", json={"name": name})
    assert res.status_code == 201
    return int(res.json()["id"])


@pytest.mark.asyncio
async def test_create_player(async_client: AsyncClient):
    """A new player starts at the default Glicko-2 rating."""
    response = await async_client.post("/players/", json={"name": "Paquito"})

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Paquito"
    assert isinstance(data["id"], int)
    assert "created_at" in data
    assert data["rating_info"] == {"rating": 1500.0, "rd": 350.0, "vol": 0.06}
    assert data["tier"] == "Advanced"


@pytest.mark.asyncio
async def test_create_player_duplicate_name(async_client: AsyncClient):
    await create_player(async_client, "Lucia")

    response = await async_client.post("/players/", json={"name": "Lucia"})

    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]


@pytest.mark.asyncio
async def test_create_player_empty_name(async_client: AsyncClient):
    response = await async_client.post("/players/", json={"name": ""})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_read_player(async_client: AsyncClient):
    player_id = await create_player(async_client, "Marta")

    response = await async_client.get(f"/players/{player_id}")

    assert response.status_code == 200
    assert response.json()["name"] == "Marta"


@pytest.mark.asyncio
async def test_read_nonexistent_player_returns_404(async_client: AsyncClient):
    response = await async_client.get("/players/999999")

    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


@pytest.mark.asyncio
async def test_read_players_paginated(async_client: AsyncClient):
    for name in ("Ana", "Bea", "Cris"):
        await create_player(async_client, name)

    response = await async_client.get(
        "/players/", params={"limit": 2, "sort_by": "name", "sort_order": "desc"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["has_more"] is True
    assert [p["name"] for p in data["items"]] == ["Cris", "Bea"]

    last_page = await async_client.get("/players/", params={"skip": 2, "limit": 2})
    assert last_page.json()["has_more"] is False
    assert len(last_page.json()["items"]) == 1


@pytest.mark.asyncio
async def test_player_matches_in_any_slot(
    async_client: AsyncClient, make_match, players
):
    await make_match()
    await make_match(validation_status="disputed")

    # Diego plays in slot 4 of both matches
    response = await async_client.get(f"/players/{players[3].id}/matches")
    filtered = await async_client.get(
        f"/players/{players[3].id}/matches", params={"validation_status": "disputed"}
    )

    assert response.json()["total"] == 2
    assert filtered.json()["total"] == 1
    assert filtered.json()["items"][0]["validation_status"] == "disputed"


@pytest.mark.asyncio
async def test_player_matches_of_unknown_player(async_client: AsyncClient):
    response = await async_client.get("/players/999999/matches")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_rating_history_after_validation(
    async_client: AsyncClient, make_match, players, store_factory, clock
):
    match = await make_match(sets=((6, 1), (6, 2)))
    clock.advance(hours=25)
    await MatchValidationService(store_factory, clock=clock).process_expired_validations()

    winner = await async_client.get(f"/players/{players[0].id}/rating-history")
    loser = await async_client.get(f"/players/{players[2].id}/rating-history")

    assert winner.status_code == 200
    [change] = winner.json()
    assert change["match_id"] == match.id
    assert change["rating_before"] == 1500.0
    assert change["rating_change"] > 0
    assert loser.json()[0]["rating_change"] < 0

    player = (await async_client.get(f"/players/{players[0].id}")).json()
    assert player["rating_info"]["rating"] == pytest.approx(change["rating_after"])


@pytest.mark.asyncio
async def test_rating_history_empty_before_validation(
    async_client: AsyncClient, make_match, players
):
    await make_match()

    response = await async_client.get(f"/players/{players[0].id}/rating-history")

    assert response.status_code == 200
    assert response.json() == []
