# tests/conftest.py

"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from padelrank.api.deps import get_clock
from padelrank.db.models import Base, Match, Player
from padelrank.db.session import get_db
from padelrank.main import app
from padelrank.repositories.sqlalchemy_store import session_store_factory
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Arbitrary fixed "now" for every clock-driven test
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class ManualClock:
    """A clock that only moves when told to.

    ``sleep`` records the requested delay, advances time by it and yields
    once to the event loop.
    """

    def __init__(self, start: datetime = T0) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
async def db_engine():
    """A fresh in-memory database per test."""
    # StaticPool: every session shares the single in-memory connection.
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=db_engine, expire_on_commit=False, autocommit=False, autoflush=False
    )


@pytest.fixture
async def db_session(
    session_maker: async_sessionmaker,
) -> AsyncGenerator[AsyncSession, None]:
    """Session used by a test to seed and inspect the database."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def store_factory(session_maker: async_sessionmaker):
    """Opens a new session per unit of work, like the application does."""
    return session_store_factory(session_maker)


@pytest.fixture
async def players(db_session: AsyncSession) -> list[Player]:
    """Four players with default ratings: A, B (team 1) and C, D (team 2)."""
    created = [Player(name=name) for name in ("Alice", "Bob", "Carla", "Diego")]
    db_session.add_all(created)
    await db_session.commit()
    return created


@pytest.fixture
def make_match(db_session: AsyncSession, players: list[Player]):
    """Seeds matches whose result is recorded and pending validation."""

    async def create(
        completed_at: datetime = T0,
        sets: tuple[tuple[int, int], ...] = ((6, 3), (6, 4)),
        window_hours: float = 24,
        **overrides,
    ) -> Match:
        fields = dict(
            player1_id=players[0].id,
            player2_id=players[1].id,
            player3_id=players[2].id,
            player4_id=players[3].id,
            status="completed",
            completed_at=completed_at,
            validation_deadline=completed_at + timedelta(hours=window_hours),
            validation_status="pending",
            report_count=0,
            rating_applied=False,
        )
        fields.update(overrides)
        match = Match(**fields)
        for number, (team1, team2) in enumerate(sets, start=1):
            setattr(match, f"team1_score_set{number}", team1)
            setattr(match, f"team2_score_set{number}", team2)
        db_session.add(match)
        await db_session.commit()
        return match

    return create


@pytest.fixture
async def async_client(
    session_maker: async_sessionmaker, clock: ManualClock
) -> AsyncGenerator[AsyncClient, None]:
    """Fixture to provide an async test client for the API."""

    # Override the get_db dependency to use the test database
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up the overrides after the test
    app.dependency_overrides.clear()
