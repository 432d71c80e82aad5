"""Shared test fixtures for the turn engine, services and runner tests."""

import random

import pytest
import pytest_asyncio
from sqlalchemy import select

from tycoon.data import GameRepository, close_db, create_tables, get_settings, init_db, session_scope
from tycoon.data.models import GameProperty, Seat
from tycoon.services import GameService
from tycoon.settings import get_arena_settings, get_llm_settings


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    """Keep cached settings from leaking between tests."""
    monkeypatch.setenv("DEBUG", "true")
    get_settings.cache_clear()
    get_arena_settings.cache_clear()
    get_llm_settings.cache_clear()
    yield
    get_settings.cache_clear()
    get_arena_settings.cache_clear()
    get_llm_settings.cache_clear()


@pytest.fixture
def rng():
    """Seeded random source for reproducible card draws."""
    return random.Random(42)


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """File-backed SQLite database with all tables created."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    await init_db(url)
    await create_tables()
    yield url
    await close_db()


async def make_game(players: int = 2, *, agents: bool = False, start: bool = True):
    """Create a game with ``players`` seats; returns (game_id, [seat_id, ...])."""
    from tycoon.core.agents import AgentProfile

    async with session_scope() as session:
        service = GameService(GameRepository(session))
        game = await service.create_game(number_of_players=players, is_agent_only=agents)
        seat_ids = []
        for i in range(players):
            profile = AgentProfile(name=f"Agent{i}") if agents else None
            seat = await service.add_seat(game.id, owner_ref=f"player-{i}", profile=profile)
            seat_ids.append(seat.id)
        if start:
            await service.start_game(game.id)
        return game.id, seat_ids


async def update_seat(seat_id: int, **fields) -> None:
    async with session_scope() as session:
        seat = await session.get(Seat, seat_id)
        for key, value in fields.items():
            setattr(seat, key, value)


async def get_seat(seat_id: int) -> Seat:
    async with session_scope() as session:
        return await session.get(Seat, seat_id)


async def set_owner(game_id: int, property_id: int, seat_id, **fields) -> None:
    async with session_scope() as session:
        record = (
            await session.execute(
                select(GameProperty).where(
                    GameProperty.game_id == game_id,
                    GameProperty.property_id == property_id,
                )
            )
        ).scalar_one()
        record.player_id = seat_id
        for key, value in fields.items():
            setattr(record, key, value)


async def get_property(game_id: int, property_id: int) -> GameProperty:
    async with session_scope() as session:
        return (
            await session.execute(
                select(GameProperty).where(
                    GameProperty.game_id == game_id,
                    GameProperty.property_id == property_id,
                )
            )
        ).scalar_one()
