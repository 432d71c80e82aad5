"""
Tests for the game lifecycle service.
"""

import pytest

from tycoon.core.agents import AgentProfile
from tycoon.core.exceptions import GameNotFoundError, InvalidActionError, InvalidStateError
from tycoon.core.game.board import OWNABLE_IDS
from tycoon.data import GameRepository, GameStatus, run_in_transaction
from tycoon.services import GameService

from conftest import make_game


async def with_service(fn):
    return await run_in_transaction(lambda s: fn(GameService(GameRepository(s))))


@pytest.mark.asyncio
async def test_create_game_seeds_bank_owned_properties(db):
    game = await with_service(lambda svc: svc.create_game(number_of_players=3))
    assert game.status is GameStatus.PENDING
    assert game.round_number == 1
    assert len(game.code) == 8

    view = await with_service(lambda svc: svc.load(game.id))
    assert sorted(p.property_id for p in view.properties) == sorted(OWNABLE_IDS)
    assert all(p.player_id is None for p in view.properties)


@pytest.mark.asyncio
@pytest.mark.parametrize("players", [1, 9])
async def test_create_game_player_bounds(db, players):
    with pytest.raises(InvalidActionError):
        await with_service(lambda svc: svc.create_game(number_of_players=players))


@pytest.mark.asyncio
async def test_seats_get_turn_order_and_starting_balance(db):
    game_id, seat_ids = await make_game(3, start=False)
    view = await with_service(lambda svc: svc.load(game_id))
    assert [s.id for s in view.seats] == seat_ids
    assert [s.turn_order for s in view.seats] == [1, 2, 3]
    assert all(s.balance == 1500 for s in view.seats)


@pytest.mark.asyncio
async def test_table_full(db):
    game_id, _ = await make_game(2, start=False)
    with pytest.raises(InvalidActionError):
        await with_service(lambda svc: svc.add_seat(game_id, owner_ref="late"))


@pytest.mark.asyncio
async def test_agent_only_game_rejects_humans(db):
    game = await with_service(lambda svc: svc.create_game(number_of_players=2, is_agent_only=True))
    with pytest.raises(InvalidActionError):
        await with_service(lambda svc: svc.add_seat(game.id, owner_ref="human"))


@pytest.mark.asyncio
async def test_start_requires_full_table(db):
    game = await with_service(lambda svc: svc.create_game(number_of_players=3))
    await with_service(lambda svc: svc.add_seat(game.id, owner_ref="a"))
    with pytest.raises(InvalidStateError):
        await with_service(lambda svc: svc.start_game(game.id))


@pytest.mark.asyncio
async def test_start_hands_turn_to_first_seat(db):
    game_id, seat_ids = await make_game(2)
    view = await with_service(lambda svc: svc.load(game_id))
    assert view.game.status is GameStatus.RUNNING
    assert view.game.started_at is not None
    assert view.current_seat.id == seat_ids[0]

    with pytest.raises(InvalidStateError):
        await with_service(lambda svc: svc.start_game(game_id))
    with pytest.raises(InvalidStateError):
        await with_service(lambda svc: svc.add_seat(game_id, owner_ref="late"))


@pytest.mark.asyncio
async def test_create_agent_game(db):
    profiles = [AgentProfile("Ada", risk_profile="aggressive"), AgentProfile("Bo", strategy="random")]
    game = await with_service(lambda svc: svc.create_agent_game(profiles))
    assert game.status is GameStatus.RUNNING
    assert game.is_agent_only

    view = await with_service(lambda svc: svc.load(game.id))
    assert [s.display_name for s in view.seats] == ["Ada", "Bo"]
    assert [s.strategy for s in view.seats] == ["heuristic", "random"]
    assert view.seats[0].risk_profile == "aggressive"
    assert all(s.is_agent for s in view.seats)


@pytest.mark.asyncio
async def test_stop_and_complete(db):
    game_id, seat_ids = await make_game(2)
    stopped = await with_service(lambda svc: svc.stop_game(game_id))
    assert stopped.status is GameStatus.STOPPED
    assert stopped.finished_at is not None

    # Terminal games are left alone
    again = await with_service(lambda svc: svc.complete_game(game_id, seat_ids[0]))
    assert again.status is GameStatus.STOPPED
    assert again.winner_id is None


@pytest.mark.asyncio
async def test_complete_records_winner(db):
    game_id, seat_ids = await make_game(2)
    game = await with_service(lambda svc: svc.complete_game(game_id, seat_ids[1]))
    assert game.status is GameStatus.COMPLETED
    assert game.winner_id == seat_ids[1]


@pytest.mark.asyncio
async def test_load_unknown_game(db):
    with pytest.raises(GameNotFoundError):
        await with_service(lambda svc: svc.load(12345))
