"""
Tests for the autonomous game runner.
"""

import asyncio
import random

import pytest

from tycoon.core.agents import AgentProfile, Decision, DecisionSource, DecisionType
from tycoon.core.game.dice import DiceRoll
from tycoon.data import GameRepository, GameStatus, Seat, run_in_transaction
from tycoon.server.events import Broadcaster, EventType
from tycoon.server.runner import GameRunner, pick_winner
from tycoon.services import GameService, turn_service

from conftest import get_property, get_seat, make_game, update_seat


class FixedSource(DecisionSource):
    """Returns the same kind of decision every time."""

    kind = "fixed"

    def __init__(self, decision_type: DecisionType, property_id=None):
        self.decision_type = decision_type
        self.property_id = property_id
        self.snapshots = []

    async def decide(self, snapshot, profile: AgentProfile) -> Decision:
        self.snapshots.append(snapshot)
        data = {}
        if self.decision_type in (DecisionType.BUY_PROPERTY, DecisionType.PAY_RENT):
            data["property_id"] = self.property_id if self.property_id is not None else snapshot["board_position"]
        return Decision(self.decision_type, data, confidence=1.0)


class SlowSource(FixedSource):
    """Ends the turn after a delay longer than the tick interval."""

    def __init__(self, delay: float):
        super().__init__(DecisionType.END_TURN)
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def decide(self, snapshot, profile: AgentProfile) -> Decision:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            return await super().decide(snapshot, profile)
        finally:
            self.active -= 1


class FailingSource(DecisionSource):
    async def decide(self, snapshot, profile):
        raise RuntimeError("decision source exploded")


async def load(game_id):
    return await run_in_transaction(lambda s: GameService(GameRepository(s)).load(game_id))


def make_runner(game_id, source=None, **kwargs):
    kwargs.setdefault("interval", 60.0)
    kwargs.setdefault("rng", random.Random(5))
    if source is not None:
        kwargs["source_factory"] = lambda strategy: source
    return GameRunner(game_id, **kwargs)


def seat(seat_id, balance, turn_order):
    return Seat(id=seat_id, balance=balance, turn_order=turn_order)


def test_pick_winner_last_solvent_seat():
    seats = [seat(1, 0, 1), seat(2, 900, 2), seat(3, -20, 3)]
    assert pick_winner(seats, round_number=5, round_cap=100).id == 2


def test_pick_winner_none_while_playing():
    seats = [seat(1, 100, 1), seat(2, 900, 2)]
    assert pick_winner(seats, round_number=5, round_cap=100) is None


def test_pick_winner_at_round_cap():
    seats = [seat(1, 800, 1), seat(2, 900, 2), seat(3, 900, 3)]
    # Ties go to the earlier turn order
    assert pick_winner(seats, round_number=100, round_cap=100).id == 2


def test_pick_winner_everyone_bankrupt():
    seats = [seat(1, -10, 1), seat(2, -5, 2)]
    assert pick_winner(seats, round_number=3, round_cap=100).id == 2


@pytest.mark.asyncio
async def test_tick_rolls_decides_and_passes_turn(db):
    game_id, (first, second) = await make_game(2, agents=True)
    source = FixedSource(DecisionType.END_TURN)
    runner = make_runner(game_id, source)

    outcome = await runner.tick()

    assert outcome.seat_id == first
    assert outcome.next_player_id == second
    assert len(runner.log) == 1
    entry = runner.log[0]
    assert entry["turn"] is not None
    assert entry["decision"]["type"] == "end_turn"
    turn = entry["turn"]
    assert runner.last_action == f"Agent0 rolled {turn['rolled']} to {turn['new_position']}, end_turn"

    snapshot = source.snapshots[0]
    assert snapshot["current_player"]["id"] == first
    assert snapshot["dice_roll"] == entry["turn"]["rolled"]
    assert len(snapshot["players"]) == 2

    view = await load(game_id)
    assert view.game.next_player_id == second
    assert not any(h.active for h in view.history)


@pytest.mark.asyncio
async def test_tick_skips_roll_for_seat_that_already_rolled(db):
    game_id, (first, second) = await make_game(2, agents=True)
    await run_in_transaction(lambda s: turn_service.roll(s, game_id, first, DiceRoll(2, 3)))
    runner = make_runner(game_id, FixedSource(DecisionType.END_TURN))

    outcome = await runner.tick()

    assert runner.log[0]["turn"] is None
    assert runner.last_action == "Agent0 end_turn"
    assert outcome.next_player_id == second
    assert (await get_seat(first)).position == 5


@pytest.mark.asyncio
async def test_buy_decision_goes_through_ledger(db):
    game_id, (first, _) = await make_game(2, agents=True)
    await run_in_transaction(lambda s: turn_service.roll(s, game_id, first, DiceRoll(2, 3)))
    runner = make_runner(game_id, FixedSource(DecisionType.BUY_PROPERTY))

    outcome = await runner.tick()

    assert outcome.applied["action"] == "buy_property"
    assert outcome.applied["amount"] == -200
    assert (await get_property(game_id, 5)).player_id == first
    assert (await get_seat(first)).balance == 1300


@pytest.mark.asyncio
async def test_rejected_decision_still_ends_turn(db):
    game_id, (first, second) = await make_game(2, agents=True)
    await run_in_transaction(lambda s: turn_service.roll(s, game_id, first, DiceRoll(2, 3)))
    runner = make_runner(game_id, FixedSource(DecisionType.BUY_PROPERTY, property_id=39))

    outcome = await runner.tick()

    assert outcome.applied is None
    assert "not on square 39" in outcome.rejected
    assert outcome.next_player_id == second
    assert runner.errors == 0
    assert runner.last_action == "Agent0 buy_property rejected"


@pytest.mark.asyncio
@pytest.mark.parametrize("decision_type", [DecisionType.PAY_RENT, DecisionType.PROPOSE_TRADE])
async def test_passive_decisions_do_not_touch_the_ledger(db, decision_type):
    game_id, (first, second) = await make_game(2, agents=True)
    await run_in_transaction(lambda s: turn_service.roll(s, game_id, first, DiceRoll(2, 3)))
    runner = make_runner(game_id, FixedSource(decision_type))

    outcome = await runner.tick()

    assert outcome.applied is None and outcome.rejected is None
    assert outcome.next_player_id == second
    assert (await get_seat(first)).balance == 1500


@pytest.mark.asyncio
async def test_last_solvent_seat_wins(db):
    game_id, (first, second) = await make_game(2, agents=True)
    await update_seat(second, balance=0)
    broadcaster = Broadcaster()
    events = broadcaster.subscribe(game_id)
    finished = []

    async def on_finished(runner):
        finished.append(runner.game_id)

    runner = make_runner(
        game_id,
        FixedSource(DecisionType.END_TURN),
        broadcaster=broadcaster,
        on_finished=on_finished,
    )
    outcome = await runner.tick()

    assert outcome.finished
    assert outcome.winner_id == first
    assert runner.finished
    assert finished == [game_id]
    view = await load(game_id)
    assert view.game.status is GameStatus.COMPLETED
    assert view.game.winner_id == first

    types = []
    while not events.empty():
        types.append(events.get_nowait()["type"])
    assert types == [EventType.TURN_COMPLETED.value, EventType.GAME_ENDED.value]


@pytest.mark.asyncio
async def test_round_cap_ends_game(db):
    game_id, (first, second) = await make_game(2, agents=True)
    runner = make_runner(game_id, FixedSource(DecisionType.END_TURN), round_cap=2)

    first_turn = await runner.tick()
    assert not first_turn.finished

    second_turn = await runner.tick()
    assert second_turn.round_reset
    assert second_turn.finished
    view = await load(game_id)
    assert view.game.status is GameStatus.COMPLETED
    assert view.game.winner_id == max(view.seats, key=lambda s: (s.balance, -s.turn_order)).id


@pytest.mark.asyncio
async def test_tick_on_stopped_game_finishes_runner(db):
    game_id, _ = await make_game(2, agents=True)
    await run_in_transaction(lambda s: GameService(GameRepository(s)).stop_game(game_id))
    runner = make_runner(game_id, FixedSource(DecisionType.END_TURN))

    assert await runner.tick() is None
    assert runner.finished


@pytest.mark.asyncio
async def test_failing_tick_is_reported_and_skipped(db):
    game_id, (first, _) = await make_game(2, agents=True)
    broadcaster = Broadcaster()
    events = broadcaster.subscribe(game_id)
    runner = make_runner(game_id, FailingSource(), broadcaster=broadcaster)

    await runner.run_tick()

    assert runner.errors == 1
    error = events.get_nowait()
    assert error["type"] == "game-error"
    assert error["data"]["error"] == "RuntimeError"
    assert (await load(game_id)).game.next_player_id == first


@pytest.mark.asyncio
async def test_failing_game_does_not_hold_up_another(db):
    broken_id, broken_seats = await make_game(2, agents=True)
    healthy_id, _ = await make_game(2, agents=True)
    broadcaster = Broadcaster()
    events = broadcaster.subscribe()

    broken = make_runner(broken_id, broadcaster=broadcaster, interval=0.05)

    async def explode(session):
        raise RuntimeError("tick exploded")

    broken._roll_phase = explode
    healthy = make_runner(healthy_id, FixedSource(DecisionType.END_TURN), broadcaster=broadcaster, interval=0.05)

    await broken.start()
    await healthy.start()
    await asyncio.sleep(0.6)
    await broken.stop()
    await healthy.stop()

    assert broken.errors == broken.ticks >= 2
    assert healthy.errors == 0
    assert len(healthy.log) >= 2

    untouched = await load(broken_id)
    assert untouched.game.next_player_id == broken_seats[0]
    assert all(s.position == 0 and s.rolls == 0 for s in untouched.seats)

    seen = []
    while not events.empty():
        seen.append(events.get_nowait())
    assert {e["game_id"] for e in seen if e["type"] == "game-error"} == {broken_id}
    assert {e["game_id"] for e in seen if e["type"] == "turn-completed"} == {healthy_id}


@pytest.mark.asyncio
async def test_stop_waits_for_loop_and_prevents_more_ticks(db):
    game_id, _ = await make_game(2, agents=True)
    runner = make_runner(game_id, FixedSource(DecisionType.END_TURN), interval=0.05)
    await runner.start()
    await asyncio.sleep(0.2)
    await runner.stop()
    ticks = runner.ticks
    assert not runner.running
    await asyncio.sleep(0.15)
    assert runner.ticks == ticks


@pytest.mark.asyncio
async def test_status_reports_live_snapshot(db):
    game_id, (first, _) = await make_game(2, agents=True)
    runner = make_runner(game_id, FixedSource(DecisionType.END_TURN))
    status = await runner.status()
    assert status["game_id"] == game_id
    assert status["current_turn"] == "Agent0"
    assert status["round_number"] == 1
    assert len(status["remaining_agents"]) == 2
    assert status["last_action"] is None
    assert status["status"] == "RUNNING"
    assert status["running"] is False


@pytest.mark.asyncio
async def test_slow_ticks_never_overlap_and_missed_firings_are_counted(db):
    game_id, _ = await make_game(2, agents=True)
    source = SlowSource(delay=0.25)
    runner = make_runner(game_id, source, interval=0.05)

    await runner.start()
    await asyncio.sleep(0.6)
    await runner.stop()

    assert source.max_active == 1
    assert source.active == 0
    assert 1 <= runner.ticks <= 3
    assert runner.skipped_ticks >= 1
    assert len(runner.log) == runner.ticks
    assert (await runner.status())["skipped_ticks"] == runner.skipped_ticks
