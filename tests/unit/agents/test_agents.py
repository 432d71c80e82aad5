"""
Tests for the heuristic and random decision sources.
"""

import random

import pytest

from tycoon.core.agents import (
    AgentProfile,
    Decision,
    DecisionType,
    HeuristicAgent,
    LLMAgent,
    RandomAgent,
    build_decision_source,
    candidate_actions,
)
from tycoon.core.agents.heuristic import STRATEGY_WEIGHTS, score_actions
from tycoon.core.game.board import OWNABLE_IDS, get_square


def make_snapshot(balance=1500, position=0, owned=None, in_jail=False):
    """Decision snapshot for seat 1 (vs seat 2); ``owned`` maps property id -> (owner, development, mortgaged)."""
    owned = owned or {}
    properties = []
    for pid in OWNABLE_IDS:
        square = get_square(pid)
        owner, development, mortgaged = owned.get(pid, (None, 0, False))
        properties.append(
            {
                "id": pid,
                "name": square.name,
                "kind": square.kind.value,
                "color_group": square.color_group,
                "price": square.price,
                "house_cost": square.house_cost,
                "mortgage_value": square.mortgage_value,
                "owner_id": owner,
                "mortgaged": mortgaged,
                "development": development,
            }
        )
    me = {"id": 1, "name": "Alpha", "balance": balance, "position": position, "in_jail": in_jail, "is_bankrupt": False}
    other = {"id": 2, "name": "Beta", "balance": 1500, "position": 0, "in_jail": False, "is_bankrupt": False}
    return {
        "game_id": 1,
        "round_number": 3,
        "board_position": position,
        "dice_roll": 7,
        "current_player": me,
        "players": [me, other],
        "properties": properties,
        "turn": None,
    }


def types_of(actions):
    return {a.type for a in actions}


def test_candidates_offer_buy_on_unowned_square():
    actions = candidate_actions(make_snapshot(position=39), trade_chance=0.0)
    assert DecisionType.BUY_PROPERTY in types_of(actions)
    buy = next(a for a in actions if a.type is DecisionType.BUY_PROPERTY)
    assert buy.property_id == 39


def test_candidates_skip_unaffordable_buy():
    actions = candidate_actions(make_snapshot(balance=100, position=39), trade_chance=0.0)
    assert types_of(actions) == {DecisionType.END_TURN}


def test_candidates_pay_rent_on_opponent_square():
    actions = candidate_actions(make_snapshot(position=39, owned={39: (2, 0, False)}), trade_chance=0.0)
    assert DecisionType.PAY_RENT in types_of(actions)


def test_candidates_build_requires_full_group():
    partial = candidate_actions(make_snapshot(owned={1: (1, 0, False)}), trade_chance=0.0)
    assert DecisionType.BUILD_HOUSE not in types_of(partial)

    full = candidate_actions(make_snapshot(owned={1: (1, 0, False), 3: (1, 4, False)}), trade_chance=0.0)
    by_type = {(a.type, a.property_id) for a in full}
    assert (DecisionType.BUILD_HOUSE, 1) in by_type
    assert (DecisionType.BUILD_HOTEL, 3) in by_type
    # Developed properties cannot be mortgaged
    assert (DecisionType.MORTGAGE, 3) not in by_type


def test_candidates_unmortgage_when_affordable():
    actions = candidate_actions(make_snapshot(owned={5: (1, 0, True)}), trade_chance=0.0)
    assert (DecisionType.UNMORTGAGE, 5) in {(a.type, a.property_id) for a in actions}


def test_candidates_trade_proposal():
    snapshot = make_snapshot(owned={1: (1, 0, False), 39: (2, 0, False)})
    actions = candidate_actions(snapshot, random.Random(1), trade_chance=1.0)
    trade = next(a for a in actions if a.type is DecisionType.PROPOSE_TRADE)
    assert trade.data["offer_properties"] == [1]
    assert trade.data["request_properties"] == [39]


def test_pay_rent_always_ranks_first():
    actions = [
        Decision(DecisionType.END_TURN, score=0.1),
        Decision(DecisionType.PAY_RENT, score=1.0),
        Decision(DecisionType.BUILD_HOTEL, score=0.8),
    ]
    scored = score_actions(actions, STRATEGY_WEIGHTS["aggressive"], balance=1500, in_jail=False)
    assert scored[0].type is DecisionType.PAY_RENT


@pytest.mark.asyncio
async def test_heuristic_buys_when_cash_is_comfortable():
    agent = HeuristicAgent(rng=random.Random(0))
    decision = await agent.decide(make_snapshot(position=39), AgentProfile("Alpha"))
    assert decision.type is DecisionType.BUY_PROPERTY
    assert decision.property_id == 39


@pytest.mark.asyncio
async def test_heuristic_preserves_cash_when_low():
    agent = HeuristicAgent(rng=random.Random(0))
    decision = await agent.decide(make_snapshot(balance=200, position=1), AgentProfile("Alpha"))
    assert decision.type is DecisionType.END_TURN
    assert decision.confidence == 0.8
    assert "liquidity" in decision.reasoning


def test_heuristic_defensive_scores_buy_lower_than_aggressive():
    snapshot = make_snapshot(position=39)
    aggressive = score_actions(candidate_actions(snapshot, trade_chance=0.0), STRATEGY_WEIGHTS["aggressive"], 1500, False)
    defensive = score_actions(candidate_actions(snapshot, trade_chance=0.0), STRATEGY_WEIGHTS["defensive"], 1500, False)
    buy_score = lambda scored: next(a.score for a in scored if a.type is DecisionType.BUY_PROPERTY)  # noqa: E731
    assert buy_score(aggressive) > buy_score(defensive)


@pytest.mark.asyncio
async def test_random_agent_returns_a_candidate():
    agent = RandomAgent(rng=random.Random(3), end_turn_bias=0.0)
    snapshot = make_snapshot(position=39)
    allowed = types_of(candidate_actions(snapshot, trade_chance=0.0)) | {DecisionType.PROPOSE_TRADE}
    for _ in range(20):
        decision = await agent.decide(snapshot, AgentProfile("Alpha", strategy="random"))
        assert decision.type in allowed


@pytest.mark.asyncio
async def test_random_agent_end_turn_bias():
    agent = RandomAgent(rng=random.Random(3), end_turn_bias=1.0)
    decision = await agent.decide(make_snapshot(position=39), AgentProfile("Alpha"))
    assert decision.type is DecisionType.END_TURN


def test_build_decision_source():
    assert isinstance(build_decision_source("random"), RandomAgent)
    assert isinstance(build_decision_source("heuristic"), HeuristicAgent)
    assert isinstance(build_decision_source(None), HeuristicAgent)
    assert isinstance(build_decision_source("llm"), LLMAgent)


def test_build_decision_source_shares_seeded_rng():
    import tycoon.core.agents as agents

    # The package must stay importable even though it has a ``random`` submodule
    assert agents.random.RandomAgent is RandomAgent
    rng = random.Random(11)
    assert build_decision_source("random", rng).rng is rng
    assert build_decision_source("heuristic", rng).rng is rng
