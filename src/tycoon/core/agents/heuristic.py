"""Strategy-weighted heuristic agent."""

import random
from typing import Any, Dict, List, Optional

from tycoon.core.agents.base import (
    AgentProfile,
    Decision,
    DecisionSource,
    DecisionType,
    candidate_actions,
)

STARTING_BALANCE = 1500
OWNABLE_SQUARES = 28

STRATEGY_WEIGHTS: Dict[str, Dict[str, float]] = {
    "aggressive": {
        "complete_color_groups": 0.9,
        "maximize_cashflow": 0.7,
        "maintain_liquidity": 0.3,
        "avoid_bankruptcy": 0.8,
        "maximize_total_assets": 0.8,
    },
    "balanced": {
        "complete_color_groups": 0.7,
        "maximize_cashflow": 0.6,
        "maintain_liquidity": 0.6,
        "avoid_bankruptcy": 0.9,
        "maximize_total_assets": 0.6,
    },
    "defensive": {
        "complete_color_groups": 0.5,
        "maximize_cashflow": 0.4,
        "maintain_liquidity": 0.9,
        "avoid_bankruptcy": 1.0,
        "maximize_total_assets": 0.4,
    },
}


class HeuristicAgent(DecisionSource):
    """
    Scores candidate actions with the weights of the agent's risk profile.

    When the best candidate scores below ``confidence_floor`` a second pass
    looks at liquidity and portfolio size to pick something more deliberate.
    """

    kind = "heuristic"

    def __init__(self, rng: Optional[random.Random] = None, confidence_floor: float = 0.7):
        """
        Initialize the heuristic agent.

        Args:
            rng: Random source for trade proposals (seed it for replays).
            confidence_floor: Score under which the second pass kicks in.
        """
        self.rng = rng or random.Random()
        self.confidence_floor = confidence_floor

    async def decide(self, snapshot: Dict[str, Any], profile: AgentProfile) -> Decision:
        weights = STRATEGY_WEIGHTS.get(profile.risk_profile, STRATEGY_WEIGHTS["balanced"])
        me = snapshot["current_player"]
        scored = score_actions(candidate_actions(snapshot, self.rng), weights, me["balance"], me["in_jail"])
        best = scored[0]
        if best.score < self.confidence_floor and best.type is not DecisionType.END_TURN:
            return self._second_pass(snapshot, profile, scored)
        return best

    def _second_pass(self, snapshot: Dict[str, Any], profile: AgentProfile, scored: List[Decision]) -> Decision:
        me = snapshot["current_player"]
        liquidity = me["balance"] / STARTING_BALANCE
        owned = sum(1 for p in snapshot["properties"] if p["owner_id"] == me["id"])
        portfolio = owned / OWNABLE_SQUARES
        prefix = f"Agent {profile.name} ({profile.risk_profile} strategy): "

        def pick(types, reason: str, confidence: float) -> Optional[Decision]:
            for decision in scored:
                if decision.type in types:
                    decision.reasoning = prefix + reason
                    decision.confidence = confidence
                    return decision
            return None

        chosen = None
        if liquidity < 0.2:
            chosen = pick(
                (DecisionType.MORTGAGE, DecisionType.END_TURN),
                "Low cash reserves, prioritizing liquidity preservation",
                0.8,
            )
        if chosen is None and portfolio > 0.5 and liquidity > 0.5:
            chosen = pick(
                (DecisionType.BUILD_HOUSE, DecisionType.BUILD_HOTEL),
                "Strong position, focusing on development",
                0.7,
            )
        if chosen is None and profile.risk_profile == "aggressive" and liquidity > 0.3:
            chosen = pick(
                (DecisionType.BUY_PROPERTY, DecisionType.BUILD_HOUSE),
                "Aggressive strategy, seeking expansion opportunities",
                0.6,
            )
        if chosen is None:
            chosen = scored[0]
            chosen.reasoning = prefix + "Using balanced approach based on current game state"
        return chosen


def score_actions(
    actions: List[Decision],
    weights: Dict[str, float],
    balance: int,
    in_jail: bool,
) -> List[Decision]:
    """Apply strategy weights and situational penalties; best first."""
    for action in actions:
        score = action.score
        if action.type is DecisionType.BUY_PROPERTY:
            score *= weights["complete_color_groups"]
            if balance < 200:
                score *= weights["maintain_liquidity"]
        elif action.type in (DecisionType.BUILD_HOUSE, DecisionType.BUILD_HOTEL):
            score *= weights["maximize_cashflow"]
            if balance < 300:
                score *= weights["maintain_liquidity"]
        elif action.type is DecisionType.MORTGAGE:
            score *= weights["maintain_liquidity"]
            score *= 1 - weights["avoid_bankruptcy"]
        elif action.type is DecisionType.UNMORTGAGE:
            score *= weights["maximize_total_assets"]
        elif action.type is DecisionType.PROPOSE_TRADE:
            score *= weights["complete_color_groups"]
        elif action.type is DecisionType.PAY_RENT:
            # Mandatory actions always rank first.
            score = 1.0
        elif action.type is DecisionType.END_TURN:
            score *= weights["maintain_liquidity"]

        if balance < 100 and action.type is not DecisionType.MORTGAGE:
            score *= 0.5
        if in_jail and action.type is DecisionType.END_TURN:
            score *= 0.1

        action.score = score
        action.confidence = min(score, 1.0)
    return sorted(actions, key=lambda a: a.score, reverse=True)
