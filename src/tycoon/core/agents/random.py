"""Random agent that picks among candidate actions."""

import random
from typing import Any, Dict, Optional

from tycoon.core.agents.base import AgentProfile, Decision, DecisionSource, candidate_actions


class RandomAgent(DecisionSource):
    """
    Picks a random candidate action.

    Prefers END_TURN most of the time to keep the game moving.
    """

    kind = "random"

    def __init__(self, rng: Optional[random.Random] = None, end_turn_bias: float = 0.5):
        self.rng = rng or random.Random()
        self.end_turn_bias = end_turn_bias

    async def decide(self, snapshot: Dict[str, Any], profile: AgentProfile) -> Decision:
        if self.rng.random() < self.end_turn_bias:
            return Decision.end_turn(confidence=0.5, reasoning="Keeping the game moving")
        choice = self.rng.choice(candidate_actions(snapshot, self.rng))
        choice.confidence = 0.5
        choice.reasoning = f"{profile.name} picked {choice.type.value} at random"
        return choice
