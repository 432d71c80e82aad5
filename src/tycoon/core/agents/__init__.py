from random import Random
from typing import Optional

from tycoon.core.agents.base import AgentProfile, Decision, DecisionSource, DecisionType, candidate_actions
from tycoon.core.agents.heuristic import HeuristicAgent
from tycoon.core.agents.llm import LLMAgent
from tycoon.core.agents.random import RandomAgent

__all__ = [
    "AgentProfile",
    "Decision",
    "DecisionSource",
    "DecisionType",
    "candidate_actions",
    "HeuristicAgent",
    "LLMAgent",
    "RandomAgent",
    "build_decision_source",
]


def build_decision_source(strategy: Optional[str], rng: Optional[Random] = None) -> DecisionSource:
    """Decision source for a seat's strategy name (unknown names get the heuristic agent)."""
    if strategy == "random":
        return RandomAgent(rng=rng)
    if strategy == "llm":
        return LLMAgent()
    return HeuristicAgent(rng=rng)
