"""Decision source interface shared by all agents."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DecisionType(str, Enum):
    """Actions an agent may return for its turn."""

    BUY_PROPERTY = "buy_property"
    PAY_RENT = "pay_rent"
    MORTGAGE = "mortgage"
    UNMORTGAGE = "unmortgage"
    BUILD_HOUSE = "build_house"
    BUILD_HOTEL = "build_hotel"
    PROPOSE_TRADE = "propose_trade"
    END_TURN = "end_turn"


@dataclass(frozen=True)
class AgentProfile:
    """Who an agent is and how it should play.

    Attributes:
        name: Display name of the agent.
        strategy: Decision source kind (heuristic, random, llm).
        risk_profile: aggressive, balanced or defensive.
    """

    name: str
    strategy: str = "heuristic"
    risk_profile: str = "balanced"


@dataclass
class Decision:
    """``{type, data, confidence}`` as returned by a decision source."""

    type: DecisionType
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    reasoning: str = ""
    score: float = 0.0

    @property
    def property_id(self) -> Optional[int]:
        value = self.data.get("property_id")
        return int(value) if value is not None else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def end_turn(cls, confidence: float = 0.1, reasoning: str = "") -> "Decision":
        return cls(DecisionType.END_TURN, {}, confidence, reasoning)


class DecisionSource(ABC):
    """
    Abstract base class for decision sources.

    The runner hands every source the same observable snapshot and the
    seat's profile; how the decision is produced is up to the source.
    """

    kind: str = "base"

    @abstractmethod
    async def decide(self, snapshot: Dict[str, Any], profile: AgentProfile) -> Decision:
        """
        Choose the action for the seat that just rolled.

        Args:
            snapshot: Decision snapshot (see ``tycoon.snapshot.decision_snapshot``).
            profile: The acting agent's profile.

        Returns:
            The chosen Decision.
        """

    async def aclose(self) -> None:
        """Release any resources held by the source."""


def _unmortgage_cost(prop: Dict[str, Any]) -> int:
    value = prop["mortgage_value"]
    return value + value // 10


def candidate_actions(
    snapshot: Dict[str, Any],
    rng: Optional[random.Random] = None,
    trade_chance: float = 0.1,
) -> List[Decision]:
    """
    Actions worth considering for the current seat, with base scores.

    Only options the ledger would plausibly accept are listed; the ledger
    still has the final word.
    """
    me = snapshot["current_player"]
    balance = me["balance"]
    properties: List[Dict[str, Any]] = snapshot["properties"]
    by_id = {p["id"]: p for p in properties}
    actions = [Decision(DecisionType.END_TURN, {}, score=0.1)]

    here = by_id.get(snapshot["board_position"])
    if here is not None:
        if here["owner_id"] is None and balance >= here["price"]:
            actions.append(Decision(DecisionType.BUY_PROPERTY, {"property_id": here["id"]}, score=0.5))
        elif here["owner_id"] not in (None, me["id"]):
            actions.append(Decision(DecisionType.PAY_RENT, {"property_id": here["id"]}, score=1.0))

    mine = [p for p in properties if p["owner_id"] == me["id"]]
    for prop in mine:
        if not prop["mortgaged"] and prop["development"] == 0:
            actions.append(Decision(DecisionType.MORTGAGE, {"property_id": prop["id"]}, score=0.2))
        elif prop["mortgaged"] and balance >= _unmortgage_cost(prop):
            actions.append(Decision(DecisionType.UNMORTGAGE, {"property_id": prop["id"]}, score=0.3))

    for prop in mine:
        if prop["kind"] != "land" or balance < prop["house_cost"]:
            continue
        group = [p for p in properties if p["color_group"] == prop["color_group"]]
        if not all(p["owner_id"] == me["id"] and not p["mortgaged"] for p in group):
            continue
        if prop["development"] < 4:
            actions.append(Decision(DecisionType.BUILD_HOUSE, {"property_id": prop["id"]}, score=0.6))
        elif prop["development"] == 4:
            actions.append(Decision(DecisionType.BUILD_HOTEL, {"property_id": prop["id"]}, score=0.8))

    source = rng or random
    if source.random() < trade_chance:
        proposal = _trade_proposal(snapshot, source)
        if proposal:
            actions.append(Decision(DecisionType.PROPOSE_TRADE, proposal, score=0.2))

    return actions


def _trade_proposal(snapshot: Dict[str, Any], rng) -> Optional[Dict[str, Any]]:
    me = snapshot["current_player"]
    others = [p for p in snapshot["players"] if p["id"] != me["id"] and not p["is_bankrupt"]]
    if not others:
        return None
    target = rng.choice(others)
    mine = [p["id"] for p in snapshot["properties"] if p["owner_id"] == me["id"]]
    theirs = [p["id"] for p in snapshot["properties"] if p["owner_id"] == target["id"]]
    if not mine or not theirs:
        return None
    return {
        "from_player_id": me["id"],
        "to_player_id": target["id"],
        "offer_properties": [mine[0]],
        "request_properties": [theirs[0]],
        "offer_cash": 0,
        "request_cash": 0,
    }
