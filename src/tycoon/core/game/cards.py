"""
Chance and Community Chest cards.

A card carries a base ``CardType`` (money and/or movement) and an optional
``CardRule`` that overrides the base effect. ``resolve_card`` turns a drawn
card into a ``CardEffect`` without touching any persistent state.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from tycoon.core.game.board import (
    BOARD_SIZE,
    JAIL_SQUARE,
    nearest_railway,
    nearest_utility,
)

GO_TO_JAIL_PENALTY = 200


class CardType(Enum):
    """Base effect of a card."""

    CREDIT = "credit"
    DEBIT = "debit"
    MOVE = "move"
    CREDIT_AND_MOVE = "credit_and_move"
    DEBIT_AND_MOVE = "debit_and_move"


class CardRule(Enum):
    """Special rule applied on top of the base effect."""

    NEAREST_UTILITY = "nearest_utility"
    NEAREST_RAILROAD = "nearest_railroad"
    GET_OUT_OF_JAIL_FREE = "get_out_of_jail_free"
    GO_TO_JAIL = "go_to_jail"
    PER_PLAYER = "per_player"


class Deck(Enum):
    CHANCE = "chance"
    COMMUNITY_CHEST = "community_chest"


@dataclass(frozen=True)
class Card:
    """A chance or community chest card."""

    instruction: str
    type: CardType
    amount: int = 0
    position: Optional[int] = None
    rule: Optional[CardRule] = None

    def __repr__(self) -> str:
        return f"Card('{self.instruction}')"


@dataclass(frozen=True)
class CardEffect:
    """Outcome of a card for the drawer and, for per-player cards, everyone else.

    ``balance_delta`` is signed from the drawer's point of view and
    ``others_delta`` is what each other seat receives.
    """

    balance_delta: int
    position: int
    others_delta: int = 0
    in_jail: bool = False
    jail_card: Optional[Deck] = None


def card_target(card_position: Optional[int], current_position: int) -> int:
    """Absolute target for a non-negative position, relative for a negative one."""
    if card_position is None:
        return current_position
    if card_position >= 0:
        return card_position
    return (current_position + card_position + BOARD_SIZE) % BOARD_SIZE


def _base_effect(card: Card, new_position: int) -> Tuple[int, int]:
    target = card_target(card.position, new_position)
    if card.type in (CardType.CREDIT, CardType.CREDIT_AND_MOVE):
        return card.amount, target
    if card.type in (CardType.DEBIT, CardType.DEBIT_AND_MOVE):
        return -card.amount, target
    if card.type is CardType.MOVE:
        return 0, target
    raise ValueError(f"Unhandled card type: {card.type}")


def resolve_card(
    card: Card,
    deck: Deck,
    old_position: int,
    new_position: int,
    other_seats: int,
) -> CardEffect:
    """
    Compute the effect of ``card`` drawn by a seat that moved from
    ``old_position`` to ``new_position`` on this roll.

    Args:
        card: The drawn card.
        deck: Deck the card came from (decides which jail card flag is set).
        old_position: Position before this roll's movement.
        new_position: The chance/community square the seat landed on.
        other_seats: Number of other seats in the game.

    Returns:
        The CardEffect to apply.
    """
    amount, position = _base_effect(card, new_position)

    if card.rule is None:
        return CardEffect(balance_delta=amount, position=position)
    if card.rule is CardRule.NEAREST_UTILITY:
        return CardEffect(balance_delta=amount, position=nearest_utility(new_position))
    if card.rule is CardRule.NEAREST_RAILROAD:
        return CardEffect(balance_delta=amount, position=nearest_railway(new_position))
    if card.rule is CardRule.GET_OUT_OF_JAIL_FREE:
        return CardEffect(balance_delta=0, position=new_position, jail_card=deck)
    if card.rule is CardRule.GO_TO_JAIL:
        penalty = GO_TO_JAIL_PENALTY if old_position > new_position else 0
        return CardEffect(balance_delta=-penalty, position=JAIL_SQUARE, in_jail=True)
    if card.rule is CardRule.PER_PLAYER:
        # The drawer pays every other seat, whatever the base type says.
        return CardEffect(
            balance_delta=-abs(card.amount) * other_seats,
            position=new_position,
            others_delta=abs(card.amount),
        )
    raise ValueError(f"Unhandled card rule: {card.rule}")


def draw_card(cards: Sequence[Card], rng: Optional[random.Random] = None) -> Card:
    """Uniform random draw; pass a seeded ``rng`` for deterministic draws."""
    if not cards:
        raise ValueError("Cannot draw from an empty deck")
    return (rng or random).choice(list(cards))


CHANCE_CARDS: Tuple[Card, ...] = (
    Card("Advance to Go (Collect $200)", CardType.CREDIT_AND_MOVE, amount=200, position=0),
    Card("Advance to Illinois Ave.", CardType.MOVE, position=24),
    Card("Advance to St. Charles Place", CardType.MOVE, position=11),
    Card("Advance to the nearest Utility", CardType.MOVE, rule=CardRule.NEAREST_UTILITY),
    Card("Advance to the nearest Railroad", CardType.MOVE, rule=CardRule.NEAREST_RAILROAD),
    Card("Bank pays you dividend of $50", CardType.CREDIT, amount=50),
    Card("Get Out of Jail Free", CardType.CREDIT, rule=CardRule.GET_OUT_OF_JAIL_FREE),
    Card("Go Back 3 Spaces", CardType.MOVE, position=-3),
    Card("Go to Jail", CardType.MOVE, position=JAIL_SQUARE, rule=CardRule.GO_TO_JAIL),
    Card("Pay poor tax of $15", CardType.DEBIT, amount=15),
    Card("Take a trip to Reading Railroad", CardType.MOVE, position=5),
    Card("Take a walk on the Boardwalk", CardType.MOVE, position=39),
    Card(
        "You have been elected Chairman of the Board. Pay each player $50",
        CardType.DEBIT,
        amount=50,
        rule=CardRule.PER_PLAYER,
    ),
    Card("Your building loan matures. Collect $150", CardType.CREDIT, amount=150),
    Card("Speeding fine. Pay $15 and go back 2 spaces", CardType.DEBIT_AND_MOVE, amount=15, position=-2),
)

COMMUNITY_CHEST_CARDS: Tuple[Card, ...] = (
    Card("Advance to Go (Collect $200)", CardType.CREDIT_AND_MOVE, amount=200, position=0),
    Card("Bank error in your favor. Collect $200", CardType.CREDIT, amount=200),
    Card("Doctor's fees. Pay $50", CardType.DEBIT, amount=50),
    Card("From sale of stock you get $50", CardType.CREDIT, amount=50),
    Card("Get Out of Jail Free", CardType.CREDIT, rule=CardRule.GET_OUT_OF_JAIL_FREE),
    Card("Go to Jail", CardType.MOVE, position=JAIL_SQUARE, rule=CardRule.GO_TO_JAIL),
    Card("Holiday Fund matures. Receive $100", CardType.CREDIT, amount=100),
    Card("Income tax refund. Collect $20", CardType.CREDIT, amount=20),
    Card("Life insurance matures. Collect $100", CardType.CREDIT, amount=100),
    Card("Hospital fees. Pay $100", CardType.DEBIT, amount=100),
    Card("School fees. Pay $150", CardType.DEBIT, amount=150),
    Card("Receive $25 consultancy fee", CardType.CREDIT, amount=25),
    Card("Street repairs. Pay $40 to each player", CardType.DEBIT, amount=40, rule=CardRule.PER_PLAYER),
    Card("You have won second prize in a beauty contest. Collect $10", CardType.CREDIT, amount=10),
    Card("You inherit $100", CardType.CREDIT, amount=100),
    Card("Tax audit. Pay $50 and go back to Mediterranean Avenue", CardType.DEBIT_AND_MOVE, amount=50, position=1),
)

DECKS: Dict[Deck, Tuple[Card, ...]] = {
    Deck.CHANCE: CHANCE_CARDS,
    Deck.COMMUNITY_CHEST: COMMUNITY_CHEST_CARDS,
}
