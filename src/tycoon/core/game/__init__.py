from tycoon.core.game.board import (
    BOARD_SIZE,
    COLOR_GROUPS,
    GO_TO_JAIL_SQUARE,
    JAIL_SQUARE,
    RAILWAY_IDS,
    SQUARES,
    UTILITY_IDS,
    get_square,
)
from tycoon.core.game.cards import Card, CardEffect, CardRule, CardType, Deck, draw_card, resolve_card
from tycoon.core.game.dice import DiceRoll, roll_dice
from tycoon.core.game.jail import JailState, validate_jail_state
from tycoon.core.game.movement import GO_BONUS, Movement, resolve_movement
from tycoon.core.game.rent import calculate_rent
from tycoon.core.game.spaces import Square, SquareKind

__all__ = [
    "BOARD_SIZE",
    "COLOR_GROUPS",
    "GO_TO_JAIL_SQUARE",
    "JAIL_SQUARE",
    "RAILWAY_IDS",
    "SQUARES",
    "UTILITY_IDS",
    "get_square",
    "Card",
    "CardEffect",
    "CardRule",
    "CardType",
    "Deck",
    "draw_card",
    "resolve_card",
    "DiceRoll",
    "roll_dice",
    "JailState",
    "validate_jail_state",
    "GO_BONUS",
    "Movement",
    "resolve_movement",
    "calculate_rent",
    "Square",
    "SquareKind",
]
