"""
Rent calculation.

All functions are pure: they take the landed square plus whatever ownership
facts the caller has already read under lock, and return an amount.
"""

from typing import Dict

from tycoon.core.game.spaces import Square, SquareKind

RAILWAY_RENT: Dict[int, int] = {1: 25, 2: 50, 3: 100, 4: 200}
UTILITY_MULTIPLIER: Dict[int, int] = {1: 4, 2: 10}


def railway_rent(owned_railways: int) -> int:
    """Rent for a railway given how many railways its owner holds."""
    return RAILWAY_RENT.get(owned_railways, 0)


def utility_rent(dice_total: int, owned_utilities: int) -> int:
    """Rent for a utility: this roll's total times the ownership multiplier."""
    return dice_total * UTILITY_MULTIPLIER.get(owned_utilities, 0)


def land_rent(square: Square, development: int) -> int:
    """Rent tier for the development level; out-of-range levels charge nothing."""
    if 0 <= development < len(square.rent_tiers):
        return square.rent_tiers[development]
    return 0


def calculate_rent(
    square: Square,
    *,
    development: int = 0,
    owned_railways: int = 0,
    owned_utilities: int = 0,
    dice_total: int = 0,
) -> int:
    """
    Compute the rent owed for landing on ``square``.

    Args:
        square: The landed square.
        development: Development level of the square (land only).
        owned_railways: Railways held by the square's owner in this game.
        owned_utilities: Utilities held by the square's owner in this game.
        dice_total: Total of the roll that landed the seat here.

    Returns:
        Rent amount (0 for squares that never charge rent).
    """
    if square.kind is SquareKind.RAILWAY:
        return railway_rent(owned_railways)
    if square.kind is SquareKind.UTILITY:
        return utility_rent(dice_total, owned_utilities)
    if square.kind is SquareKind.LAND:
        return land_rent(square, development)
    return 0
