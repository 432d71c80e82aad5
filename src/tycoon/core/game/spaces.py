"""
Board square definitions and types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class SquareKind(Enum):
    """Closed set of square categories on the board."""

    GO = "go"
    LAND = "land"
    RAILWAY = "railway"
    UTILITY = "utility"
    TAX = "tax"
    CHANCE = "chance"
    COMMUNITY = "community"
    JAIL = "jail"
    GO_TO_JAIL = "go_to_jail"
    FREE = "free"


OWNABLE_KINDS = frozenset({SquareKind.LAND, SquareKind.RAILWAY, SquareKind.UTILITY})


@dataclass(frozen=True)
class Square:
    """A single static board square.

    ``price`` is the purchase price for ownable squares and the flat amount
    for tax squares. ``rent_tiers`` is only populated for land.
    """

    id: int
    name: str
    kind: SquareKind
    price: int = 0
    color_group: Optional[str] = None
    rent_tiers: Tuple[int, ...] = field(default_factory=tuple)
    house_cost: int = 0

    @property
    def is_ownable(self) -> bool:
        return self.kind in OWNABLE_KINDS

    @property
    def mortgage_value(self) -> int:
        return self.price // 2

    def __repr__(self) -> str:
        return f"Square(id={self.id}, name='{self.name}', kind={self.kind.value})"


def land(
    square_id: int,
    name: str,
    price: int,
    color_group: str,
    rents: Tuple[int, int, int, int, int, int],
    house_cost: int,
) -> Square:
    """Build a colored land square."""
    return Square(
        id=square_id,
        name=name,
        kind=SquareKind.LAND,
        price=price,
        color_group=color_group,
        rent_tiers=tuple(rents),
        house_cost=house_cost,
    )


def railway(square_id: int, name: str) -> Square:
    return Square(id=square_id, name=name, kind=SquareKind.RAILWAY, price=200)


def utility(square_id: int, name: str) -> Square:
    return Square(id=square_id, name=name, kind=SquareKind.UTILITY, price=150)


def tax(square_id: int, name: str, amount: int) -> Square:
    return Square(id=square_id, name=name, kind=SquareKind.TAX, price=amount)


def special(square_id: int, name: str, kind: SquareKind) -> Square:
    return Square(id=square_id, name=name, kind=kind)
