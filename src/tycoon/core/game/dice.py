"""Dice roll value type."""

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DiceRoll:
    """A pair of six-sided dice."""

    first: int
    second: int

    def __post_init__(self) -> None:
        for die in (self.first, self.second):
            if not 1 <= die <= 6:
                raise ValueError(f"Die value out of range: {die}")

    @property
    def total(self) -> int:
        return self.first + self.second

    @property
    def is_double(self) -> bool:
        return self.first == self.second

    def as_list(self) -> list:
        return [self.first, self.second]


def roll_dice(rng: Optional[random.Random] = None) -> DiceRoll:
    """Roll two dice using ``rng`` (module-level random when omitted)."""
    source = rng or random
    return DiceRoll(source.randint(1, 6), source.randint(1, 6))
