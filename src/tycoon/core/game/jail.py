"""
Jail sub-state machine.

FREE -> IN_JAIL(0) on landing on Go To Jail or a go-to-jail card.
IN_JAIL(n) -> FREE on doubles, a total of 12, the third attempt (n == 2),
or by spending a get-out-of-jail card. Otherwise IN_JAIL(n) -> IN_JAIL(n + 1).
"""

from dataclasses import dataclass
from enum import Enum

from tycoon.core.exceptions import InvalidStateError
from tycoon.core.game.board import JAIL_SQUARE
from tycoon.core.game.dice import DiceRoll

MAX_JAIL_ROLLS = 2
ESCAPE_TOTAL = 12


class JailStatus(Enum):
    FREE = "free"
    IN_JAIL = "in_jail"


@dataclass(frozen=True)
class JailState:
    in_jail: bool = False
    jail_rolls: int = 0

    @property
    def status(self) -> JailStatus:
        return JailStatus.IN_JAIL if self.in_jail else JailStatus.FREE

    def can_escape(self, dice: DiceRoll) -> bool:
        """Whether this roll releases the seat. Always True when not jailed."""
        if not self.in_jail:
            return True
        return dice.is_double or self.jail_rolls >= MAX_JAIL_ROLLS or dice.total == ESCAPE_TOTAL

    def after_failed_roll(self) -> "JailState":
        return JailState(in_jail=True, jail_rolls=self.jail_rolls + 1)


def enter_jail() -> JailState:
    return JailState(in_jail=True, jail_rolls=0)


def validate_jail_state(in_jail: bool, position: int, jail_rolls: int) -> None:
    """Reject seats whose jail flags contradict each other."""
    if not in_jail:
        return
    if position != JAIL_SQUARE:
        raise InvalidStateError(f"Jailed seat is at position {position}, expected {JAIL_SQUARE}")
    if not 0 <= jail_rolls <= MAX_JAIL_ROLLS:
        raise InvalidStateError(f"Jailed seat has invalid jail roll count {jail_rolls}")
