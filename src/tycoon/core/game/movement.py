"""
Movement resolution.

``resolve_movement`` is pure: it only decides where a seat ends up after a
roll and how its jail flags change. Money (the GO bonus aside) and landing
effects are handled by the landing service.
"""

from dataclasses import dataclass
from typing import Optional

from tycoon.core.exceptions import InvalidMoveError
from tycoon.core.game.board import BOARD_SIZE, GO_TO_JAIL_SQUARE, JAIL_SQUARE
from tycoon.core.game.dice import DiceRoll
from tycoon.core.game.jail import JailState, enter_jail

GO_BONUS = 200


@dataclass(frozen=True)
class Movement:
    """Result of moving a seat for one roll."""

    old_position: int
    new_position: int
    dice: DiceRoll
    passed_go: bool = False
    go_bonus: int = 0
    sent_to_jail: bool = False
    stayed_in_jail: bool = False
    escaped_jail: bool = False
    jail: JailState = JailState()


def resolve_movement(
    position: int,
    dice: DiceRoll,
    jail: JailState = JailState(),
    claimed_position: Optional[int] = None,
    go_bonus: int = GO_BONUS,
) -> Movement:
    """
    Move a seat from ``position`` by ``dice``.

    Args:
        position: Current position (0-39).
        dice: The roll.
        jail: The seat's jail state before the roll.
        claimed_position: Position the caller believes the seat reaches;
            validated against the computed one when given.
        go_bonus: Amount paid for passing GO.

    Returns:
        A Movement describing the new position and jail flags.

    Raises:
        InvalidMoveError: If ``claimed_position`` disagrees with the rules,
            including a claimed escape while the seat stays in jail.
    """
    if not 0 <= position < BOARD_SIZE:
        raise InvalidMoveError(f"Position out of range: {position}")

    if jail.in_jail and not jail.can_escape(dice):
        if claimed_position is not None and claimed_position != position:
            raise InvalidMoveError(
                f"Seat stays in jail on {dice.as_list()}; cannot move to {claimed_position}"
            )
        return Movement(
            old_position=position,
            new_position=position,
            dice=dice,
            stayed_in_jail=True,
            jail=jail.after_failed_roll(),
        )

    start = JAIL_SQUARE if jail.in_jail else position
    landed = (start + dice.total) % BOARD_SIZE

    if claimed_position is not None and claimed_position not in (landed, _final(landed)):
        raise InvalidMoveError(
            f"Claimed position {claimed_position} does not match computed position {landed}"
        )

    if landed == GO_TO_JAIL_SQUARE:
        return Movement(
            old_position=position,
            new_position=JAIL_SQUARE,
            dice=dice,
            sent_to_jail=True,
            escaped_jail=jail.in_jail,
            jail=enter_jail(),
        )

    passed_go = landed < start
    return Movement(
        old_position=position,
        new_position=landed,
        dice=dice,
        passed_go=passed_go,
        go_bonus=go_bonus if passed_go else 0,
        escaped_jail=jail.in_jail,
        jail=JailState(),
    )


def _final(landed: int) -> int:
    return JAIL_SQUARE if landed == GO_TO_JAIL_SQUARE else landed
