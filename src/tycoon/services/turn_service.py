"""
Turn management: roll eligibility, rolling (movement + landing) and turn rotation.

Every public coroutine expects to run inside one transaction (see
``tycoon.data.locks.run_in_transaction``) and takes the row locks it needs
itself: game first, then the acting seat, then whatever resolution touches.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.core.exceptions import AlreadyRolledError, InvalidStateError, NotYourTurnError
from tycoon.core.game.dice import DiceRoll
from tycoon.core.game.jail import JailState, validate_jail_state
from tycoon.core.game.movement import GO_BONUS, resolve_movement
from tycoon.data.locks import lock_game, lock_seat, lock_seats
from tycoon.data.models import Game, GameStatus, Seat
from tycoon.data.repository import GameRepository
from tycoon.services.landing_service import LandingAction, RentPaid, classify, resolve_landing

logger = logging.getLogger(__name__)


class TurnPhase(str, Enum):
    """Per-seat turn phase as seen from outside a transaction."""

    WAITING_TURN = "waiting_turn"
    ROLLING = "rolling"
    RESOLVING = "resolving"
    TURN_ENDED = "turn_ended"


def seat_phase(game: Game, seat: Seat) -> TurnPhase:
    """WAITING_TURN unless the seat holds the turn; ROLLING before its roll, RESOLVING after."""
    if game.status != GameStatus.RUNNING or game.next_player_id != seat.id:
        return TurnPhase.WAITING_TURN
    return TurnPhase.ROLLING if seat.rolls == 0 else TurnPhase.RESOLVING


@dataclass
class TurnResult:
    """Outcome of one roll, shaped for UI and socket collaborators."""

    game_id: int
    seat_id: int
    dice: List[int]
    rolled: int
    old_position: int
    new_position: int
    action: str
    passed_go: bool = False
    rent_paid: RentPaid = field(default_factory=RentPaid)
    card: Optional[Dict[str, Any]] = None
    in_jail: bool = False
    jail_rolls: int = 0
    stayed_in_jail: bool = False
    sent_to_jail: bool = False
    buyable: bool = False
    balance: int = 0


@dataclass
class EndTurnResult:
    game_id: int
    seat_id: int
    next_player_id: int
    round_reset: bool
    round_number: int
    phase: TurnPhase = TurnPhase.TURN_ENDED


def _require_running(game: Game) -> None:
    if game.status != GameStatus.RUNNING:
        raise InvalidStateError(f"Game {game.id} is {game.status.value}, not RUNNING")


def check_can_roll(game: Game, seat: Seat) -> None:
    """
    Roll eligibility on already-locked rows.

    Raises:
        InvalidStateError: Game not running, seat bankrupt or jail flags inconsistent.
        NotYourTurnError: Seat does not hold next_player_id.
        AlreadyRolledError: Seat already rolled this round.
    """
    _require_running(game)
    if game.next_player_id != seat.id:
        raise NotYourTurnError(f"Seat {seat.id} does not hold the turn in game {game.id}")
    if seat.is_bankrupt:
        raise InvalidStateError(f"Seat {seat.id} is bankrupt (balance {seat.balance})")
    validate_jail_state(seat.in_jail, seat.position, seat.in_jail_rolls)
    if seat.rolls >= 1:
        raise AlreadyRolledError(f"Seat {seat.id} already rolled this round")


async def can_roll(session: AsyncSession, game_id: int, seat_id: int) -> bool:
    """Lock game and seat and check roll eligibility; raises on any violation."""
    game = await lock_game(session, game_id)
    seat = await lock_seat(session, game_id, seat_id)
    check_can_roll(game, seat)
    return True


async def roll(
    session: AsyncSession,
    game_id: int,
    seat_id: int,
    dice: DiceRoll,
    *,
    claimed_position: Optional[int] = None,
    rng: Optional[random.Random] = None,
    go_bonus: int = GO_BONUS,
) -> TurnResult:
    """
    Roll for ``seat_id``: eligibility, movement, jail and landing resolution.

    Args:
        session: Session of the enclosing transaction.
        game_id: Game id.
        seat_id: Acting seat id.
        dice: The roll (supplied by the caller so it can be replayed/tested).
        claimed_position: Position the client expects; validated when given.
        rng: Card draw source.
        go_bonus: Amount paid for passing GO.

    Returns:
        TurnResult for the roll.
    """
    repo = GameRepository(session)
    game = await lock_game(session, game_id)
    seat = await lock_seat(session, game_id, seat_id)
    check_can_roll(game, seat)

    old_position = seat.position
    movement = resolve_movement(
        old_position,
        dice,
        JailState(seat.in_jail, seat.in_jail_rolls),
        claimed_position=claimed_position,
        go_bonus=go_bonus,
    )
    seat.rolls += 1
    result = TurnResult(
        game_id=game.id,
        seat_id=seat.id,
        dice=dice.as_list(),
        rolled=dice.total,
        old_position=old_position,
        new_position=movement.new_position,
        action=LandingAction.FREE.value,
    )

    if movement.stayed_in_jail:
        seat.in_jail_rolls = movement.jail.jail_rolls
        result.action = "jail"
        result.stayed_in_jail = True
        await repo.add_history(
            game.id,
            seat.id,
            "jail",
            0,
            rolled=dice.total,
            old_position=old_position,
            new_position=old_position,
            comment="You are still in jail",
            extra={"dice": dice.as_list(), "jail_rolls": seat.in_jail_rolls},
            active=True,
        )
    elif movement.sent_to_jail:
        seat.position = movement.new_position
        seat.in_jail = True
        seat.in_jail_rolls = 0
        result.action = LandingAction.GO_TO_JAIL.value
        result.sent_to_jail = True
        await repo.add_history(
            game.id,
            seat.id,
            LandingAction.GO_TO_JAIL.value,
            0,
            rolled=dice.total,
            old_position=old_position,
            new_position=seat.position,
            comment="Sent to jail",
            extra={"dice": dice.as_list()},
            active=True,
        )
        logger.info(f"Game {game.id}: seat {seat.id} sent to jail")
    else:
        seat.position = movement.new_position
        seat.in_jail = False
        seat.in_jail_rolls = 0
        if movement.passed_go:
            seat.balance += movement.go_bonus
            seat.circle += 1
            result.passed_go = True
        await session.flush()

        outcome = await resolve_landing(session, game, seat, old_position, dice.total, rng)
        result.action = outcome.action.value
        result.new_position = outcome.position
        result.rent_paid = outcome.rent_paid
        result.card = outcome.card
        result.buyable = outcome.buyable
        await repo.add_history(
            game.id,
            seat.id,
            classify(movement.new_position).value,
            outcome.rent_paid.player,
            rolled=dice.total,
            old_position=old_position,
            new_position=outcome.position,
            comment=_describe(movement.escaped_jail, movement.passed_go, outcome.card),
            extra={
                "dice": dice.as_list(),
                "go_bonus": movement.go_bonus,
                "rent_paid": asdict(outcome.rent_paid),
                "owner_id": outcome.owner_id,
            },
            active=True,
        )

    result.in_jail = seat.in_jail
    result.jail_rolls = seat.in_jail_rolls
    result.new_position = seat.position
    result.balance = seat.balance
    await session.flush()
    logger.info(
        f"Game {game.id}: seat {seat.id} rolled {dice.as_list()} "
        f"{old_position} -> {seat.position} ({result.action})"
    )
    return result


def _describe(escaped_jail: bool, passed_go: bool, card: Optional[Dict[str, Any]]) -> str:
    parts = []
    if escaped_jail:
        parts.append("Escaped jail")
    if passed_go:
        parts.append("Passed GO")
    if card:
        parts.append(card["instruction"])
    return "; ".join(parts) or "Moved"


def _next_seat(seats: List[Seat], current: Seat) -> Seat:
    """Next non-bankrupt seat after ``current`` in turn order, wrapping around."""
    index = next(i for i, s in enumerate(seats) if s.id == current.id)
    for offset in range(1, len(seats) + 1):
        candidate = seats[(index + offset) % len(seats)]
        if not candidate.is_bankrupt:
            return candidate
    return current


async def end_turn(session: AsyncSession, game_id: int, seat_id: int) -> EndTurnResult:
    """
    Pass the turn to the next seat.

    Deactivates the latest active history row and, once every non-bankrupt
    seat has rolled, resets roll counters and starts a new round.

    Raises:
        InvalidStateError: Game missing or not RUNNING.
        NotYourTurnError: Caller does not hold the turn.
    """
    repo = GameRepository(session)
    game = await lock_game(session, game_id)
    _require_running(game)
    if game.next_player_id != seat_id:
        raise NotYourTurnError(f"Seat {seat_id} does not hold the turn in game {game.id}")

    seats = await lock_seats(session, game_id)
    current = next((s for s in seats if s.id == seat_id), None)
    if current is None:
        raise InvalidStateError(f"Seat {seat_id} not found in game {game_id}")

    following = _next_seat(seats, current)
    await repo.deactivate_latest_active(game.id)
    game.next_player_id = following.id

    solvent = [s for s in seats if not s.is_bankrupt]
    round_reset = bool(solvent) and all(s.rolls >= 1 for s in solvent)
    if round_reset:
        for s in seats:
            s.rolls = 0
        game.round_number += 1

    await session.flush()
    logger.info(
        f"Game {game.id}: turn {seat_id} -> {following.id}"
        + (f", round {game.round_number} begins" if round_reset else "")
    )
    return EndTurnResult(
        game_id=game.id,
        seat_id=seat_id,
        next_player_id=following.id,
        round_reset=round_reset,
        round_number=game.round_number,
    )
