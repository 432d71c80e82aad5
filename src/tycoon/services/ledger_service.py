"""
Ownership & development ledger.

Buy, mortgage, unmortgage, build and jail-card actions. Each call runs in the
caller's transaction, locks game, seat and property rows, and raises
``InvalidActionError`` when the action is not allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.core.exceptions import InvalidActionError, InvalidStateError, NotYourTurnError
from tycoon.core.game.board import color_group, find_square
from tycoon.core.game.spaces import Square, SquareKind
from tycoon.data.locks import lock_game, lock_property, lock_seat
from tycoon.data.models import Game, GameProperty, GameStatus, Seat
from tycoon.data.repository import GameRepository

logger = logging.getLogger(__name__)

MAX_HOUSES = 4
HOTEL_LEVEL = 5


class LedgerAction(str, Enum):
    BUY_PROPERTY = "buy_property"
    MORTGAGE = "mortgage"
    UNMORTGAGE = "unmortgage"
    BUILD_HOUSE = "build_house"
    BUILD_HOTEL = "build_hotel"
    USE_JAIL_CARD = "use_jail_card"


@dataclass
class LedgerResult:
    action: LedgerAction
    seat_id: int
    property_id: Optional[int]
    amount: int
    balance: int
    development: Optional[int] = None
    mortgaged: Optional[bool] = None


def unmortgage_cost(square: Square) -> int:
    """Mortgage value plus 10% interest."""
    value = square.mortgage_value
    return value + value // 10


async def _load(session: AsyncSession, game_id: int, seat_id: int) -> tuple[Game, Seat]:
    game = await lock_game(session, game_id)
    if game.status != GameStatus.RUNNING:
        raise InvalidStateError(f"Game {game.id} is {game.status.value}, not RUNNING")
    seat = await lock_seat(session, game_id, seat_id)
    return game, seat


async def _owned_record(
    session: AsyncSession,
    game: Game,
    seat: Seat,
    property_id: int,
) -> tuple[Square, GameProperty]:
    square = find_square(property_id)
    if square is None or not square.is_ownable:
        raise InvalidActionError(f"Square {property_id} cannot be owned")
    record = await lock_property(session, game.id, property_id)
    if record is None:
        raise InvalidStateError(f"No ownership row for property {property_id} in game {game.id}")
    if record.player_id != seat.id:
        raise InvalidActionError(f"Seat {seat.id} does not own {square.name}")
    return square, record


def _charge(seat: Seat, amount: int, what: str) -> None:
    if seat.balance < amount:
        raise InvalidActionError(f"Seat {seat.id} cannot afford {what} ({amount} > {seat.balance})")
    seat.balance -= amount


async def _record(
    session: AsyncSession,
    game: Game,
    seat: Seat,
    action: LedgerAction,
    amount: int,
    property_id: Optional[int],
    comment: str,
) -> None:
    await GameRepository(session).add_history(
        game.id,
        seat.id,
        action.value,
        amount,
        old_position=seat.position,
        new_position=seat.position,
        comment=comment,
        extra={"property_id": property_id},
    )
    await session.flush()
    logger.info(f"Game {game.id}: seat {seat.id} {action.value} {comment} ({amount:+d})")


async def buy_property(session: AsyncSession, game_id: int, seat_id: int, property_id: int) -> LedgerResult:
    """Buy the unowned square the seat is standing on during its own turn."""
    game, seat = await _load(session, game_id, seat_id)
    if game.next_player_id != seat.id:
        raise NotYourTurnError(f"Seat {seat.id} does not hold the turn in game {game.id}")
    if seat.position != property_id:
        raise InvalidActionError(f"Seat {seat.id} is not on square {property_id}")
    square = find_square(property_id)
    if square is None or not square.is_ownable:
        raise InvalidActionError(f"Square {property_id} cannot be owned")
    record = await lock_property(session, game.id, property_id)
    if record is None:
        raise InvalidStateError(f"No ownership row for property {property_id} in game {game.id}")
    if record.player_id is not None:
        raise InvalidActionError(f"{square.name} is already owned")

    _charge(seat, square.price, square.name)
    record.player_id = seat.id
    await _record(session, game, seat, LedgerAction.BUY_PROPERTY, -square.price, property_id, f"Bought {square.name}")
    return LedgerResult(LedgerAction.BUY_PROPERTY, seat.id, property_id, -square.price, seat.balance, record.development, record.mortgaged)


async def mortgage(session: AsyncSession, game_id: int, seat_id: int, property_id: int) -> LedgerResult:
    game, seat = await _load(session, game_id, seat_id)
    square, record = await _owned_record(session, game, seat, property_id)
    if record.mortgaged:
        raise InvalidActionError(f"{square.name} is already mortgaged")
    if record.development:
        raise InvalidActionError(f"{square.name} has buildings; sell them first")

    record.mortgaged = True
    seat.balance += square.mortgage_value
    await _record(session, game, seat, LedgerAction.MORTGAGE, square.mortgage_value, property_id, f"Mortgaged {square.name}")
    return LedgerResult(LedgerAction.MORTGAGE, seat.id, property_id, square.mortgage_value, seat.balance, record.development, True)


async def unmortgage(session: AsyncSession, game_id: int, seat_id: int, property_id: int) -> LedgerResult:
    game, seat = await _load(session, game_id, seat_id)
    square, record = await _owned_record(session, game, seat, property_id)
    if not record.mortgaged:
        raise InvalidActionError(f"{square.name} is not mortgaged")

    cost = unmortgage_cost(square)
    _charge(seat, cost, f"lifting the mortgage on {square.name}")
    record.mortgaged = False
    await _record(session, game, seat, LedgerAction.UNMORTGAGE, -cost, property_id, f"Unmortgaged {square.name}")
    return LedgerResult(LedgerAction.UNMORTGAGE, seat.id, property_id, -cost, seat.balance, record.development, False)


async def _check_group(session: AsyncSession, game: Game, seat: Seat, square: Square) -> None:
    if square.kind is not SquareKind.LAND:
        raise InvalidActionError(f"Cannot build on {square.name}")
    group: List[GameProperty] = []
    for pid in color_group(square.color_group):
        record = await lock_property(session, game.id, pid)
        if record is None or record.player_id != seat.id:
            raise InvalidActionError(f"Seat {seat.id} does not own the whole {square.color_group} group")
        group.append(record)
    if any(r.mortgaged for r in group):
        raise InvalidActionError(f"The {square.color_group} group has a mortgaged property")


async def build_house(session: AsyncSession, game_id: int, seat_id: int, property_id: int) -> LedgerResult:
    game, seat = await _load(session, game_id, seat_id)
    square, record = await _owned_record(session, game, seat, property_id)
    await _check_group(session, game, seat, square)
    if record.development >= MAX_HOUSES:
        raise InvalidActionError(f"{square.name} already has {record.development} houses")

    _charge(seat, square.house_cost, f"a house on {square.name}")
    record.development += 1
    await _record(session, game, seat, LedgerAction.BUILD_HOUSE, -square.house_cost, property_id, f"Built a house on {square.name}")
    return LedgerResult(LedgerAction.BUILD_HOUSE, seat.id, property_id, -square.house_cost, seat.balance, record.development, False)


async def build_hotel(session: AsyncSession, game_id: int, seat_id: int, property_id: int) -> LedgerResult:
    game, seat = await _load(session, game_id, seat_id)
    square, record = await _owned_record(session, game, seat, property_id)
    await _check_group(session, game, seat, square)
    if record.development != MAX_HOUSES:
        raise InvalidActionError(f"{square.name} needs {MAX_HOUSES} houses before a hotel")

    _charge(seat, square.house_cost, f"a hotel on {square.name}")
    record.development = HOTEL_LEVEL
    await _record(session, game, seat, LedgerAction.BUILD_HOTEL, -square.house_cost, property_id, f"Built a hotel on {square.name}")
    return LedgerResult(LedgerAction.BUILD_HOTEL, seat.id, property_id, -square.house_cost, seat.balance, record.development, False)


async def use_jail_card(session: AsyncSession, game_id: int, seat_id: int) -> LedgerResult:
    """Spend a get-out-of-jail card (chance first) to leave jail without rolling."""
    game, seat = await _load(session, game_id, seat_id)
    if not seat.in_jail:
        raise InvalidActionError(f"Seat {seat.id} is not in jail")
    if seat.chance_jail_card:
        seat.chance_jail_card = False
        deck = "chance"
    elif seat.community_chest_jail_card:
        seat.community_chest_jail_card = False
        deck = "community_chest"
    else:
        raise InvalidActionError(f"Seat {seat.id} has no get-out-of-jail card")

    seat.in_jail = False
    seat.in_jail_rolls = 0
    await _record(session, game, seat, LedgerAction.USE_JAIL_CARD, 0, None, f"Used the {deck} jail card")
    return LedgerResult(LedgerAction.USE_JAIL_CARD, seat.id, None, 0, seat.balance)


async def apply(
    session: AsyncSession,
    game_id: int,
    seat_id: int,
    action: LedgerAction,
    property_id: Optional[int] = None,
) -> LedgerResult:
    """Dispatch a ledger action by name."""
    if action is LedgerAction.USE_JAIL_CARD:
        return await use_jail_card(session, game_id, seat_id)
    if property_id is None:
        raise InvalidActionError(f"{action.value} requires a property_id")
    handlers = {
        LedgerAction.BUY_PROPERTY: buy_property,
        LedgerAction.MORTGAGE: mortgage,
        LedgerAction.UNMORTGAGE: unmortgage,
        LedgerAction.BUILD_HOUSE: build_house,
        LedgerAction.BUILD_HOTEL: build_hotel,
    }
    return await handlers[action](session, game_id, seat_id, property_id)
