"""
Landing resolution.

Runs inside the caller's transaction once a seat has moved: classifies the
destination square, computes money and position effects (tax, cards, rent)
and writes one history row per monetary leg. Nothing here commits; an
exception anywhere aborts the whole turn.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.core.exceptions import InvalidStateError
from tycoon.core.game.board import JAIL_SQUARE, RAILWAY_IDS, UTILITY_IDS, get_square
from tycoon.core.game.cards import DECKS, Card, Deck, draw_card, resolve_card
from tycoon.core.game.rent import calculate_rent
from tycoon.core.game.spaces import SquareKind
from tycoon.data.locks import lock_property, lock_seat, lock_seats
from tycoon.data.models import Game, Seat
from tycoon.data.repository import GameRepository

logger = logging.getLogger(__name__)


class LandingAction(str, Enum):
    """History classification of a landing."""

    LAND = "land"
    RAILWAY = "railway"
    UTILITY = "utility"
    TAX = "tax"
    CHANCE = "chance"
    COMMUNITY = "community"
    GO_TO_JAIL = "go_to_jail"
    FREE = "free"


_ACTION_BY_KIND = {
    SquareKind.LAND: LandingAction.LAND,
    SquareKind.RAILWAY: LandingAction.RAILWAY,
    SquareKind.UTILITY: LandingAction.UTILITY,
    SquareKind.TAX: LandingAction.TAX,
    SquareKind.CHANCE: LandingAction.CHANCE,
    SquareKind.COMMUNITY: LandingAction.COMMUNITY,
    SquareKind.GO_TO_JAIL: LandingAction.GO_TO_JAIL,
    SquareKind.GO: LandingAction.FREE,
    SquareKind.JAIL: LandingAction.FREE,
    SquareKind.FREE: LandingAction.FREE,
}

_DECK_BY_ACTION = {
    LandingAction.CHANCE: Deck.CHANCE,
    LandingAction.COMMUNITY: Deck.COMMUNITY_CHEST,
}


def classify(square_id: int) -> LandingAction:
    """Classify a square id for history and dispatch."""
    return _ACTION_BY_KIND[get_square(square_id).kind]


@dataclass
class RentPaid:
    """Signed balance deltas of one landing.

    ``player`` is the landing seat, ``owner`` the square's owner and
    ``players`` what each other seat received (per-player cards).
    """

    player: int = 0
    owner: int = 0
    players: int = 0


@dataclass
class LandingOutcome:
    action: LandingAction
    position: int
    rent_paid: RentPaid = field(default_factory=RentPaid)
    card: Optional[Dict[str, Any]] = None
    owner_id: Optional[int] = None
    buyable: bool = False
    in_jail: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data


def _card_payload(card: Card, deck: Deck) -> Dict[str, Any]:
    return {
        "deck": deck.value,
        "instruction": card.instruction,
        "type": card.type.value,
        "amount": card.amount,
        "position": card.position,
        "rule": card.rule.value if card.rule else None,
    }


async def resolve_landing(
    session: AsyncSession,
    game: Game,
    seat: Seat,
    old_position: int,
    dice_total: int,
    rng: Optional[random.Random] = None,
) -> LandingOutcome:
    """
    Apply the effects of ``seat`` coming to rest on ``seat.position``.

    The caller must hold locks on ``game`` and ``seat`` and must have flushed
    its pending changes to ``seat`` (locked reads refresh rows from the DB).

    Args:
        session: Session of the enclosing transaction.
        game: The locked, RUNNING game.
        seat: The locked landing seat, already moved.
        old_position: Position before this roll (card rules compare against it).
        dice_total: Total of this roll (utility rent).
        rng: Card draw source; inject a seeded Random for deterministic draws.

    Returns:
        LandingOutcome with the balance deltas and final position.

    Raises:
        InvalidStateError: If an ownership or owner row is missing.
    """
    repo = GameRepository(session)
    position = seat.position
    action = classify(position)
    outcome = LandingOutcome(action=action, position=position)

    if action is LandingAction.TAX:
        outcome.rent_paid.player = -get_square(position).price
        seat.balance += outcome.rent_paid.player
        await _log_leg(repo, game, seat, action, outcome.rent_paid.player, "Paid tax")

    elif action in _DECK_BY_ACTION:
        await _resolve_card(session, repo, game, seat, old_position, _DECK_BY_ACTION[action], outcome, rng)

    elif action in (LandingAction.LAND, LandingAction.RAILWAY, LandingAction.UTILITY):
        await _resolve_ownable(session, repo, game, seat, dice_total, outcome)

    await session.flush()
    return outcome


async def _resolve_card(
    session: AsyncSession,
    repo: GameRepository,
    game: Game,
    seat: Seat,
    old_position: int,
    deck: Deck,
    outcome: LandingOutcome,
    rng: Optional[random.Random],
) -> None:
    await session.flush()
    others: List[Seat] = [s for s in await lock_seats(session, game.id) if s.id != seat.id]

    card = draw_card(DECKS[deck], rng)
    effect = resolve_card(card, deck, old_position, seat.position, other_seats=len(others))
    outcome.card = _card_payload(card, deck)
    logger.info(f"Game {game.id}: seat {seat.id} drew '{card.instruction}' from {deck.value}")

    outcome.rent_paid.player = effect.balance_delta
    outcome.rent_paid.players = effect.others_delta
    seat.balance += effect.balance_delta
    await _log_leg(repo, game, seat, outcome.action, effect.balance_delta, card.instruction)

    if effect.others_delta:
        for other in others:
            other.balance += effect.others_delta
            await _log_leg(repo, game, other, outcome.action, effect.others_delta, card.instruction)

    if effect.jail_card is Deck.CHANCE:
        seat.chance_jail_card = True
    elif effect.jail_card is Deck.COMMUNITY_CHEST:
        seat.community_chest_jail_card = True

    if effect.in_jail:
        seat.in_jail = True
        seat.in_jail_rolls = 0
        outcome.in_jail = True

    new_position = JAIL_SQUARE if effect.in_jail else effect.position
    if new_position != seat.position:
        await repo.add_history(
            game.id,
            seat.id,
            "moved",
            0,
            old_position=seat.position,
            new_position=new_position,
            comment=card.instruction,
        )
        seat.position = new_position
    outcome.position = seat.position


async def _resolve_ownable(
    session: AsyncSession,
    repo: GameRepository,
    game: Game,
    seat: Seat,
    dice_total: int,
    outcome: LandingOutcome,
) -> None:
    await session.flush()
    record = await lock_property(session, game.id, seat.position)
    if record is None:
        raise InvalidStateError(f"No ownership row for property {seat.position} in game {game.id}")

    if record.player_id is None:
        outcome.buyable = True
        return
    outcome.owner_id = record.player_id
    if record.player_id == seat.id or record.mortgaged:
        return

    owner = await lock_seat(session, game.id, record.player_id)
    square = get_square(seat.position)
    rent = calculate_rent(
        square,
        development=record.development,
        owned_railways=await repo.count_owned_among(game.id, owner.id, RAILWAY_IDS),
        owned_utilities=await repo.count_owned_among(game.id, owner.id, UTILITY_IDS),
        dice_total=dice_total,
    )
    if rent == 0:
        return

    outcome.rent_paid.player = -rent
    outcome.rent_paid.owner = rent
    seat.balance -= rent
    owner.balance += rent
    await _log_leg(repo, game, seat, outcome.action, -rent, f"Paid rent on {square.name}")
    await _log_leg(repo, game, owner, outcome.action, rent, f"Received rent on {square.name}")
    await repo.add_transfer(game.id, seat.id, owner.id, rent)
    logger.info(f"Game {game.id}: seat {seat.id} paid {rent} rent to seat {owner.id} for {square.name}")


async def _log_leg(
    repo: GameRepository,
    game: Game,
    seat: Seat,
    action: LandingAction,
    amount: int,
    comment: str,
) -> None:
    if amount == 0:
        return
    await repo.add_history(
        game.id,
        seat.id,
        action.value,
        amount,
        old_position=seat.position,
        new_position=seat.position,
        comment=comment,
    )
