"""
Row locking and transactional retry helpers.

Every turn operation runs inside ``run_in_transaction`` and takes its row
locks with the ``lock_*`` helpers below (``SELECT ... FOR UPDATE``; SQLite
ignores the clause and relies on ``BEGIN IMMEDIATE`` instead). Lock waits
are bounded by ``lock_timeout``; contention surfaces as
``TransientLockTimeoutError`` and the whole operation is retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.core.exceptions import GameNotFoundError, InvalidStateError, TransientLockTimeoutError
from tycoon.data.config import get_settings
from tycoon.data.models import Game, GameProperty, Seat
from tycoon.data.session import session_scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

# lock_not_available, serialization_failure, deadlock_detected
_TRANSIENT_SQLSTATES = {"55P03", "40001", "40P01"}
_TRANSIENT_MESSAGES = ("database is locked", "could not obtain lock", "lock timeout")


def is_transient_lock_error(exc: BaseException) -> bool:
    """Whether a driver error means "retry later" rather than "this is wrong"."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


async def apply_lock_timeout(session: AsyncSession) -> None:
    """Bound row lock waits for the current transaction (PostgreSQL only)."""
    if session.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int(get_settings().db_lock_timeout_ms)
    await session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


async def lock_game(session: AsyncSession, game_id: int) -> Game:
    """
    Lock a Game row for the rest of the transaction.

    Raises:
        GameNotFoundError: If the game does not exist.
    """
    stmt = (
        select(Game)
        .where(Game.id == game_id)
        .with_for_update(nowait=False)
        .execution_options(populate_existing=True)
    )
    game = (await session.execute(stmt)).scalar_one_or_none()
    if game is None:
        raise GameNotFoundError(f"Game {game_id} not found")
    return game


async def lock_seat(session: AsyncSession, game_id: int, seat_id: int) -> Seat:
    """
    Lock one Seat row of a game.

    Raises:
        InvalidStateError: If the seat does not exist in this game.
    """
    stmt = (
        select(Seat)
        .where(Seat.id == seat_id, Seat.game_id == game_id)
        .with_for_update(nowait=False)
        .execution_options(populate_existing=True)
    )
    seat = (await session.execute(stmt)).scalar_one_or_none()
    if seat is None:
        raise InvalidStateError(f"Seat {seat_id} not found in game {game_id}")
    return seat


async def lock_seats(session: AsyncSession, game_id: int) -> List[Seat]:
    """Lock every seat of a game, in turn order (a stable order avoids deadlocks)."""
    stmt = (
        select(Seat)
        .where(Seat.game_id == game_id)
        .order_by(Seat.turn_order)
        .with_for_update(nowait=False)
        .execution_options(populate_existing=True)
    )
    return list((await session.execute(stmt)).scalars().all())


async def lock_property(
    session: AsyncSession,
    game_id: int,
    property_id: int,
) -> Optional[GameProperty]:
    """Lock the ownership row of a square; None for squares that cannot be owned."""
    stmt = (
        select(GameProperty)
        .where(GameProperty.game_id == game_id, GameProperty.property_id == property_id)
        .with_for_update(nowait=False)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def run_in_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: Optional[int] = None,
    backoff_seconds: float = 0.05,
) -> T:
    """
    Run ``operation`` in its own transaction, retrying on lock contention.

    Each attempt opens a fresh session, so preconditions are re-checked on
    retry. Non-transient errors propagate immediately.

    Args:
        operation: Coroutine function receiving the session.
        attempts: Max attempts (defaults to DB_TRANSACTION_ATTEMPTS).
        backoff_seconds: Base delay between attempts (grows linearly).

    Returns:
        Whatever ``operation`` returns.

    Raises:
        TransientLockTimeoutError: When every attempt hit contention.
    """
    max_attempts = attempts or get_settings().db_transaction_attempts
    for attempt in range(1, max_attempts + 1):
        try:
            async with session_scope() as session:
                await apply_lock_timeout(session)
                return await operation(session)
        except DBAPIError as exc:
            if not is_transient_lock_error(exc):
                raise
            if attempt == max_attempts:
                raise TransientLockTimeoutError(
                    f"Gave up after {max_attempts} attempts: {exc.orig}"
                ) from exc
            logger.warning(f"Lock contention (attempt {attempt}/{max_attempts}), retrying: {exc.orig}")
        except TransientLockTimeoutError:
            if attempt == max_attempts:
                raise
            logger.warning(f"Transient failure (attempt {attempt}/{max_attempts}), retrying")
        await asyncio.sleep(backoff_seconds * attempt)
    raise AssertionError("unreachable")
