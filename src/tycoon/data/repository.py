"""
Repository pattern for game data operations.

Encapsulates the queries for games, seats, ownership and history rows.
Locked reads live in ``tycoon.data.locks``; everything here uses the
caller's session and transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.data.models import (
    Game,
    GameProperty,
    GameStatus,
    PlayHistory,
    Seat,
    Transfer,
    utc_now,
)

logger = logging.getLogger(__name__)


class GameRepository:
    """
    Repository for game-related database operations.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with a database session.

        Args:
            session: Active async SQLAlchemy session
        """
        self.session = session

    # ---- Game Operations ----

    async def create_game(
        self,
        code: str,
        number_of_players: int,
        mode: str = "PUBLIC",
        is_agent_only: bool = False,
    ) -> Game:
        """
        Create a new PENDING game record.

        Args:
            code: Unique short game code
            number_of_players: Seats required to start
            mode: Free-form game mode label
            is_agent_only: Whether every seat is driven by a decision source

        Returns:
            Created Game instance
        """
        game = Game(
            code=code,
            status=GameStatus.PENDING,
            mode=mode,
            number_of_players=number_of_players,
            is_agent_only=is_agent_only,
            round_number=1,
        )
        self.session.add(game)
        await self.session.flush()  # Get the id assigned
        logger.info(f"Created game: {code} (id: {game.id})")
        return game

    async def get_game(self, game_id: int) -> Optional[Game]:
        return await self.session.get(Game, game_id)

    async def update_game_status(
        self,
        game: Game,
        status: GameStatus,
        winner_id: Optional[int] = None,
    ) -> Game:
        """
        Move a game to ``status``, stamping started/finished timestamps.

        Args:
            game: Game row (ideally locked by the caller)
            status: New status
            winner_id: Winning seat id for COMPLETED games

        Returns:
            The updated Game
        """
        now = utc_now()
        game.status = status
        if status == GameStatus.RUNNING and game.started_at is None:
            game.started_at = now
        if status.is_terminal:
            game.finished_at = now
        if winner_id is not None:
            game.winner_id = winner_id
        await self.session.flush()
        logger.info(f"Game {game.id} status -> {status.value}")
        return game

    async def list_games(self, status: Optional[GameStatus] = None, agent_only: Optional[bool] = None) -> List[Game]:
        stmt = select(Game).order_by(Game.id)
        if status is not None:
            stmt = stmt.where(Game.status == status)
        if agent_only is not None:
            stmt = stmt.where(Game.is_agent_only == agent_only)
        return list((await self.session.execute(stmt)).scalars().all())

    # ---- Seat Operations ----

    async def add_seat(
        self,
        game_id: int,
        owner_ref: str,
        turn_order: int,
        balance: int,
        is_agent: bool = False,
        agent_name: Optional[str] = None,
        strategy: Optional[str] = None,
        risk_profile: Optional[str] = None,
    ) -> Seat:
        seat = Seat(
            game_id=game_id,
            owner_ref=owner_ref,
            turn_order=turn_order,
            balance=balance,
            position=0,
            is_agent=is_agent,
            agent_name=agent_name,
            strategy=strategy,
            risk_profile=risk_profile,
        )
        self.session.add(seat)
        await self.session.flush()
        logger.info(f"Added seat {seat.id} ({owner_ref}) to game {game_id} at turn order {turn_order}")
        return seat

    async def list_seats(self, game_id: int) -> List[Seat]:
        stmt = select(Seat).where(Seat.game_id == game_id).order_by(Seat.turn_order)
        return list((await self.session.execute(stmt)).scalars().all())

    async def count_seats(self, game_id: int) -> int:
        stmt = select(func.count()).select_from(Seat).where(Seat.game_id == game_id)
        return int((await self.session.execute(stmt)).scalar_one())

    # ---- Ownership ----

    async def create_properties(self, game_id: int, property_ids: Iterable[int]) -> None:
        """Insert bank-owned ownership rows for every ownable square."""
        self.session.add_all(
            GameProperty(game_id=game_id, property_id=pid, player_id=None, mortgaged=False, development=0)
            for pid in property_ids
        )
        await self.session.flush()

    async def list_properties(self, game_id: int) -> List[GameProperty]:
        stmt = select(GameProperty).where(GameProperty.game_id == game_id).order_by(GameProperty.property_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def count_owned_among(self, game_id: int, seat_id: int, property_ids: Iterable[int]) -> int:
        """How many of ``property_ids`` the seat owns in this game."""
        stmt = (
            select(func.count())
            .select_from(GameProperty)
            .where(
                GameProperty.game_id == game_id,
                GameProperty.player_id == seat_id,
                GameProperty.property_id.in_(list(property_ids)),
            )
        )
        return int((await self.session.execute(stmt)).scalar_one())

    # ---- History ----

    async def add_history(
        self,
        game_id: int,
        seat_id: int,
        action: str,
        amount: int = 0,
        *,
        rolled: Optional[int] = None,
        old_position: Optional[int] = None,
        new_position: Optional[int] = None,
        comment: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        active: bool = False,
    ) -> PlayHistory:
        row = PlayHistory(
            game_id=game_id,
            seat_id=seat_id,
            action=action,
            amount=amount,
            rolled=rolled,
            old_position=old_position,
            new_position=new_position,
            comment=comment,
            extra=extra or {},
            active=active,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def deactivate_latest_active(self, game_id: int) -> Optional[int]:
        """Mark the most recent active history row of a game inactive; returns its id."""
        stmt = (
            select(PlayHistory.id)
            .where(PlayHistory.game_id == game_id, PlayHistory.active.is_(True))
            .order_by(PlayHistory.id.desc())
            .limit(1)
        )
        row_id = (await self.session.execute(stmt)).scalar_one_or_none()
        if row_id is None:
            return None
        await self.session.execute(
            update(PlayHistory).where(PlayHistory.id == row_id).values(active=False)
        )
        return row_id

    async def count_active_history(self, game_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(PlayHistory)
            .where(PlayHistory.game_id == game_id, PlayHistory.active.is_(True))
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def recent_history(self, game_id: int, limit: int = 20) -> List[PlayHistory]:
        stmt = (
            select(PlayHistory)
            .where(PlayHistory.game_id == game_id)
            .order_by(PlayHistory.id.desc())
            .limit(limit)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    # ---- Transfers ----

    async def add_transfer(self, game_id: int, from_seat_id: int, to_seat_id: int, amount: int) -> Transfer:
        transfer = Transfer(
            game_id=game_id,
            from_seat_id=from_seat_id,
            to_seat_id=to_seat_id,
            type="CASH",
            status="ACCEPTED",
            sending_amount=amount,
            receiving_amount=amount,
        )
        self.session.add(transfer)
        await self.session.flush()
        return transfer

    async def list_transfers(self, game_id: int) -> List[Transfer]:
        stmt = select(Transfer).where(Transfer.game_id == game_id).order_by(Transfer.id)
        return list((await self.session.execute(stmt)).scalars().all())
