"""
GameService: game lifecycle on top of the repository.

Creating games and seats, starting (PENDING -> RUNNING), stopping and
completing, and loading a consistent view of a game for snapshots.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tycoon.core.agents.base import AgentProfile
from tycoon.core.exceptions import GameNotFoundError, InvalidActionError, InvalidStateError
from tycoon.core.game.board import OWNABLE_IDS
from tycoon.data.locks import lock_game, lock_seats
from tycoon.data.models import Game, GameProperty, GameStatus, PlayHistory, Seat
from tycoon.data.repository import GameRepository
from tycoon.settings import get_arena_settings

logger = logging.getLogger(__name__)


@dataclass
class GameView:
    """Everything observable about a game, read in one transaction."""

    game: Game
    seats: List[Seat]
    properties: List[GameProperty]
    history: List[PlayHistory] = field(default_factory=list)

    def seat(self, seat_id: Optional[int]) -> Optional[Seat]:
        return next((s for s in self.seats if s.id == seat_id), None)

    @property
    def current_seat(self) -> Optional[Seat]:
        return self.seat(self.game.next_player_id)


class GameService:
    """Use-case service for creating and managing games."""

    def __init__(self, repo: GameRepository):
        self.repo = repo

    @property
    def session(self):
        return self.repo.session

    async def create_game(
        self,
        *,
        number_of_players: int,
        mode: str = "PUBLIC",
        is_agent_only: bool = False,
        code: Optional[str] = None,
    ) -> Game:
        """Create a PENDING game with every ownable square bank-owned."""
        if not 2 <= number_of_players <= 8:
            raise InvalidActionError(f"number_of_players must be 2-8, got {number_of_players}")
        game = await self.repo.create_game(
            code=code or uuid.uuid4().hex[:8].upper(),
            number_of_players=number_of_players,
            mode=mode,
            is_agent_only=is_agent_only,
        )
        await self.repo.create_properties(game.id, OWNABLE_IDS)
        return game

    async def add_seat(
        self,
        game_id: int,
        owner_ref: str,
        profile: Optional[AgentProfile] = None,
    ) -> Seat:
        """
        Seat a player (or an agent, when ``profile`` is given) at the next turn order.

        Raises:
            GameNotFoundError: Unknown game.
            InvalidStateError: Game already started.
            InvalidActionError: Table full, or a human seat in an agent-only game.
        """
        game = await lock_game(self.session, game_id)
        if game.status != GameStatus.PENDING:
            raise InvalidStateError(f"Game {game.id} is {game.status.value}; seats are closed")
        if game.is_agent_only and profile is None:
            raise InvalidActionError(f"Game {game.id} only accepts agent seats")
        taken = await self.repo.count_seats(game.id)
        if taken >= game.number_of_players:
            raise InvalidActionError(f"Game {game.id} is full ({taken}/{game.number_of_players})")

        return await self.repo.add_seat(
            game.id,
            owner_ref=owner_ref,
            turn_order=taken + 1,
            balance=get_arena_settings().starting_balance,
            is_agent=profile is not None,
            agent_name=profile.name if profile else None,
            strategy=profile.strategy if profile else None,
            risk_profile=profile.risk_profile if profile else None,
        )

    async def start_game(self, game_id: int) -> Game:
        """PENDING -> RUNNING once every seat is filled; turn order 1 moves first."""
        game = await lock_game(self.session, game_id)
        if game.status != GameStatus.PENDING:
            raise InvalidStateError(f"Game {game.id} is {game.status.value}, not PENDING")
        seats = await lock_seats(self.session, game.id)
        if len(seats) != game.number_of_players:
            raise InvalidStateError(
                f"Game {game.id} has {len(seats)}/{game.number_of_players} seats filled"
            )
        game.next_player_id = seats[0].id
        game.round_number = 1
        await self.repo.update_game_status(game, GameStatus.RUNNING)
        return game

    async def create_agent_game(
        self,
        profiles: Sequence[AgentProfile],
        *,
        mode: str = "AGENT",
        code: Optional[str] = None,
    ) -> Game:
        """Create, seat and start an agent-only game in one go."""
        game = await self.create_game(
            number_of_players=len(profiles),
            mode=mode,
            is_agent_only=True,
            code=code,
        )
        for profile in profiles:
            await self.add_seat(game.id, owner_ref=profile.name, profile=profile)
        return await self.start_game(game.id)

    async def stop_game(self, game_id: int) -> Game:
        """RUNNING/PENDING -> STOPPED. Terminal games are returned unchanged."""
        game = await lock_game(self.session, game_id)
        if game.status.is_terminal:
            return game
        return await self.repo.update_game_status(game, GameStatus.STOPPED)

    async def complete_game(self, game_id: int, winner_id: Optional[int]) -> Game:
        game = await lock_game(self.session, game_id)
        if game.status.is_terminal:
            return game
        logger.info(f"Game {game.id} completed, winner seat {winner_id}")
        return await self.repo.update_game_status(game, GameStatus.COMPLETED, winner_id=winner_id)

    async def load(self, game_id: int, history_limit: int = 20) -> GameView:
        game = await self.repo.get_game(game_id)
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        return GameView(
            game=game,
            seats=await self.repo.list_seats(game.id),
            properties=await self.repo.list_properties(game.id),
            history=await self.repo.recent_history(game.id, limit=history_limit),
        )
