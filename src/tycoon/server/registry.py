from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from tycoon.data import GameRepository, run_in_transaction
from tycoon.data.models import GameStatus
from tycoon.server.events import Broadcaster
from tycoon.server.runner import GameRunner, SourceFactory
from tycoon.services import GameService
from tycoon.snapshot import live_snapshot

logger = logging.getLogger(__name__)


class GameRegistry:
    """In-memory registry of running games, one runner per game id."""

    def __init__(self, broadcaster: Optional[Broadcaster] = None):
        self.broadcaster = broadcaster or Broadcaster()
        self._games: Dict[int, GameRunner] = {}
        self._lock = asyncio.Lock()

    async def start(
        self,
        game_id: int,
        *,
        interval: Optional[float] = None,
        round_cap: Optional[int] = None,
        rng: Optional[random.Random] = None,
        source_factory: Optional[SourceFactory] = None,
    ) -> GameRunner:
        """Start (or return the already running) runner for ``game_id``."""
        async with self._lock:
            runner = self._games.get(game_id)
            if runner is not None and not runner.finished:
                return runner
            runner = GameRunner(
                game_id,
                broadcaster=self.broadcaster,
                interval=interval,
                round_cap=round_cap,
                rng=rng,
                source_factory=source_factory,
                on_finished=self._discard,
            )
            self._games[game_id] = runner
        try:
            await runner.start()
        except Exception:
            await self._discard(runner)
            raise
        return runner

    async def get(self, game_id: int) -> Optional[GameRunner]:
        return self._games.get(game_id)

    async def stop(self, game_id: int) -> bool:
        """Stop the runner and persist STOPPED; False when nothing was running."""
        async with self._lock:
            runner = self._games.pop(game_id, None)
        if runner is None:
            return False
        await runner.stop()
        await run_in_transaction(lambda s: GameService(GameRepository(s)).stop_game(game_id))
        logger.info(f"Game {game_id} stopped")
        return True

    async def stop_all(self) -> None:
        """Halt every runner without touching persisted status (shutdown path)."""
        async with self._lock:
            runners = list(self._games.values())
            self._games.clear()
        for runner in runners:
            await runner.stop()

    async def resume_running(self) -> List[int]:
        """Start runners for agent-only games persisted as RUNNING."""
        games = await run_in_transaction(
            lambda s: GameRepository(s).list_games(status=GameStatus.RUNNING, agent_only=True)
        )
        resumed = []
        for game in games:
            await self.start(game.id)
            resumed.append(game.id)
        if resumed:
            logger.info(f"Resumed runners for games {resumed}")
        return resumed

    async def live_games(self) -> List[Dict[str, Any]]:
        async with self._lock:
            runners = list(self._games.values())
        snapshots = []
        for runner in runners:
            view = await run_in_transaction(lambda s, gid=runner.game_id: GameService(GameRepository(s)).load(gid))
            snapshots.append(live_snapshot(view, runner.last_action))
        return snapshots

    def __len__(self) -> int:
        return len(self._games)

    async def _discard(self, runner: GameRunner) -> None:
        async with self._lock:
            if self._games.get(runner.game_id) is runner:
                del self._games[runner.game_id]
