"""
Event broadcasting to WebSocket clients and other in-process listeners.

Each subscriber gets its own bounded asyncio.Queue; slow subscribers are
dropped instead of blocking the runner.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    GAME_STARTED = "game-started"
    TURN_COMPLETED = "turn-completed"
    GAME_ENDED = "game-ended"
    GAME_ERROR = "game-error"


class Broadcaster:
    """Fan-out of game events, optionally filtered by game id."""

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: Set[Tuple[Optional[int], asyncio.Queue]] = set()

    def subscribe(self, game_id: Optional[int] = None) -> asyncio.Queue:
        """Register a queue receiving events of ``game_id`` (or of every game)."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add((game_id, q))
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers = {(gid, sq) for gid, sq in self._subscribers if sq is not q}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: EventType, game_id: int, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {
            "type": event.value,
            "game_id": game_id,
            "ts": datetime.now(timezone.utc).isoformat(),
            "data": data or {},
        }
        for gid, q in list(self._subscribers):
            if gid is not None and gid != game_id:
                continue
            # Best-effort; don't block if client is slow
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning(f"Dropping slow subscriber for game {gid}")
                self.unsubscribe(q)
        return payload
