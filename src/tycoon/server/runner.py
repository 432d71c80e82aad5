from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.core.agents import AgentProfile, Decision, DecisionSource, DecisionType, build_decision_source
from tycoon.core.exceptions import InvalidActionError, InvalidStateError, RunnerTickError
from tycoon.core.game.dice import roll_dice
from tycoon.data import GameRepository, run_in_transaction
from tycoon.data.locks import lock_game, lock_seats
from tycoon.data.models import GameStatus, Seat
from tycoon.server.events import Broadcaster, EventType
from tycoon.services import GameService
from tycoon.services import ledger_service, turn_service
from tycoon.services.ledger_service import LedgerAction
from tycoon.settings import get_arena_settings
from tycoon.snapshot import decision_snapshot, live_snapshot, serialize_turn_result

logger = logging.getLogger(__name__)

# Decisions that translate into a ledger call on the acting seat
LEDGER_DECISIONS: Dict[DecisionType, LedgerAction] = {
    DecisionType.BUY_PROPERTY: LedgerAction.BUY_PROPERTY,
    DecisionType.MORTGAGE: LedgerAction.MORTGAGE,
    DecisionType.UNMORTGAGE: LedgerAction.UNMORTGAGE,
    DecisionType.BUILD_HOUSE: LedgerAction.BUILD_HOUSE,
    DecisionType.BUILD_HOTEL: LedgerAction.BUILD_HOTEL,
}

SourceFactory = Callable[[Optional[str]], DecisionSource]
FinishedCallback = Callable[["GameRunner"], Awaitable[None]]


def pick_winner(seats: List[Seat], round_number: int, round_cap: int) -> Optional[Seat]:
    """
    Winner of the game, or None while it goes on.

    One seat left with a positive balance wins outright; once the round cap
    is reached the highest balance wins (ties go to the earlier turn order).
    """
    if not seats:
        return None
    solvent = [s for s in seats if s.balance > 0]
    if len(solvent) == 1:
        return solvent[0]
    if not solvent or round_number >= round_cap:
        pool = solvent or seats
        return max(pool, key=lambda s: (s.balance, -s.turn_order))
    return None


@dataclass
class RollPhase:
    """What the first transaction of a tick hands to the decision step."""

    seat_id: int
    profile: AgentProfile
    strategy: Optional[str]
    snapshot: Dict[str, Any]
    turn: Optional[Dict[str, Any]] = None


@dataclass
class ApplyPhase:
    seat_id: int
    decision: Decision
    applied: Optional[Dict[str, Any]] = None
    rejected: Optional[str] = None
    next_player_id: Optional[int] = None
    round_number: int = 1
    round_reset: bool = False
    winner_id: Optional[int] = None
    finished: bool = False
    standings: List[Dict[str, Any]] = field(default_factory=list)


class GameRunner:
    """Drives one agent-only game on a fixed cadence.

    Responsibilities:
    - Roll for the seat holding the turn and resolve the landing
    - Ask the seat's decision source what to do and apply it
    - End the turn, detect the winner and persist the outcome
    - Keep an in-memory log and broadcast events to subscribers
    """

    def __init__(
        self,
        game_id: int,
        *,
        broadcaster: Optional[Broadcaster] = None,
        interval: Optional[float] = None,
        round_cap: Optional[int] = None,
        rng: Optional[random.Random] = None,
        source_factory: Optional[SourceFactory] = None,
        on_finished: Optional[FinishedCallback] = None,
    ):
        settings = get_arena_settings()
        self.game_id = game_id
        self.broadcaster = broadcaster or Broadcaster()
        self.interval = interval if interval is not None else settings.turn_interval_seconds
        self.round_cap = round_cap if round_cap is not None else settings.round_cap
        self.go_bonus = settings.go_bonus
        self.rng = rng or random.Random(settings.seed)
        self._source_factory = source_factory or (lambda strategy: build_decision_source(strategy, self.rng))
        self._on_finished = on_finished
        self._sources: Dict[int, DecisionSource] = {}
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._finished = False

        self.log: Deque[Dict[str, Any]] = deque(maxlen=settings.event_log_size)
        self.last_action: Optional[str] = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def finished(self) -> bool:
        return self._finished

    async def start(self) -> None:
        if self.running:
            return
        view = await run_in_transaction(lambda s: GameService(GameRepository(s)).load(self.game_id))
        await self.broadcaster.publish(
            EventType.GAME_STARTED,
            self.game_id,
            {
                "round_number": view.game.round_number,
                "agents": [
                    {"id": s.id, "name": s.display_name, "strategy": s.strategy, "balance": s.balance}
                    for s in view.seats
                ],
            },
        )
        logger.info(f"Runner for game {self.game_id} started (interval={self.interval}s, cap={self.round_cap})")
        self._task = asyncio.create_task(self._run_loop(), name=f"game-runner-{self.game_id}")

    async def stop(self) -> None:
        """Stop scheduling ticks; an in-flight tick is allowed to finish."""
        self._stop.set()
        if self._task and self._task is not asyncio.current_task():
            await self._task

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + self.interval
        while not self._stop.is_set() and not self._finished:
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, next_fire - loop.time()))
                break
            except asyncio.TimeoutError:
                pass

            await self.run_tick()

            # Fixed cadence; firings missed while a tick ran are dropped
            next_fire += self.interval
            now = loop.time()
            if next_fire <= now:
                missed = int((now - next_fire) // self.interval) + 1
                self.skipped_ticks += missed
                next_fire += missed * self.interval
        await self._close_sources()
        logger.info(f"Runner for game {self.game_id} exited after {self.ticks} ticks")

    async def run_tick(self) -> None:
        """Run one tick, turning any failure into a logged game-error event."""
        self.ticks += 1
        try:
            await self.tick()
        except Exception as exc:
            self.errors += 1
            error = RunnerTickError(self.game_id, exc)
            logger.exception(str(error))
            await self.broadcaster.publish(
                EventType.GAME_ERROR,
                self.game_id,
                {"error": type(exc).__name__, "message": str(exc), "tick": self.ticks},
            )

    async def tick(self) -> Optional[ApplyPhase]:
        """
        One turn for the seat holding it.

        Row locks are only held inside the two transactions; the decision
        source is consulted between them.
        """
        rolled = await run_in_transaction(self._roll_phase)
        if rolled is None:
            await self._finish(None, reason="not running")
            return None

        decision = await self._decide(rolled)
        outcome = await run_in_transaction(lambda s: self._apply_phase(s, rolled.seat_id, decision))
        if outcome is None:
            return None

        entry = {
            "tick": self.ticks,
            "ts": datetime.now(timezone.utc).isoformat(),
            "seat_id": rolled.seat_id,
            "agent": rolled.profile.name,
            "turn": rolled.turn,
            "decision": decision.to_dict(),
            "applied": outcome.applied,
            "rejected": outcome.rejected,
            "next_player_id": outcome.next_player_id,
            "round_number": outcome.round_number,
        }
        self.log.append(entry)
        self.last_action = self._describe(rolled, outcome)
        await self.broadcaster.publish(EventType.TURN_COMPLETED, self.game_id, entry)

        if outcome.finished:
            await self._finish(outcome)
        return outcome

    async def _roll_phase(self, session: AsyncSession) -> Optional[RollPhase]:
        service = GameService(GameRepository(session))
        game = await lock_game(session, self.game_id)
        if game.status != GameStatus.RUNNING:
            return None
        seats = await lock_seats(session, game.id)
        seat = next((s for s in seats if s.id == game.next_player_id), None)
        if seat is None:
            raise InvalidStateError(f"Game {game.id}: turn holder {game.next_player_id} is not seated")

        result = None
        # A seat that already rolled (earlier tick failed after rolling) only decides
        if seat.rolls == 0 and not seat.is_bankrupt:
            result = await turn_service.roll(
                session,
                game.id,
                seat.id,
                roll_dice(self.rng),
                rng=self.rng,
                go_bonus=self.go_bonus,
            )
        else:
            logger.debug(f"Game {game.id}: seat {seat.id} skips the roll (rolls={seat.rolls})")

        view = await service.load(game.id)
        profile = AgentProfile(
            name=seat.display_name,
            strategy=seat.strategy or "heuristic",
            risk_profile=seat.risk_profile or "balanced",
        )
        return RollPhase(
            seat_id=seat.id,
            profile=profile,
            strategy=seat.strategy,
            snapshot=decision_snapshot(view, seat, result),
            turn=serialize_turn_result(result) if result else None,
        )

    async def _decide(self, rolled: RollPhase) -> Decision:
        source = self._sources.get(rolled.seat_id)
        if source is None:
            source = self._sources[rolled.seat_id] = self._source_factory(rolled.strategy)
        return await source.decide(rolled.snapshot, rolled.profile)

    async def _apply_phase(self, session: AsyncSession, seat_id: int, decision: Decision) -> Optional[ApplyPhase]:
        game = await lock_game(session, self.game_id)
        if game.status != GameStatus.RUNNING or game.next_player_id != seat_id:
            logger.info(f"Game {self.game_id}: turn moved on before seat {seat_id} acted, dropping decision")
            return None

        outcome = ApplyPhase(seat_id=seat_id, decision=decision)
        action = LEDGER_DECISIONS.get(decision.type)
        if action is not None:
            try:
                result = await ledger_service.apply(session, game.id, seat_id, action, decision.property_id)
                outcome.applied = {**asdict(result), "action": result.action.value}
            except InvalidActionError as e:
                outcome.rejected = str(e)
                logger.warning(f"Game {game.id}: seat {seat_id} {decision.type.value} rejected: {e}")
        elif decision.type is DecisionType.PROPOSE_TRADE:
            logger.info(f"Game {game.id}: seat {seat_id} proposed a trade {decision.data}, not executed")
        # pay_rent settles during landing resolution; end_turn needs nothing extra

        ended = await turn_service.end_turn(session, game.id, seat_id)
        outcome.next_player_id = ended.next_player_id
        outcome.round_number = ended.round_number
        outcome.round_reset = ended.round_reset

        seats = await lock_seats(session, game.id)
        winner = pick_winner(seats, game.round_number, self.round_cap)
        if winner is not None:
            await GameService(GameRepository(session)).complete_game(game.id, winner.id)
            outcome.winner_id = winner.id
            outcome.finished = True
            outcome.standings = [
                {"id": s.id, "name": s.display_name, "balance": s.balance}
                for s in sorted(seats, key=lambda s: -s.balance)
            ]
        return outcome

    async def _finish(self, outcome: Optional[ApplyPhase], reason: str = "winner") -> None:
        if self._finished:
            return
        self._finished = True
        if outcome is not None:
            await self.broadcaster.publish(
                EventType.GAME_ENDED,
                self.game_id,
                {
                    "winner_id": outcome.winner_id,
                    "round_number": outcome.round_number,
                    "standings": outcome.standings,
                },
            )
            logger.info(f"Game {self.game_id} ended, winner seat {outcome.winner_id}")
        else:
            logger.info(f"Runner for game {self.game_id} finishing: {reason}")
        if self._on_finished is not None:
            await self._on_finished(self)

    @staticmethod
    def _describe(rolled: RollPhase, outcome: ApplyPhase) -> str:
        """One-line summary, e.g. ``"Ada rolled 8 to 8, buy_property"``."""
        parts = []
        if rolled.turn:
            parts.append(f"rolled {sum(rolled.turn['dice'])} to {rolled.turn['new_position']}")
        if outcome.rejected:
            parts.append(f"{outcome.decision.type.value} rejected")
        else:
            parts.append(outcome.decision.type.value)
        return f"{rolled.profile.name} {', '.join(parts)}"

    async def _close_sources(self) -> None:
        for source in self._sources.values():
            await source.aclose()
        self._sources.clear()

    async def status(self) -> Dict[str, Any]:
        """Live snapshot plus scheduler counters."""
        view = await run_in_transaction(lambda s: GameService(GameRepository(s)).load(self.game_id))
        data = live_snapshot(view, self.last_action)
        data.update(
            {
                "running": self.running,
                "ticks": self.ticks,
                "skipped_ticks": self.skipped_ticks,
                "errors": self.errors,
            }
        )
        return data

    def recent_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(self.log)[-limit:]
