from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon import __version__
from tycoon.core.agents import AgentProfile
from tycoon.core.exceptions import (
    AlreadyRolledError,
    GameNotFoundError,
    InvalidActionError,
    InvalidMoveError,
    InvalidStateError,
    MonopolyError,
    NotYourTurnError,
    TransientLockTimeoutError,
)
from tycoon.core.game.dice import DiceRoll, roll_dice
from tycoon.data import GameRepository, close_db, create_tables, get_session, get_settings, init_db, run_in_transaction
from tycoon.data.models import GameStatus
from tycoon.server.registry import GameRegistry
from tycoon.server.schemas import (
    AgentSeatRequest,
    CreateGameRequest,
    CreateGameResponse,
    EndTurnRequest,
    EndTurnResponse,
    ErrorResponse,
    JoinSeatRequest,
    LedgerRequest,
    LedgerResponse,
    RollRequest,
    RunnerStartRequest,
    RunnerStatusResponse,
    SeatResponse,
    StartGameResponse,
)
from tycoon.services import GameService
from tycoon.services import ledger_service, turn_service
from tycoon.settings import get_arena_settings
from tycoon.snapshot import serialize_game, serialize_turn_result

logger = logging.getLogger(__name__)

# Most specific first: GameNotFoundError is an InvalidStateError
ERROR_STATUS = [
    (GameNotFoundError, 404),
    (NotYourTurnError, 409),
    (AlreadyRolledError, 409),
    (InvalidStateError, 409),
    (InvalidMoveError, 422),
    (InvalidActionError, 400),
    (TransientLockTimeoutError, 503),
]


def status_for(exc: MonopolyError) -> int:
    for exc_type, status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Tycoon Arena server")
    await init_db()
    if settings.db_auto_create_tables:
        await create_tables()
    if get_arena_settings().runner_autostart:
        await registry.resume_running()

    yield

    logger.info("Shutting down: stopping runners and closing the database")
    await registry.stop_all()
    await close_db()


app = FastAPI(
    title="Tycoon Arena Server",
    version=__version__,
    lifespan=lifespan,
)
registry = GameRegistry()
_rng = random.Random(get_arena_settings().seed)


@app.exception_handler(MonopolyError)
async def monopoly_error_handler(request: Request, exc: MonopolyError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=type(exc).__name__, detail=str(exc), retryable=exc.retryable).model_dump(),
    )


# ---- Dependencies ----
async def get_game_service(session: AsyncSession = Depends(get_session)) -> GameService:
    return GameService(GameRepository(session))


def _profile(agent: AgentSeatRequest) -> AgentProfile:
    return AgentProfile(name=agent.name, strategy=agent.strategy, risk_profile=agent.risk_profile)


async def _maybe_start_runner(game_id: int, is_agent_only: bool) -> bool:
    if not (is_agent_only and get_arena_settings().runner_autostart):
        return False
    await registry.start(game_id)
    return True


@app.post("/games", response_model=CreateGameResponse)
async def create_game(req: CreateGameRequest):
    if req.agents:
        profiles: List[AgentProfile] = [_profile(a) for a in req.agents]

        async def op(session):
            return await GameService(GameRepository(session)).create_agent_game(profiles, mode=req.mode, code=req.code)

        game = await run_in_transaction(op)
        started = await _maybe_start_runner(game.id, True)
        return CreateGameResponse(game_id=game.id, code=game.code, status=game.status.value, runner_started=started)

    game = await run_in_transaction(
        lambda s: GameService(GameRepository(s)).create_game(
            number_of_players=req.number_of_players,
            mode=req.mode,
            is_agent_only=req.is_agent_only,
            code=req.code,
        )
    )
    return CreateGameResponse(game_id=game.id, code=game.code, status=game.status.value)


@app.post("/games/{game_id}/seats", response_model=SeatResponse)
async def join_game(game_id: int, req: JoinSeatRequest):
    profile = _profile(req.agent) if req.agent else None
    seat = await run_in_transaction(
        lambda s: GameService(GameRepository(s)).add_seat(game_id, owner_ref=req.owner_ref, profile=profile)
    )
    return SeatResponse(seat_id=seat.id, game_id=seat.game_id, turn_order=seat.turn_order, balance=seat.balance)


@app.post("/games/{game_id}/start", response_model=StartGameResponse)
async def start_game(game_id: int):
    game = await run_in_transaction(lambda s: GameService(GameRepository(s)).start_game(game_id))
    started = await _maybe_start_runner(game.id, game.is_agent_only)
    return StartGameResponse(
        game_id=game.id,
        status=game.status.value,
        next_player_id=game.next_player_id,
        runner_started=started,
    )


@app.get("/games/{game_id}")
async def get_game(game_id: int, history: int = 20, service: GameService = Depends(get_game_service)):
    view = await service.load(game_id, history_limit=max(0, min(history, 200)))
    return serialize_game(view)


@app.post("/games/{game_id}/roll")
async def roll(game_id: int, req: RollRequest):
    try:
        dice = DiceRoll(*req.dice) if req.dice else roll_dice(_rng)
    except ValueError as e:
        raise InvalidMoveError(str(e)) from e
    go_bonus = get_arena_settings().go_bonus
    result = await run_in_transaction(
        lambda s: turn_service.roll(
            s,
            game_id,
            req.seat_id,
            dice,
            claimed_position=req.claimed_position,
            rng=_rng,
            go_bonus=go_bonus,
        )
    )
    return serialize_turn_result(result)


@app.get("/games/{game_id}/can-roll")
async def can_roll(game_id: int, seat_id: int):
    await run_in_transaction(lambda s: turn_service.can_roll(s, game_id, seat_id))
    return {"game_id": game_id, "seat_id": seat_id, "can_roll": True}


@app.post("/games/{game_id}/end-turn", response_model=EndTurnResponse)
async def end_turn(game_id: int, req: EndTurnRequest):
    result = await run_in_transaction(lambda s: turn_service.end_turn(s, game_id, req.seat_id))
    return EndTurnResponse(
        game_id=result.game_id,
        seat_id=result.seat_id,
        next_player_id=result.next_player_id,
        round_reset=result.round_reset,
        round_number=result.round_number,
    )


@app.post("/games/{game_id}/ledger", response_model=LedgerResponse)
async def ledger(game_id: int, req: LedgerRequest):
    result = await run_in_transaction(
        lambda s: ledger_service.apply(s, game_id, req.seat_id, req.action, req.property_id)
    )
    return LedgerResponse(
        action=result.action.value,
        seat_id=result.seat_id,
        property_id=result.property_id,
        amount=result.amount,
        balance=result.balance,
        development=result.development,
        mortgaged=result.mortgaged,
    )


@app.post("/games/{game_id}/runner/start", response_model=RunnerStatusResponse)
async def start_runner(game_id: int, req: Optional[RunnerStartRequest] = None):
    req = req or RunnerStartRequest()
    view = await run_in_transaction(lambda s: GameService(GameRepository(s)).load(game_id, history_limit=0))
    if not view.game.is_agent_only:
        raise InvalidActionError(f"Game {game_id} is not agent-only")
    if view.game.status != GameStatus.RUNNING:
        raise InvalidStateError(f"Game {game_id} is {view.game.status.value}, not RUNNING")
    runner = await registry.start(game_id, interval=req.interval, round_cap=req.round_cap)
    return RunnerStatusResponse(game_id=game_id, running=runner.running)


@app.post("/games/{game_id}/runner/stop")
async def stop_runner(game_id: int):
    stopped = await registry.stop(game_id)
    if not stopped:
        raise HTTPException(status_code=404, detail="No runner for this game")
    return {"game_id": game_id, "stopped": True}


@app.get("/games/{game_id}/runner", response_model=RunnerStatusResponse)
async def runner_status(game_id: int, limit: int = 50):
    runner = await registry.get(game_id)
    if not runner:
        raise HTTPException(status_code=404, detail="No runner for this game")
    return RunnerStatusResponse(
        game_id=game_id,
        running=runner.running,
        status=await runner.status(),
        log=runner.recent_log(max(1, min(limit, 200))),
    )


@app.get("/live-games")
async def live_games():
    return {"games": await registry.live_games()}


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__, "runners": len(registry)}


@app.websocket("/ws/games/{game_id}")
async def ws_game(websocket: WebSocket, game_id: int):
    await websocket.accept()
    try:
        view = await run_in_transaction(lambda s: GameService(GameRepository(s)).load(game_id))
    except GameNotFoundError:
        await websocket.close(code=4404)
        return

    queue = registry.broadcaster.subscribe(game_id)
    await websocket.send_json({"type": "snapshot", "game_id": game_id, "data": serialize_game(view)})

    async def sender():
        while True:
            msg = await queue.get()
            await websocket.send_json(msg)

    # Heartbeat pings to keep connection alive (every 5s)
    async def heartbeat():
        while True:
            await asyncio.sleep(5)
            await websocket.send_json({"type": "heartbeat"})

    sender_task = asyncio.create_task(sender())
    hb_task = asyncio.create_task(heartbeat())
    try:
        # Inbound messages are ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        registry.broadcaster.unsubscribe(queue)
        sender_task.cancel()
        hb_task.cancel()

