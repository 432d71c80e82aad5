from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tycoon.services.ledger_service import LedgerAction


class AgentSeatRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    strategy: str = Field("heuristic", pattern=r"^(heuristic|random|llm)$")
    risk_profile: str = Field("balanced", pattern=r"^(aggressive|balanced|defensive)$")


class CreateGameRequest(BaseModel):
    number_of_players: int = Field(4, ge=2, le=8)
    mode: str = Field("PUBLIC", max_length=32)
    is_agent_only: bool = False
    code: Optional[str] = Field(default=None, min_length=4, max_length=16)
    # Seats, starts (and autostarts the runner for) an agent-only game
    agents: Optional[List[AgentSeatRequest]] = Field(default=None, min_length=2, max_length=8)


class CreateGameResponse(BaseModel):
    game_id: int
    code: str
    status: str
    runner_started: bool = False


class JoinSeatRequest(BaseModel):
    owner_ref: str = Field(..., min_length=1, max_length=64)
    agent: Optional[AgentSeatRequest] = None


class SeatResponse(BaseModel):
    seat_id: int
    game_id: int
    turn_order: int
    balance: int


class StartGameResponse(BaseModel):
    game_id: int
    status: str
    next_player_id: Optional[int] = None
    runner_started: bool = False


class RollRequest(BaseModel):
    seat_id: int
    # Server rolls when omitted
    dice: Optional[List[int]] = Field(default=None, min_length=2, max_length=2)
    claimed_position: Optional[int] = Field(default=None, ge=0, le=39)


class EndTurnRequest(BaseModel):
    seat_id: int


class EndTurnResponse(BaseModel):
    game_id: int
    seat_id: int
    next_player_id: int
    round_reset: bool
    round_number: int


class LedgerRequest(BaseModel):
    seat_id: int
    action: LedgerAction
    property_id: Optional[int] = Field(default=None, ge=0, le=39)


class LedgerResponse(BaseModel):
    action: str
    seat_id: int
    property_id: Optional[int] = None
    amount: int
    balance: int
    development: Optional[int] = None
    mortgaged: Optional[bool] = None


class RunnerStartRequest(BaseModel):
    interval: Optional[float] = Field(default=None, gt=0, le=60)
    round_cap: Optional[int] = Field(default=None, ge=1)


class RunnerStatusResponse(BaseModel):
    game_id: int
    running: bool
    status: Dict[str, Any] = Field(default_factory=dict)
    log: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    detail: str
    retryable: bool = False
