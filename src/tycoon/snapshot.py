"""
Snapshot serialization.

Turns ORM rows and service results into plain JSON-ready dicts for the
decision sources, the HTTP/WebSocket surface and the live-games list.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from tycoon.core.game.board import get_square
from tycoon.data.models import Game, GameProperty, PlayHistory, Seat
from tycoon.services.game_service import GameView
from tycoon.services.turn_service import TurnResult, seat_phase


def serialize_seat(seat: Seat, game: Optional[Game] = None) -> Dict[str, Any]:
    data = {
        "id": seat.id,
        "name": seat.display_name,
        "owner_ref": seat.owner_ref,
        "is_agent": seat.is_agent,
        "strategy": seat.strategy,
        "risk_profile": seat.risk_profile,
        "balance": seat.balance,
        "position": seat.position,
        "turn_order": seat.turn_order,
        "rolls": seat.rolls,
        "circle": seat.circle,
        "in_jail": seat.in_jail,
        "jail_rolls": seat.in_jail_rolls,
        "jail_cards": int(seat.chance_jail_card) + int(seat.community_chest_jail_card),
        "is_bankrupt": seat.is_bankrupt,
    }
    if game is not None:
        data["phase"] = seat_phase(game, seat).value
    return data


def serialize_property(record: GameProperty) -> Dict[str, Any]:
    square = get_square(record.property_id)
    return {
        "id": square.id,
        "name": square.name,
        "kind": square.kind.value,
        "color_group": square.color_group,
        "price": square.price,
        "house_cost": square.house_cost,
        "mortgage_value": square.mortgage_value,
        "owner_id": record.player_id,
        "mortgaged": record.mortgaged,
        "development": record.development,
    }


def serialize_history(row: PlayHistory) -> Dict[str, Any]:
    return {
        "id": row.id,
        "seat_id": row.seat_id,
        "action": row.action,
        "amount": row.amount,
        "rolled": row.rolled,
        "old_position": row.old_position,
        "new_position": row.new_position,
        "comment": row.comment,
        "active": row.active,
    }


def serialize_turn_result(result: TurnResult) -> Dict[str, Any]:
    """Turn-result payload: ``{new_position, rent_paid:{player, owner, players}, passed_go, card?, ...}``."""
    data = asdict(result)
    if data["card"] is None:
        data.pop("card")
    return data


def serialize_game(view: GameView) -> Dict[str, Any]:
    """Full public view of a game."""
    game = view.game
    return {
        "id": game.id,
        "code": game.code,
        "status": game.status.value,
        "mode": game.mode,
        "is_agent_only": game.is_agent_only,
        "number_of_players": game.number_of_players,
        "next_player_id": game.next_player_id,
        "round_number": game.round_number,
        "winner_id": game.winner_id,
        "seats": [serialize_seat(s, game) for s in view.seats],
        "properties": [serialize_property(p) for p in view.properties if p.player_id is not None],
        "history": [serialize_history(h) for h in view.history],
    }


def decision_snapshot(view: GameView, seat: Seat, turn: Optional[TurnResult] = None) -> Dict[str, Any]:
    """Everything a decision source may observe when ``seat`` acts."""
    return {
        "game_id": view.game.id,
        "round_number": view.game.round_number,
        "board_position": seat.position,
        "dice_roll": turn.rolled if turn else None,
        "current_player": serialize_seat(seat),
        "players": [serialize_seat(s) for s in view.seats],
        "properties": [serialize_property(p) for p in view.properties],
        "turn": serialize_turn_result(turn) if turn else None,
    }


def live_snapshot(view: GameView, last_action: Optional[str]) -> Dict[str, Any]:
    """Live-game summary: ``{current_turn, round_number, remaining_agents, last_action, status}``."""
    current = view.current_seat
    remaining: List[Dict[str, Any]] = [
        {"id": s.id, "name": s.display_name, "balance": s.balance}
        for s in view.seats
        if not s.is_bankrupt
    ]
    return {
        "game_id": view.game.id,
        "current_turn": current.display_name if current else None,
        "round_number": view.game.round_number,
        "remaining_agents": remaining,
        "last_action": last_action,
        "status": view.game.status.value,
    }
