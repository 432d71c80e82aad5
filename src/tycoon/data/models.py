"""
SQLAlchemy models for the turn engine.

Architecture:
- Game: one match, its status and whose turn it is
- Seat: a player slot in a game (balance, position, jail flags, roll counter)
- GameProperty: ownership/mortgage/development of each ownable square per game
- PlayHistory: append-only audit log of turns and money legs
- Transfer: synthesized seat-to-seat cash record for each rent payment
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def utc_now() -> datetime:
    """Generate timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class GameStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in (GameStatus.COMPLETED, GameStatus.STOPPED)


class Game(Base):
    """
    Game table.

    ``next_player_id`` holds the id of the seat whose turn it is; exactly one
    seat holds it while the game is RUNNING.
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(
        String(16),
        unique=True,
        nullable=False,
        index=True,
        comment="Short shareable game code",
    )

    status: Mapped[GameStatus] = mapped_column(
        SAEnum(
            GameStatus,
            name="game_status",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=GameStatus.PENDING,
        index=True,
        comment="PENDING | RUNNING | COMPLETED | STOPPED",
    )

    mode: Mapped[str] = mapped_column(String(32), nullable=False, default="PUBLIC")
    number_of_players: Mapped[int] = mapped_column(Integer, nullable=False)
    is_agent_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    next_player_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Seat id (game_players.id) holding the turn",
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    winner_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Seat id of the winner (if any)",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, code='{self.code}', status='{self.status.value}')>"


class Seat(Base):
    """
    A player slot in one game.

    A seat with ``balance <= 0`` is bankrupt: it cannot roll and is skipped
    when the turn rotates.
    """

    __tablename__ = "game_players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    owner_ref: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="User address or agent name",
    )
    is_agent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    agent_name: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    strategy: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="heuristic | random | llm",
    )
    risk_profile: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="aggressive | balanced | defensive",
    )

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=1500)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_order: Mapped[int] = mapped_column(Integer, nullable=False)
    rolls: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Rolls taken this round",
    )
    circle: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Completed laps",
    )

    in_jail: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    in_jail_rolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chance_jail_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    community_chest_jail_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("game_id", "turn_order", name="uq_game_players_turn_order"),
        CheckConstraint("position >= 0 AND position < 40", name="ck_game_players_position"),
    )

    @property
    def is_bankrupt(self) -> bool:
        return self.balance <= 0

    @property
    def display_name(self) -> str:
        return self.agent_name or self.owner_ref

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, game_id={self.game_id}, turn_order={self.turn_order})>"


class GameProperty(Base):
    """Ownership record of one ownable square in one game (bank-owned when player_id is NULL)."""

    __tablename__ = "game_properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Board position of the square",
    )
    player_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("game_players.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    mortgaged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    development: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0 = site only, 1-4 = houses, 5 = hotel",
    )

    __table_args__ = (
        UniqueConstraint("game_id", "property_id", name="uq_game_properties_game_property"),
        CheckConstraint("development >= 0 AND development <= 5", name="ck_game_properties_development"),
    )

    def __repr__(self) -> str:
        return f"<GameProperty(game_id={self.game_id}, property_id={self.property_id}, player_id={self.player_id})>"


class PlayHistory(Base):
    """
    Append-only audit log.

    The main row of each turn is inserted with ``active=True`` and switched
    off when the turn ends; money legs are written inactive.
    """

    __tablename__ = "game_play_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
    )
    seat_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("game_players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rolled: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    old_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="land | railway | utility | tax | chance | community | go_to_jail | free | ledger verbs",
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extra: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_play_history_game_active", "game_id", "active"),
    )

    def __repr__(self) -> str:
        return f"<PlayHistory(id={self.id}, seat_id={self.seat_id}, action='{self.action}', amount={self.amount})>"


class Transfer(Base):
    """Cash transfer between two seats, synthesized for every rent payment."""

    __tablename__ = "game_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_seat_id: Mapped[int] = mapped_column(Integer, ForeignKey("game_players.id"), nullable=False)
    to_seat_id: Mapped[int] = mapped_column(Integer, ForeignKey("game_players.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="CASH")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACCEPTED")
    sending_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    receiving_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<Transfer(from={self.from_seat_id}, to={self.to_seat_id}, amount={self.sending_amount})>"
