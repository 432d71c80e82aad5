"""Initial schema: games, seats, ownership, history and transfers.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(16), nullable=False, comment="Short shareable game code"),
        sa.Column("status", sa.String(16), nullable=False, comment="PENDING | RUNNING | COMPLETED | STOPPED"),
        sa.Column("mode", sa.String(32), nullable=False),
        sa.Column("number_of_players", sa.Integer(), nullable=False),
        sa.Column("is_agent_only", sa.Boolean(), nullable=False),
        sa.Column("next_player_id", sa.Integer(), nullable=True, comment="Seat id (game_players.id) holding the turn"),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True, comment="Seat id of the winner (if any)"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_games_code", "games", ["code"], unique=True)
    op.create_index("ix_games_status", "games", ["status"])

    op.create_table(
        "game_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_ref", sa.String(128), nullable=False, comment="User address or agent name"),
        sa.Column("is_agent", sa.Boolean(), nullable=False),
        sa.Column("agent_name", sa.String(64), nullable=True),
        sa.Column("strategy", sa.String(32), nullable=True, comment="heuristic | random | llm"),
        sa.Column("risk_profile", sa.String(32), nullable=True, comment="aggressive | balanced | defensive"),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("turn_order", sa.Integer(), nullable=False),
        sa.Column("rolls", sa.Integer(), nullable=False, comment="Rolls taken this round"),
        sa.Column("circle", sa.Integer(), nullable=False, comment="Completed laps"),
        sa.Column("in_jail", sa.Boolean(), nullable=False),
        sa.Column("in_jail_rolls", sa.Integer(), nullable=False),
        sa.Column("chance_jail_card", sa.Boolean(), nullable=False),
        sa.Column("community_chest_jail_card", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("game_id", "turn_order", name="uq_game_players_turn_order"),
        sa.CheckConstraint("position >= 0 AND position < 40", name="ck_game_players_position"),
    )
    op.create_index("ix_game_players_game_id", "game_players", ["game_id"])

    op.create_table(
        "game_properties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False, comment="Board position of the square"),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("game_players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("mortgaged", sa.Boolean(), nullable=False),
        sa.Column("development", sa.Integer(), nullable=False, comment="0 = site only, 1-4 = houses, 5 = hotel"),
        sa.UniqueConstraint("game_id", "property_id", name="uq_game_properties_game_property"),
        sa.CheckConstraint("development >= 0 AND development <= 5", name="ck_game_properties_development"),
    )
    op.create_index("ix_game_properties_game_id", "game_properties", ["game_id"])
    op.create_index("ix_game_properties_player_id", "game_properties", ["player_id"])

    op.create_table(
        "game_play_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("game_players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rolled", sa.Integer(), nullable=True),
        sa.Column("old_position", sa.Integer(), nullable=True),
        sa.Column("new_position", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("extra", json_type, nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_game_play_history_seat_id", "game_play_history", ["seat_id"])
    op.create_index("idx_play_history_game_active", "game_play_history", ["game_id", "active"])

    op.create_table(
        "game_trades",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_seat_id", sa.Integer(), sa.ForeignKey("game_players.id"), nullable=False),
        sa.Column("to_seat_id", sa.Integer(), sa.ForeignKey("game_players.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("sending_amount", sa.Integer(), nullable=False),
        sa.Column("receiving_amount", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_game_trades_game_id", "game_trades", ["game_id"])


def downgrade() -> None:
    op.drop_table("game_trades")
    op.drop_table("game_play_history")
    op.drop_table("game_properties")
    op.drop_table("game_players")
    op.drop_table("games")
