# ==============================================================================
# schema.py  –  SQLAlchemy Core tables for users and their games
# ==============================================================================

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

METADATA = MetaData()

USERS = Table(
    "users",
    METADATA,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("chesscom_username", String(50)),
    Column("lichess_username", String(50)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_synced_at", DateTime(timezone=True)),
)

GAMES = Table(
    "games",
    METADATA,
    # identity: one row per (user, platform, platform game id)
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("source", String(16), primary_key=True),
    Column("id", String(100), primary_key=True),
    Column("played_at", DateTime(timezone=True), nullable=False),
    Column("time_class", String(16), nullable=False),
    Column("player_color", String(8), nullable=False),
    Column("result", String(8), nullable=False),
    Column("opening_eco", String(16)),
    Column("opening_name", Text),
    Column("opponent_username", String(100)),
    Column("opponent_rating", Integer),
    Column("player_rating", Integer),
    Column("termination", String(16)),
    Column("rating_change", Integer),
    Column("move_count", Integer),
    Column("rated", Boolean, nullable=False, default=True),
    Column("game_url", Text),
    # clock (static per game)
    Column("initial_time", Integer),
    Column("increment", Integer),
    Column("time_remaining", Float),
    Column("avg_move_time", Float),
    Column("move_times", Text),  # JSON list of seconds
    # engine analysis (written by the evaluation step)
    Column("accuracy", Float),
    Column("blunders", Integer),
    Column("mistakes", Integer),
    Column("inaccuracies", Integer),
    Column("acpl", Float),
    Column("analyzed_at", DateTime(timezone=True)),
    Index("ix_games_user_played", "user_id", "played_at"),
    Index("ix_games_user_source_played", "user_id", "source", "played_at"),
)


def create_schema(engine: Engine) -> None:
    """Create missing tables (idempotent)."""
    METADATA.create_all(engine)
