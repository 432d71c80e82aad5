from tycoon.data.config import get_settings
from tycoon.data.models import (
    Base,
    Game,
    GameProperty,
    GameStatus,
    PlayHistory,
    Seat,
    Transfer,
)
from tycoon.data.session import (
    get_session,
    init_db,
    close_db,
    session_scope,
    create_tables,
    drop_tables,
    get_engine,
)
from tycoon.data.repository import GameRepository
from tycoon.data.locks import run_in_transaction

__all__ = [
    "get_settings",
    "Base",
    "Game",
    "GameProperty",
    "GameStatus",
    "PlayHistory",
    "Seat",
    "Transfer",
    "get_session",
    "init_db",
    "close_db",
    "session_scope",
    "create_tables",
    "drop_tables",
    "get_engine",
    "GameRepository",
    "run_in_transaction",
]
