"""
Alembic environment for the arena schema.

The connection URL always comes from ``DatabaseSettings`` (DATABASE_URL /
.env), never from alembic.ini. Online migrations run through the async
driver the application uses; SQLite gets batch mode for ALTERs.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from tycoon.data.config import get_settings
from tycoon.data.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = get_settings()
DATABASE_URL = settings.database_url
config.set_main_option("sqlalchemy.url", DATABASE_URL)

COMPARE_OPTIONS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def _migrate() -> None:
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Emit SQL for the sync URL's dialect without connecting."""
    context.configure(
        url=settings.database_url_sync,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    _migrate()


def _run_on(connection: Connection) -> None:
    context.configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
        **COMPARE_OPTIONS,
    )
    _migrate()


async def run_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_on)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
