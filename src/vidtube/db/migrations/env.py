"""Alembic environment for the vidtube schema.

Learn: The database URL comes from VIDTUBE_DATABASE_URL (via Settings) unless
one is passed on the command line:

    alembic -x db_url=sqlite+aiosqlite:///./dev.db upgrade head

SQLite cannot ALTER most constraints in place, so migrations against it run
in batch mode (copy-and-move tables). Autogenerate also compares column
types, because the account columns are sized (String(64), String(255)).
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from vidtube.config import settings
from vidtube.db.models import Base

config = context.config

db_url = context.get_x_argument(as_dictionary=True).get("db_url", settings.database_url)
config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=db_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(db_url),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_options(db_url))
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
