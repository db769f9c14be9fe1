from __future__ import annotations

import asyncio
from logging.config import fileConfig
from typing import Any, Literal

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from timebank.config import get_settings
from timebank.models import SQLModel

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def render_item(type_: str, obj: object, autogen_context: object) -> str | Literal[False]:
    """Render SQLModel string columns as plain sa.String so revisions don't import sqlmodel."""
    if type_ == "type":
        from sqlmodel.sql.sqltypes import AutoString

        if isinstance(obj, AutoString):
            if obj.length:
                return f"sa.String(length={obj.length})"
            return "sa.String()"
    return False


def _database_url() -> str:
    # Allow `alembic -x db_url=...` for one-off runs against another database.
    return context.get_x_argument(as_dictionary=True).get("db_url") or get_settings().database_url


def _run(**options: Any) -> None:
    context.configure(target_metadata=target_metadata, render_item=render_item, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL for the time-bank schema without connecting."""
    _run(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})


def do_run_migrations(connection: object) -> None:
    _run(connection=connection)


async def run_migrations_online() -> None:
    """Apply migrations over the async engine used by the API and the worker."""
    connectable = create_async_engine(_database_url(), poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
