"""Alembic environment for the POS schema.

The database URL comes from ``-x db_url=...`` or, failing that, from
:func:`config.get_settings`. Async URLs (``+aiosqlite``, ``+asyncpg``) are
migrated through an async engine; SQLite uses batch mode so that ALTERs
work.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine

from config import get_settings
from tablepos.app.models import Base

ASYNC_DRIVERS = {"aiosqlite", "asyncpg"}

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> URL:
    url = context.get_x_argument(as_dictionary=True).get("db_url")
    return make_url(url or get_settings().database_url)


def _is_async(url: URL) -> bool:
    return url.get_driver_name() in ASYNC_DRIVERS


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    url = database_url()
    if _is_async(url):
        # Offline rendering only needs the dialect, not the driver.
        url = url.set(drivername=url.get_backend_name())
    _configure(url=url, literal_binds=True, render_as_batch=url.get_backend_name() == "sqlite")


def _run_on(connection) -> None:
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )


async def _run_async(url: URL) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_on)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    url = database_url()
    if _is_async(url):
        asyncio.run(_run_async(url))
        return
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        _run_on(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
