"""Async database engine and session helpers.

The engine URL comes from :func:`config.get_settings`. Application code gets
sessions through :func:`get_session`, a FastAPI dependency; tests swap in
their own factory via :func:`create_test_session` and
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import Pool, StaticPool

from config import get_settings

from ..models import Base
from ..obs import add_query_logger

SessionLocal: async_sessionmaker[AsyncSession] | None = None
engine: AsyncEngine | None = None


def init_engine(url: str | None = None) -> tuple[async_sessionmaker, AsyncEngine]:
    """Create the engine and session factory and store them module-wide."""

    global SessionLocal, engine
    url = url or get_settings().database_url
    engine = create_async_engine(url)
    add_query_logger(engine, "pos")
    SessionLocal = async_sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )
    return SessionLocal, engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an :class:`AsyncSession` from the application factory."""

    if SessionLocal is None:
        init_engine()
    async with SessionLocal() as session:
        yield session


async def create_schema(target: AsyncEngine) -> None:
    """Create all tables on ``target``; migrations do this in production."""

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_test_session(
    url: str = "sqlite+aiosqlite://", poolclass: type[Pool] | None = None
) -> tuple[async_sessionmaker, AsyncEngine]:
    """Return a session factory and engine for tests.

    The default URL is an in-memory SQLite database with a static pool so
    that every session shares the same data. Pass a file URL when sessions
    must run truly concurrently, and ``NullPool`` when the engine is shared
    between event loops.
    """

    kwargs: dict = {"poolclass": poolclass} if poolclass else {}
    if url in ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"):
        kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    test_engine = create_async_engine(url, **kwargs)
    add_query_logger(test_engine, "test")
    factory = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)
    return factory, test_engine


__all__ = [
    "SessionLocal",
    "engine",
    "init_engine",
    "get_session",
    "create_schema",
    "create_test_session",
]
