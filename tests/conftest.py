"""Shared fixtures for order, table and summary tests."""

import asyncio

import fakeredis.aioredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from tablepos.app import db as app_db
from tablepos.app.main import app
from tablepos.app.repos_sqlalchemy import restaurants_repo_sql

RESTAURANT = {
    "name": "Spice Route",
    "owner_name": "Asha",
    "email": "owner@spiceroute.test",
    "phone": "9876543210",
    "address": "12 Market Road",
}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def seed_restaurant(
    sessionmaker,
    tables=("T1", "T2", "T3"),
    timezone: str | None = None,
    email: str = RESTAURANT["email"],
) -> str:
    """Register a restaurant with ``tables`` and a small menu; return its id."""
    async with sessionmaker() as session:
        restaurant = await restaurants_repo_sql.create_restaurant(
            session, {**RESTAURANT, "email": email, "timezone": timezone}
        )
        await restaurants_repo_sql.setup_restaurant(
            session,
            restaurant.id,
            [{"label": label, "seats": 4} for label in tables],
            [
                {"name": "Burger", "price": 200},
                {"name": "Fries", "price": 90},
            ],
        )
        return restaurant.id


@pytest.fixture
async def sessionmaker(tmp_path):
    factory, engine = app_db.create_test_session(
        f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}"
    )
    await app_db.create_schema(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
async def restaurant_id(sessionmaker) -> str:
    return await seed_restaurant(sessionmaker)


@pytest.fixture
def api(tmp_path):
    """TestClient bound to a fresh database and a fake Redis.

    The engine uses ``NullPool`` because the schema is created on a
    different event loop than the one TestClient runs requests on.
    """
    factory, engine = app_db.create_test_session(
        f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool
    )
    asyncio.run(app_db.create_schema(engine))

    async def _session():
        async with factory() as session:
            yield session

    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
    previous = app.state.redis
    app.state.redis = fake
    app.dependency_overrides[app_db.get_session] = _session
    client = TestClient(app)
    client.redis = fake
    client.sessionmaker = factory
    try:
        yield client
    finally:
        app.dependency_overrides.clear()
        app.state.redis = previous
        asyncio.run(engine.dispose())


@pytest.fixture
def seed(sessionmaker):
    """Factory registering extra restaurants on the test database."""

    async def _seed(**kwargs) -> str:
        return await seed_restaurant(sessionmaker, **kwargs)

    return _seed
