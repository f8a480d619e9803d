from datetime import date, datetime, timezone

import fakeredis.aioredis
import pytest

from scripts import rollup_daily
from tablepos.app.repos_sqlalchemy import orders_repo_sql, summary_repo_sql
from tablepos.app.routes_metrics import rollup_failures_total, rollup_runs_total

DAY = date(2024, 5, 10)
NOON = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
ITEMS = [{"name": "Burger", "price": 200, "quantity": 1}]


async def _sale(sessionmaker, rid):
    async with sessionmaker() as session:
        opened = await orders_repo_sql.open_dine_in_order(session, rid, "T1", ITEMS, now=NOON)
        await orders_repo_sql.complete_order(session, rid, opened.order.id, "online", now=NOON)


@pytest.mark.anyio
async def test_rollup_builds_summary_once_per_lock(sessionmaker, restaurant_id):
    await _sale(sessionmaker, restaurant_id)
    redis = fakeredis.aioredis.FakeRedis()
    runs = rollup_runs_total._value.get()

    async with sessionmaker() as session:
        first = await rollup_daily.rollup_days(session, restaurant_id, [DAY], redis)
        second = await rollup_daily.rollup_days(session, restaurant_id, [DAY], redis)
        history = await summary_repo_sql.get_history(session, restaurant_id)

    assert first == [DAY]
    assert second == []
    assert rollup_runs_total._value.get() == runs + 1
    assert await redis.ttl(rollup_daily.lock_key(restaurant_id, DAY)) > 0
    assert [(r["period"], r["revenue"]) for r in history] == [("2024-05-10", 200)]


@pytest.mark.anyio
async def test_rollup_without_redis_always_runs(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        assert await rollup_daily.rollup_days(session, restaurant_id, [DAY]) == [DAY]
        assert await rollup_daily.rollup_days(session, restaurant_id, [DAY]) == [DAY]


@pytest.mark.anyio
async def test_failed_rollup_releases_lock(sessionmaker, restaurant_id, monkeypatch):
    redis = fakeredis.aioredis.FakeRedis()

    async def broken(session, rid, day):
        raise RuntimeError("db down")

    monkeypatch.setattr(summary_repo_sql, "generate_daily_summary", broken)
    failures = rollup_failures_total._value.get()

    async with sessionmaker() as session:
        with pytest.raises(RuntimeError):
            await rollup_daily.rollup_days(session, restaurant_id, [DAY], redis)

    assert rollup_failures_total._value.get() == failures + 1
    assert await redis.exists(rollup_daily.lock_key(restaurant_id, DAY)) == 0


@pytest.mark.anyio
async def test_main_rolls_up_yesterday_and_today(
    sessionmaker, restaurant_id, tmp_path, monkeypatch
):
    await _sale(sessionmaker, restaurant_id)
    redis = fakeredis.aioredis.FakeRedis()
    monkeypatch.setattr(rollup_daily, "from_url", lambda url: redis)

    done = await rollup_daily.main(
        restaurant_id,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}",
        redis_url="redis://fake",
        now=NOON,
    )

    assert done == [date(2024, 5, 9), DAY]
    async with sessionmaker() as session:
        history = await summary_repo_sql.get_history(session, restaurant_id)
    assert [(r["period"], r["revenue"]) for r in history] == [
        ("2024-05-10", 200),
        ("2024-05-09", 0),
    ]
