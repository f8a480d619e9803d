from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from tablepos.app.errors import ValidationError
from tablepos.app.models import DailySummary
from tablepos.app.repos_sqlalchemy import (
    orders_repo_sql,
    restaurants_repo_sql,
    summary_repo_sql,
)

DAY = date(2024, 5, 10)
NOON = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _items(amount):
    return [{"name": "Thali", "price": amount, "quantity": 1}]


async def _completed_day(session, rid, when):
    a = await orders_repo_sql.open_dine_in_order(session, rid, "T1", _items(400), now=when)
    b = await orders_repo_sql.open_dine_in_order(session, rid, "T2", _items(250), now=when)
    t = await orders_repo_sql.open_takeaway_order(session, rid, _items(150), now=when)
    for order in (a, b, t):
        await orders_repo_sql.complete_order(session, rid, order.order.id, "cash", now=when)
    await restaurants_repo_sql.add_expense(session, rid, "Gas", 100, "Utilities", when)


@pytest.mark.anyio
async def test_summary_figures(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        await _completed_day(session, restaurant_id, NOON)
        # still open, so not revenue
        await orders_repo_sql.open_dine_in_order(session, restaurant_id, "T3", _items(999))
        summary = await summary_repo_sql.generate_daily_summary(session, restaurant_id, DAY)

    assert summary.revenue == 800
    assert summary.expenses == 100
    assert summary.profit == 700
    assert summary.order_count == 3
    assert summary.dine_in_count == 2
    assert summary.takeaway_count == 1


@pytest.mark.anyio
async def test_summary_is_idempotent(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        await _completed_day(session, restaurant_id, NOON)
        first = await summary_repo_sql.generate_daily_summary(session, restaurant_id, DAY)
        second = await summary_repo_sql.generate_daily_summary(session, restaurant_id, DAY)
        rows = await session.scalar(
            select(func.count()).select_from(DailySummary).where(
                DailySummary.restaurant_id == restaurant_id
            )
        )
    assert rows == 1
    assert first.id == second.id
    assert summary_repo_sql.summary_row(second)["revenue"] == 800


@pytest.mark.anyio
async def test_summary_uses_completion_day_in_restaurant_timezone(sessionmaker, seed):
    rid = await seed(email="kolkata@place.test", timezone="Asia/Kolkata")
    # 19:00 UTC on the 10th is already the 11th in Kolkata
    late = datetime(2024, 5, 10, 19, 0, tzinfo=timezone.utc)
    async with sessionmaker() as session:
        opened = await orders_repo_sql.open_dine_in_order(session, rid, "T1", _items(300), now=NOON)
        await orders_repo_sql.complete_order(session, rid, opened.order.id, now=late)
        on_10th = await summary_repo_sql.generate_daily_summary(session, rid, DAY)
        on_11th = await summary_repo_sql.generate_daily_summary(
            session, rid, DAY + timedelta(days=1)
        )
    assert on_10th.revenue == 0 and on_10th.order_count == 0
    assert on_11th.revenue == 300 and on_11th.dine_in_count == 1


@pytest.mark.anyio
async def test_history_grouping(sessionmaker, restaurant_id):
    # 2024-04-29 .. 2024-05-12 spans ISO weeks 18 and 19 and two months
    start = date(2024, 4, 29)
    async with sessionmaker() as session:
        for offset in range(14):
            day = start + timedelta(days=offset)
            session.add(
                DailySummary(
                    restaurant_id=restaurant_id,
                    date=day,
                    revenue=100,
                    expenses=10,
                    profit=90,
                    order_count=2,
                    takeaway_count=1,
                    dine_in_count=1,
                )
            )
        await session.commit()

        daily = await summary_repo_sql.get_history(session, restaurant_id, "daily", 3)
        weekly = await summary_repo_sql.get_history(session, restaurant_id, "weekly")
        monthly = await summary_repo_sql.get_history(session, restaurant_id, "monthly")
        one_week = await summary_repo_sql.get_history(session, restaurant_id, "weekly", 1)

    assert [r["period"] for r in daily] == ["2024-05-12", "2024-05-11", "2024-05-10"]
    assert [(r["period"], r["period_start"], r["revenue"], r["order_count"]) for r in weekly] == [
        ("2024-W19", "2024-05-06", 700, 14),
        ("2024-W18", "2024-04-29", 700, 14),
    ]
    assert [(r["period"], r["period_start"], r["profit"]) for r in monthly] == [
        ("2024-05", "2024-05-01", 1080),
        ("2024-04", "2024-04-29", 180),
    ]
    assert len(one_week) == 1 and one_week[0]["period"] == "2024-W19"


@pytest.mark.anyio
async def test_history_rejects_unknown_period(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        with pytest.raises(ValidationError):
            await summary_repo_sql.get_history(session, restaurant_id, "hourly")
