import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tablepos.app.errors import Conflict, InvalidTransition
from tablepos.app.repos_sqlalchemy import orders_repo_sql, tables_repo_sql
from tablepos.app.routes_metrics import takeaway_number_retries_total
from tablepos.app.utils import order_counter

ITEMS = [{"name": "Fries", "price": 90, "quantity": 1}]
NOON = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.anyio
async def test_numbers_are_sequential_per_day(sessionmaker, restaurant_id):
    numbers = []
    for minute in range(3):
        async with sessionmaker() as session:
            outcome = await orders_repo_sql.open_takeaway_order(
                session,
                restaurant_id,
                ITEMS,
                customer_name="Ravi",
                now=NOON + timedelta(minutes=minute),
            )
        numbers.append(outcome.order.order_number)
        assert outcome.created
        assert outcome.order.status == "preparing"
        assert outcome.order.table_label == f"TAKEAWAY-{outcome.order.order_number}"
    assert numbers == ["TO-001", "TO-002", "TO-003"]

    async with sessionmaker() as session:
        nxt = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON + timedelta(days=1)
        )
    assert nxt.order.order_number == "TO-001"


@pytest.mark.anyio
async def test_takeaway_does_not_touch_tables(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        await orders_repo_sql.open_takeaway_order(session, restaurant_id, ITEMS)
        tables = await tables_repo_sql.list_tables(session, restaurant_id)
    assert {t.status for t in tables} == {"free"}


@pytest.mark.anyio
async def test_numbers_not_reused_after_delete(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        first = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON
        )
        second = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON
        )
        await orders_repo_sql.delete_order(session, restaurant_id, second.order.id)
        third = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON
        )
    assert first.order.order_number == "TO-001"
    assert third.order.order_number == "TO-003"


@pytest.mark.anyio
async def test_concurrent_creates_get_distinct_numbers(sessionmaker, restaurant_id):
    async def create():
        async with sessionmaker() as session:
            outcome = await orders_repo_sql.open_takeaway_order(
                session, restaurant_id, ITEMS, now=NOON
            )
            return outcome.order.order_number

    numbers = await asyncio.gather(*(create() for _ in range(5)))
    assert sorted(numbers) == ["TO-001", "TO-002", "TO-003", "TO-004", "TO-005"]


@pytest.mark.anyio
async def test_number_clash_is_retried_once(sessionmaker, restaurant_id, monkeypatch):
    async with sessionmaker() as session:
        await orders_repo_sql.open_takeaway_order(session, restaurant_id, ITEMS, now=NOON)

    real_next = order_counter.next_order_seq
    calls = []

    async def clashing_next(session, rid, day):
        calls.append(day)
        if len(calls) == 1:
            return 1  # already taken by the order above
        return await real_next(session, rid, day)

    monkeypatch.setattr(orders_repo_sql, "next_order_seq", clashing_next)
    before = takeaway_number_retries_total._value.get()

    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON
        )
    assert outcome.order.order_number == "TO-002"
    assert len(calls) == 2
    assert takeaway_number_retries_total._value.get() == before + 1


@pytest.mark.anyio
async def test_second_clash_raises_conflict(sessionmaker, restaurant_id, monkeypatch):
    async with sessionmaker() as session:
        await orders_repo_sql.open_takeaway_order(session, restaurant_id, ITEMS, now=NOON)

    async def always_one(session, rid, day):
        return 1

    monkeypatch.setattr(orders_repo_sql, "next_order_seq", always_one)
    async with sessionmaker() as session:
        with pytest.raises(Conflict):
            await orders_repo_sql.open_takeaway_order(
                session, restaurant_id, ITEMS, now=NOON
            )
        today = await orders_repo_sql.list_today_takeaway_orders(
            session, restaurant_id, now=NOON
        )
    assert [o.order_number for o in today] == ["TO-001"]


@pytest.mark.anyio
async def test_existing_order_is_edited_not_renumbered(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        created = await orders_repo_sql.open_takeaway_order(
            session, restaurant_id, ITEMS, now=NOON
        )
        await orders_repo_sql.advance_takeaway_status(
            session, restaurant_id, created.order.id, "ready"
        )
        edited = await orders_repo_sql.open_takeaway_order(
            session,
            restaurant_id,
            [{"name": "Burger", "price": 200, "quantity": 1}],
            customer_phone="9000000000",
            existing_order_id=created.order.id,
        )
    assert not edited.created
    assert edited.order.id == created.order.id
    assert edited.order.order_number == "TO-001"
    assert edited.order.status == "ready"
    assert edited.order.total_amount == 200
    assert edited.order.customer_phone == "9000000000"


@pytest.mark.anyio
async def test_existing_order_must_be_takeaway(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        dine_in = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", ITEMS
        )
        with pytest.raises(InvalidTransition):
            await orders_repo_sql.open_takeaway_order(
                session, restaurant_id, ITEMS, existing_order_id=dine_in.order.id
            )


@pytest.mark.anyio
async def test_today_uses_restaurant_timezone(sessionmaker, seed):
    rid = await seed(timezone="Asia/Kolkata")
    late_utc = datetime(2024, 5, 10, 20, 0, tzinfo=timezone.utc)  # 01:30 on the 11th in IST
    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_takeaway_order(
            session, rid, ITEMS, now=late_utc
        )
        assert outcome.order.business_day.isoformat() == "2024-05-11"
        same_day = await orders_repo_sql.list_today_takeaway_orders(
            session, rid, now=datetime(2024, 5, 11, 6, 0, tzinfo=timezone.utc)
        )
        previous_day = await orders_repo_sql.list_today_takeaway_orders(
            session, rid, now=datetime(2024, 5, 10, 6, 0, tzinfo=timezone.utc)
        )
    assert [o.id for o in same_day] == [outcome.order.id]
    assert previous_day == []


@pytest.mark.anyio
async def test_today_list_is_newest_first(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        for minute in range(3):
            await orders_repo_sql.open_takeaway_order(
                session, restaurant_id, ITEMS, now=NOON + timedelta(minutes=minute)
            )
        orders = await orders_repo_sql.list_today_takeaway_orders(
            session, restaurant_id, now=NOON
        )
    assert [o.order_number for o in orders] == ["TO-003", "TO-002", "TO-001"]
