import asyncio

import pytest
from sqlalchemy import func, select

from tablepos.app.errors import NotFound, ValidationError
from tablepos.app.models import Order
from tablepos.app.repos_sqlalchemy import orders_repo_sql, tables_repo_sql
from tablepos.app.routes_metrics import order_conflicts_total, orders_opened_total

BURGERS = [{"name": "Burger", "price": 200, "quantity": 2, "total": 400}]
FRIES = [{"name": "Fries", "price": 90, "quantity": 1}]


@pytest.mark.anyio
async def test_open_order_occupies_table(sessionmaker, restaurant_id):
    before = orders_opened_total.labels(order_type="dine-in")._value.get()
    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", BURGERS, 400
        )
    assert outcome.created
    assert outcome.order.status == "active"
    assert outcome.order.order_type == "dine-in"
    assert outcome.order.total_amount == 400
    assert outcome.table is not None and outcome.table.status == "occupied"
    assert orders_opened_total.labels(order_type="dine-in")._value.get() == before + 1

    async with sessionmaker() as session:
        table = await tables_repo_sql.get_table(session, restaurant_id, "T1")
    assert table.status == "occupied"


@pytest.mark.anyio
async def test_second_open_updates_existing_order(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        first = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", BURGERS, 400
        )
    async with sessionmaker() as session:
        second = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", FRIES
        )
    assert not second.created
    assert second.order.id == first.order.id
    assert second.order.items == [
        {"name": "Fries", "price": 90.0, "quantity": 1, "total": 90.0}
    ]
    assert second.order.total_amount == 90
    # table was already occupied, nothing to broadcast
    assert second.table is None


@pytest.mark.anyio
async def test_update_heals_table_left_free(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        await orders_repo_sql.open_dine_in_order(session, restaurant_id, "T1", BURGERS)
        table = await tables_repo_sql.get_table(session, restaurant_id, "T1")
        table.status = "free"
        await session.commit()

    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", FRIES
        )
    assert not outcome.created
    assert outcome.table is not None and outcome.table.status == "occupied"


@pytest.mark.anyio
async def test_unknown_table_or_restaurant(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        with pytest.raises(NotFound):
            await orders_repo_sql.open_dine_in_order(
                session, restaurant_id, "T99", BURGERS
            )
        with pytest.raises(NotFound):
            await orders_repo_sql.open_dine_in_order(session, "nope", "T1", BURGERS)


@pytest.mark.anyio
async def test_mismatched_total_rejected(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        with pytest.raises(ValidationError):
            await orders_repo_sql.open_dine_in_order(
                session, restaurant_id, "T1", BURGERS, 500
            )
        table = await tables_repo_sql.get_table(session, restaurant_id, "T1")
    assert table.status == "free"


@pytest.mark.anyio
async def test_concurrent_opens_leave_one_active_order(sessionmaker, restaurant_id):
    async def open_with(items):
        async with sessionmaker() as session:
            return await orders_repo_sql.open_dine_in_order(
                session, restaurant_id, "T2", items
            )

    outcomes = await asyncio.gather(open_with(BURGERS), open_with(FRIES))

    assert sorted(o.created for o in outcomes) == [False, True]
    async with sessionmaker() as session:
        count = await session.scalar(
            select(func.count())
            .select_from(Order)
            .where(Order.restaurant_id == restaurant_id, Order.table_label == "T2")
        )
        orders = await orders_repo_sql.list_active_orders(session, restaurant_id)
        table = await tables_repo_sql.get_table(session, restaurant_id, "T2")
    assert count == 1
    assert len(orders) == 1
    assert orders[0].items[0]["name"] in {"Burger", "Fries"}
    assert table.status == "occupied"


@pytest.mark.anyio
async def test_insert_race_falls_back_to_update(sessionmaker, restaurant_id, monkeypatch):
    """A losing insert re-reads the winner's order and applies its items."""
    async with sessionmaker() as session:
        winner = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T3", BURGERS
        )

    real_lookup = orders_repo_sql._active_for_table
    calls = {"n": 0}

    async def stale_lookup(session, rid, label):
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # as if the winner had not committed yet
        return await real_lookup(session, rid, label)

    monkeypatch.setattr(orders_repo_sql, "_active_for_table", stale_lookup)
    before = order_conflicts_total.labels(kind="active_table")._value.get()

    async with sessionmaker() as session:
        loser = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T3", FRIES
        )

    assert not loser.created
    assert loser.order.id == winner.order.id
    assert loser.order.items[0]["name"] == "Fries"
    assert order_conflicts_total.labels(kind="active_table")._value.get() == before + 1


def _close_after_read(monkeypatch, sessionmaker, close):
    """Run ``close`` in another session right after the first active-order read."""

    real_lookup = orders_repo_sql._active_for_table
    calls = {"n": 0}

    async def lookup_then_close(session, rid, label):
        calls["n"] += 1
        found = await real_lookup(session, rid, label)
        if calls["n"] == 1 and found is not None:
            async with sessionmaker() as other:
                await close(other, rid, found.id)
        return found

    monkeypatch.setattr(orders_repo_sql, "_active_for_table", lookup_then_close)


@pytest.mark.anyio
async def test_order_completed_after_read_is_not_overwritten(
    sessionmaker, restaurant_id, monkeypatch
):
    async with sessionmaker() as session:
        first = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", BURGERS, 400
        )
    first_id = first.order.id

    async def complete(session, rid, order_id):
        await orders_repo_sql.complete_order(session, rid, order_id, "cash")

    _close_after_read(monkeypatch, sessionmaker, complete)

    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T1", FRIES
        )

    assert outcome.created
    assert outcome.order.id != first_id
    assert outcome.order.items[0]["name"] == "Fries"
    async with sessionmaker() as session:
        billed = await orders_repo_sql.get_order(session, restaurant_id, first_id)
        table = await tables_repo_sql.get_table(session, restaurant_id, "T1")
        labels = await tables_repo_sql.open_labels(session, restaurant_id)
    assert billed.status == "completed"
    assert billed.total_amount == 400
    assert billed.items[0]["name"] == "Burger"
    assert table.status == "occupied"
    assert labels == {"T1"}


@pytest.mark.anyio
async def test_order_deleted_after_read_is_reopened(
    sessionmaker, restaurant_id, monkeypatch
):
    async with sessionmaker() as session:
        await orders_repo_sql.open_dine_in_order(session, restaurant_id, "T2", BURGERS)

    _close_after_read(monkeypatch, sessionmaker, orders_repo_sql.delete_order)

    async with sessionmaker() as session:
        outcome = await orders_repo_sql.open_dine_in_order(
            session, restaurant_id, "T2", FRIES
        )

    assert outcome.created
    assert outcome.order.items[0]["name"] == "Fries"
    async with sessionmaker() as session:
        count = await session.scalar(
            select(func.count())
            .select_from(Order)
            .where(Order.restaurant_id == restaurant_id, Order.table_label == "T2")
        )
        table = await tables_repo_sql.get_table(session, restaurant_id, "T2")
    assert count == 1
    assert table.status == "occupied"
