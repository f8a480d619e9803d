"""Restaurant registration, setup, settings, expenses and table upkeep."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .hooks import publish_table_state
from .repos_sqlalchemy import restaurants_repo_sql, tables_repo_sql
from .schemas import (
    ExpenseIn,
    NotificationSettingsIn,
    ProfileIn,
    RestaurantIn,
    SetupIn,
    expense_to_dict,
    restaurant_to_dict,
    table_to_dict,
)
from .utils.responses import ok

router = APIRouter()


async def _full(session: AsyncSession, restaurant_id: str) -> dict:
    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    tables = await tables_repo_sql.list_tables(session, restaurant_id)
    menu = await restaurants_repo_sql.list_menu(session, restaurant_id)
    return restaurant_to_dict(restaurant, tables, menu)


@router.post("/api/restaurants")
async def create_restaurant(
    payload: RestaurantIn, session: AsyncSession = Depends(get_session)
) -> dict:
    restaurant = await restaurants_repo_sql.create_restaurant(session, payload.model_dump())
    return ok(restaurant_to_dict(restaurant, [], []))


@router.get("/api/restaurants/{restaurant_id}")
async def get_restaurant(
    restaurant_id: str, session: AsyncSession = Depends(get_session)
) -> dict:
    """Return the restaurant with its tables and live menu."""
    return ok(await _full(session, restaurant_id))


@router.put("/api/restaurants/{restaurant_id}/setup")
async def setup_restaurant(
    restaurant_id: str,
    payload: SetupIn,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Replace the table layout and menu.

    Removing a table that still has an open order is refused with 409.
    """
    await restaurants_repo_sql.setup_restaurant(
        session, restaurant_id, payload.tables, payload.menu_items
    )
    return ok(await _full(session, restaurant_id))


@router.put("/api/restaurants/{restaurant_id}/profile")
async def update_profile(
    restaurant_id: str,
    payload: ProfileIn,
    session: AsyncSession = Depends(get_session),
) -> dict:
    restaurant = await restaurants_repo_sql.update_profile(
        session, restaurant_id, payload.model_dump(exclude_none=True)
    )
    return ok(restaurant_to_dict(restaurant))


@router.put("/api/restaurants/{restaurant_id}/notifications")
async def update_notifications(
    restaurant_id: str,
    payload: NotificationSettingsIn,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Merge the given notification settings and return all of them."""
    settings = await restaurants_repo_sql.update_notification_settings(
        session, restaurant_id, payload.model_dump(exclude_none=True)
    )
    return ok({"notification_settings": settings})


@router.post("/api/restaurants/{restaurant_id}/expenses")
async def add_expense(
    restaurant_id: str,
    payload: ExpenseIn,
    session: AsyncSession = Depends(get_session),
) -> dict:
    expense = await restaurants_repo_sql.add_expense(
        session,
        restaurant_id,
        payload.description,
        payload.amount,
        payload.category,
        payload.spent_at,
    )
    return ok(expense_to_dict(expense))


@router.get("/api/restaurants/{restaurant_id}/expenses")
async def list_expenses(
    restaurant_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    expenses = await restaurants_repo_sql.list_expenses(session, restaurant_id, start, end)
    return ok([expense_to_dict(e) for e in expenses])


@router.post("/api/restaurants/{restaurant_id}/tables/reconcile")
async def reconcile_tables(
    restaurant_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Re-derive every table's status from the open dine-in orders."""
    await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    changed = await tables_repo_sql.reconcile_tables(session, restaurant_id)
    redis = getattr(request.app.state, "redis", None)
    for table in changed:
        await publish_table_state(redis, restaurant_id, table)
    return ok({"changed": [table_to_dict(t) for t in changed]})
