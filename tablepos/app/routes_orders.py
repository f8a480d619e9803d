"""Order endpoints for dine-in tables and the takeaway queue.

Routes are thin: they hand payloads to :mod:`repos_sqlalchemy.orders_repo_sql`
and broadcast any table whose status changed once the write has committed.
Typed errors raised below bubble up to the handlers in ``main``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .hooks import publish_table_state
from .repos_sqlalchemy import orders_repo_sql
from .repos_sqlalchemy.orders_repo_sql import OrderOutcome
from .schemas import (
    CompleteIn,
    DineInOrderIn,
    ItemsUpdate,
    StatusUpdate,
    TakeawayOrderIn,
    order_to_dict,
    table_to_dict,
)
from .utils.responses import ok

router = APIRouter()


def _lines(items) -> list[dict]:
    return [line.model_dump() for line in items]


async def _respond(request: Request, restaurant_id: str, outcome: OrderOutcome) -> dict:
    redis = getattr(request.app.state, "redis", None)
    await publish_table_state(redis, restaurant_id, outcome.table)
    return ok(
        {
            "order": order_to_dict(outcome.order),
            "created": outcome.created,
            "table": table_to_dict(outcome.table) if outcome.table else None,
        }
    )


@router.post("/api/restaurants/{restaurant_id}/orders/dine-in")
async def open_dine_in(
    restaurant_id: str,
    payload: DineInOrderIn,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Open the table's order or replace the items of the active one."""
    outcome = await orders_repo_sql.open_dine_in_order(
        session,
        restaurant_id,
        payload.table_label,
        _lines(payload.items),
        payload.total_amount,
    )
    return await _respond(request, restaurant_id, outcome)


@router.post("/api/restaurants/{restaurant_id}/orders/takeaway")
async def open_takeaway(
    restaurant_id: str,
    payload: TakeawayOrderIn,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Create a numbered takeaway order, or edit ``existing_order_id``."""
    outcome = await orders_repo_sql.open_takeaway_order(
        session,
        restaurant_id,
        _lines(payload.items),
        payload.total_amount,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        existing_order_id=payload.existing_order_id,
    )
    return await _respond(request, restaurant_id, outcome)


@router.get("/api/restaurants/{restaurant_id}/orders/active")
async def list_active(
    restaurant_id: str, session: AsyncSession = Depends(get_session)
) -> dict:
    orders = await orders_repo_sql.list_active_orders(session, restaurant_id)
    return ok([order_to_dict(o) for o in orders])


@router.get("/api/restaurants/{restaurant_id}/orders/takeaway/today")
async def list_takeaway_today(
    restaurant_id: str, session: AsyncSession = Depends(get_session)
) -> dict:
    orders = await orders_repo_sql.list_today_takeaway_orders(session, restaurant_id)
    return ok([order_to_dict(o) for o in orders])


@router.get("/api/restaurants/{restaurant_id}/orders/{order_id}")
async def get_order(
    restaurant_id: str, order_id: int, session: AsyncSession = Depends(get_session)
) -> dict:
    order = await orders_repo_sql.get_order(session, restaurant_id, order_id)
    return ok(order_to_dict(order))


@router.put("/api/restaurants/{restaurant_id}/orders/{order_id}")
async def edit_items(
    restaurant_id: str,
    order_id: int,
    payload: ItemsUpdate,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Replace the items of an open order."""
    order = await orders_repo_sql.edit_order_items(
        session, restaurant_id, order_id, _lines(payload.items), payload.total_amount
    )
    return ok(order_to_dict(order))


@router.put("/api/restaurants/{restaurant_id}/orders/{order_id}/status")
async def advance_status(
    restaurant_id: str,
    order_id: int,
    payload: StatusUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Move a takeaway order along ``preparing -> ready -> completed``."""
    outcome = await orders_repo_sql.advance_takeaway_status(
        session, restaurant_id, order_id, payload.status
    )
    return await _respond(request, restaurant_id, outcome)


@router.put("/api/restaurants/{restaurant_id}/orders/{order_id}/complete")
async def complete(
    restaurant_id: str,
    order_id: int,
    request: Request,
    payload: CompleteIn | None = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Bill the order and free its table."""
    outcome = await orders_repo_sql.complete_order(
        session,
        restaurant_id,
        order_id,
        payload.payment_method if payload else None,
    )
    return await _respond(request, restaurant_id, outcome)


@router.delete("/api/restaurants/{restaurant_id}/orders/{order_id}")
async def delete(
    restaurant_id: str,
    order_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Remove an open order; completed orders stay."""
    outcome = await orders_repo_sql.delete_order(session, restaurant_id, order_id)
    return await _respond(request, restaurant_id, outcome)
