"""SQLAlchemy-backed repository helpers for orders.

This module keeps three things consistent: the order rows, the ``status``
of the restaurant's tables and the per-day takeaway order numbers. Every
write that touches both an order and a table does so in one transaction,
order first. Concurrent terminals are serialised by the database rather
than by the application:

* opening a dine-in order relies on the partial unique index over active
  orders per table; the loser of a race re-reads the winner and updates it;
* takeaway numbers come from an atomic counter row with the unique
  ``(restaurant_id, business_day, order_number)`` constraint as backstop;
* completion and deletion are conditional on the order still being open,
  so a double completion is applied once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from ..domain import (
    INITIAL_STATUS,
    OPEN_STATUSES,
    OrderStatus,
    OrderType,
    PaymentMethod,
    ensure_transition,
    normalize_items,
)
from ..errors import Conflict, InvalidTransition, NotFound, ValidationError
from ..models import Order, RestaurantTable
from ..routes_metrics import (
    order_conflicts_total,
    orders_completed_total,
    orders_deleted_total,
    orders_opened_total,
    tables_healed_total,
    takeaway_number_retries_total,
)
from ..utils.dates import business_day, utcnow
from ..utils.order_counter import format_order_number, next_order_seq
from . import restaurants_repo_sql, tables_repo_sql

logger = logging.getLogger("tablepos.orders")

TAKEAWAY_LABEL_PREFIX = "TAKEAWAY-"
# Attempts at drawing a takeaway number before giving up with Conflict.
TAKEAWAY_NUMBER_ATTEMPTS = 2
# Reads of the table's active order before giving up with Conflict.
DINE_IN_OPEN_ATTEMPTS = 3

_OPEN = [status.value for status in OPEN_STATUSES]


@dataclass
class OrderOutcome:
    """Result of an order write.

    ``table`` is set only when the write changed that table's status, so
    callers know what to broadcast.
    """

    order: Order
    created: bool = False
    table: RestaurantTable | None = None


def _strict(strict: bool | None) -> bool:
    return get_settings().strict_totals if strict is None else strict


async def get_order(session: AsyncSession, restaurant_id: str, order_id: int) -> Order:
    """Return order ``order_id`` of ``restaurant_id`` or raise :class:`NotFound`."""

    order = await session.scalar(
        select(Order)
        .where(Order.id == order_id, Order.restaurant_id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    if order is None:
        raise NotFound(f"order {order_id} not found", order=order_id)
    return order


async def _active_for_table(
    session: AsyncSession, restaurant_id: str, label: str
) -> Order | None:
    return await session.scalar(
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.table_label == label,
            Order.order_type == OrderType.DINE_IN.value,
            Order.status == OrderStatus.ACTIVE.value,
        )
        .execution_options(populate_existing=True)
    )


async def open_dine_in_order(
    session: AsyncSession,
    restaurant_id: str,
    table_label: str,
    items: Iterable[Any],
    total_amount: float | None = None,
    *,
    strict: bool | None = None,
    now: datetime | None = None,
) -> OrderOutcome:
    """Open an order on ``table_label`` or update the one already active.

    A table has at most one active order. When it already has one, its items
    and total are replaced and the table's ``occupied`` flag is healed if it
    went missing. Otherwise a new order is inserted and the table occupied in
    the same transaction. If another terminal inserts first, the unique
    index rejects this insert and the winner's order is updated instead.
    The update only applies while the order is still active; one completed
    or deleted after the read is left alone and a new order is opened.
    """

    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    tz = restaurant.timezone
    label = (table_label or "").strip()
    if not label:
        raise ValidationError("table label is required")
    if await tables_repo_sql.get_table(session, restaurant_id, label) is None:
        raise NotFound(f"table {label!r} not found", table=label)
    lines, total = normalize_items(items, total_amount, strict=_strict(strict))
    moment = now or utcnow()

    for _ in range(DINE_IN_OPEN_ATTEMPTS):
        existing = await _active_for_table(session, restaurant_id, label)
        if existing is not None:
            existing_id = existing.id
            result = await session.execute(
                update(Order)
                .where(
                    Order.id == existing_id,
                    Order.restaurant_id == restaurant_id,
                    Order.status == OrderStatus.ACTIVE.value,
                )
                .values(items=lines, total_amount=total, updated_at=moment)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # completed or deleted since the read; open a fresh order
                await session.rollback()
                logger.info(
                    "order.closed_meanwhile id=%s table=%s",
                    existing_id,
                    label,
                    extra={"restaurant": restaurant_id},
                )
                continue
            order = await get_order(session, restaurant_id, existing_id)
            table, changed = await tables_repo_sql.occupy_table(
                session, restaurant_id, label
            )
            await session.commit()
            if changed:
                tables_healed_total.inc()
                logger.warning(
                    "table.healed table=%s order=%s",
                    label,
                    existing_id,
                    extra={"restaurant": restaurant_id},
                )
            logger.info(
                "order.updated id=%s table=%s total=%.2f",
                existing_id,
                label,
                total,
                extra={"restaurant": restaurant_id},
            )
            return OrderOutcome(order, created=False, table=table if changed else None)

        order = Order(
            restaurant_id=restaurant_id,
            table_label=label,
            order_type=OrderType.DINE_IN.value,
            business_day=business_day(moment, tz),
            items=lines,
            total_amount=total,
            status=INITIAL_STATUS[OrderType.DINE_IN].value,
            created_at=moment,
            updated_at=moment,
        )
        session.add(order)
        try:
            await session.flush()
            table, changed = await tables_repo_sql.occupy_table(
                session, restaurant_id, label
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            order_conflicts_total.labels(kind="active_table").inc()
            logger.info(
                "order.open_race table=%s, updating the winner",
                label,
                extra={"restaurant": restaurant_id},
            )
            continue

        orders_opened_total.labels(order_type=OrderType.DINE_IN.value).inc()
        logger.info(
            "order.opened id=%s type=dine-in table=%s total=%.2f",
            order.id,
            label,
            total,
            extra={"restaurant": restaurant_id},
        )
        return OrderOutcome(order, created=True, table=table if changed else None)

    raise Conflict("table already has an active order", table=label)


async def open_takeaway_order(
    session: AsyncSession,
    restaurant_id: str,
    items: Iterable[Any],
    total_amount: float | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    existing_order_id: int | None = None,
    *,
    strict: bool | None = None,
    now: datetime | None = None,
) -> OrderOutcome:
    """Create a numbered takeaway order, or edit ``existing_order_id``.

    Editing keeps the order's number and status. New orders draw the next
    ``TO-NNN`` number of the restaurant's current day. A clash on the unique
    number constraint rolls back and retries once with a fresh number; a
    second clash raises :class:`Conflict`.
    """

    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    tz = restaurant.timezone
    lines, total = normalize_items(items, total_amount, strict=_strict(strict))
    moment = now or utcnow()

    if existing_order_id is not None:
        order = await get_order(session, restaurant_id, existing_order_id)
        if order.order_type != OrderType.TAKEAWAY.value:
            raise InvalidTransition(
                "order is not a takeaway order", order=existing_order_id
            )
        extra: dict[str, Any] = {}
        if customer_name is not None:
            extra["customer_name"] = customer_name
        if customer_phone is not None:
            extra["customer_phone"] = customer_phone
        order = await _replace_items(
            session, restaurant_id, existing_order_id, lines, total, moment, **extra
        )
        return OrderOutcome(order, created=False)

    day = business_day(moment, tz)
    for attempt in range(1, TAKEAWAY_NUMBER_ATTEMPTS + 1):
        try:
            seq = await next_order_seq(session, restaurant_id, day)
            number = format_order_number(seq)
            order = Order(
                restaurant_id=restaurant_id,
                table_label=TAKEAWAY_LABEL_PREFIX + number,
                order_type=OrderType.TAKEAWAY.value,
                order_number=number,
                order_seq=seq,
                business_day=day,
                customer_name=customer_name,
                customer_phone=customer_phone,
                items=lines,
                total_amount=total,
                status=INITIAL_STATUS[OrderType.TAKEAWAY].value,
                created_at=moment,
                updated_at=moment,
            )
            session.add(order)
            await session.commit()
        except IntegrityError:
            await session.rollback()
            order_conflicts_total.labels(kind="takeaway_number").inc()
            if attempt == TAKEAWAY_NUMBER_ATTEMPTS:
                break
            takeaway_number_retries_total.inc()
            logger.warning(
                "takeaway.number_retry day=%s attempt=%d",
                day.isoformat(),
                attempt,
                extra={"restaurant": restaurant_id},
            )
            continue

        orders_opened_total.labels(order_type=OrderType.TAKEAWAY.value).inc()
        logger.info(
            "order.opened id=%s type=takeaway number=%s total=%.2f",
            order.id,
            number,
            total,
            extra={"restaurant": restaurant_id},
        )
        return OrderOutcome(order, created=True)

    raise Conflict(
        "could not assign a takeaway order number, retry", day=day.isoformat()
    )


async def _replace_items(
    session: AsyncSession,
    restaurant_id: str,
    order_id: int,
    lines: list[dict],
    total: float,
    moment: datetime,
    **extra: Any,
) -> Order:
    result = await session.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.restaurant_id == restaurant_id,
            Order.status.in_(_OPEN),
        )
        .values(items=lines, total_amount=total, updated_at=moment, **extra)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        order = await get_order(session, restaurant_id, order_id)
        raise InvalidTransition(
            "completed orders cannot be edited", order=order_id, status=order.status
        )
    order = await get_order(session, restaurant_id, order_id)
    await session.commit()
    logger.info(
        "order.updated id=%s total=%.2f",
        order_id,
        total,
        extra={"restaurant": restaurant_id},
    )
    return order


async def edit_order_items(
    session: AsyncSession,
    restaurant_id: str,
    order_id: int,
    items: Iterable[Any],
    total_amount: float | None = None,
    *,
    strict: bool | None = None,
    now: datetime | None = None,
) -> Order:
    """Replace the items of an open order; the status is left alone."""

    lines, total = normalize_items(items, total_amount, strict=_strict(strict))
    return await _replace_items(
        session, restaurant_id, order_id, lines, total, now or utcnow()
    )


async def complete_order(
    session: AsyncSession,
    restaurant_id: str,
    order_id: int,
    payment_method: str | None = None,
    *,
    now: datetime | None = None,
) -> OrderOutcome:
    """Bill an open order and free its table when nothing else holds it.

    The status change is a single conditional update, so of two concurrent
    completions exactly one succeeds and the other gets
    :class:`AlreadyCompleted`.
    """

    if payment_method is not None:
        try:
            payment_method = PaymentMethod(payment_method).value
        except ValueError as exc:
            raise ValidationError(
                f"unknown payment method {payment_method!r}"
            ) from exc
    moment = now or utcnow()

    result = await session.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.restaurant_id == restaurant_id,
            Order.status.in_(_OPEN),
        )
        .values(
            status=OrderStatus.COMPLETED.value,
            payment_method=payment_method,
            completed_at=moment,
            updated_at=moment,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        order = await get_order(session, restaurant_id, order_id)
        ensure_transition(order.status, OrderStatus.COMPLETED)
        raise Conflict("order changed concurrently, retry", order=order_id)

    order = await get_order(session, restaurant_id, order_id)
    table = None
    if order.order_type == OrderType.DINE_IN.value:
        table, changed = await tables_repo_sql.release_table(
            session, restaurant_id, order.table_label
        )
        if not changed:
            table = None
    await session.commit()

    orders_completed_total.labels(order_type=order.order_type).inc()
    logger.info(
        "order.completed id=%s type=%s table=%s total=%.2f payment=%s",
        order.id,
        order.order_type,
        order.table_label,
        order.total_amount,
        payment_method,
        extra={"restaurant": restaurant_id},
    )
    return OrderOutcome(order, table=table)


async def advance_takeaway_status(
    session: AsyncSession,
    restaurant_id: str,
    order_id: int,
    new_status: str,
    *,
    now: datetime | None = None,
) -> OrderOutcome:
    """Move a takeaway order forward: ``preparing -> ready -> completed``."""

    order = await get_order(session, restaurant_id, order_id)
    if order.order_type != OrderType.TAKEAWAY.value:
        raise InvalidTransition(
            "only takeaway orders have a kitchen status", order=order_id
        )
    current = order.status
    ensure_transition(current, new_status)
    target = OrderStatus(new_status)
    if target is OrderStatus.COMPLETED:
        return await complete_order(session, restaurant_id, order_id, now=now)

    result = await session.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.restaurant_id == restaurant_id,
            Order.status == current,
        )
        .values(status=target.value, updated_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        order = await get_order(session, restaurant_id, order_id)
        ensure_transition(order.status, target)
        raise Conflict("order changed concurrently, retry", order=order_id)
    order = await get_order(session, restaurant_id, order_id)
    await session.commit()
    logger.info(
        "order.status id=%s from=%s to=%s",
        order_id,
        current,
        target.value,
        extra={"restaurant": restaurant_id},
    )
    return OrderOutcome(order)


async def delete_order(
    session: AsyncSession, restaurant_id: str, order_id: int
) -> OrderOutcome:
    """Remove an open order and free its table when nothing else holds it.

    Completed orders are part of the restaurant's history and are never
    deleted; asking to do so raises :class:`InvalidTransition`.
    """

    order = await get_order(session, restaurant_id, order_id)
    result = await session.execute(
        delete(Order)
        .where(
            Order.id == order_id,
            Order.restaurant_id == restaurant_id,
            Order.status.in_(_OPEN),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        order = await get_order(session, restaurant_id, order_id)
        raise InvalidTransition(
            "completed orders cannot be deleted", order=order_id, status=order.status
        )
    session.expunge(order)

    table = None
    if order.order_type == OrderType.DINE_IN.value:
        table, changed = await tables_repo_sql.release_table(
            session, restaurant_id, order.table_label
        )
        if not changed:
            table = None
    await session.commit()

    orders_deleted_total.inc()
    logger.info(
        "order.deleted id=%s type=%s table=%s",
        order.id,
        order.order_type,
        order.table_label,
        extra={"restaurant": restaurant_id},
    )
    return OrderOutcome(order, table=table)


async def list_active_orders(session: AsyncSession, restaurant_id: str) -> List[Order]:
    """Return the open dine-in orders of ``restaurant_id`` oldest first."""

    result = await session.execute(
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.status == OrderStatus.ACTIVE.value,
        )
        .order_by(Order.created_at, Order.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


async def list_today_takeaway_orders(
    session: AsyncSession, restaurant_id: str, *, now: datetime | None = None
) -> List[Order]:
    """Return takeaway orders of the restaurant's current day, newest first."""

    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    today = business_day(now or utcnow(), restaurant.timezone)
    result = await session.execute(
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.order_type == OrderType.TAKEAWAY.value,
            Order.business_day == today,
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


__all__ = [
    "OrderOutcome",
    "get_order",
    "open_dine_in_order",
    "open_takeaway_order",
    "edit_order_items",
    "complete_order",
    "advance_takeaway_status",
    "delete_order",
    "list_active_orders",
    "list_today_takeaway_orders",
]
