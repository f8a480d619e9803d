"""Table registry helpers.

Table ``status`` is derived state: a table is ``occupied`` exactly when an
open dine-in order references its label. The helpers here never commit;
they run inside the caller's transaction so that the order write and the
table write land together. Rows are read ``FOR UPDATE`` so that on backends
with row locks a release cannot interleave with a concurrent occupy.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OPEN_STATUSES, OrderType, TableStatus
from ..models import Order, RestaurantTable
from ..routes_metrics import tables_healed_total

logger = logging.getLogger("tablepos.tables")

_OPEN = [status.value for status in OPEN_STATUSES]


async def get_table(
    session: AsyncSession, restaurant_id: str, label: str, lock: bool = False
) -> RestaurantTable | None:
    """Return the table ``label`` of ``restaurant_id`` or ``None``."""

    stmt = select(RestaurantTable).where(
        RestaurantTable.restaurant_id == restaurant_id,
        RestaurantTable.label == label,
    )
    if lock:
        stmt = stmt.with_for_update()
    stmt = stmt.execution_options(populate_existing=True)
    return await session.scalar(stmt)


async def list_tables(session: AsyncSession, restaurant_id: str) -> List[RestaurantTable]:
    result = await session.execute(
        select(RestaurantTable)
        .where(RestaurantTable.restaurant_id == restaurant_id)
        .order_by(RestaurantTable.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


async def count_open_orders(
    session: AsyncSession, restaurant_id: str, label: str
) -> int:
    """Return how many open dine-in orders reference ``label``."""

    value = await session.scalar(
        select(func.count())
        .select_from(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.table_label == label,
            Order.order_type == OrderType.DINE_IN.value,
            Order.status.in_(_OPEN),
        )
    )
    return int(value or 0)


async def occupy_table(
    session: AsyncSession, restaurant_id: str, label: str
) -> tuple[RestaurantTable | None, bool]:
    """Mark ``label`` occupied. Return the table and whether it changed."""

    table = await get_table(session, restaurant_id, label, lock=True)
    if table is None or table.status == TableStatus.OCCUPIED.value:
        return table, False
    table.status = TableStatus.OCCUPIED.value
    await session.flush()
    return table, True


async def release_table(
    session: AsyncSession, restaurant_id: str, label: str
) -> tuple[RestaurantTable | None, bool]:
    """Free ``label`` unless another open order still references it.

    Must run after the caller's order write is flushed so that the order
    being closed is no longer counted.
    """

    table = await get_table(session, restaurant_id, label, lock=True)
    if table is None:
        return None, False
    if await count_open_orders(session, restaurant_id, label):
        logger.info(
            "table.kept_occupied restaurant=%s table=%s", restaurant_id, label
        )
        return table, False
    if table.status == TableStatus.FREE.value:
        return table, False
    table.status = TableStatus.FREE.value
    await session.flush()
    return table, True


async def open_labels(session: AsyncSession, restaurant_id: str) -> set[str]:
    """Return the labels referenced by open dine-in orders."""

    result = await session.execute(
        select(Order.table_label)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.order_type == OrderType.DINE_IN.value,
            Order.status.in_(_OPEN),
        )
        .distinct()
    )
    return set(result.scalars())


async def reconcile_tables(
    session: AsyncSession, restaurant_id: str
) -> List[RestaurantTable]:
    """Re-derive every table's status from open orders and commit.

    Returns the tables whose status changed. This is the recovery path for
    a status flag left stale by a failed write.
    """

    result = await session.execute(
        select(RestaurantTable)
        .where(RestaurantTable.restaurant_id == restaurant_id)
        .order_by(RestaurantTable.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    tables = list(result.scalars())
    busy = await open_labels(session, restaurant_id)

    changed: List[RestaurantTable] = []
    for table in tables:
        wanted = (
            TableStatus.OCCUPIED.value if table.label in busy else TableStatus.FREE.value
        )
        if table.status != wanted:
            logger.warning(
                "table.healed restaurant=%s table=%s from=%s to=%s",
                restaurant_id,
                table.label,
                table.status,
                wanted,
            )
            table.status = wanted
            changed.append(table)
    await session.commit()
    if changed:
        tables_healed_total.inc(len(changed))
    return changed
