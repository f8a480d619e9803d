"""Utilities for managing takeaway order counters."""

from datetime import date

from sqlalchemy import Date, bindparam, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Order

TAKEAWAY_PREFIX = "TO"


def format_order_number(seq: int) -> str:
    """Return ``TO-NNN`` for ``seq``; wider numbers keep all their digits."""
    return f"{TAKEAWAY_PREFIX}-{seq:03d}"


async def highest_persisted_seq(
    session: AsyncSession, restaurant_id: str, day: date
) -> int:
    """Return the largest takeaway sequence stored for ``restaurant_id`` on ``day``."""
    value = await session.scalar(
        select(func.coalesce(func.max(Order.order_seq), 0)).where(
            Order.restaurant_id == restaurant_id,
            Order.business_day == day,
            Order.order_seq.is_not(None),
        )
    )
    return int(value or 0)


async def next_order_seq(session: AsyncSession, restaurant_id: str, day: date) -> int:
    """Atomically draw the next takeaway sequence for ``restaurant_id`` on ``day``.

    The counter row is created on first use of a day and incremented in a
    single statement otherwise. It never goes below one past the highest
    number already persisted for the day, so a missing or stale counter
    cannot hand out a number that is taken. The caller owns the transaction.
    """
    floor = await highest_persisted_seq(session, restaurant_id, day) + 1
    stmt = text(
        """
        INSERT INTO takeaway_counters (restaurant_id, business_day, current)
        VALUES (:restaurant_id, :business_day, :floor)
        ON CONFLICT (restaurant_id, business_day)
        DO UPDATE SET current = CASE
            WHEN takeaway_counters.current + 1 > :floor
            THEN takeaway_counters.current + 1
            ELSE :floor
        END
        RETURNING current
        """
    ).bindparams(bindparam("business_day", type_=Date()))
    result = await session.execute(
        stmt, {"restaurant_id": restaurant_id, "business_day": day, "floor": floor}
    )
    return int(result.scalar_one())
