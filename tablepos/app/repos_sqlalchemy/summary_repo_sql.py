"""Daily financial summaries.

A summary row is derived data: it can be recomputed from completed orders
and expenses at any time, and recomputing replaces the stored row. Orders
count on the day they were completed, in the restaurant's timezone.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from ..domain import OrderStatus, OrderType
from ..errors import Conflict, ValidationError
from ..models import DailySummary, Expense, Order
from ..utils.dates import day_bounds
from . import restaurants_repo_sql

logger = logging.getLogger("tablepos.summaries")

PERIODS = ("daily", "weekly", "monthly")
_SUMMED = ("revenue", "expenses", "profit", "order_count", "takeaway_count", "dine_in_count")


async def compute_day(
    session: AsyncSession, restaurant_id: str, day: date, tz: str | None
) -> dict:
    """Return the aggregate figures of ``day`` without storing them."""

    start, end = day_bounds(day, tz)
    rows = await session.execute(
        select(
            Order.order_type,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), 0),
        )
        .where(
            Order.restaurant_id == restaurant_id,
            Order.status == OrderStatus.COMPLETED.value,
            Order.completed_at >= start,
            Order.completed_at <= end,
        )
        .group_by(Order.order_type)
    )
    counts = {OrderType.DINE_IN.value: 0, OrderType.TAKEAWAY.value: 0}
    revenue = 0.0
    for order_type, count, amount in rows:
        counts[order_type] = int(count)
        revenue += float(amount or 0)

    expenses = await session.scalar(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(
            Expense.restaurant_id == restaurant_id,
            Expense.spent_at >= start,
            Expense.spent_at <= end,
        )
    )
    revenue = round(revenue, 2)
    expenses = round(float(expenses or 0), 2)
    return {
        "revenue": revenue,
        "expenses": expenses,
        "profit": round(revenue - expenses, 2),
        "order_count": sum(counts.values()),
        "takeaway_count": counts[OrderType.TAKEAWAY.value],
        "dine_in_count": counts[OrderType.DINE_IN.value],
    }


async def _find(session: AsyncSession, restaurant_id: str, day: date) -> DailySummary | None:
    return await session.scalar(
        select(DailySummary)
        .where(DailySummary.restaurant_id == restaurant_id, DailySummary.date == day)
        .execution_options(populate_existing=True)
    )


async def generate_daily_summary(
    session: AsyncSession, restaurant_id: str, day: date
) -> DailySummary:
    """Recompute and store the summary of ``day``; running it twice is harmless."""

    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    tz = restaurant.timezone

    for _ in range(2):
        figures = await compute_day(session, restaurant_id, day, tz)
        summary = await _find(session, restaurant_id, day)
        if summary is None:
            summary = DailySummary(restaurant_id=restaurant_id, date=day, **figures)
            session.add(summary)
        else:
            for key, value in figures.items():
                setattr(summary, key, value)
        try:
            await session.commit()
        except IntegrityError:
            # another run inserted the same day first; update its row instead
            await session.rollback()
            continue
        logger.info(
            "summary.generated day=%s revenue=%.2f expenses=%.2f orders=%d",
            day.isoformat(),
            figures["revenue"],
            figures["expenses"],
            figures["order_count"],
            extra={"restaurant": restaurant_id},
        )
        return summary
    raise Conflict("daily summary changed concurrently, retry", day=day.isoformat())


def summary_row(summary: DailySummary) -> dict:
    return {
        "period": summary.date.isoformat(),
        "period_start": summary.date.isoformat(),
        "revenue": float(summary.revenue or 0),
        "expenses": float(summary.expenses or 0),
        "profit": float(summary.profit or 0),
        "order_count": summary.order_count,
        "takeaway_count": summary.takeaway_count,
        "dine_in_count": summary.dine_in_count,
    }


def _period_key(day: date, period: str) -> str:
    if period == "weekly":
        year, week, _ = day.isocalendar()
        return f"{year}-W{week:02d}"
    return f"{day.year}-{day.month:02d}"


async def get_history(
    session: AsyncSession,
    restaurant_id: str,
    period: str = "daily",
    limit: int | None = None,
) -> List[dict]:
    """Return stored summaries newest first, grouped by ``period``.

    Weekly groups follow ISO weeks and monthly groups calendar months. A
    grouped row carries the sums of its days and ``period_start``, the
    earliest stored day in the group.
    """

    if period not in PERIODS:
        raise ValidationError(f"unknown period {period!r}", allowed=list(PERIODS))
    if limit is None:
        limit = get_settings().history_limit
    if limit <= 0:
        raise ValidationError("limit must be positive")
    await restaurants_repo_sql.get_restaurant(session, restaurant_id)

    stmt = (
        select(DailySummary)
        .where(DailySummary.restaurant_id == restaurant_id)
        .order_by(DailySummary.date.desc())
    )
    if period == "daily":
        result = await session.execute(stmt.limit(limit))
        return [summary_row(s) for s in result.scalars()]

    groups: dict[str, dict] = {}
    for summary in (await session.execute(stmt)).scalars():
        key = _period_key(summary.date, period)
        row = summary_row(summary)
        group = groups.get(key)
        if group is None:
            if len(groups) == limit:
                break
            groups[key] = {**row, "period": key}
            continue
        group["period_start"] = row["period_start"]
        for field in _SUMMED:
            group[field] += row[field]
    for group in groups.values():
        for field in ("revenue", "expenses", "profit"):
            group[field] = round(group[field], 2)
    return list(groups.values())
