"""Read-only sales analytics for a restaurant dashboard."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OrderStatus, TableStatus
from ..models import Expense, Order
from ..repos_sqlalchemy import restaurants_repo_sql, tables_repo_sql
from ..schemas import order_to_dict
from ..utils.dates import as_utc, business_day, day_bounds, utcnow

TIME_RANGES = ("today", "yesterday", "week", "month", "year")
TOP_ITEMS = 5


def date_range(time_range: str, today: date) -> tuple[date, date]:
    """Return the first and last local day covered by ``time_range``.

    Unknown ranges fall back to ``today``.
    """

    if time_range == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if time_range == "week":
        return today - timedelta(days=6), today
    if time_range == "month":
        return today - timedelta(days=29), today
    if time_range == "year":
        try:
            start = today.replace(year=today.year - 1)
        except ValueError:  # 29 February
            start = today.replace(year=today.year - 1, day=28)
        return start, today
    return today, today


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


async def restaurant_analytics(
    session: AsyncSession,
    restaurant_id: str,
    time_range: str = "today",
    *,
    now: datetime | None = None,
) -> dict:
    """Aggregate completed orders and expenses over ``time_range``.

    Orders count on the local day they were completed. The per-day revenue
    series has one entry per day of the range, zero-filled.
    """

    if time_range not in TIME_RANGES:
        time_range = "today"
    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    tz = restaurant.timezone
    first, last = date_range(time_range, business_day(now or utcnow(), tz))
    start, _ = day_bounds(first, tz)
    _, end = day_bounds(last, tz)

    result = await session.execute(
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.status == OrderStatus.COMPLETED.value,
            Order.completed_at >= start,
            Order.completed_at <= end,
        )
        .order_by(Order.completed_at)
    )
    orders = list(result.scalars())
    result = await session.execute(
        select(Expense).where(
            Expense.restaurant_id == restaurant_id,
            Expense.spent_at >= start,
            Expense.spent_at <= end,
        )
    )
    expenses = list(result.scalars())
    tables = await tables_repo_sql.list_tables(session, restaurant_id)

    total_revenue = round(sum(float(o.total_amount) for o in orders), 2)
    total_expenses = round(sum(float(e.amount) for e in expenses), 2)
    net_profit = round(total_revenue - total_expenses, 2)
    total_orders = len(orders)
    active_tables = sum(1 for t in tables if t.status == TableStatus.OCCUPIED.value)

    daily: Dict[date, dict] = {}
    item_counts: Dict[str, int] = {}
    for order in orders:
        day = business_day(order.completed_at, tz)
        bucket = daily.setdefault(day, {"revenue": 0.0, "orders": 0})
        bucket["revenue"] += float(order.total_amount)
        bucket["orders"] += 1
        for line in order.items or []:
            item_counts[line["name"]] = item_counts.get(line["name"], 0) + int(
                line["quantity"]
            )

    revenue_data: List[dict] = []
    day = first
    while day <= last:
        bucket = daily.get(day, {"revenue": 0.0, "orders": 0})
        revenue_data.append(
            {
                "date": day.isoformat(),
                "revenue": round(bucket["revenue"], 2),
                "orders": bucket["orders"],
                "day_name": day.strftime("%a"),
            }
        )
        day += timedelta(days=1)

    popular = sorted(item_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_ITEMS]
    by_category: Dict[str, float] = {}
    for expense in expenses:
        key = expense.category or "General"
        by_category[key] = round(by_category.get(key, 0.0) + float(expense.amount), 2)

    best = max(revenue_data, key=lambda d: d["revenue"])
    first_revenue = revenue_data[0]["revenue"]
    growth = (
        round((revenue_data[-1]["revenue"] - first_revenue) / (first_revenue or 1) * 100, 2)
        if len(revenue_data) > 1
        else 0.0
    )

    todays_orders: List[dict] = []
    if time_range in ("today", "yesterday"):
        todays_orders = [
            order_to_dict(o)
            for o in sorted(orders, key=lambda o: as_utc(o.completed_at), reverse=True)
        ]

    return {
        "metrics": {
            "total_revenue": total_revenue,
            "total_expenses": total_expenses,
            "net_profit": net_profit,
            "total_orders": total_orders,
            "avg_order_value": round(total_revenue / total_orders, 2) if total_orders else 0.0,
            "active_tables": active_tables,
            "profit_margin": _pct(net_profit, total_revenue),
            "table_utilization": _pct(active_tables, len(tables)),
        },
        "revenue_data": revenue_data,
        "popular_items": [{"name": name, "value": count} for name, count in popular],
        "expenses_by_category": by_category,
        "insights": {
            "best_day": best["date"] if best["revenue"] > 0 else None,
            "peak_revenue": best["revenue"],
            "growth_rate": growth,
        },
        "todays_orders": todays_orders,
        "time_range": time_range,
        "date_range": {"start": first.isoformat(), "end": last.isoformat()},
    }
