"""Daily summary generation, history and the analytics dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .repos_sqlalchemy import restaurants_repo_sql, summary_repo_sql
from .schemas import SummaryRequest, summary_to_dict
from .services.analytics import restaurant_analytics
from .utils.dates import business_day, utcnow
from .utils.responses import ok

router = APIRouter()


@router.post("/api/restaurants/{restaurant_id}/summaries")
async def generate_summary(
    restaurant_id: str,
    payload: SummaryRequest | None = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Recompute the summary of a day, today by default."""
    day = payload.day if payload and payload.day else None
    if day is None:
        restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
        day = business_day(utcnow(), restaurant.timezone)
    summary = await summary_repo_sql.generate_daily_summary(session, restaurant_id, day)
    return ok(summary_to_dict(summary))


@router.get("/api/restaurants/{restaurant_id}/summaries")
async def history(
    restaurant_id: str,
    period: str = "daily",
    limit: int | None = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    rows = await summary_repo_sql.get_history(session, restaurant_id, period, limit)
    return ok(rows)


@router.get("/api/restaurants/{restaurant_id}/analytics")
async def analytics(
    restaurant_id: str,
    time_range: str = "today",
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Sales, expenses and table usage over ``time_range``."""
    return ok(await restaurant_analytics(session, restaurant_id, time_range))
