#!/usr/bin/env python3
"""Recompute daily summaries.

Rebuilds yesterday's and today's ``daily_summaries`` rows of a restaurant
from its completed orders and expenses. Intended to run hourly; a Redis
``SET NX`` lock per restaurant-day keeps overlapping runs from doing the
same work twice."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, datetime, timedelta

from redis.asyncio import from_url
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from tablepos.app.db import init_engine
from tablepos.app.repos_sqlalchemy import restaurants_repo_sql, summary_repo_sql
from tablepos.app.routes_metrics import rollup_failures_total, rollup_runs_total
from tablepos.app.utils.dates import business_day, utcnow

LOCK_TTL = 3600

logger = logging.getLogger("tablepos.rollup")


def lock_key(restaurant_id: str, day: date) -> str:
    return f"rollup:{restaurant_id}:{day.isoformat()}"


async def rollup_days(
    session: AsyncSession, restaurant_id: str, days: list[date], redis_client=None
) -> list[date]:
    """Regenerate the summaries of ``days``; return the days actually rebuilt."""
    done: list[date] = []
    for day in days:
        key = lock_key(restaurant_id, day)
        if redis_client is not None:
            acquired = await redis_client.set(key, "1", ex=LOCK_TTL, nx=True)
            if not acquired:
                logger.info("rollup.skipped day=%s", day, extra={"restaurant": restaurant_id})
                continue
        try:
            await summary_repo_sql.generate_daily_summary(session, restaurant_id, day)
            rollup_runs_total.inc()
        except Exception:
            rollup_failures_total.inc()
            if redis_client is not None:
                await redis_client.delete(key)
            raise
        done.append(day)
    return done


async def main(
    restaurant_id: str,
    database_url: str | None = None,
    redis_url: str | None = None,
    now: datetime | None = None,
) -> list[date]:
    settings = get_settings()
    sessionmaker, engine = init_engine(database_url or settings.database_url)
    redis_url = redis_url or settings.redis_url
    redis_client = from_url(redis_url) if redis_url else None
    try:
        async with sessionmaker() as session:
            restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
            today = business_day(now or utcnow(), restaurant.timezone)
            days = [today - timedelta(days=1), today]
            return await rollup_days(session, restaurant_id, days, redis_client)
    finally:
        await engine.dispose()
        if redis_client is not None:
            await redis_client.aclose()


def _cli() -> None:
    parser = argparse.ArgumentParser(description="Recompute daily summaries")
    parser.add_argument("--restaurant", required=True, help="Restaurant identifier")
    args = parser.parse_args()
    asyncio.run(main(args.restaurant))


if __name__ == "__main__":
    _cli()
