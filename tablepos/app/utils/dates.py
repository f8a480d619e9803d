"""Calendar-day helpers.

A restaurant's day runs from local midnight to ``23:59:59.999999`` in its
configured timezone. Timestamps are stored in UTC.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from config import get_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def restaurant_tz(tz: str | None) -> ZoneInfo:
    return ZoneInfo(tz or get_settings().default_tz)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def business_day(moment: datetime, tz: str | None) -> date:
    """Return the local calendar date of ``moment``."""
    return as_utc(moment).astimezone(restaurant_tz(tz)).date()


def day_bounds(day: date, tz: str | None) -> tuple[datetime, datetime]:
    """Return the inclusive UTC ``(start, end)`` of ``day``."""
    tzinfo = restaurant_tz(tz)
    start = datetime.combine(day, time.min, tzinfo).astimezone(timezone.utc)
    end = datetime.combine(day, time.max, tzinfo).astimezone(timezone.utc)
    return start, end
