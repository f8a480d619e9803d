"""SQLAlchemy-backed repository helpers for restaurants.

Covers registration, the one-shot setup of tables and menu, profile edits
and expenses. Table status is never written here except to seed new tables;
the order repository owns it afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import TableStatus
from ..errors import Conflict, NotFound, ValidationError
from ..models import Expense, MenuItem, Restaurant, RestaurantTable
from ..utils.dates import as_utc, utcnow
from . import tables_repo_sql

logger = logging.getLogger("tablepos.restaurants")

PROFILE_FIELDS = (
    "name",
    "owner_name",
    "phone",
    "address",
    "cuisine_type",
    "description",
    "open_time",
    "close_time",
    "timezone",
)

# Stored overrides are merged over these on every read.
NOTIFICATION_DEFAULTS: dict[str, Any] = {
    "sound_enabled": True,
    "sound_volume": 70,
    "browser_notifications": True,
    "email_notifications": False,
    "order_complete_sound": "success",
    "warning_sound": "warning",
    "integration_sound": "notification",
    "general_sound": "default",
}


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _check_timezone(tz: str | None) -> None:
    if not tz:
        return
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"unknown timezone {tz!r}") from exc


async def get_restaurant(session: AsyncSession, restaurant_id: str) -> Restaurant:
    """Return the restaurant or raise :class:`NotFound`."""

    restaurant = await session.get(Restaurant, restaurant_id, populate_existing=True)
    if restaurant is None:
        raise NotFound(f"restaurant {restaurant_id!r} not found", restaurant=restaurant_id)
    return restaurant


async def create_restaurant(session: AsyncSession, data: Mapping[str, Any]) -> Restaurant:
    """Register a restaurant; e-mail addresses are unique."""

    email = (data.get("email") or "").strip().lower()
    if not email:
        raise ValidationError("email is required")
    existing = await session.scalar(select(Restaurant.id).where(Restaurant.email == email))
    if existing is not None:
        raise Conflict("a restaurant with this email already exists")

    fields = {key: data[key] for key in PROFILE_FIELDS if data.get(key) is not None}
    _check_timezone(fields.get("timezone"))
    restaurant = Restaurant(email=email, setup_complete=False, **fields)
    session.add(restaurant)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise Conflict("a restaurant with this email already exists") from exc
    logger.info("restaurant.created", extra={"restaurant": restaurant.id})
    return restaurant


async def list_menu(session: AsyncSession, restaurant_id: str) -> List[MenuItem]:
    """Return menu items that are not soft-deleted."""

    result = await session.execute(
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id, MenuItem.is_deleted.is_(False))
        .order_by(MenuItem.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


def _validate_tables(tables: Iterable[Any]) -> list[dict]:
    rows: list[dict] = []
    seen: set[str] = set()
    for index, table in enumerate(tables):
        label = str(_get(table, "label") or "").strip()
        if not label:
            raise ValidationError("table label is required", table=index)
        if label in seen:
            raise ValidationError(f"duplicate table label {label!r}", table=label)
        seen.add(label)
        seats = int(_get(table, "seats") or 2)
        if seats <= 0:
            raise ValidationError("table seats must be positive", table=label)
        rows.append(
            {
                "label": label,
                "seats": seats,
                "area_name": _get(table, "area_name"),
                "pos_x": int(_get(table, "pos_x") or 0),
                "pos_y": int(_get(table, "pos_y") or 0),
            }
        )
    return rows


def _validate_menu(menu_items: Iterable[Any]) -> list[dict]:
    rows: list[dict] = []
    for index, item in enumerate(menu_items):
        name = str(_get(item, "name") or "").strip()
        price = _get(item, "price")
        if not name:
            raise ValidationError("menu item name is required", item=index)
        if price is None or float(price) <= 0:
            raise ValidationError("menu item price must be positive", item=name)
        rows.append(
            {
                "id": _get(item, "id"),
                "name": name,
                "price": round(float(price), 2),
                "description": _get(item, "description"),
                "category_name": _get(item, "category_name"),
            }
        )
    return rows


async def setup_restaurant(
    session: AsyncSession,
    restaurant_id: str,
    tables: Iterable[Any],
    menu_items: Iterable[Any],
) -> Restaurant:
    """Replace the table layout and menu of ``restaurant_id``.

    Tables are matched by label. Existing tables keep their status, new
    ones derive it from open orders (normally ``free``), and a table that is
    still referenced by an open dine-in order cannot be dropped. Menu items
    are matched by id; items left out of the payload are soft-deleted so
    that historical orders keep making sense.
    """

    table_rows = _validate_tables(tables)
    menu_rows = _validate_menu(menu_items)
    restaurant = await get_restaurant(session, restaurant_id)

    current = {t.label: t for t in await tables_repo_sql.list_tables(session, restaurant_id)}
    wanted = {row["label"] for row in table_rows}
    busy = await tables_repo_sql.open_labels(session, restaurant_id)

    blocked = sorted(label for label in current if label not in wanted and label in busy)
    if blocked:
        raise Conflict(
            "tables with open orders cannot be removed", tables=blocked
        )

    for label, table in current.items():
        if label not in wanted:
            await session.delete(table)

    for row in table_rows:
        table = current.get(row["label"])
        if table is None:
            status = (
                TableStatus.OCCUPIED.value if row["label"] in busy else TableStatus.FREE.value
            )
            session.add(RestaurantTable(restaurant_id=restaurant_id, status=status, **row))
            continue
        table.seats = row["seats"]
        table.area_name = row["area_name"]
        table.pos_x = row["pos_x"]
        table.pos_y = row["pos_y"]

    existing_menu = {item.id: item for item in await list_menu(session, restaurant_id)}
    kept: set[int] = set()
    for row in menu_rows:
        item_id = row.pop("id")
        item = existing_menu.get(item_id) if item_id is not None else None
        if item is None:
            session.add(MenuItem(restaurant_id=restaurant_id, **row))
            continue
        kept.add(item.id)
        for key, value in row.items():
            setattr(item, key, value)
    for item_id, item in existing_menu.items():
        if item_id not in kept:
            item.is_deleted = True

    restaurant.setup_complete = True
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise Conflict("table layout changed concurrently, retry setup") from exc
    logger.info(
        "restaurant.setup tables=%d menu_items=%d",
        len(table_rows),
        len(menu_rows),
        extra={"restaurant": restaurant_id},
    )
    return await get_restaurant(session, restaurant_id)


async def update_profile(
    session: AsyncSession, restaurant_id: str, fields: Mapping[str, Any]
) -> Restaurant:
    """Update name, contact details and business hours."""

    _check_timezone(fields.get("timezone"))
    restaurant = await get_restaurant(session, restaurant_id)
    for key in PROFILE_FIELDS:
        value = fields.get(key)
        if value is not None:
            setattr(restaurant, key, value)
    await session.commit()
    return await get_restaurant(session, restaurant_id)


async def add_expense(
    session: AsyncSession,
    restaurant_id: str,
    description: str,
    amount: float,
    category: str | None = None,
    spent_at: datetime | None = None,
) -> Expense:
    await get_restaurant(session, restaurant_id)
    description = (description or "").strip()
    if not description:
        raise ValidationError("expense description is required")
    if amount is None or float(amount) <= 0:
        raise ValidationError("expense amount must be positive")
    expense = Expense(
        restaurant_id=restaurant_id,
        description=description,
        amount=round(float(amount), 2),
        category=category or "General",
        spent_at=as_utc(spent_at) if spent_at else utcnow(),
    )
    session.add(expense)
    await session.commit()
    return expense


async def list_expenses(
    session: AsyncSession,
    restaurant_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
) -> List[Expense]:
    """Return expenses newest first, optionally within ``[start, end]``."""

    await get_restaurant(session, restaurant_id)
    stmt = select(Expense).where(Expense.restaurant_id == restaurant_id)
    if start is not None:
        stmt = stmt.where(Expense.spent_at >= as_utc(start))
    if end is not None:
        stmt = stmt.where(Expense.spent_at <= as_utc(end))
    result = await session.execute(stmt.order_by(Expense.spent_at.desc(), Expense.id.desc()))
    return list(result.scalars())


def notification_settings(restaurant: Restaurant) -> dict[str, Any]:
    """Return the restaurant's notification settings with defaults filled in."""

    return {**NOTIFICATION_DEFAULTS, **(restaurant.notification_settings or {})}


def _check_notification_value(key: str, value: Any) -> Any:
    default = NOTIFICATION_DEFAULTS[key]
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false", setting=key)
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise ValidationError(f"{key} must be between 0 and 100", setting=key)
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be a sound name", setting=key)
    return value.strip()


async def update_notification_settings(
    session: AsyncSession, restaurant_id: str, settings: Mapping[str, Any]
) -> dict[str, Any]:
    """Merge ``settings`` into the stored notification settings.

    Keys left out keep their current value. Unknown keys and values of the
    wrong kind raise :class:`ValidationError` and nothing is stored.
    """

    unknown = sorted(set(settings) - set(NOTIFICATION_DEFAULTS))
    if unknown:
        raise ValidationError("unknown notification settings", settings=unknown)
    changes = {
        key: _check_notification_value(key, value)
        for key, value in settings.items()
        if value is not None
    }
    restaurant = await get_restaurant(session, restaurant_id)
    # reassign so the JSON column is flagged dirty
    restaurant.notification_settings = {
        **(restaurant.notification_settings or {}),
        **changes,
    }
    await session.commit()
    logger.info(
        "restaurant.notifications keys=%s",
        ",".join(sorted(changes)),
        extra={"restaurant": restaurant_id},
    )
    restaurant = await get_restaurant(session, restaurant_id)
    return notification_settings(restaurant)
