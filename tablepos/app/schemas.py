# schemas.py

"""Pydantic models for API payloads and the serializers for responses."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import DailySummary, Expense, MenuItem, Order, Restaurant, RestaurantTable
from .repos_sqlalchemy.restaurants_repo_sql import notification_settings
from .utils.dates import as_utc


class OrderLine(BaseModel):
    """One line of an order; ``total`` is recomputed server side."""

    name: str
    price: float
    quantity: int
    total: Optional[float] = None


class DineInOrderIn(BaseModel):
    """Open or update the active order of a table."""

    table_label: str
    items: List[OrderLine]
    total_amount: Optional[float] = None


class TakeawayOrderIn(BaseModel):
    """Create a takeaway order, or edit one when ``existing_order_id`` is set."""

    items: List[OrderLine]
    total_amount: Optional[float] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    existing_order_id: Optional[int] = None


class ItemsUpdate(BaseModel):
    items: List[OrderLine]
    total_amount: Optional[float] = None


class StatusUpdate(BaseModel):
    status: str


class CompleteIn(BaseModel):
    payment_method: Optional[str] = None


class SummaryRequest(BaseModel):
    """Day to summarise; defaults to the restaurant's current day."""

    day: Optional[date] = None


class RestaurantIn(BaseModel):
    """Registration details of a restaurant."""

    name: str
    owner_name: str
    email: str
    phone: str
    address: str
    cuisine_type: Optional[str] = None
    description: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    timezone: Optional[str] = None


class TableIn(BaseModel):
    label: str
    seats: int = 2
    area_name: Optional[str] = None
    pos_x: int = 0
    pos_y: int = 0


class MenuItemIn(BaseModel):
    id: Optional[int] = None
    name: str
    price: float
    description: Optional[str] = None
    category_name: Optional[str] = None


class SetupIn(BaseModel):
    """Full table layout and menu of a restaurant."""

    tables: List[TableIn] = Field(default_factory=list)
    menu_items: List[MenuItemIn] = Field(default_factory=list)


class ProfileIn(BaseModel):
    name: Optional[str] = None
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    cuisine_type: Optional[str] = None
    description: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    timezone: Optional[str] = None


class NotificationSettingsIn(BaseModel):
    """Partial notification settings; omitted keys keep their value."""

    model_config = ConfigDict(extra="forbid")

    sound_enabled: Optional[bool] = None
    sound_volume: Optional[int] = Field(default=None, ge=0, le=100)
    browser_notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    order_complete_sound: Optional[str] = None
    warning_sound: Optional[str] = None
    integration_sound: Optional[str] = None
    general_sound: Optional[str] = None


class ExpenseIn(BaseModel):
    description: str
    amount: float
    category: Optional[str] = None
    spent_at: Optional[datetime] = None


def _ts(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "table_label": order.table_label,
        "order_type": order.order_type,
        "order_number": order.order_number,
        "business_day": order.business_day.isoformat() if order.business_day else None,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "items": list(order.items or []),
        "total_amount": float(order.total_amount),
        "status": order.status,
        "payment_method": order.payment_method,
        "created_at": _ts(order.created_at),
        "updated_at": _ts(order.updated_at),
        "completed_at": _ts(order.completed_at),
    }


def table_to_dict(table: RestaurantTable) -> dict:
    return {
        "id": table.id,
        "label": table.label,
        "seats": table.seats,
        "area_name": table.area_name,
        "status": table.status,
        "pos_x": table.pos_x,
        "pos_y": table.pos_y,
    }


def menu_item_to_dict(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "price": float(item.price),
        "description": item.description,
        "category_name": item.category_name,
    }


def restaurant_to_dict(
    restaurant: Restaurant,
    tables: List[RestaurantTable] | None = None,
    menu: List[MenuItem] | None = None,
) -> dict:
    data = {
        "id": restaurant.id,
        "name": restaurant.name,
        "owner_name": restaurant.owner_name,
        "email": restaurant.email,
        "phone": restaurant.phone,
        "address": restaurant.address,
        "cuisine_type": restaurant.cuisine_type,
        "description": restaurant.description,
        "open_time": restaurant.open_time,
        "close_time": restaurant.close_time,
        "timezone": restaurant.timezone,
        "setup_complete": restaurant.setup_complete,
        "notification_settings": notification_settings(restaurant),
    }
    if tables is not None:
        data["tables"] = [table_to_dict(t) for t in tables]
    if menu is not None:
        data["menu_items"] = [menu_item_to_dict(m) for m in menu]
    return data


def expense_to_dict(expense: Expense) -> dict:
    return {
        "id": expense.id,
        "description": expense.description,
        "amount": float(expense.amount),
        "category": expense.category,
        "spent_at": _ts(expense.spent_at),
    }


def summary_to_dict(summary: DailySummary) -> dict:
    return {
        "date": summary.date.isoformat(),
        "revenue": float(summary.revenue or 0),
        "expenses": float(summary.expenses or 0),
        "profit": float(summary.profit or 0),
        "order_count": summary.order_count,
        "takeaway_count": summary.takeaway_count,
        "dine_in_count": summary.dine_in_count,
    }
