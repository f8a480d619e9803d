"""Database models for restaurants, tables, orders and summaries.

These models describe the schema used by the application. They are kept
isolated from any application wiring so that they can be used in tests or
migrations independently. Every row below a restaurant carries its
``restaurant_id`` and every query filters on it."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import declarative_base

from .domain import OrderStatus, OrderType, TableStatus

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Restaurant(Base):
    """Aggregate root for one restaurant."""

    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    owner_name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    phone = Column(String, nullable=False)
    address = Column(String, nullable=False)
    cuisine_type = Column(String, nullable=False, default="Multi-Cuisine")
    description = Column(Text, nullable=False, default="")
    open_time = Column(String(5), nullable=False, default="09:00")
    close_time = Column(String(5), nullable=False, default="22:00")
    timezone = Column(String, nullable=True)
    setup_complete = Column(Boolean, nullable=False, default=False)
    # Stored overrides only; see restaurants_repo_sql.NOTIFICATION_DEFAULTS.
    notification_settings = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class RestaurantTable(Base):
    """A physical table; ``status`` is owned by the order service."""

    __tablename__ = "restaurant_tables"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "label", name="uq_tables_restaurant_label"),
    )

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(
        String(36), ForeignKey("restaurants.id"), nullable=False, index=True
    )
    label = Column(String, nullable=False)
    seats = Column(Integer, nullable=False, default=2)
    area_name = Column(String, nullable=True)
    status = Column(String(16), nullable=False, default=TableStatus.FREE.value)
    pos_x = Column(Integer, nullable=False, server_default="0", default=0)
    pos_y = Column(Integer, nullable=False, server_default="0", default=0)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class MenuItem(Base):
    """Menu entries offered by a restaurant."""

    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(
        String(36), ForeignKey("restaurants.id"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    description = Column(Text, nullable=True)
    category_name = Column(String, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)


class Expense(Base):
    """Money spent by the restaurant, counted against revenue."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(
        String(36), ForeignKey("restaurants.id"), nullable=False, index=True
    )
    description = Column(String, nullable=False)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    category = Column(String, nullable=True)
    spent_at = Column(DateTime(timezone=True), nullable=False)


class Order(Base):
    """Dine-in or takeaway order.

    The partial unique index on ``(restaurant_id, table_label)`` for active
    rows is what makes opening a dine-in order a conditional write: a second
    concurrent insert for the same table fails instead of creating a twin.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index(
            "uq_orders_active_table",
            "restaurant_id",
            "table_label",
            unique=True,
            sqlite_where=text(f"status = '{OrderStatus.ACTIVE.value}'"),
            postgresql_where=text(f"status = '{OrderStatus.ACTIVE.value}'"),
        ),
        UniqueConstraint(
            "restaurant_id",
            "business_day",
            "order_number",
            name="uq_orders_takeaway_number",
        ),
        Index("ix_orders_restaurant_status", "restaurant_id", "status"),
        Index("ix_orders_restaurant_completed", "restaurant_id", "completed_at"),
    )

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    table_label = Column(String, nullable=False)
    order_type = Column(String(16), nullable=False, default=OrderType.DINE_IN.value)
    order_number = Column(String(16), nullable=True)
    order_seq = Column(Integer, nullable=True)
    business_day = Column(Date, nullable=False)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    items = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    status = Column(String(16), nullable=False)
    payment_method = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class TakeawayCounter(Base):
    """Per restaurant, per day sequence for takeaway order numbers."""

    __tablename__ = "takeaway_counters"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "business_day", name="uq_takeaway_counters_day"
        ),
    )

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String(36), nullable=False)
    business_day = Column(Date, nullable=False)
    current = Column(Integer, nullable=False, default=0)


class DailySummary(Base):
    """Recomputable financial rollup for one restaurant and day."""

    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "date", name="uq_daily_summaries_day"),
    )

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    date = Column(Date, nullable=False)
    revenue = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    expenses = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    profit = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    order_count = Column(Integer, nullable=False, default=0)
    takeaway_count = Column(Integer, nullable=False, default=0)
    dine_in_count = Column(Integer, nullable=False, default=0)


__all__ = [
    "Base",
    "Restaurant",
    "RestaurantTable",
    "MenuItem",
    "Expense",
    "Order",
    "TakeawayCounter",
    "DailySummary",
]
