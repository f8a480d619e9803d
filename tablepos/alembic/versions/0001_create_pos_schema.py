"""create restaurant, table, order and summary tables

Revision ID: 0001_create_pos_schema
Revises: None
Create Date: 2025-01-06
"""

from alembic import op
import sqlalchemy as sa


revision: str = "0001_create_pos_schema"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "restaurants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("cuisine_type", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("open_time", sa.String(5), nullable=False),
        sa.Column("close_time", sa.String(5), nullable=False),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("setup_complete", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "restaurant_tables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.String(36), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("seats", sa.Integer(), nullable=False),
        sa.Column("area_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("pos_x", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pos_y", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("restaurant_id", "label", name="uq_tables_restaurant_label"),
    )
    op.create_index(
        "ix_restaurant_tables_restaurant_id", "restaurant_tables", ["restaurant_id"]
    )

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.String(36), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_name", sa.String(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_menu_items_restaurant_id", "menu_items", ["restaurant_id"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.String(36), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("spent_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_expenses_restaurant_id", "expenses", ["restaurant_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.String(36), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("table_label", sa.String(), nullable=False),
        sa.Column("order_type", sa.String(16), nullable=False),
        sa.Column("order_number", sa.String(16), nullable=True),
        sa.Column("order_seq", sa.Integer(), nullable=True),
        sa.Column("business_day", sa.Date(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "restaurant_id",
            "business_day",
            "order_number",
            name="uq_orders_takeaway_number",
        ),
    )
    op.create_index(
        "uq_orders_active_table",
        "orders",
        ["restaurant_id", "table_label"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_orders_restaurant_status", "orders", ["restaurant_id", "status"])
    op.create_index(
        "ix_orders_restaurant_completed", "orders", ["restaurant_id", "completed_at"]
    )

    op.create_table(
        "takeaway_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(36), nullable=False),
        sa.Column("business_day", sa.Date(), nullable=False),
        sa.Column("current", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "restaurant_id", "business_day", name="uq_takeaway_counters_day"
        ),
    )

    op.create_table(
        "daily_summaries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.String(36), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("revenue", sa.Numeric(12, 2), nullable=False),
        sa.Column("expenses", sa.Numeric(12, 2), nullable=False),
        sa.Column("profit", sa.Numeric(12, 2), nullable=False),
        sa.Column("order_count", sa.Integer(), nullable=False),
        sa.Column("takeaway_count", sa.Integer(), nullable=False),
        sa.Column("dine_in_count", sa.Integer(), nullable=False),
        sa.UniqueConstraint("restaurant_id", "date", name="uq_daily_summaries_day"),
    )


def downgrade() -> None:
    op.drop_table("daily_summaries")
    op.drop_table("takeaway_counters")
    op.drop_index("ix_orders_restaurant_completed", table_name="orders")
    op.drop_index("ix_orders_restaurant_status", table_name="orders")
    op.drop_index("uq_orders_active_table", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_expenses_restaurant_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_menu_items_restaurant_id", table_name="menu_items")
    op.drop_table("menu_items")
    op.drop_index("ix_restaurant_tables_restaurant_id", table_name="restaurant_tables")
    op.drop_table("restaurant_tables")
    op.drop_table("restaurants")
