"""add restaurant notification settings

Revision ID: 0002_notification_settings
Revises: 0001_create_pos_schema
Create Date: 2025-02-03
"""

import sqlalchemy as sa
from alembic import op

revision: str = "0002_notification_settings"
down_revision: str | None = "0001_create_pos_schema"
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    cols = {c["name"] for c in insp.get_columns("restaurants")}
    if "notification_settings" not in cols:
        op.add_column(
            "restaurants",
            sa.Column("notification_settings", sa.JSON(), nullable=True),
        )


def downgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    cols = {c["name"] for c in insp.get_columns("restaurants")}
    if "notification_settings" in cols:
        op.drop_column("restaurants", "notification_settings")
