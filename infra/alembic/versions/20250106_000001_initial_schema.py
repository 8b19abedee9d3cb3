"""Initial JobDesk schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250106_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "equipment",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("tag", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("serial_number", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.Column("site", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("area", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_equipment_location_id", "equipment", ["location_id"])

    op.create_table(
        "ticket_counters",
        sa.Column("prefix", sa.String(length=2), primary_key=True, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "work_orders",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("order_number", sa.String(length=32), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.Column("site", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("area", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("work_type", sa.String(length=50), nullable=False),
        sa.Column("priority", sa.String(length=50), nullable=False),
        sa.Column("scheduled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("line_items", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("submitted_by", sa.String(length=255), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("order_number", name="uq_work_orders_order_number"),
    )

    op.create_table(
        "task_records",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_id", sa.String(length=16), nullable=False),
        sa.Column("equipment_id", sa.String(length=64), nullable=False),
        sa.Column("work_order_id", sa.String(length=36), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("work_type", sa.String(length=50), nullable=False),
        sa.Column("priority", sa.String(length=50), nullable=False),
        sa.Column("scheduled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("assignee_ids", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("approval_status", sa.String(length=50), nullable=False),
        sa.Column("work_status", sa.String(length=50), nullable=False),
        sa.Column("approval_note", sa.Text(), nullable=True),
        sa.Column("decided_by", sa.String(length=255), nullable=True),
        sa.Column("decided_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("ticket_id", name="uq_task_records_ticket_id"),
    )
    op.create_index("ix_task_records_equipment_id", "task_records", ["equipment_id"])
    op.create_index("ix_task_records_work_order_id", "task_records", ["work_order_id"])


def downgrade() -> None:
    op.drop_index("ix_task_records_work_order_id", table_name="task_records")
    op.drop_index("ix_task_records_equipment_id", table_name="task_records")
    op.drop_table("task_records")
    op.drop_table("work_orders")
    op.drop_table("ticket_counters")
    op.drop_index("ix_equipment_location_id", table_name="equipment")
    op.drop_table("equipment")
