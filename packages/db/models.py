"""SQLModel table definitions for the JobDesk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class EquipmentTable(SQLModel, table=True):
    """Equipment directory, read-only from this service."""

    __tablename__ = "equipment"

    id: str = Field(primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    tag: str = Field(default="", sa_column=Column(String(100), nullable=False, server_default=""))
    serial_number: str = Field(default="", sa_column=Column(String(100), nullable=False, server_default=""))
    location_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    site: str = Field(default="", sa_column=Column(String(255), nullable=False, server_default=""))
    area: str = Field(default="", sa_column=Column(String(255), nullable=False, server_default=""))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketCounterTable(SQLModel, table=True):
    """Last issued sequence value per two-digit year prefix."""

    __tablename__ = "ticket_counters"

    prefix: str = Field(sa_column=Column(String(2), primary_key=True))
    last_value: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class WorkOrderTable(SQLModel, table=True):
    """One work order per location group per submission."""

    __tablename__ = "work_orders"
    __table_args__ = (UniqueConstraint("order_number", name="uq_work_orders_order_number"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    order_number: str = Field(sa_column=Column(String(32), nullable=False))
    location_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    site: str = Field(default="", sa_column=Column(String(255), nullable=False, server_default=""))
    area: str = Field(default="", sa_column=Column(String(255), nullable=False, server_default=""))
    status: str = Field(sa_column=Column(String(50), nullable=False))
    work_type: str = Field(sa_column=Column(String(50), nullable=False))
    priority: str = Field(sa_column=Column(String(50), nullable=False))
    scheduled_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    notes: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    line_items: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    submitted_by: str = Field(sa_column=Column(String(255), nullable=False))
    submitted_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TaskRecordTable(SQLModel, table=True):
    """Task records, one per work-order line item or single-task request."""

    __tablename__ = "task_records"
    __table_args__ = (UniqueConstraint("ticket_id", name="uq_task_records_ticket_id"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(sa_column=Column(String(16), nullable=False))
    equipment_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    work_order_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True, index=True))
    position: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    work_type: str = Field(sa_column=Column(String(50), nullable=False))
    priority: str = Field(sa_column=Column(String(50), nullable=False))
    scheduled_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    assignee_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    approval_status: str = Field(sa_column=Column(String(50), nullable=False))
    work_status: str = Field(sa_column=Column(String(50), nullable=False))
    approval_note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    decided_by: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    decided_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_by: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
