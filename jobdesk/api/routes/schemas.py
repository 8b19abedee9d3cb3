"""Request and response bodies shared by the route modules."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from jobdesk.work_orders.models import Priority, WorkType
from jobdesk.work_orders.state import ApprovalStatus, WorkOrderStatus, WorkStatus


class ErrorBody(BaseModel):
    code: str
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
    details: dict | list | None = None


class WorkFields(BaseModel):
    work_type: WorkType
    priority: Priority = Priority.MEDIUM
    scheduled_at: datetime | None = None
    assignee_ids: list[str] = Field(default_factory=list)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    equipment_id: str
    work_order_id: str | None
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None
    assignee_ids: list[str]
    description: str
    approval_status: ApprovalStatus
    work_status: WorkStatus
    approval_note: str | None = None
    decided_by: str | None = None
    decided_at: datetime | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    equipment_id: str
    ticket_id: str
    name: str
    tag: str
    serial_number: str


class WorkOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    location_id: str | None
    site: str
    area: str
    status: WorkOrderStatus
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None
    notes: str
    item_count: int
    line_items: list[LineItemResponse]
    submitted_by: str
    submitted_at: datetime
    updated_at: datetime
