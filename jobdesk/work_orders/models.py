from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Sequence

from .state import ApprovalStatus, WorkOrderStatus, WorkStatus


class WorkType(str, Enum):
    PREVENTIVE_MAINTENANCE = "preventive_maintenance"
    CORRECTIVE_MAINTENANCE = "corrective_maintenance"
    INSTALL = "install"
    ASSESS = "assess"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(slots=True)
class LineItem:
    """Equipment snapshot captured when the work order was submitted."""

    equipment_id: str
    ticket_id: str
    name: str
    tag: str = ""
    serial_number: str = ""

    def to_json(self) -> dict[str, str]:
        return {
            "equipment_id": self.equipment_id,
            "ticket_id": self.ticket_id,
            "name": self.name,
            "tag": self.tag,
            "serial_number": self.serial_number,
        }

    @classmethod
    def from_json(cls, payload: dict[str, str]) -> "LineItem":
        return cls(
            equipment_id=str(payload["equipment_id"]),
            ticket_id=str(payload["ticket_id"]),
            name=str(payload.get("name", "")),
            tag=str(payload.get("tag", "")),
            serial_number=str(payload.get("serial_number", "")),
        )


@dataclass(slots=True)
class WorkOrder:
    """Work order covering one location group of a submission."""

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
    line_items: Sequence[LineItem]
    submitted_by: str
    submitted_at: datetime
    updated_at: datetime

    @property
    def item_count(self) -> int:
        return len(self.line_items)


@dataclass(slots=True)
class TaskRecord:
    id: str
    ticket_id: str
    equipment_id: str
    work_order_id: str | None
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None
    assignee_ids: Sequence[str]
    description: str
    approval_status: ApprovalStatus
    work_status: WorkStatus
    created_by: str
    created_at: datetime
    updated_at: datetime
    approval_note: str | None = None
    decided_by: str | None = None
    decided_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        if self.approval_status is ApprovalStatus.PENDING:
            return True
        return self.approval_status is ApprovalStatus.APPROVED and self.work_status is WorkStatus.PENDING


@dataclass(slots=True)
class TaskDraft:
    """Fields of a task row before its ticket is assigned."""

    equipment_id: str
    description: str
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None
    assignee_ids: Sequence[str] = field(default_factory=list)


@dataclass(slots=True)
class WorkOrderDraft:
    """Everything needed to persist one work order and its task rows."""

    location_id: str | None
    site: str
    area: str
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None
    notes: str
    assignee_ids: Sequence[str]
    items: Sequence["DraftItem"]
    submitted_by: str


@dataclass(slots=True)
class DraftItem:
    equipment_id: str
    name: str
    tag: str = ""
    serial_number: str = ""


@dataclass(slots=True)
class WorkOrderPage:
    items: list[WorkOrder]
    total: int
    page: int
    page_size: int


def task_description(order_number: str, equipment_name: str, notes: str = "") -> str:
    """``Work Order <no> - <equipment name>`` followed by any notes."""

    description = f"Work Order {order_number} - {equipment_name}"
    if notes:
        description = f"{description}\n\nNotes: {notes}"
    return description
