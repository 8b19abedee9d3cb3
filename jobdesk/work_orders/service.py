from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from opentelemetry import trace

from jobdesk.equipment import EquipmentDirectory, resolve_in_order
from jobdesk.errors import InvalidSubmissionError, InvalidTransitionError, NoValidEquipmentError, WorkOrderNotFoundError
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.ids import lock_name
from jobdesk.tickets.preview import DEFAULT_MAX_ITEMS, ensure_batch_size

from .grouping import normalize_text
from .models import DraftItem, Priority, WorkOrder, WorkOrderDraft, WorkOrderPage, WorkType
from .repository import WorkOrderRepository
from .state import WorkOrderStateMachine, WorkOrderStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True)
class GroupSubmission:
    """Request to create one work order for one location group."""

    equipment_ids: Sequence[str]
    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None = None
    location_id: str | None = None
    site: str = ""
    area: str = ""
    assignee_ids: Sequence[str] = field(default_factory=list)
    notes: str = ""


@dataclass(slots=True, frozen=True)
class GroupReceipt:
    order_number: str
    item_count: int
    work_order_id: str | None = None


def validate_submission(submission: GroupSubmission, max_items: int) -> None:
    if not submission.equipment_ids:
        raise InvalidSubmissionError("At least one equipment id is required")
    ensure_batch_size(submission.equipment_ids, max_items)
    if not submission.location_id and not (
        normalize_text(submission.site) and normalize_text(submission.area)
    ):
        raise InvalidSubmissionError("Either a location id or both site and area are required")


@dataclass(slots=True)
class WorkOrderService:
    """Create and manage work orders for location groups."""

    repository: WorkOrderRepository
    directory: EquipmentDirectory
    allocator: TicketAllocator
    max_items: int = DEFAULT_MAX_ITEMS

    async def create_work_order(
        self, submission: GroupSubmission, *, actor: str, now: datetime | None = None
    ) -> GroupReceipt:
        validate_submission(submission, self.max_items)
        found = await self.directory.get_many(submission.equipment_ids)
        resolved = resolve_in_order(submission.equipment_ids, found)
        if not resolved:
            raise NoValidEquipmentError(
                "No valid equipment items found",
                details={"equipment_ids": list(submission.equipment_ids)},
            )

        first = resolved[0]
        draft = WorkOrderDraft(
            location_id=submission.location_id or None,
            site=normalize_text(submission.site) or normalize_text(first.site),
            area=normalize_text(submission.area) or normalize_text(first.area),
            work_type=submission.work_type,
            priority=submission.priority,
            scheduled_at=submission.scheduled_at,
            notes=submission.notes.strip(),
            assignee_ids=list(submission.assignee_ids),
            items=[
                DraftItem(equipment_id=item.id, name=item.name, tag=item.tag, serial_number=item.serial_number)
                for item in resolved
            ],
            submitted_by=actor,
        )

        prefix = self.allocator.prefix_for(now)
        with tracer.start_as_current_span("work_orders.create") as span:
            span.set_attribute("work_order.item_count", len(draft.items))
            async with self.allocator.lock.hold(lock_name(prefix)):
                work_order = await self.repository.create_work_order(draft, prefix=prefix)
            span.set_attribute("work_order.order_number", work_order.order_number)

        logger.info(
            "work_order_created",
            extra={
                "order_number": work_order.order_number,
                "item_count": work_order.item_count,
                "first_ticket": work_order.line_items[0].ticket_id,
                "last_ticket": work_order.line_items[-1].ticket_id,
                "actor": actor,
            },
        )
        return GroupReceipt(
            order_number=work_order.order_number,
            item_count=work_order.item_count,
            work_order_id=work_order.id,
        )

    async def get_work_order(self, work_order_id: str) -> WorkOrder:
        work_order = await self.repository.get_work_order(work_order_id)
        if work_order is None:
            raise WorkOrderNotFoundError(f"Work order {work_order_id} not found")
        return work_order

    async def list_work_orders(
        self, *, status: WorkOrderStatus | None = None, page: int = 1, page_size: int = 10
    ) -> WorkOrderPage:
        return await self.repository.list_work_orders(status=status, page=page, page_size=page_size)

    async def change_work_order_status(
        self, work_order_id: str, *, new_status: WorkOrderStatus, actor: str
    ) -> WorkOrder:
        work_order = await self.get_work_order(work_order_id)
        if not WorkOrderStateMachine.can_transition(work_order.status, new_status):
            raise InvalidTransitionError(
                f"Cannot transition {work_order.status.value} -> {new_status.value}",
                details={"work_order_id": work_order_id},
            )
        updated = await self.repository.update_status(work_order_id, new_status)
        if updated is None:
            raise WorkOrderNotFoundError(f"Work order {work_order_id} not found")
        logger.info(
            "work_order_status_changed",
            extra={"order_number": updated.order_number, "status": new_status.value, "actor": actor},
        )
        return updated
