from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Mapping, Sequence

import pytest

from jobdesk.equipment import Equipment
from jobdesk.errors import OrderNumberConflictError, SequenceExhaustedError
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.ids import MAX_SEQUENCE, disambiguate_order_number, format_ticket, order_number_for
from jobdesk.tickets.locks import LocalNamedLock
from jobdesk.work_orders.models import LineItem, TaskRecord, WorkOrder, WorkOrderDraft, task_description
from jobdesk.work_orders.state import ApprovalStatus, WorkOrderStatus, WorkStatus

NOW_2025 = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class InMemorySequenceStore:
    """Counter store that yields to the event loop between read and write."""

    def __init__(self, values: Mapping[str, int] | None = None) -> None:
        self.values: dict[str, int] = dict(values or {})
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[tuple[str, int]] = []

    async def current_sequence(self, prefix: str) -> int:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise ConnectionError("database is down")
        return self.values.get(prefix, 0)

    async def store_sequence(self, prefix: str, value: int) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise ConnectionError("database is down")
        self.writes.append((prefix, value))
        self.values[prefix] = max(self.values.get(prefix, 0), value)


class FakeDirectory:
    def __init__(self, equipment: Sequence[Equipment] = ()) -> None:
        self.equipment = {item.id: item for item in equipment}

    async def get_many(self, equipment_ids: Sequence[str]) -> Mapping[str, Equipment]:
        return {eid: self.equipment[eid] for eid in equipment_ids if eid in self.equipment}


class FakeOpenTasks:
    def __init__(self, open_ids: set[str] | None = None) -> None:
        self.open_ids = set(open_ids or ())

    async def open_equipment_ids(self, equipment_ids: Sequence[str]) -> set[str]:
        return {eid for eid in equipment_ids if eid in self.open_ids}


class InMemoryWorkOrderRepository:
    """Mirrors the transactional creation of the SQL repository in memory."""

    def __init__(self, store: InMemorySequenceStore) -> None:
        self.store = store
        self.work_orders: dict[str, WorkOrder] = {}
        self.tasks: list[TaskRecord] = []
        self.failures: list[Exception] = []
        self.calls = 0

    async def create_work_order(self, draft: WorkOrderDraft, *, prefix: str) -> WorkOrder:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        base = self.store.values.get(prefix, 0)
        count = len(draft.items)
        if base + count > MAX_SEQUENCE:
            raise SequenceExhaustedError("exhausted")
        order_number = order_number_for(format_ticket(prefix, base + 1))
        if any(order.order_number == order_number for order in self.work_orders.values()):
            order_number = disambiguate_order_number(order_number)
        if any(order.order_number == order_number for order in self.work_orders.values()):
            raise OrderNumberConflictError("order number taken")

        now = datetime.now(timezone.utc)
        work_order_id = str(uuid.uuid4())
        line_items = []
        for offset, item in enumerate(draft.items, start=1):
            ticket_id = format_ticket(prefix, base + offset)
            line_items.append(LineItem(item.equipment_id, ticket_id, item.name, item.tag, item.serial_number))
            self.tasks.append(
                TaskRecord(
                    id=str(uuid.uuid4()),
                    ticket_id=ticket_id,
                    equipment_id=item.equipment_id,
                    work_order_id=work_order_id,
                    work_type=draft.work_type,
                    priority=draft.priority,
                    scheduled_at=draft.scheduled_at,
                    assignee_ids=list(draft.assignee_ids),
                    description=task_description(order_number, item.name, draft.notes),
                    approval_status=ApprovalStatus.PENDING,
                    work_status=WorkStatus.PENDING,
                    created_by=draft.submitted_by,
                    created_at=now,
                    updated_at=now,
                )
            )
        work_order = WorkOrder(
            id=work_order_id,
            order_number=order_number,
            location_id=draft.location_id,
            site=draft.site,
            area=draft.area,
            status=WorkOrderStatus.SUBMITTED,
            work_type=draft.work_type,
            priority=draft.priority,
            scheduled_at=draft.scheduled_at,
            notes=draft.notes,
            line_items=line_items,
            submitted_by=draft.submitted_by,
            submitted_at=now,
            updated_at=now,
        )
        self.work_orders[work_order_id] = work_order
        self.store.values[prefix] = base + count
        return work_order


def make_equipment(
    equipment_id: str,
    *,
    location_id: str | None = None,
    site: str = "Main Campus",
    area: str = "Boiler Room",
    name: str | None = None,
    tag: str | None = None,
) -> Equipment:
    return Equipment(
        id=equipment_id,
        name=name or f"Pump {equipment_id}",
        tag=tag or f"TAG-{equipment_id}",
        serial_number=f"SN-{equipment_id}",
        location_id=location_id,
        site=site,
        area=area,
    )


@pytest.fixture
def sequence_store() -> InMemorySequenceStore:
    return InMemorySequenceStore()


@pytest.fixture
def allocator(sequence_store: InMemorySequenceStore) -> TicketAllocator:
    return TicketAllocator(
        sequence_store,
        LocalNamedLock(timeout=1.0),
        clock=lambda: NOW_2025,
        fallback_clock_ns=lambda: 1_700_000_000_123_456_789,
    )
