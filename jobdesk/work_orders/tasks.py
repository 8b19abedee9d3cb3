from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

from jobdesk.equipment import EquipmentDirectory
from jobdesk.errors import InvalidSubmissionError, InvalidTransitionError, TaskNotFoundError
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.preview import DEFAULT_MAX_ITEMS, ensure_batch_size

from .models import Priority, TaskDraft, TaskRecord, WorkType
from .repository import TaskRepository
from .state import ApprovalStateMachine, ApprovalStatus, WorkStateMachine, WorkStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskImportRow:
    equipment_id: str
    work_type: WorkType
    priority: Priority = Priority.MEDIUM
    scheduled_at: datetime | None = None
    assignee_ids: Sequence[str] = field(default_factory=list)
    description: str = ""


@dataclass(slots=True)
class TaskService:
    """Single task creation, bulk import and the approval/work lifecycle."""

    repository: TaskRepository
    directory: EquipmentDirectory
    allocator: TicketAllocator
    max_items: int = DEFAULT_MAX_ITEMS

    async def create_task(
        self,
        *,
        equipment_id: str,
        work_type: WorkType,
        priority: Priority,
        scheduled_at: datetime | None,
        assignee_ids: Sequence[str],
        description: str,
        actor: str,
        now: datetime | None = None,
    ) -> TaskRecord:
        found = await self.directory.get_many([equipment_id])
        if equipment_id not in found:
            raise InvalidSubmissionError(
                f"Unknown equipment {equipment_id}", details={"equipment_id": equipment_id}
            )
        ticket_id = await self.allocator.allocate_ticket(now)
        draft = TaskDraft(
            equipment_id=equipment_id,
            description=description,
            work_type=work_type,
            priority=priority,
            scheduled_at=scheduled_at,
            assignee_ids=list(assignee_ids),
        )
        return await self.repository.insert_task(draft, ticket_id=ticket_id, actor=actor)

    async def import_tasks(
        self, rows: Sequence[TaskImportRow], *, actor: str, now: datetime | None = None
    ) -> list[TaskRecord]:
        """Create one task per row in a single transaction.

        Every row must reference known equipment; a storage failure keeps none of them.
        """

        if not rows:
            raise InvalidSubmissionError("No rows provided")
        ensure_batch_size(rows, self.max_items)
        found = await self.directory.get_many([row.equipment_id for row in rows])
        missing = sorted({row.equipment_id for row in rows if row.equipment_id not in found})
        if missing:
            raise InvalidSubmissionError(
                "Some rows do not match any equipment record",
                details={"missing_equipment_ids": missing},
            )

        entries: list[tuple[TaskDraft, str]] = []
        for row in rows:
            ticket_id = await self.allocator.next_ticket_or_fallback(now)
            draft = TaskDraft(
                equipment_id=row.equipment_id,
                description=row.description,
                work_type=row.work_type,
                priority=row.priority,
                scheduled_at=row.scheduled_at,
                assignee_ids=list(row.assignee_ids),
            )
            entries.append((draft, ticket_id))
        created = await self.repository.insert_tasks(entries, actor=actor)
        logger.info("tasks_imported", extra={"count": len(created), "actor": actor})
        return created

    async def get_task(self, task_id: str) -> TaskRecord:
        task = await self.repository.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    async def decide_approval(self, task_id: str, *, approved: bool, note: str | None, actor: str) -> TaskRecord:
        task = await self.get_task(task_id)
        target = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        if not ApprovalStateMachine.can_transition(task.approval_status, target):
            raise InvalidTransitionError(
                f"Task {task.ticket_id} is already {task.approval_status.value}",
                details={"task_id": task_id},
            )
        updated = await self.repository.update_fields(
            task_id,
            approval_status=target.value,
            approval_note=note,
            decided_by=actor,
            decided_at=datetime.now(timezone.utc),
        )
        if updated is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return updated

    async def change_work_status(self, task_id: str, *, new_status: WorkStatus, actor: str) -> TaskRecord:
        task = await self.get_task(task_id)
        if task.approval_status is not ApprovalStatus.APPROVED:
            raise InvalidTransitionError(
                f"Task {task.ticket_id} must be approved before work can change",
                details={"task_id": task_id, "approval_status": task.approval_status.value},
            )
        if not WorkStateMachine.can_transition(task.work_status, new_status):
            raise InvalidTransitionError(
                f"Cannot transition {task.work_status.value} -> {new_status.value}",
                details={"task_id": task_id},
            )
        updated = await self.repository.update_fields(task_id, work_status=new_status.value)
        if updated is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        logger.info(
            "task_work_status_changed",
            extra={"ticket_id": updated.ticket_id, "status": new_status.value, "actor": actor},
        )
        return updated
