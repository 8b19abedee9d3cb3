from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import func, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from jobdesk.errors import (
    ConflictError,
    DuplicateTicketError,
    JobDeskError,
    OrderNumberConflictError,
    SequenceExhaustedError,
    StorageUnavailableError,
)
from jobdesk.tickets.ids import MAX_SEQUENCE, disambiguate_order_number, format_ticket, order_number_for
from jobdesk.tickets.repository import read_sequence, write_sequence
from packages.db.models import TaskRecordTable, WorkOrderTable

from .models import (
    LineItem,
    Priority,
    TaskDraft,
    TaskRecord,
    WorkOrder,
    WorkOrderDraft,
    WorkOrderPage,
    WorkType,
    task_description,
)
from .state import ApprovalStatus, WorkOrderStatus, WorkStatus

_CONSTRAINT_ERRORS: dict[str, type[ConflictError]] = {
    "uq_task_records_ticket_id": DuplicateTicketError,
    "uq_work_orders_order_number": OrderNumberConflictError,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _constraint_name(exc: IntegrityError) -> str | None:
    orig = exc.orig
    name = getattr(orig, "constraint_name", None)
    if name is None:
        name = getattr(getattr(orig, "__cause__", None), "constraint_name", None)
    return name


def _translate(exc: DBAPIError) -> JobDeskError:
    if isinstance(exc, IntegrityError):
        constraint = _constraint_name(exc)
        error_cls = _CONSTRAINT_ERRORS.get(constraint or "", ConflictError)
        return error_cls("Unique constraint rejected the write", details={"constraint": constraint})
    return StorageUnavailableError("Work order storage unavailable")


class WorkOrderRepository:
    """Atomic creation and lookup of work orders with their task rows."""

    _INSERT_TASKS_SQL = text(
        """
        INSERT INTO task_records (
            id, ticket_id, equipment_id, work_order_id, position,
            work_type, priority, scheduled_at, assignee_ids, description,
            approval_status, work_status, created_by, created_at, updated_at
        )
        SELECT
            item.task_id,
            CAST(:prefix AS TEXT) || '-' || lpad(
                CAST(CAST(:base AS INTEGER) + row_number() OVER (ORDER BY item.position) AS TEXT), 4, '0'
            ),
            item.equipment_id,
            CAST(:work_order_id AS TEXT),
            item.position,
            CAST(:work_type AS TEXT),
            CAST(:priority AS TEXT),
            CAST(:scheduled_at AS TIMESTAMPTZ),
            CAST(:assignee_ids AS JSON),
            item.description,
            'pending',
            'pending',
            CAST(:created_by AS TEXT),
            CAST(:now AS TIMESTAMPTZ),
            CAST(:now AS TIMESTAMPTZ)
        FROM unnest(
            CAST(:task_ids AS TEXT[]),
            CAST(:equipment_ids AS TEXT[]),
            CAST(:descriptions AS TEXT[])
        ) WITH ORDINALITY AS item(task_id, equipment_id, description, position)
        RETURNING equipment_id, ticket_id, position
        """
    )

    _ORDER_NUMBER_EXISTS_SQL = text("SELECT 1 FROM work_orders WHERE order_number = :order_number")

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def create_work_order(self, draft: WorkOrderDraft, *, prefix: str) -> WorkOrder:
        """Insert the task rows and the work order in one transaction.

        Tickets are ``base + row_number()`` in item order and the counter is
        advanced once by the item count. The caller must hold the year lock.
        """

        count = len(draft.items)
        if count == 0:
            raise ValueError("A work order needs at least one item")
        now = _utcnow()
        work_order_id = str(uuid.uuid4())
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    base = await read_sequence(session, prefix)
                    if base + count > MAX_SEQUENCE:
                        raise SequenceExhaustedError(
                            f"Ticket sequence for year {prefix} cannot fit {count} more tickets",
                            details={"prefix": prefix, "current": base, "requested": count},
                        )
                    order_number = await self._available_order_number(
                        session, order_number_for(format_ticket(prefix, base + 1))
                    )
                    result = await session.execute(
                        self._INSERT_TASKS_SQL,
                        {
                            "prefix": prefix,
                            "base": base,
                            "work_order_id": work_order_id,
                            "work_type": draft.work_type.value,
                            "priority": draft.priority.value,
                            "scheduled_at": draft.scheduled_at,
                            "assignee_ids": json.dumps(list(draft.assignee_ids)),
                            "created_by": draft.submitted_by,
                            "now": now,
                            "task_ids": [str(uuid.uuid4()) for _ in draft.items],
                            "equipment_ids": [item.equipment_id for item in draft.items],
                            "descriptions": [
                                task_description(order_number, item.name, draft.notes) for item in draft.items
                            ],
                        },
                    )
                    tickets = {row.position: row.ticket_id for row in result.all()}
                    line_items = [
                        LineItem(
                            equipment_id=item.equipment_id,
                            ticket_id=tickets[position],
                            name=item.name,
                            tag=item.tag,
                            serial_number=item.serial_number,
                        )
                        for position, item in enumerate(draft.items, start=1)
                    ]
                    row = WorkOrderTable(
                        id=work_order_id,
                        order_number=order_number,
                        location_id=draft.location_id,
                        site=draft.site,
                        area=draft.area,
                        status=WorkOrderStatus.SUBMITTED.value,
                        work_type=draft.work_type.value,
                        priority=draft.priority.value,
                        scheduled_at=draft.scheduled_at,
                        notes=draft.notes,
                        line_items=[item.to_json() for item in line_items],
                        submitted_by=draft.submitted_by,
                        submitted_at=now,
                        updated_at=now,
                    )
                    session.add(row)
                    await session.flush()
                    await write_sequence(session, prefix, base + count)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return self._table_to_work_order(row)

    async def _available_order_number(self, session: AsyncSession, order_number: str) -> str:
        result = await session.execute(self._ORDER_NUMBER_EXISTS_SQL, {"order_number": order_number})
        if result.first() is None:
            return order_number
        return disambiguate_order_number(order_number)

    async def get_work_order(self, work_order_id: str) -> WorkOrder | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(WorkOrderTable, work_order_id)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return self._table_to_work_order(row) if row is not None else None

    async def list_work_orders(
        self, *, status: WorkOrderStatus | None = None, page: int = 1, page_size: int = 10
    ) -> WorkOrderPage:
        offset = (page - 1) * page_size
        query = select(WorkOrderTable)
        count_query = select(func.count()).select_from(WorkOrderTable)
        if status is not None:
            query = query.where(WorkOrderTable.status == status.value)
            count_query = count_query.where(WorkOrderTable.status == status.value)
        query = query.order_by(WorkOrderTable.submitted_at.desc()).offset(offset).limit(page_size)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
                total = (await session.execute(count_query)).scalar_one()
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return WorkOrderPage(
            items=[self._table_to_work_order(row) for row in rows],
            total=int(total),
            page=page,
            page_size=page_size,
        )

    async def update_status(self, work_order_id: str, status: WorkOrderStatus) -> WorkOrder | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(WorkOrderTable, work_order_id)
                if row is None:
                    return None
                row.status = status.value
                row.updated_at = _utcnow()
                await session.commit()
                await session.refresh(row)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return self._table_to_work_order(row)

    @staticmethod
    def _table_to_work_order(row: WorkOrderTable) -> WorkOrder:
        return WorkOrder(
            id=row.id,
            order_number=row.order_number,
            location_id=row.location_id,
            site=row.site or "",
            area=row.area or "",
            status=WorkOrderStatus(row.status),
            work_type=WorkType(row.work_type),
            priority=Priority(row.priority),
            scheduled_at=row.scheduled_at,
            notes=row.notes or "",
            line_items=[LineItem.from_json(item) for item in row.line_items or []],
            submitted_by=row.submitted_by,
            submitted_at=_ensure_datetime(row.submitted_at),
            updated_at=_ensure_datetime(row.updated_at),
        )


class TaskRepository:
    """Task record persistence. No update path writes ``ticket_id``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert_task(self, draft: TaskDraft, *, ticket_id: str, actor: str) -> TaskRecord:
        (created,) = await self.insert_tasks([(draft, ticket_id)], actor=actor)
        return created

    async def insert_tasks(self, entries: Sequence[tuple[TaskDraft, str]], *, actor: str) -> list[TaskRecord]:
        """Insert ``(draft, ticket_id)`` pairs in one transaction; nothing is kept on failure."""

        now = _utcnow()
        rows = [self._new_row(draft, ticket_id=ticket_id, actor=actor, now=now) for draft, ticket_id in entries]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add_all(rows)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return [self._table_to_task(row) for row in rows]

    @staticmethod
    def _new_row(draft: TaskDraft, *, ticket_id: str, actor: str, now: datetime) -> TaskRecordTable:
        return TaskRecordTable(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            equipment_id=draft.equipment_id,
            work_type=draft.work_type.value,
            priority=draft.priority.value,
            scheduled_at=draft.scheduled_at,
            assignee_ids=list(draft.assignee_ids),
            description=draft.description,
            approval_status=ApprovalStatus.PENDING.value,
            work_status=WorkStatus.PENDING.value,
            created_by=actor,
            created_at=now,
            updated_at=now,
        )

    async def get_task(self, task_id: str) -> TaskRecord | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskRecordTable, task_id)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return self._table_to_task(row) if row is not None else None

    async def list_for_work_order(self, work_order_id: str) -> list[TaskRecord]:
        query = (
            select(TaskRecordTable)
            .where(TaskRecordTable.work_order_id == work_order_id)
            .order_by(TaskRecordTable.position.asc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return [self._table_to_task(row) for row in rows]

    async def update_fields(self, task_id: str, **fields: Any) -> TaskRecord | None:
        if "ticket_id" in fields:
            raise ValueError("ticket_id is immutable")
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskRecordTable, task_id)
                if row is None:
                    return None
                for name, value in fields.items():
                    setattr(row, name, value)
                row.updated_at = _utcnow()
                await session.commit()
                await session.refresh(row)
        except DBAPIError as exc:
            raise _translate(exc) from exc
        return self._table_to_task(row)

    async def open_equipment_ids(self, equipment_ids: Sequence[str]) -> set[str]:
        """Equipment with a pending task, or an approved task whose work has not started."""

        if not equipment_ids:
            return set()
        query = select(TaskRecordTable.equipment_id).where(
            TaskRecordTable.equipment_id.in_(list(equipment_ids)),
            (TaskRecordTable.approval_status == ApprovalStatus.PENDING.value)
            | (
                (TaskRecordTable.approval_status == ApprovalStatus.APPROVED.value)
                & (TaskRecordTable.work_status == WorkStatus.PENDING.value)
            ),
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return set(result.scalars().all())
        except DBAPIError as exc:
            raise _translate(exc) from exc

    @staticmethod
    def _table_to_task(row: TaskRecordTable) -> TaskRecord:
        return TaskRecord(
            id=row.id,
            ticket_id=row.ticket_id,
            equipment_id=row.equipment_id,
            work_order_id=row.work_order_id,
            work_type=WorkType(row.work_type),
            priority=Priority(row.priority),
            scheduled_at=row.scheduled_at,
            assignee_ids=list(row.assignee_ids or []),
            description=row.description or "",
            approval_status=ApprovalStatus(row.approval_status),
            work_status=WorkStatus(row.work_status),
            created_by=row.created_by,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            approval_note=row.approval_note,
            decided_by=row.decided_by,
            decided_at=row.decided_at,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
