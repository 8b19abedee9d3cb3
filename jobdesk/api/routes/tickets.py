from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from jobdesk.api.routes.schemas import TaskResponse, WorkFields
from jobdesk.dependencies.services import TechnicianUser, get_preview_service, get_task_service, get_ticket_allocator
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.preview import PreviewService
from jobdesk.work_orders.tasks import TaskService

router = APIRouter(prefix="/tickets", tags=["tickets"])


class PreviewRequest(BaseModel):
    equipment_ids: list[str] = Field(default_factory=list)


class PreviewResponse(BaseModel):
    count_to_create: int
    first_ticket_id: str | None
    last_ticket_id: str | None
    skipped_existing: list[str]
    degraded: bool = False


class TaskCreateRequest(WorkFields):
    equipment_id: str = Field(..., min_length=1)
    description: str = Field(default="", max_length=4000)


class NextTicketResponse(BaseModel):
    ticket_id: str


PreviewServiceDep = Annotated[PreviewService, Depends(get_preview_service)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
AllocatorDep = Annotated[TicketAllocator, Depends(get_ticket_allocator)]


@router.post("/preview", response_model=PreviewResponse)
async def preview_ticket_range(
    payload: PreviewRequest,
    service: PreviewServiceDep,
    _: TechnicianUser,
) -> PreviewResponse:
    preview = await service.preview_ticket_range(payload.equipment_ids)
    return PreviewResponse(
        count_to_create=preview.count_to_create,
        first_ticket_id=preview.first_ticket_id,
        last_ticket_id=preview.last_ticket_id,
        skipped_existing=list(preview.skipped_existing),
        degraded=preview.degraded,
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreateRequest,
    service: TaskServiceDep,
    user: TechnicianUser,
) -> TaskResponse:
    task = await service.create_task(
        equipment_id=payload.equipment_id,
        work_type=payload.work_type,
        priority=payload.priority,
        scheduled_at=payload.scheduled_at,
        assignee_ids=payload.assignee_ids,
        description=payload.description,
        actor=user.username,
    )
    return TaskResponse.model_validate(task)


@router.get("/next", response_model=NextTicketResponse)
async def next_ticket(allocator: AllocatorDep, _: TechnicianUser) -> NextTicketResponse:
    """Allocate a ticket for the single-item flow. The number is consumed."""

    return NextTicketResponse(ticket_id=await allocator.allocate_ticket())
