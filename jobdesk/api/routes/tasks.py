from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from jobdesk.api.routes.schemas import TaskResponse, WorkFields
from jobdesk.dependencies.services import SupervisorUser, TechnicianUser, ViewerUser, get_task_service
from jobdesk.work_orders.state import WorkStatus
from jobdesk.work_orders.tasks import TaskImportRow, TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskImportItem(WorkFields):
    equipment_id: str = Field(..., min_length=1)
    description: str = Field(default="", max_length=4000)


class TaskImportRequest(BaseModel):
    rows: list[TaskImportItem] = Field(..., min_length=1)


class ApprovalRequest(BaseModel):
    approved: bool
    note: str | None = Field(default=None, max_length=500)


class WorkStatusRequest(BaseModel):
    status: WorkStatus


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


@router.post("/import", response_model=list[TaskResponse], status_code=status.HTTP_201_CREATED)
async def import_tasks(
    payload: TaskImportRequest,
    service: TaskServiceDep,
    user: SupervisorUser,
) -> list[TaskResponse]:
    rows = [
        TaskImportRow(
            equipment_id=item.equipment_id,
            work_type=item.work_type,
            priority=item.priority,
            scheduled_at=item.scheduled_at,
            assignee_ids=item.assignee_ids,
            description=item.description,
        )
        for item in payload.rows
    ]
    created = await service.import_tasks(rows, actor=user.username)
    return [TaskResponse.model_validate(task) for task in created]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, service: TaskServiceDep, _: ViewerUser) -> TaskResponse:
    return TaskResponse.model_validate(await service.get_task(task_id))


@router.post("/{task_id}/approval", response_model=TaskResponse)
async def decide_approval(
    task_id: str,
    payload: ApprovalRequest,
    service: TaskServiceDep,
    user: SupervisorUser,
) -> TaskResponse:
    task = await service.decide_approval(task_id, approved=payload.approved, note=payload.note, actor=user.username)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/work-status", response_model=TaskResponse)
async def change_work_status(
    task_id: str,
    payload: WorkStatusRequest,
    service: TaskServiceDep,
    user: TechnicianUser,
) -> TaskResponse:
    task = await service.change_work_status(task_id, new_status=payload.status, actor=user.username)
    return TaskResponse.model_validate(task)
