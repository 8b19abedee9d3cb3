from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from jobdesk.api.routes.schemas import WorkFields, WorkOrderResponse
from jobdesk.dependencies.services import SupervisorUser, ViewerUser, get_batch_service, get_work_order_service
from jobdesk.work_orders.batch import BatchSubmissionService
from jobdesk.work_orders.orchestrator import BatchOutcome, SharedMetadata
from jobdesk.work_orders.service import GroupSubmission, WorkOrderService
from jobdesk.work_orders.state import WorkOrderStatus

router = APIRouter(prefix="/work-orders", tags=["work-orders"])


class GroupSubmissionRequest(WorkFields):
    location_id: str | None = None
    site: str | None = None
    area: str | None = None
    equipment_ids: list[str] = Field(..., min_length=1)
    notes: str | None = Field(default=None, max_length=4000)

    def to_submission(self) -> GroupSubmission:
        return GroupSubmission(
            equipment_ids=self.equipment_ids,
            work_type=self.work_type,
            priority=self.priority,
            scheduled_at=self.scheduled_at,
            location_id=self.location_id,
            site=self.site or "",
            area=self.area or "",
            assignee_ids=self.assignee_ids,
            notes=self.notes or "",
        )


class WorkOrderCreatedResponse(BaseModel):
    order_number: str
    item_count: int


class BatchRequest(WorkFields):
    equipment_ids: list[str] = Field(..., min_length=1)
    notes: str | None = Field(default=None, max_length=4000)


class GroupResultResponse(BaseModel):
    group_key: str
    label: str
    success: bool
    attempts: int
    order_number: str | None = None
    item_count: int | None = None
    error: str | None = None
    error_code: str | None = None


class BatchResponse(BaseModel):
    outcome: BatchOutcome
    message: str
    details: str
    created_count: int
    results: list[GroupResultResponse]
    skipped_existing: list[str] = Field(default_factory=list)


class WorkOrderPageResponse(BaseModel):
    items: list[WorkOrderResponse]
    total: int
    page: int
    page_size: int


class WorkOrderStatusRequest(BaseModel):
    status: WorkOrderStatus


WorkOrderServiceDep = Annotated[WorkOrderService, Depends(get_work_order_service)]
BatchServiceDep = Annotated[BatchSubmissionService, Depends(get_batch_service)]


@router.post("", response_model=WorkOrderCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_work_order(
    payload: GroupSubmissionRequest,
    service: WorkOrderServiceDep,
    user: SupervisorUser,
) -> WorkOrderCreatedResponse:
    receipt = await service.create_work_order(payload.to_submission(), actor=user.username)
    return WorkOrderCreatedResponse(order_number=receipt.order_number, item_count=receipt.item_count)


@router.post("/batch", response_model=BatchResponse)
async def submit_batch(
    payload: BatchRequest,
    service: BatchServiceDep,
    user: SupervisorUser,
) -> BatchResponse:
    metadata = SharedMetadata(
        work_type=payload.work_type,
        priority=payload.priority,
        scheduled_at=payload.scheduled_at,
        assignee_ids=payload.assignee_ids,
        notes=payload.notes or "",
    )
    summary = await service.submit_batch(payload.equipment_ids, metadata, actor=user.username)
    return BatchResponse(
        outcome=summary.outcome,
        message=summary.message,
        details=summary.details,
        created_count=summary.created_count,
        skipped_existing=list(summary.skipped_existing),
        results=[
            GroupResultResponse(
                group_key=result.group_key,
                label=result.label,
                success=result.success,
                attempts=result.attempts,
                order_number=result.order_number,
                item_count=result.item_count,
                error=result.error,
                error_code=result.error_code,
            )
            for result in summary.results
        ],
    )


@router.get("", response_model=WorkOrderPageResponse)
async def list_work_orders(
    service: WorkOrderServiceDep,
    _: ViewerUser,
    status_filter: WorkOrderStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
) -> WorkOrderPageResponse:
    result = await service.list_work_orders(status=status_filter, page=page, page_size=page_size)
    return WorkOrderPageResponse(
        items=[WorkOrderResponse.model_validate(item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/{work_order_id}", response_model=WorkOrderResponse)
async def get_work_order(work_order_id: str, service: WorkOrderServiceDep, _: ViewerUser) -> WorkOrderResponse:
    return WorkOrderResponse.model_validate(await service.get_work_order(work_order_id))


@router.post("/{work_order_id}/status", response_model=WorkOrderResponse)
async def change_work_order_status(
    work_order_id: str,
    payload: WorkOrderStatusRequest,
    service: WorkOrderServiceDep,
    user: SupervisorUser,
) -> WorkOrderResponse:
    work_order = await service.change_work_order_status(
        work_order_id, new_status=payload.status, actor=user.username
    )
    return WorkOrderResponse.model_validate(work_order)
