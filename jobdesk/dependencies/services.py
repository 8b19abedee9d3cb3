from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from jobdesk.dependencies.auth import Role, User, role_required
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.preview import PreviewService
from jobdesk.work_orders.batch import BatchSubmissionService
from jobdesk.work_orders.service import WorkOrderService
from jobdesk.work_orders.tasks import TaskService

require_admin = role_required(Role.ADMIN)
require_supervisor = role_required(Role.SUPERVISOR)
require_technician = role_required(Role.TECHNICIAN)
require_viewer = role_required(Role.VIEWER)

AdminUser = Annotated[User, Depends(require_admin)]
SupervisorUser = Annotated[User, Depends(require_supervisor)]
TechnicianUser = Annotated[User, Depends(require_technician)]
ViewerUser = Annotated[User, Depends(require_viewer)]


def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_allocator(request: Request) -> TicketAllocator:
    return _service(request, "ticket_allocator", "Ticket allocator")


async def get_preview_service(request: Request) -> PreviewService:
    return _service(request, "preview_service", "Preview service")


async def get_work_order_service(request: Request) -> WorkOrderService:
    return _service(request, "work_order_service", "Work order service")


async def get_batch_service(request: Request) -> BatchSubmissionService:
    return _service(request, "batch_service", "Batch submission service")


async def get_task_service(request: Request) -> TaskService:
    return _service(request, "task_service", "Task service")
