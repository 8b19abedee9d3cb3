from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from jobdesk.dependencies import services as service_deps
from jobdesk.errors import (
    DuplicateTicketError,
    NoValidEquipmentError,
    StorageUnavailableError,
    WorkOrderNotFoundError,
)
from jobdesk.main import create_app
from jobdesk.tickets.preview import TicketPreview
from jobdesk.work_orders.models import LineItem, Priority, TaskRecord, WorkOrder, WorkOrderPage, WorkType
from jobdesk.work_orders.orchestrator import BatchOutcome, BatchSummary, GroupResult
from jobdesk.work_orders.service import GroupReceipt
from jobdesk.work_orders.state import ApprovalStatus, WorkOrderStatus, WorkStatus

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)

SUPERVISOR = {"Authorization": "Bearer supervisor-token"}
TECHNICIAN = {"Authorization": "Bearer technician-token"}
VIEWER = {"Authorization": "Bearer viewer-token"}


def _work_order() -> WorkOrder:
    return WorkOrder(
        id="wo-1",
        order_number="JO25-0007",
        location_id="L1",
        site="Main Campus",
        area="Boiler Room",
        status=WorkOrderStatus.SUBMITTED,
        work_type=WorkType.PREVENTIVE_MAINTENANCE,
        priority=Priority.HIGH,
        scheduled_at=None,
        notes="",
        line_items=[LineItem("A", "25-0007", "Boiler 1"), LineItem("B", "25-0008", "Boiler 2")],
        submitted_by="supervisor",
        submitted_at=NOW,
        updated_at=NOW,
    )


def _task(ticket_id: str = "25-0010") -> TaskRecord:
    return TaskRecord(
        id="task-1",
        ticket_id=ticket_id,
        equipment_id="A",
        work_order_id=None,
        work_type=WorkType.ASSESS,
        priority=Priority.MEDIUM,
        scheduled_at=None,
        assignee_ids=[],
        description="Inspect",
        approval_status=ApprovalStatus.PENDING,
        work_status=WorkStatus.PENDING,
        created_by="technician",
        created_at=NOW,
        updated_at=NOW,
    )


def _provide(service):
    async def override():
        return service

    return override


@pytest.fixture
def api_client():
    app = create_app()
    services = {
        service_deps.get_preview_service: AsyncMock(),
        service_deps.get_work_order_service: AsyncMock(),
        service_deps.get_batch_service: AsyncMock(),
        service_deps.get_task_service: AsyncMock(),
        service_deps.get_ticket_allocator: AsyncMock(),
    }
    for getter, service in services.items():
        app.dependency_overrides[getter] = _provide(service)

    client = TestClient(app)
    try:
        yield client, services
    finally:
        app.dependency_overrides.clear()


def test_ping_is_public(api_client):
    client, _ = api_client

    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


def test_preview_returns_range(api_client):
    client, services = api_client
    preview = services[service_deps.get_preview_service]
    preview.preview_ticket_range.return_value = TicketPreview(
        count_to_create=3, first_ticket_id="25-0007", last_ticket_id="25-0009", skipped_existing=["X"]
    )

    response = client.post("/tickets/preview", json={"equipment_ids": ["A", "B", "C", "X"]}, headers=TECHNICIAN)

    assert response.status_code == 200
    assert response.json() == {
        "count_to_create": 3,
        "first_ticket_id": "25-0007",
        "last_ticket_id": "25-0009",
        "skipped_existing": ["X"],
        "degraded": False,
    }
    preview.preview_ticket_range.assert_awaited_once_with(["A", "B", "C", "X"])


def test_preview_requires_technician(api_client):
    client, _ = api_client

    response = client.post("/tickets/preview", json={"equipment_ids": ["A"]}, headers=VIEWER)

    assert response.status_code == 403


def test_unknown_token_is_rejected_with_request_id(api_client):
    client, _ = api_client

    response = client.get(
        "/work-orders", headers={"Authorization": "Bearer nope", "X-Request-ID": "req-123"}
    )

    assert response.status_code == 401
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_work_order_returns_receipt(api_client):
    client, services = api_client
    service = services[service_deps.get_work_order_service]
    service.create_work_order.return_value = GroupReceipt(order_number="JO25-0007", item_count=2)

    response = client.post(
        "/work-orders",
        json={
            "location_id": "L1",
            "equipment_ids": ["A", "B"],
            "work_type": "preventive_maintenance",
            "priority": "high",
            "notes": "Quarterly",
        },
        headers=SUPERVISOR,
    )

    assert response.status_code == 201
    assert response.json() == {"order_number": "JO25-0007", "item_count": 2}
    submission = service.create_work_order.await_args.args[0]
    assert submission.equipment_ids == ["A", "B"]
    assert submission.notes == "Quarterly"
    assert service.create_work_order.await_args.kwargs == {"actor": "supervisor"}


def test_malformed_body_maps_to_invalid_submission(api_client):
    client, _ = api_client

    response = client.post("/work-orders", json={"location_id": "L1", "equipment_ids": []}, headers=SUPERVISOR)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == {
        "code": "INVALID_SUBMISSION",
        "kind": "validation",
        "message": "Request body failed validation",
    }
    assert isinstance(body["details"], list)


@pytest.mark.parametrize(
    "error, status_code, code, kind",
    [
        (DuplicateTicketError("Unique constraint rejected the write"), 409, "DUPLICATE_TICKET", "conflict"),
        (NoValidEquipmentError("No valid equipment items found"), 400, "NO_VALID_EQUIPMENT", "validation"),
        (StorageUnavailableError("Work order storage unavailable"), 503, "STORAGE_UNAVAILABLE", "infrastructure"),
    ],
)
def test_domain_errors_use_the_error_envelope(api_client, error, status_code, code, kind):
    client, services = api_client
    services[service_deps.get_work_order_service].create_work_order.side_effect = error

    response = client.post(
        "/work-orders",
        json={"location_id": "L1", "equipment_ids": ["A"], "work_type": "install"},
        headers=SUPERVISOR,
    )

    assert response.status_code == status_code
    assert response.json()["error"] == {"code": code, "kind": kind, "message": error.message}


def test_submit_batch_reports_partial_outcome(api_client):
    client, services = api_client
    batch = services[service_deps.get_batch_service]
    batch.submit_batch.return_value = BatchSummary(
        outcome=BatchOutcome.PARTIAL,
        message="Partial success: 1 of 2 work orders created (2 tasks)",
        created_count=2,
        details="Failed locations:\n• Annex → Roof",
        skipped_existing=["D"],
        results=[
            GroupResult("loc:L1", "Main Campus → Boiler Room", True, 1, order_number="JO25-0007", item_count=2),
            GroupResult(
                "loc:L2", "Annex → Roof", False, 3, error="down", error_code="STORAGE_UNAVAILABLE"
            ),
        ],
    )

    response = client.post(
        "/work-orders/batch",
        json={"equipment_ids": ["A", "B", "C"], "work_type": "assess", "notes": "Annual"},
        headers=SUPERVISOR,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "partial"
    assert body["created_count"] == 2
    assert body["skipped_existing"] == ["D"]
    assert [result["success"] for result in body["results"]] == [True, False]
    metadata = batch.submit_batch.await_args.args[1]
    assert metadata.work_type is WorkType.ASSESS
    assert metadata.priority is Priority.MEDIUM
    assert metadata.notes == "Annual"


def test_list_work_orders_filters_by_status(api_client):
    client, services = api_client
    service = services[service_deps.get_work_order_service]
    service.list_work_orders.return_value = WorkOrderPage(items=[_work_order()], total=1, page=1, page_size=10)

    response = client.get("/work-orders", params={"status": "submitted"}, headers=VIEWER)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["item_count"] == 2
    assert body["items"][0]["line_items"][1]["ticket_id"] == "25-0008"
    service.list_work_orders.assert_awaited_once_with(status=WorkOrderStatus.SUBMITTED, page=1, page_size=10)


def test_get_missing_work_order(api_client):
    client, services = api_client
    services[service_deps.get_work_order_service].get_work_order.side_effect = WorkOrderNotFoundError(
        "Work order nope not found"
    )

    response = client.get("/work-orders/nope", headers=VIEWER)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "WORK_ORDER_NOT_FOUND"


def test_create_task_and_next_ticket(api_client):
    client, services = api_client
    services[service_deps.get_task_service].create_task.return_value = _task()
    services[service_deps.get_ticket_allocator].allocate_ticket.return_value = "25-0011"

    created = client.post(
        "/tickets", json={"equipment_id": "A", "work_type": "assess", "description": "Inspect"}, headers=TECHNICIAN
    )
    allocated = client.get("/tickets/next", headers=TECHNICIAN)

    assert created.status_code == 201
    assert created.json()["ticket_id"] == "25-0010"
    assert allocated.json() == {"ticket_id": "25-0011"}


def test_import_tasks_requires_supervisor(api_client):
    client, services = api_client
    services[service_deps.get_task_service].import_tasks.return_value = [_task()]
    body = {"rows": [{"equipment_id": "A", "work_type": "install"}]}

    denied = client.post("/tasks/import", json=body, headers=TECHNICIAN)
    created = client.post("/tasks/import", json=body, headers=SUPERVISOR)

    assert denied.status_code == 403
    assert created.status_code == 201
    assert created.json()[0]["approval_status"] == "pending"


def test_task_approval(api_client):
    client, services = api_client
    service = services[service_deps.get_task_service]
    service.decide_approval.return_value = _task()

    response = client.post("/tasks/task-1/approval", json={"approved": True, "note": "ok"}, headers=SUPERVISOR)

    assert response.status_code == 200
    service.decide_approval.assert_awaited_once_with("task-1", approved=True, note="ok", actor="supervisor")


def test_unwired_service_answers_503():
    client = TestClient(create_app())

    response = client.get("/work-orders", headers=VIEWER)

    assert response.status_code == 503
    assert response.json() == {"detail": "Work order service is not configured"}
