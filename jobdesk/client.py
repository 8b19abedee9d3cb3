"""Async HTTP client for the JobDesk API.

``JobDeskClient`` satisfies the group submitter protocol, so a
:class:`~jobdesk.work_orders.orchestrator.SubmissionOrchestrator` can run on
the caller's side against ``POST /work-orders``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import httpx

from jobdesk.errors import ErrorKind, JobDeskError, NetworkError, error_from_payload
from jobdesk.tickets.preview import TicketPreview
from jobdesk.work_orders.service import GroupReceipt, GroupSubmission

_KIND_BY_STATUS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.VALIDATION,
    403: ErrorKind.VALIDATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
}


def _error_from_response(response: httpx.Response) -> JobDeskError:
    try:
        data = response.json()
    except ValueError:
        return NetworkError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            details={"status_code": response.status_code},
        )

    if isinstance(data, Mapping) and isinstance(data.get("error"), Mapping):
        details = data.get("details")
        if details is not None and not isinstance(details, Mapping):
            details = {"errors": details}
        return error_from_payload(data["error"], details=details)

    message = f"HTTP {response.status_code}: {response.reason_phrase}"
    if isinstance(data, Mapping) and isinstance(data.get("detail"), str):
        message = data["detail"]
    kind = _KIND_BY_STATUS.get(response.status_code, ErrorKind.INFRASTRUCTURE)
    return error_from_payload({"kind": kind.value, "message": message}, details={"status_code": response.status_code})


def _submission_payload(submission: GroupSubmission) -> dict[str, Any]:
    return {
        "location_id": submission.location_id,
        "site": submission.site or None,
        "area": submission.area or None,
        "equipment_ids": list(submission.equipment_ids),
        "work_type": submission.work_type.value,
        "priority": submission.priority.value,
        "scheduled_at": submission.scheduled_at.isoformat() if submission.scheduled_at else None,
        "assignee_ids": list(submission.assignee_ids),
        "notes": submission.notes or None,
    }


@dataclass(slots=True)
class JobDeskClient:
    """Small async client over the JobDesk HTTP API."""

    base_url: str
    token: str | None = None
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url.rstrip("/"),
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "JobDeskClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        headers.update(kwargs.pop("headers", {}))
        normalized = path if path.startswith("/") else f"/{path}"

        try:
            response = await self._http().request(method, normalized, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {normalized} failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Expected JSON from {normalized}") from exc

    async def ping(self) -> Mapping[str, Any]:
        return await self._request("GET", "/ping")

    async def preview_ticket_range(self, equipment_ids: Sequence[str]) -> TicketPreview:
        data = await self._request("POST", "/tickets/preview", json={"equipment_ids": list(equipment_ids)})
        return TicketPreview(
            count_to_create=int(data["count_to_create"]),
            first_ticket_id=data.get("first_ticket_id"),
            last_ticket_id=data.get("last_ticket_id"),
            skipped_existing=list(data.get("skipped_existing") or []),
            degraded=bool(data.get("degraded", False)),
        )

    async def submit(self, submission: GroupSubmission) -> GroupReceipt:
        data = await self._request("POST", "/work-orders", json=_submission_payload(submission))
        return GroupReceipt(order_number=str(data["order_number"]), item_count=int(data["item_count"]))

    async def get_work_order(self, work_order_id: str) -> Mapping[str, Any]:
        return await self._request("GET", f"/work-orders/{work_order_id}")
