"""Sequential per-group submission with retry and outcome aggregation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, Sequence

from opentelemetry import metrics, trace

from jobdesk.retry import RetryPolicy, Sleep

from .grouping import LocationGroup, merge_notes
from .models import Priority, WorkType
from .service import GroupReceipt, GroupSubmission, WorkOrderService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

_group_attempts = meter.create_counter(
    "jobdesk.submission.group_attempts", description="Work-order creation attempts per location group"
)
_batch_outcomes = meter.create_counter(
    "jobdesk.submission.batches", description="Batch submissions by outcome"
)

DEFAULT_GROUP_DELAY_MS = 300


class GroupState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BatchOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(slots=True)
class SharedMetadata:
    """Fields applied to every group of one batch."""

    work_type: WorkType
    priority: Priority
    scheduled_at: datetime | None = None
    assignee_ids: Sequence[str] = field(default_factory=list)
    notes: str = ""


@dataclass(slots=True)
class GroupResult:
    group_key: str
    label: str
    success: bool
    attempts: int
    order_number: str | None = None
    item_count: int | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def state(self) -> GroupState:
        return GroupState.SUCCEEDED if self.success else GroupState.FAILED


@dataclass(slots=True)
class BatchSummary:
    outcome: BatchOutcome
    message: str
    created_count: int
    results: list[GroupResult]
    details: str = ""
    skipped_existing: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[GroupResult]:
        return [result for result in self.results if not result.success]


class GroupSubmitter(Protocol):
    async def submit(self, submission: GroupSubmission) -> GroupReceipt:
        ...


@dataclass(slots=True)
class LocalGroupSubmitter:
    """Submit groups straight to an in-process :class:`WorkOrderService`."""

    service: WorkOrderService
    actor: str

    async def submit(self, submission: GroupSubmission) -> GroupReceipt:
        return await self.service.create_work_order(submission, actor=self.actor)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def classify(results: Sequence[GroupResult]) -> BatchSummary:
    """Collapse per-group results into one succeeded/failed/partial summary."""

    if not results:
        raise ValueError("Cannot classify an empty batch")
    succeeded = [result for result in results if result.success]
    failed = [result for result in results if not result.success]
    created = sum(result.item_count or 0 for result in succeeded)

    if not succeeded:
        return BatchSummary(
            outcome=BatchOutcome.FAILED,
            message=f"Failed to create work orders. {_plural(len(failed), 'location')} failed.",
            created_count=0,
            results=list(results),
            details="\n".join(f"{result.label}: {result.error}" for result in failed),
        )
    if not failed:
        return BatchSummary(
            outcome=BatchOutcome.SUCCEEDED,
            message=f"{_plural(len(succeeded), 'work order')} created! {_plural(created, 'task')} generated.",
            created_count=created,
            results=list(results),
        )
    return BatchSummary(
        outcome=BatchOutcome.PARTIAL,
        message=(
            f"Partial success: {len(succeeded)} of {len(results)} work orders created "
            f"({_plural(created, 'task')})"
        ),
        created_count=created,
        results=list(results),
        details="Failed locations:\n" + "\n".join(f"• {result.label}" for result in failed),
    )


def build_submission(group: LocationGroup, metadata: SharedMetadata) -> GroupSubmission:
    return GroupSubmission(
        equipment_ids=group.equipment_ids,
        work_type=metadata.work_type,
        priority=metadata.priority,
        scheduled_at=metadata.scheduled_at,
        location_id=group.location_id,
        site=group.site,
        area=group.area,
        assignee_ids=list(metadata.assignee_ids),
        notes=merge_notes(metadata.notes, group.relocation_notes),
    )


class SubmissionOrchestrator:
    """Submit location groups one after another.

    Each group gets its own retry budget. A failed group is recorded and the
    batch moves on; groups that already succeeded stay committed.
    """

    def __init__(
        self,
        submitter: GroupSubmitter,
        *,
        retry_policy: RetryPolicy | None = None,
        group_delay_ms: int = DEFAULT_GROUP_DELAY_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._submitter = submitter
        self._retry_policy = retry_policy or RetryPolicy()
        self._group_delay_ms = group_delay_ms
        self._sleep = sleep

    async def submit_groups(self, groups: Sequence[LocationGroup], metadata: SharedMetadata) -> BatchSummary:
        results: list[GroupResult] = []
        for index, group in enumerate(groups):
            if index and self._group_delay_ms > 0:
                await self._sleep(self._group_delay_ms / 1000)
            results.append(await self._submit_group(group, metadata))

        summary = classify(results)
        _batch_outcomes.add(1, {"outcome": summary.outcome.value})
        logger.info(
            "batch_submitted",
            extra={
                "outcome": summary.outcome.value,
                "groups": len(results),
                "failed_groups": len(summary.failed),
                "created_count": summary.created_count,
            },
        )
        return summary

    async def _submit_group(self, group: LocationGroup, metadata: SharedMetadata) -> GroupResult:
        submission = build_submission(group, metadata)
        label = group.label

        async def attempt() -> GroupReceipt:
            _group_attempts.add(1)
            return await self._submitter.submit(submission)

        with tracer.start_as_current_span("submission.group") as span:
            span.set_attribute("group.key", group.key)
            span.set_attribute("group.item_count", len(submission.equipment_ids))
            outcome = await self._retry_policy.run(attempt)
            span.set_attribute("group.attempts", outcome.attempts)

        if outcome.succeeded:
            receipt = outcome.unwrap()
            return GroupResult(
                group_key=group.key,
                label=label,
                success=True,
                attempts=outcome.attempts,
                order_number=receipt.order_number,
                item_count=receipt.item_count,
            )

        error = outcome.error
        error_code = getattr(error, "code", "INTERNAL_ERROR")
        logger.warning(
            "group_submission_failed",
            extra={"group_key": group.key, "error_code": error_code, "attempts": outcome.attempts},
        )
        return GroupResult(
            group_key=group.key,
            label=label,
            success=False,
            attempts=outcome.attempts,
            error=getattr(error, "message", None) or str(error),
            error_code=error_code,
        )
