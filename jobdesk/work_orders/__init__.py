"""Work orders, task records and batch submission."""

from .batch import BatchSubmissionService
from .grouping import LocationGroup, group_by_location, group_selection, location_key, merge_notes
from .models import LineItem, Priority, TaskRecord, WorkOrder, WorkOrderPage, WorkType
from .orchestrator import (
    BatchOutcome,
    BatchSummary,
    GroupResult,
    GroupSubmitter,
    LocalGroupSubmitter,
    SharedMetadata,
    SubmissionOrchestrator,
    classify,
)
from .repository import TaskRepository, WorkOrderRepository
from .service import GroupReceipt, GroupSubmission, WorkOrderService
from .state import ApprovalStatus, WorkOrderStatus, WorkStatus
from .tasks import TaskImportRow, TaskService

__all__ = [
    "ApprovalStatus",
    "BatchOutcome",
    "BatchSubmissionService",
    "BatchSummary",
    "GroupReceipt",
    "GroupResult",
    "GroupSubmission",
    "GroupSubmitter",
    "LineItem",
    "LocalGroupSubmitter",
    "LocationGroup",
    "Priority",
    "SharedMetadata",
    "SubmissionOrchestrator",
    "TaskImportRow",
    "TaskRecord",
    "TaskRepository",
    "TaskService",
    "WorkOrder",
    "WorkOrderPage",
    "WorkOrderRepository",
    "WorkOrderService",
    "WorkOrderStatus",
    "WorkStatus",
    "WorkType",
    "classify",
    "group_by_location",
    "group_selection",
    "location_key",
    "merge_notes",
]
