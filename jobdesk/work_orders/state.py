from __future__ import annotations

from enum import Enum


class WorkOrderStatus(str, Enum):
    """Lifecycle of a work order."""

    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkOrderStateMachine:
    """Validate work order lifecycle transitions."""

    _TRANSITIONS: dict[WorkOrderStatus, set[WorkOrderStatus]] = {
        WorkOrderStatus.SUBMITTED: {WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.CANCELLED},
        WorkOrderStatus.IN_PROGRESS: {WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED},
        WorkOrderStatus.COMPLETED: set(),
        WorkOrderStatus.CANCELLED: set(),
    }

    @classmethod
    def initial_state(cls) -> WorkOrderStatus:
        return WorkOrderStatus.SUBMITTED

    @classmethod
    def can_transition(cls, current: WorkOrderStatus, new: WorkOrderStatus) -> bool:
        if current == new:
            return True
        return new in cls._TRANSITIONS.get(current, set())


class ApprovalStateMachine:
    """A task is approved or rejected exactly once."""

    _TRANSITIONS: dict[ApprovalStatus, set[ApprovalStatus]] = {
        ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
        ApprovalStatus.APPROVED: set(),
        ApprovalStatus.REJECTED: set(),
    }

    @classmethod
    def initial_state(cls) -> ApprovalStatus:
        return ApprovalStatus.PENDING

    @classmethod
    def can_transition(cls, current: ApprovalStatus, new: ApprovalStatus) -> bool:
        return new in cls._TRANSITIONS.get(current, set())


class WorkStateMachine:
    """Validate task work-status transitions."""

    _TRANSITIONS: dict[WorkStatus, set[WorkStatus]] = {
        WorkStatus.PENDING: {WorkStatus.IN_PROGRESS, WorkStatus.CANCELLED},
        WorkStatus.IN_PROGRESS: {WorkStatus.COMPLETED, WorkStatus.CANCELLED},
        WorkStatus.COMPLETED: set(),
        WorkStatus.CANCELLED: set(),
    }

    @classmethod
    def initial_state(cls) -> WorkStatus:
        return WorkStatus.PENDING

    @classmethod
    def can_transition(cls, current: WorkStatus, new: WorkStatus) -> bool:
        if current == new:
            return True
        return new in cls._TRANSITIONS.get(current, set())
