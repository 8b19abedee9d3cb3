"""Typed errors shared by the allocator, the work-order service and the orchestrator.

Every error carries a machine-readable ``code`` and a ``kind``. Callers decide
whether to retry by looking at ``kind``, never at the message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class ErrorKind(str, Enum):
    """Coarse classes of failure used for retry and HTTP status decisions."""

    CONFLICT = "conflict"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INFRASTRUCTURE = "infrastructure"


RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.CONFLICT, ErrorKind.INFRASTRUCTURE})


class JobDeskError(RuntimeError):
    """Base class for all domain errors."""

    code: str = "JOBDESK_ERROR"
    kind: ErrorKind = ErrorKind.INFRASTRUCTURE

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_payload(self) -> dict[str, str]:
        return {"code": self.code, "kind": self.kind.value, "message": self.message}


class ConflictError(JobDeskError):
    """A uniqueness constraint rejected the write."""

    code = "CONFLICT"
    kind = ErrorKind.CONFLICT


class DuplicateTicketError(ConflictError):
    code = "DUPLICATE_TICKET"


class OrderNumberConflictError(ConflictError):
    code = "ORDER_NUMBER_CONFLICT"


class InvalidSubmissionError(JobDeskError):
    code = "INVALID_SUBMISSION"
    kind = ErrorKind.VALIDATION


class NoValidEquipmentError(InvalidSubmissionError):
    code = "NO_VALID_EQUIPMENT"


class BatchTooLargeError(InvalidSubmissionError):
    code = "BATCH_TOO_LARGE"


class SequenceExhaustedError(JobDeskError):
    """The yearly ticket sequence has no four-digit values left."""

    code = "SEQUENCE_EXHAUSTED"
    kind = ErrorKind.VALIDATION


class InvalidTransitionError(JobDeskError):
    code = "INVALID_TRANSITION"
    kind = ErrorKind.VALIDATION


class NotFoundError(JobDeskError):
    code = "NOT_FOUND"
    kind = ErrorKind.NOT_FOUND


class WorkOrderNotFoundError(NotFoundError):
    code = "WORK_ORDER_NOT_FOUND"


class TaskNotFoundError(NotFoundError):
    code = "TASK_NOT_FOUND"


class AllocatorUnavailableError(JobDeskError):
    """The ticket counter could not be read or advanced."""

    code = "ALLOCATOR_UNAVAILABLE"


class LockTimeoutError(AllocatorUnavailableError):
    code = "LOCK_TIMEOUT"


class StorageUnavailableError(JobDeskError):
    code = "STORAGE_UNAVAILABLE"


class NetworkError(JobDeskError):
    code = "NETWORK_ERROR"


def is_transient(error: BaseException) -> bool:
    """Default retry predicate: conflicts and infrastructure failures."""

    return isinstance(error, JobDeskError) and error.retryable


def is_conflict(error: BaseException) -> bool:
    """Narrow retry predicate that only retries uniqueness conflicts."""

    return isinstance(error, JobDeskError) and error.kind is ErrorKind.CONFLICT


def _collect_codes() -> dict[str, type[JobDeskError]]:
    registry: dict[str, type[JobDeskError]] = {}
    pending: list[type[JobDeskError]] = [JobDeskError]
    while pending:
        cls = pending.pop()
        registry.setdefault(cls.code, cls)
        pending.extend(cls.__subclasses__())
    return registry


_ERRORS_BY_CODE = _collect_codes()

_FALLBACK_BY_KIND: Mapping[ErrorKind, type[JobDeskError]] = {
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.VALIDATION: InvalidSubmissionError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.INFRASTRUCTURE: StorageUnavailableError,
}


def error_from_payload(payload: Mapping[str, Any], *, details: Mapping[str, Any] | None = None) -> JobDeskError:
    """Rebuild a typed error from the ``{"code", "kind", "message"}`` wire shape."""

    code = str(payload.get("code") or "")
    message = str(payload.get("message") or code or "Unknown error")
    error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is None:
        try:
            kind = ErrorKind(str(payload.get("kind")))
        except ValueError:
            kind = ErrorKind.INFRASTRUCTURE
        error_cls = _FALLBACK_BY_KIND[kind]
    return error_cls(message, details=details)
