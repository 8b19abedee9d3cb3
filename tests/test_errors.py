from __future__ import annotations

from jobdesk.errors import (
    AllocatorUnavailableError,
    ConflictError,
    DuplicateTicketError,
    ErrorKind,
    InvalidSubmissionError,
    LockTimeoutError,
    NetworkError,
    NoValidEquipmentError,
    NotFoundError,
    OrderNumberConflictError,
    SequenceExhaustedError,
    StorageUnavailableError,
    WorkOrderNotFoundError,
    error_from_payload,
    is_conflict,
    is_transient,
)


def test_retryable_kinds():
    assert DuplicateTicketError("dup").retryable
    assert OrderNumberConflictError("taken").retryable
    assert LockTimeoutError("slow").retryable
    assert NetworkError("offline").retryable
    assert not InvalidSubmissionError("bad").retryable
    assert not SequenceExhaustedError("full").retryable
    assert not WorkOrderNotFoundError("gone").retryable


def test_predicates_only_accept_domain_errors():
    assert is_transient(StorageUnavailableError("down"))
    assert not is_transient(ConnectionError("down"))
    assert is_conflict(DuplicateTicketError("dup"))
    assert not is_conflict(AllocatorUnavailableError("down"))


def test_payload_shape():
    error = NoValidEquipmentError("No valid equipment items found", details={"equipment_ids": ["x"]})
    assert error.to_payload() == {
        "code": "NO_VALID_EQUIPMENT",
        "kind": "validation",
        "message": "No valid equipment items found",
    }
    assert error.details == {"equipment_ids": ["x"]}


def test_error_from_payload_restores_specific_class():
    error = error_from_payload({"code": "DUPLICATE_TICKET", "kind": "conflict", "message": "dup"})
    assert isinstance(error, DuplicateTicketError)
    assert error.message == "dup"

    error = error_from_payload({"code": "LOCK_TIMEOUT", "kind": "infrastructure", "message": "slow"})
    assert isinstance(error, LockTimeoutError)


def test_error_from_payload_falls_back_by_kind():
    conflict = error_from_payload({"code": "SOMETHING_NEW", "kind": "conflict", "message": "x"})
    assert type(conflict) is ConflictError
    missing = error_from_payload({"kind": "not_found", "message": "x"}, details={"status_code": 404})
    assert type(missing) is NotFoundError
    assert missing.details == {"status_code": 404}
    unknown = error_from_payload({"kind": "weird"})
    assert type(unknown) is StorageUnavailableError
    assert unknown.kind is ErrorKind.INFRASTRUCTURE
