"""Database models and utilities."""

from .models import (
    EquipmentTable,
    TaskRecordTable,
    TicketCounterTable,
    WorkOrderTable,
)

__all__ = [
    "EquipmentTable",
    "TaskRecordTable",
    "TicketCounterTable",
    "WorkOrderTable",
]
