"""Ticket identifier allocation and range preview."""

from .allocator import TicketAllocator, TicketRange, TicketSequenceStore
from .ids import format_ticket, lock_name, order_number_for, parse_ticket, year_prefix
from .locks import AdvisoryNamedLock, LocalNamedLock, NamedLock
from .preview import PreviewService, TicketPreview
from .repository import TicketCounterRepository

__all__ = [
    "AdvisoryNamedLock",
    "LocalNamedLock",
    "NamedLock",
    "PreviewService",
    "TicketAllocator",
    "TicketCounterRepository",
    "TicketPreview",
    "TicketRange",
    "TicketSequenceStore",
    "format_ticket",
    "lock_name",
    "order_number_for",
    "parse_ticket",
    "year_prefix",
]
