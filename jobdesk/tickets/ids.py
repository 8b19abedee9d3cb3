"""Helpers for the ``YY-NNNN`` ticket format and the ``JO`` order number."""

from __future__ import annotations

import re
import time
from datetime import datetime

from jobdesk.errors import SequenceExhaustedError

MAX_SEQUENCE = 9999
LOCK_PREFIX = "ticket-seq"
ORDER_NUMBER_PREFIX = "JO"

_TICKET_RE = re.compile(r"^(?P<prefix>\d{2})-(?P<sequence>\d{4})$")


def year_prefix(now: datetime) -> str:
    return f"{now.year % 100:02d}"


def format_ticket(prefix: str, sequence: int) -> str:
    if sequence < 1:
        raise ValueError("Ticket sequence starts at 1")
    if sequence > MAX_SEQUENCE:
        raise SequenceExhaustedError(
            f"Ticket sequence for year {prefix} is exhausted",
            details={"prefix": prefix, "sequence": sequence},
        )
    return f"{prefix}-{sequence:04d}"


def parse_ticket(ticket_id: str) -> tuple[str, int]:
    """Split a ticket identifier into its year prefix and sequence number."""

    match = _TICKET_RE.match(ticket_id)
    if match is None:
        raise ValueError(f"Malformed ticket identifier: {ticket_id!r}")
    return match.group("prefix"), int(match.group("sequence"))


def lock_name(prefix: str) -> str:
    return f"{LOCK_PREFIX}:{prefix}"


def fallback_sequence(clock_ns: int | None = None) -> int:
    """Last four digits of the microsecond clock, never zero."""

    micros = (clock_ns if clock_ns is not None else time.time_ns()) // 1_000
    return micros % 10_000 or MAX_SEQUENCE


def fallback_ticket(prefix: str, clock_ns: int | None = None) -> str:
    return format_ticket(prefix, fallback_sequence(clock_ns))


def order_number_for(first_ticket: str) -> str:
    return f"{ORDER_NUMBER_PREFIX}{first_ticket}"


def disambiguate_order_number(order_number: str, clock_ns: int | None = None) -> str:
    """Append a ``-NNN`` suffix taken from the millisecond clock."""

    millis = (clock_ns if clock_ns is not None else time.time_ns()) // 1_000_000
    return f"{order_number}-{millis % 1000:03d}"
