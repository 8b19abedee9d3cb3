"""Year-scoped sequential ticket allocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Callable, Protocol

from opentelemetry import metrics, trace

from jobdesk.errors import AllocatorUnavailableError, JobDeskError
from jobdesk.tickets.ids import MAX_SEQUENCE, fallback_sequence, format_ticket, lock_name, year_prefix
from jobdesk.tickets.locks import NamedLock

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketSequenceStore(Protocol):
    async def current_sequence(self, prefix: str) -> int:
        ...

    async def store_sequence(self, prefix: str, value: int) -> None:
        ...


@dataclass(slots=True, frozen=True)
class TicketRange:
    """Range of tickets a prospective batch would receive."""

    count_to_create: int
    first_ticket: str | None
    last_ticket: str | None
    degraded: bool = False

    @classmethod
    def empty(cls) -> "TicketRange":
        return cls(count_to_create=0, first_ticket=None, last_ticket=None)


class TicketAllocator:
    """Issue ``YY-NNNN`` tickets under a per-year named lock.

    ``allocate_ticket`` is the strict single-item path. ``next_ticket_or_fallback``
    serves bulk and preview callers and degrades to a clock-derived ticket when
    the counter cannot be reached.
    """

    def __init__(
        self,
        store: TicketSequenceStore,
        lock: NamedLock,
        *,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] | None = None,
        fallback_clock_ns: Callable[[], int] | None = None,
        meter_provider: metrics.MeterProvider | None = None,
    ) -> None:
        self._store = store
        self._lock = lock
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fallback_clock_ns = fallback_clock_ns
        meter = metrics.get_meter(__name__, meter_provider=meter_provider)
        self._allocated_counter = meter.create_counter(
            "jobdesk.tickets.allocated", description="Tickets issued from the sequential counter"
        )
        self._degraded_counter = meter.create_counter(
            "jobdesk.tickets.degraded", description="Tickets issued or previewed from the clock fallback"
        )

    @property
    def lock(self) -> NamedLock:
        return self._lock

    def prefix_for(self, now: datetime | None = None) -> str:
        moment = now or self._clock()
        if moment.tzinfo is not None:
            moment = moment.astimezone(self._tz)
        return year_prefix(moment)

    async def next_ticket(self, now: datetime | None = None, *, allow_fallback: bool = False) -> str:
        prefix = self.prefix_for(now)
        with tracer.start_as_current_span("tickets.allocate") as span:
            span.set_attribute("ticket.prefix", prefix)
            try:
                ticket_id = await self._advance(prefix)
            except AllocatorUnavailableError as exc:
                if not allow_fallback:
                    raise
                return self._degraded(prefix, exc)
            span.set_attribute("ticket.id", ticket_id)
        self._allocated_counter.add(1, {"prefix": prefix})
        logger.info("ticket_allocated", extra={"ticket_id": ticket_id, "prefix": prefix})
        return ticket_id

    async def allocate_ticket(self, now: datetime | None = None) -> str:
        return await self.next_ticket(now, allow_fallback=False)

    async def next_ticket_or_fallback(self, now: datetime | None = None) -> str:
        return await self.next_ticket(now, allow_fallback=True)

    async def reserve_range(
        self, count: int, now: datetime | None = None, *, allow_fallback: bool = False
    ) -> TicketRange:
        """Return the range the next ``count`` allocations would receive.

        Nothing is consumed; the result is advisory.
        """

        if count < 0:
            raise ValueError("count cannot be negative")
        if count == 0:
            return TicketRange.empty()
        prefix = self.prefix_for(now)
        try:
            base = await self._read(prefix)
        except AllocatorUnavailableError as exc:
            if not allow_fallback:
                raise
            start = fallback_sequence(self._fallback_ns())
            last = (start + count - 1) % (MAX_SEQUENCE + 1) or MAX_SEQUENCE
            self._degraded_counter.add(1, {"prefix": prefix, "operation": "reserve_range"})
            logger.warning(
                "ticket_allocation_degraded",
                extra={"prefix": prefix, "error_code": exc.code, "count": count, "operation": "reserve_range"},
            )
            return TicketRange(
                count_to_create=count,
                first_ticket=format_ticket(prefix, start),
                last_ticket=format_ticket(prefix, last),
                degraded=True,
            )
        return TicketRange(
            count_to_create=count,
            first_ticket=format_ticket(prefix, base + 1),
            last_ticket=format_ticket(prefix, base + count),
        )

    async def _read(self, prefix: str) -> int:
        try:
            return await self._store.current_sequence(prefix)
        except JobDeskError:
            raise
        except Exception as exc:
            raise AllocatorUnavailableError("Ticket counter unavailable", details={"prefix": prefix}) from exc

    async def _advance(self, prefix: str) -> str:
        async with self._lock.hold(lock_name(prefix)):
            current = await self._read(prefix)
            ticket_id = format_ticket(prefix, current + 1)
            try:
                await self._store.store_sequence(prefix, current + 1)
            except JobDeskError:
                raise
            except Exception as exc:
                raise AllocatorUnavailableError("Ticket counter unavailable", details={"prefix": prefix}) from exc
        return ticket_id

    def _fallback_ns(self) -> int | None:
        return self._fallback_clock_ns() if self._fallback_clock_ns is not None else None

    def _degraded(self, prefix: str, exc: AllocatorUnavailableError) -> str:
        ticket_id = format_ticket(prefix, fallback_sequence(self._fallback_ns()))
        self._degraded_counter.add(1, {"prefix": prefix})
        logger.warning(
            "ticket_allocation_degraded",
            extra={"ticket_id": ticket_id, "prefix": prefix, "error_code": exc.code},
        )
        return ticket_id
