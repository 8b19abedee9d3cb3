"""Advisory preview of the ticket range a selection would receive."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, Sequence

from jobdesk.equipment import Equipment, EquipmentDirectory, resolve_in_order
from jobdesk.errors import BatchTooLargeError
from jobdesk.tickets.allocator import TicketAllocator

DEFAULT_MAX_ITEMS = 1000


class OpenTaskLookup(Protocol):
    async def open_equipment_ids(self, equipment_ids: Sequence[str]) -> set[str]:
        ...


@dataclass(slots=True, frozen=True)
class TicketPreview:
    count_to_create: int
    first_ticket_id: str | None
    last_ticket_id: str | None
    skipped_existing: list[str] = field(default_factory=list)
    degraded: bool = False


async def exclude_open(
    equipment: Sequence[Equipment], open_tasks: OpenTaskLookup
) -> tuple[list[Equipment], list[str]]:
    """Split resolved equipment into items that need a task and ids that already have one."""

    if not equipment:
        return [], []
    open_ids = await open_tasks.open_equipment_ids([item.id for item in equipment])
    eligible = [item for item in equipment if item.id not in open_ids]
    skipped = [item.id for item in equipment if item.id in open_ids]
    return eligible, skipped


def ensure_batch_size(equipment_ids: Sequence[str], max_items: int) -> None:
    if len(equipment_ids) > max_items:
        raise BatchTooLargeError(
            f"At most {max_items} equipment items can be processed at once",
            details={"requested": len(equipment_ids), "max_items": max_items},
        )


@dataclass(slots=True)
class PreviewService:
    """Resolve a tentative selection and reserve, without consuming, its tickets."""

    allocator: TicketAllocator
    directory: EquipmentDirectory
    open_tasks: OpenTaskLookup
    max_items: int = DEFAULT_MAX_ITEMS

    async def preview_ticket_range(
        self, equipment_ids: Sequence[str], now: datetime | None = None
    ) -> TicketPreview:
        ensure_batch_size(equipment_ids, self.max_items)
        found = await self.directory.get_many(equipment_ids)
        resolved = resolve_in_order(equipment_ids, found)
        eligible, skipped = await exclude_open(resolved, self.open_tasks)

        reserved = await self.allocator.reserve_range(len(eligible), now, allow_fallback=True)
        return TicketPreview(
            count_to_create=reserved.count_to_create,
            first_ticket_id=reserved.first_ticket,
            last_ticket_id=reserved.last_ticket,
            skipped_existing=skipped,
            degraded=reserved.degraded,
        )
