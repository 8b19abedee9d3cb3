from __future__ import annotations

import pytest

from conftest import FakeDirectory, FakeOpenTasks, make_equipment
from jobdesk.errors import BatchTooLargeError
from jobdesk.tickets.preview import PreviewService, TicketPreview


def _service(allocator, equipment, open_ids=None, max_items=1000) -> PreviewService:
    return PreviewService(
        allocator=allocator,
        directory=FakeDirectory(equipment),
        open_tasks=FakeOpenTasks(open_ids),
        max_items=max_items,
    )


@pytest.mark.asyncio
async def test_preview_reports_next_range(allocator, sequence_store):
    sequence_store.values["25"] = 6
    service = _service(allocator, [make_equipment(eid) for eid in ("a", "b", "c")])

    preview = await service.preview_ticket_range(["a", "b", "c"])

    assert preview == TicketPreview(count_to_create=3, first_ticket_id="25-0007", last_ticket_id="25-0009")
    assert sequence_store.writes == []


@pytest.mark.asyncio
async def test_preview_skips_equipment_with_open_tasks(allocator, sequence_store):
    sequence_store.values["25"] = 6
    service = _service(allocator, [make_equipment(eid) for eid in ("a", "b", "c")], open_ids={"b"})

    preview = await service.preview_ticket_range(["a", "b", "c", "missing", "a"])

    assert preview.count_to_create == 2
    assert (preview.first_ticket_id, preview.last_ticket_id) == ("25-0007", "25-0008")
    assert preview.skipped_existing == ["b"]


@pytest.mark.asyncio
async def test_preview_with_nothing_eligible(allocator):
    service = _service(allocator, [make_equipment("a")], open_ids={"a"})

    preview = await service.preview_ticket_range(["a", "ghost"])

    assert preview.count_to_create == 0
    assert preview.first_ticket_id is None
    assert preview.last_ticket_id is None
    assert preview.skipped_existing == ["a"]


@pytest.mark.asyncio
async def test_preview_rejects_oversized_selection(allocator):
    service = _service(allocator, [], max_items=2)

    with pytest.raises(BatchTooLargeError) as exc_info:
        await service.preview_ticket_range(["a", "b", "c"])
    assert exc_info.value.details == {"requested": 3, "max_items": 2}


@pytest.mark.asyncio
async def test_preview_degrades_when_counter_is_unreachable(allocator, sequence_store):
    sequence_store.fail_reads = True
    service = _service(allocator, [make_equipment("a"), make_equipment("b")])

    preview = await service.preview_ticket_range(["a", "b"])

    assert preview.degraded
    assert (preview.first_ticket_id, preview.last_ticket_id) == ("25-3456", "25-3457")
