from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from jobdesk.equipment import EquipmentDirectory, resolve_in_order
from jobdesk.errors import InvalidSubmissionError, NoValidEquipmentError
from jobdesk.retry import RetryPolicy, Sleep
from jobdesk.tickets.preview import DEFAULT_MAX_ITEMS, OpenTaskLookup, ensure_batch_size, exclude_open

from .grouping import group_by_location
from .orchestrator import (
    DEFAULT_GROUP_DELAY_MS,
    BatchSummary,
    LocalGroupSubmitter,
    SharedMetadata,
    SubmissionOrchestrator,
)
from .service import WorkOrderService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchSubmissionService:
    """Group a flat selection by location and submit every group server side.

    Equipment that already has an open task is left out, the same way the
    ticket preview leaves it out.
    """

    directory: EquipmentDirectory
    work_orders: WorkOrderService
    open_tasks: OpenTaskLookup
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    group_delay_ms: int = DEFAULT_GROUP_DELAY_MS
    max_items: int = DEFAULT_MAX_ITEMS
    sleep: Sleep = asyncio.sleep

    async def submit_batch(
        self, equipment_ids: Sequence[str], metadata: SharedMetadata, *, actor: str
    ) -> BatchSummary:
        if not equipment_ids:
            raise InvalidSubmissionError("At least one equipment id is required")
        ensure_batch_size(equipment_ids, self.max_items)
        found = await self.directory.get_many(equipment_ids)
        resolved = resolve_in_order(equipment_ids, found)
        if not resolved:
            raise NoValidEquipmentError(
                "No valid equipment items found", details={"equipment_ids": list(equipment_ids)}
            )
        eligible, skipped = await exclude_open(resolved, self.open_tasks)
        if not eligible:
            raise NoValidEquipmentError(
                "All selected equipment already has an open task", details={"skipped_existing": skipped}
            )
        if skipped:
            logger.info("batch_skipped_open_equipment", extra={"skipped": len(skipped), "actor": actor})

        orchestrator = SubmissionOrchestrator(
            LocalGroupSubmitter(self.work_orders, actor),
            retry_policy=self.retry_policy,
            group_delay_ms=self.group_delay_ms,
            sleep=self.sleep,
        )
        summary = await orchestrator.submit_groups(group_by_location(eligible), metadata)
        summary.skipped_existing = skipped
        return summary
