"""Next-work selection for the driver loop."""

import logging
from typing import Collection, NamedTuple, Optional

from .schemas import ItemStatus, Phase, QueueItem, SchedulingMode

logger = logging.getLogger(__name__)


class WorkUnit(NamedTuple):
    """One generation call to make: which item, which phase."""

    item_id: str
    phase: Phase


def eligible_phase(item: QueueItem, exhausted: Collection[str] = ()) -> Optional[Phase]:
    """Phase this item can be claimed for right now, if any.

    ``paused_for_review`` and ``done`` items are never eligible. ``error``
    items retry the phase that failed unless they already exhausted their
    attempts in the current run (ids in ``exhausted``).
    """
    status = item["status"]

    if status == ItemStatus.PENDING.value:
        return Phase.STRUCTURE
    if status == ItemStatus.STRUCT_READY.value and item.get("structure"):
        return Phase.CONTENT
    if status == ItemStatus.ERROR.value and item["id"] not in exhausted:
        if item.get("failed_phase") == Phase.CONTENT.value and item.get("structure"):
            return Phase.CONTENT
        return Phase.STRUCTURE
    return None


class WorkScheduler:
    """Picks the next WorkUnit in queue order.

    PHASE_FIRST scans the whole queue for phase-1 work before looking at
    phase 2. PER_ITEM takes the first item with any eligible phase.
    """

    def __init__(self, mode: SchedulingMode = SchedulingMode.PHASE_FIRST):
        self.mode = mode

    def next_work(
        self,
        items: list[QueueItem],
        exhausted: Collection[str] = (),
    ) -> Optional[WorkUnit]:
        if self.mode is SchedulingMode.PER_ITEM:
            for item in items:
                phase = eligible_phase(item, exhausted)
                if phase is not None:
                    return WorkUnit(item["id"], phase)
            return None

        for wanted in (Phase.STRUCTURE, Phase.CONTENT):
            for item in items:
                if eligible_phase(item, exhausted) is wanted:
                    return WorkUnit(item["id"], wanted)
        return None
