"""
In-memory queue state with enforced status transitions.

Provides:
- Normalization of caller-supplied topics/items into QueueItems
- Recovery of items that were mid-call when a snapshot was taken
- Transition checks against ALLOWED_TRANSITIONS
- A single change hook (persist + notify) fired after every mutation
"""

import copy
import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .errors import InvalidTransitionError, QueueItemNotFoundError
from .schemas import (
    ALLOWED_TRANSITIONS,
    IN_FLIGHT_STATUSES,
    ItemStatus,
    Phase,
    QueueItem,
)

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Process interrupted before completion. Retry needed."

ItemInput = Union[str, Mapping[str, Any]]

_MUTABLE_FIELDS = {"structure", "retry_count", "error_msg", "failed_phase"}


def _infer_failed_phase(item: Mapping[str, Any]) -> str:
    return Phase.CONTENT.value if item.get("structure") else Phase.STRUCTURE.value


def normalize_item(raw: ItemInput) -> QueueItem:
    """Build a QueueItem from a topic string or a (possibly partial) dict.

    Items recorded mid-call become ``error`` so the phase is retried.

    Raises:
        ValueError: If the topic is empty or the status is unknown
    """
    if isinstance(raw, str):
        raw = {"topic": raw}

    topic = str(raw.get("topic") or "").strip()
    if not topic:
        raise ValueError("Queue items need a non-empty topic")

    status = ItemStatus(raw.get("status") or ItemStatus.PENDING.value)
    item: QueueItem = {
        "id": str(raw.get("id") or uuid.uuid4()),
        "topic": topic,
        "status": status.value,
        "structure": raw.get("structure"),
        "retry_count": int(raw.get("retry_count") or 0),
        "error_msg": raw.get("error_msg"),
        "failed_phase": raw.get("failed_phase"),
    }

    if status in IN_FLIGHT_STATUSES:
        item["failed_phase"] = (
            Phase.STRUCTURE.value
            if status is ItemStatus.DRAFTING_STRUCT
            else Phase.CONTENT.value
        )
        item["status"] = ItemStatus.ERROR.value
        item["error_msg"] = INTERRUPTED_MESSAGE
        logger.warning(f"Recovered interrupted item {item['id'][:8]} ({status.value} -> error)")
    elif status is ItemStatus.ERROR and item["failed_phase"] is None:
        item["failed_phase"] = _infer_failed_phase(item)
    elif status in (ItemStatus.STRUCT_READY, ItemStatus.PAUSED_FOR_REVIEW) and not item["structure"]:
        # Nothing to approve or expand without an outline
        item["status"] = ItemStatus.PENDING.value

    if item["failed_phase"] is not None:
        Phase(item["failed_phase"])

    return item


class QueueState:
    """Ordered queue items plus the mutation hook.

    Only the owning QueueService (and the driver it creates) call these
    methods; outside callers receive deep-copied snapshots.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._items: list[QueueItem] = []
        self._on_change = on_change or (lambda: None)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[QueueItem]:
        """Live items in pick order (internal use)."""
        return self._items

    def snapshot(self) -> list[QueueItem]:
        return copy.deepcopy(self._items)

    def get(self, item_id: str) -> QueueItem:
        for item in self._items:
            if item["id"] == item_id:
                return item
        raise QueueItemNotFoundError(item_id)

    def replace(self, raw_items: Iterable[ItemInput]) -> None:
        """Swap in a new queue wholesale.

        Raises:
            ValueError: On duplicate ids or invalid items
        """
        items = [normalize_item(raw) for raw in raw_items]
        seen: set[str] = set()
        for item in items:
            if item["id"] in seen:
                raise ValueError(f"Duplicate queue item id: {item['id']}")
            seen.add(item["id"])

        self._items = items
        logger.info(f"Queue replaced with {len(items)} items")
        self._on_change()

    def clear(self) -> None:
        self._items = []
        logger.info("Queue cleared")
        self._on_change()

    def transition(self, item_id: str, status: ItemStatus, **fields: Any) -> QueueItem:
        """Move an item along a legal edge and apply field updates.

        Raises:
            QueueItemNotFoundError: Unknown id
            InvalidTransitionError: Edge not in ALLOWED_TRANSITIONS
        """
        item = self.get(item_id)
        current = ItemStatus(item["status"])
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(item_id, current.value, status.value)

        self._apply_fields(item, fields)
        item["status"] = status.value
        logger.debug(f"Item {item_id[:8]}: {current.value} -> {status.value}")
        self._on_change()
        return item

    def update(self, item_id: str, **fields: Any) -> QueueItem:
        """Update non-status fields (structure, retry_count, error_msg, failed_phase)."""
        item = self.get(item_id)
        self._apply_fields(item, fields)
        self._on_change()
        return item

    def reorder(self, item_ids: list[str]) -> None:
        """Reorder items by id.

        Unknown ids are ignored; items not listed keep their relative
        order after the listed ones. Statuses are untouched.
        """
        item_map = {item["id"]: item for item in self._items}
        reordered: list[QueueItem] = []
        placed: set[str] = set()
        for item_id in item_ids:
            if item_id in item_map and item_id not in placed:
                reordered.append(item_map[item_id])
                placed.add(item_id)

        for item in self._items:
            if item["id"] not in placed:
                reordered.append(item)

        self._items = reordered
        self._on_change()

    def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in self._items:
            counts[item["status"]] = counts.get(item["status"], 0) + 1
        return counts

    @staticmethod
    def _apply_fields(item: QueueItem, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update queue item fields: {sorted(unknown)}")
        item.update(fields)  # type: ignore[typeddict-item]
