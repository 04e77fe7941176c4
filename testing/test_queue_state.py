"""Unit tests for queue state, item normalization and work selection."""

import pytest

from curriculum.batch_queue import (
    InvalidTransitionError,
    ItemStatus,
    Phase,
    QueueItemNotFoundError,
    SchedulingMode,
)
from curriculum.batch_queue.selection import WorkScheduler, eligible_phase
from curriculum.batch_queue.state import INTERRUPTED_MESSAGE, QueueState, normalize_item


class TestNormalizeItem:
    """Tests for turning caller input into QueueItems."""

    def test_topic_string(self):
        item = normalize_item("  Photosynthesis ")
        assert item["topic"] == "Photosynthesis"
        assert item["status"] == "pending"
        assert item["retry_count"] == 0
        assert item["structure"] is None
        assert item["error_msg"] is None
        assert len(item["id"]) == 36

    def test_keeps_supplied_fields(self):
        item = normalize_item(
            {"id": "a1", "topic": "Cells", "status": "paused_for_review", "structure": "# Cells"}
        )
        assert item["id"] == "a1"
        assert item["status"] == "paused_for_review"
        assert item["structure"] == "# Cells"

    def test_in_flight_structure_becomes_error(self):
        item = normalize_item({"id": "a1", "topic": "Cells", "status": "drafting_struct"})
        assert item["status"] == "error"
        assert item["failed_phase"] == "structure"
        assert item["error_msg"] == INTERRUPTED_MESSAGE

    def test_in_flight_content_becomes_error(self):
        item = normalize_item(
            {"id": "a1", "topic": "Cells", "status": "generating_note", "structure": "# Cells"}
        )
        assert item["status"] == "error"
        assert item["failed_phase"] == "content"

    def test_error_without_phase_is_inferred(self):
        with_outline = normalize_item({"topic": "A", "status": "error", "structure": "# A"})
        without_outline = normalize_item({"topic": "B", "status": "error"})
        assert with_outline["failed_phase"] == "content"
        assert without_outline["failed_phase"] == "structure"

    def test_ready_without_outline_goes_back_to_pending(self):
        item = normalize_item({"topic": "A", "status": "struct_ready"})
        assert item["status"] == "pending"

    def test_rejects_empty_topic_and_unknown_status(self):
        with pytest.raises(ValueError):
            normalize_item("   ")
        with pytest.raises(ValueError):
            normalize_item({"topic": "A", "status": "exploded"})


class TestQueueState:
    """Tests for transitions, reordering and the change hook."""

    def _state(self, topics=("A", "B", "C")):
        changes = []
        state = QueueState(on_change=lambda: changes.append(1))
        state.replace([{"id": t.lower(), "topic": t} for t in topics])
        return state, changes

    def test_replace_fires_change(self):
        _, changes = self._state()
        assert len(changes) == 1

    def test_duplicate_ids_rejected(self):
        state = QueueState()
        with pytest.raises(ValueError, match="Duplicate"):
            state.replace([{"id": "x", "topic": "A"}, {"id": "x", "topic": "B"}])

    def test_legal_transition(self):
        state, changes = self._state()
        item = state.transition("a", ItemStatus.DRAFTING_STRUCT, retry_count=0)
        assert item["status"] == "drafting_struct"
        assert len(changes) == 2

    def test_illegal_transition(self):
        state, _ = self._state()
        with pytest.raises(InvalidTransitionError) as exc_info:
            state.transition("a", ItemStatus.DONE)
        assert exc_info.value.current == "pending"
        assert exc_info.value.target == "done"
        assert state.get("a")["status"] == "pending"

    def test_done_is_terminal(self):
        state, _ = self._state()
        state.transition("a", ItemStatus.DRAFTING_STRUCT)
        state.transition("a", ItemStatus.STRUCT_READY, structure="# A")
        state.transition("a", ItemStatus.GENERATING_NOTE)
        state.transition("a", ItemStatus.DONE)
        for target in ItemStatus:
            with pytest.raises(InvalidTransitionError):
                state.transition("a", target)

    def test_unknown_item(self):
        state, _ = self._state()
        with pytest.raises(QueueItemNotFoundError):
            state.get("zzz")
        with pytest.raises(KeyError):
            state.update("zzz", error_msg="x")

    def test_update_rejects_protected_fields(self):
        state, _ = self._state()
        with pytest.raises(ValueError):
            state.update("a", status="done")
        with pytest.raises(ValueError):
            state.update("a", topic="renamed")

    def test_reorder_moves_listed_items_first(self):
        state, _ = self._state(("A", "B", "C", "D"))
        state.reorder(["c", "missing", "a", "c"])
        assert [i["id"] for i in state.items] == ["c", "a", "b", "d"]

    def test_reorder_keeps_statuses(self):
        state, _ = self._state()
        state.transition("b", ItemStatus.DRAFTING_STRUCT)
        before = {i["id"]: i["status"] for i in state.items}
        state.reorder(["b", "c", "a"])
        after = {i["id"]: i["status"] for i in state.items}
        assert before == after

    def test_snapshot_is_detached(self):
        state, _ = self._state()
        snapshot = state.snapshot()
        snapshot[0]["status"] = "done"
        assert state.get("a")["status"] == "pending"

    def test_count_by_status(self):
        state, _ = self._state()
        state.transition("a", ItemStatus.DRAFTING_STRUCT)
        assert state.count_by_status() == {"drafting_struct": 1, "pending": 2}


def _item(item_id, status, structure=None, failed_phase=None):
    return {
        "id": item_id,
        "topic": item_id.upper(),
        "status": status,
        "structure": structure,
        "retry_count": 0,
        "error_msg": None,
        "failed_phase": failed_phase,
    }


class TestSelection:
    """Tests for phase scans."""

    def test_eligible_phase(self):
        assert eligible_phase(_item("a", "pending")) is Phase.STRUCTURE
        assert eligible_phase(_item("a", "struct_ready", "# A")) is Phase.CONTENT
        assert eligible_phase(_item("a", "paused_for_review", "# A")) is None
        assert eligible_phase(_item("a", "done", "# A")) is None
        assert eligible_phase(_item("a", "drafting_struct")) is None
        assert eligible_phase(_item("a", "error", None, "structure")) is Phase.STRUCTURE
        assert eligible_phase(_item("a", "error", "# A", "content")) is Phase.CONTENT

    def test_exhausted_errors_are_skipped(self):
        item = _item("a", "error", None, "structure")
        assert eligible_phase(item, exhausted={"a"}) is None

    def test_phase_first_prefers_phase_one_anywhere(self):
        items = [
            _item("a", "struct_ready", "# A"),
            _item("b", "paused_for_review", "# B"),
            _item("c", "pending"),
        ]
        unit = WorkScheduler(SchedulingMode.PHASE_FIRST).next_work(items)
        assert unit.item_id == "c"
        assert unit.phase is Phase.STRUCTURE

    def test_phase_first_falls_through_to_phase_two(self):
        items = [
            _item("a", "done", "# A"),
            _item("b", "error", "# B", "content"),
            _item("c", "struct_ready", "# C"),
        ]
        unit = WorkScheduler().next_work(items)
        assert unit.item_id == "b"
        assert unit.phase is Phase.CONTENT

    def test_per_item_takes_first_eligible(self):
        items = [_item("a", "struct_ready", "# A"), _item("b", "pending")]
        unit = WorkScheduler(SchedulingMode.PER_ITEM).next_work(items)
        assert unit.item_id == "a"
        assert unit.phase is Phase.CONTENT

    def test_nothing_eligible(self):
        items = [_item("a", "done", "# A"), _item("b", "paused_for_review", "# B")]
        assert WorkScheduler().next_work(items) is None
        assert WorkScheduler(SchedulingMode.PER_ITEM).next_work(items) is None
