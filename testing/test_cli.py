"""Tests for the queue management CLI (everything except `run`)."""

import json

import pytest

from curriculum.batch_queue import QueueBusyError, SnapshotStore
from curriculum.batch_queue.cli import main


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    directory = tmp_path / "state"
    monkeypatch.setenv("CURRICULUM_STATE_DIR", str(directory))
    return directory


def _saved(state_dir) -> list[dict]:
    return SnapshotStore(state_dir / "queue.json").load()


def _seed(state_dir, items) -> None:
    SnapshotStore(state_dir / "queue.json").save(items)


def _paused(item_id: str, topic: str) -> dict:
    return {
        "id": item_id,
        "topic": topic,
        "status": "paused_for_review",
        "structure": f"# {topic}",
        "retry_count": 0,
        "error_msg": None,
        "failed_phase": None,
    }


class TestQueueCommands:
    """Tests for add, list, status and clear."""

    def test_add_appends_topics(self, state_dir, capsys):
        main(["add", "Thermodynamics", "Entropy"])
        main(["add", "  Enthalpy  "])

        saved = _saved(state_dir)
        assert [i["topic"] for i in saved] == ["Thermodynamics", "Entropy", "Enthalpy"]
        assert {i["status"] for i in saved} == {"pending"}
        assert "3 in queue" in capsys.readouterr().out

    def test_add_from_file(self, state_dir, tmp_path):
        topics = tmp_path / "topics.txt"
        topics.write_text("Cells\n\nMitosis\n")
        main(["add", "-f", str(topics)])
        assert [i["topic"] for i in _saved(state_dir)] == ["Cells", "Mitosis"]

    def test_add_without_topics_exits(self, state_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["add"])
        assert exc_info.value.code == 1

    def test_list_and_json(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "Cells"), _paused("bbbb2222", "Mitosis")])

        main(["list"])
        out = capsys.readouterr().out
        assert "[aaaa1111] paused_for_review" in out
        assert "Mitosis" in out

        main(["list", "--json", "--status", "paused_for_review"])
        items = json.loads(capsys.readouterr().out)
        assert [i["id"] for i in items] == ["aaaa1111", "bbbb2222"]

    def test_list_empty(self, state_dir, capsys):
        main(["list"])
        assert "Queue is empty" in capsys.readouterr().out

    def test_status_counts(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "Cells"), {"id": "c", "topic": "Atoms"}])
        main(["status"])
        out = capsys.readouterr().out
        assert "total: 2" in out
        assert "paused_for_review: 1" in out
        assert "pending: 1" in out

    def test_clear_with_yes(self, state_dir, capsys):
        main(["add", "Cells"])
        main(["clear", "-y"])
        assert _saved(state_dir) == []
        assert not (state_dir / "queue.json").exists()


class TestReviewCommands:
    """Tests for approve, reject, retry, show and reorder."""

    def test_approve_keeps_outline(self, state_dir):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        main(["approve", "aaaa"])

        item = _saved(state_dir)[0]
        assert item["status"] == "struct_ready"
        assert item["structure"] == "# Cells"

    def test_approve_with_edited_outline(self, state_dir, tmp_path):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        outline = tmp_path / "outline.md"
        outline.write_text("# Cells\n\n1. Membranes")

        main(["approve", "aaaa", "--structure-file", str(outline)])
        assert _saved(state_dir)[0]["structure"] == "# Cells\n\n1. Membranes"

    def test_approve_pending_item_fails(self, state_dir, capsys):
        _seed(state_dir, [{"id": "aaaa1111", "topic": "Cells"}])
        with pytest.raises(SystemExit):
            main(["approve", "aaaa"])
        assert "Cannot approve" in capsys.readouterr().out

    def test_reject(self, state_dir):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        main(["reject", "aaaa1111"])

        item = _saved(state_dir)[0]
        assert item["status"] == "pending"
        assert item["structure"] is None

    def test_show(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        main(["show", "aaaa"])
        out = capsys.readouterr().out
        assert "[aaaa1111] Cells" in out
        assert "# Cells" in out

    def test_reorder(self, state_dir):
        _seed(state_dir, [_paused("aaaa1111", "A"), _paused("bbbb2222", "B"), _paused("cccc3333", "C")])
        main(["reorder", "cccc", "bbbb"])
        assert [i["id"] for i in _saved(state_dir)] == ["cccc3333", "bbbb2222", "aaaa1111"]

    def test_unknown_id_exits(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        with pytest.raises(SystemExit) as exc_info:
            main(["reject", "zzzz"])
        assert exc_info.value.code == 1
        assert "No item matches" in capsys.readouterr().out

    def test_ambiguous_id_exits(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "A"), _paused("aaaa2222", "B")])
        with pytest.raises(SystemExit):
            main(["show", "aaaa"])
        assert "ambiguous" in capsys.readouterr().out

    def test_retry_rearms_failed_item(self, state_dir, capsys):
        failed = _paused("aaaa1111", "Cells")
        failed.update(
            status="error",
            retry_count=3,
            error_msg="Max retries exceeded (3/3): boom",
            failed_phase="content",
        )
        _seed(state_dir, [failed])

        main(["retry", "aaaa"])

        item = _saved(state_dir)[0]
        assert item["status"] == "error"
        assert item["retry_count"] == 0
        assert item["failed_phase"] == "content"
        assert "retry its content phase" in capsys.readouterr().out

    def test_retry_requires_error_status(self, state_dir, capsys):
        _seed(state_dir, [_paused("aaaa1111", "Cells")])
        with pytest.raises(SystemExit) as exc_info:
            main(["retry", "aaaa"])
        assert exc_info.value.code == 1
        assert "Cannot retry" in capsys.readouterr().out


class TestActiveRun:
    """Commands against a snapshot owned by a running process."""

    def _interrupted_snapshot(self, state_dir) -> bytes:
        drafting = _paused("aaaa1111", "Cells")
        drafting.update(status="drafting_struct", structure=None)
        _seed(state_dir, [drafting, {"id": "bbbb2222", "topic": "Atoms", "status": "pending"}])
        return (state_dir / "queue.json").read_bytes()

    def test_read_commands_leave_snapshot_untouched(self, state_dir, capsys):
        before = self._interrupted_snapshot(state_dir)

        main(["list"])
        main(["list", "--json"])
        main(["status"])
        main(["show", "aaaa"])

        assert (state_dir / "queue.json").read_bytes() == before
        out = capsys.readouterr().out
        assert "drafting_struct" in out
        assert "interrupted" not in out

    def test_read_commands_work_during_a_run(self, state_dir, capsys):
        before = self._interrupted_snapshot(state_dir)
        store = SnapshotStore(state_dir / "queue.json")

        with store.run_lock():
            main(["status"])

        assert "drafting_struct: 1" in capsys.readouterr().out
        assert (state_dir / "queue.json").read_bytes() == before

    @pytest.mark.parametrize(
        "argv",
        [["add", "Enthalpy"], ["reject", "aaaa"], ["retry", "aaaa"], ["reorder", "bbbb"], ["clear", "-y"]],
    )
    def test_edit_commands_refuse_during_a_run(self, state_dir, capsys, argv):
        before = self._interrupted_snapshot(state_dir)
        store = SnapshotStore(state_dir / "queue.json")

        with store.run_lock():
            with pytest.raises(SystemExit) as exc_info:
                main(argv)

        assert exc_info.value.code == 1
        assert "queue run is active" in capsys.readouterr().out
        assert (state_dir / "queue.json").read_bytes() == before

    def test_run_lock_is_exclusive(self, state_dir):
        store = SnapshotStore(state_dir / "queue.json")
        with store.run_lock():
            with pytest.raises(QueueBusyError):
                with SnapshotStore(state_dir / "queue.json").run_lock():
                    pass
        with store.run_lock():
            pass
