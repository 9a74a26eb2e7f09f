"""Tests for the checkpoint state machine."""

import itertools
import json
from pathlib import Path

import pytest

from docstore_export.export.checkpoint import CheckpointManager, CheckpointState
from docstore_export.export.models import ExportCheckpoint

REQUESTED = ["users", "orders", "products"]


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


class TestPersistence:
    """State is written durably after every transition."""

    def test_begin_writes_state(self, tmp_path: Path) -> None:
        path = tmp_path / ".export-state.json"
        manager = CheckpointManager(path)
        manager.begin("both", REQUESTED)

        data = _read(path)
        assert data["format"] == "both"
        assert data["requestedCollections"] == REQUESTED
        assert data["completed"] == []
        assert "startedAt" in data
        assert "lastUpdated" in data
        assert "lastError" not in data
        assert manager.state == CheckpointState.RUNNING

    def test_mark_completed_persists_immediately(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        manager = CheckpointManager(path)
        manager.begin("json", REQUESTED)
        manager.mark_completed("users")

        assert _read(path)["completed"] == ["users"]

    def test_mark_completed_is_idempotent(self, tmp_path: Path) -> None:
        manager = CheckpointManager(tmp_path / "state.json")
        manager.begin("json", REQUESTED)
        manager.mark_completed("users")
        manager.mark_completed("users")

        assert manager.checkpoint.completed == ["users"]

    def test_mark_failed_records_last_error(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        manager = CheckpointManager(path)
        manager.begin("json", REQUESTED)
        manager.mark_failed("orders", RuntimeError("permission denied"))

        data = _read(path)
        assert data["lastError"] == {"collection": "orders", "error": "permission denied"}
        assert data["completed"] == []

    def test_no_temp_file_left(self, tmp_path: Path) -> None:
        manager = CheckpointManager(tmp_path / "state.json")
        manager.begin("json", REQUESTED)
        manager.mark_completed("users")

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_finish_deletes_state(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        manager = CheckpointManager(path)
        manager.begin("json", REQUESTED)
        manager.finish()

        assert not path.exists()
        assert manager.state == CheckpointState.COMPLETED

    def test_transition_before_begin_fails(self, tmp_path: Path) -> None:
        manager = CheckpointManager(tmp_path / "state.json")
        with pytest.raises(RuntimeError):
            manager.mark_completed("users")

    def test_unreadable_state_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        assert CheckpointManager(path).load() is None

    def test_wrong_shape_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"format": "json"}), encoding="utf-8")

        assert CheckpointManager(path).load() is None


class TestResume:
    """Resume reuses only compatible progress."""

    def _interrupted(self, path: Path, fmt: str = "both", completed=("users",)) -> ExportCheckpoint:
        manager = CheckpointManager(path)
        checkpoint = manager.begin(fmt, REQUESTED)
        for name in completed:
            manager.mark_completed(name)
        return checkpoint

    def test_compatible_resume_keeps_completed(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        previous = self._interrupted(path)

        manager = CheckpointManager(path)
        checkpoint = manager.begin("both", list(reversed(REQUESTED)), resume=True)

        assert manager.resumed
        assert checkpoint.completed == ["users"]
        assert checkpoint.started_at == previous.started_at

    def test_different_format_starts_fresh(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        self._interrupted(path, fmt="json")

        manager = CheckpointManager(path)
        checkpoint = manager.begin("sql", REQUESTED, resume=True)

        assert not manager.resumed
        assert checkpoint.completed == []
        assert _read(path)["format"] == "sql"

    def test_different_collections_start_fresh(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        self._interrupted(path)

        manager = CheckpointManager(path)
        checkpoint = manager.begin("both", ["users", "orders"], resume=True)

        assert not manager.resumed
        assert checkpoint.completed == []

    def test_without_resume_starts_fresh(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        self._interrupted(path)

        checkpoint = CheckpointManager(path).begin("both", REQUESTED)
        assert checkpoint.completed == []

    def test_reset_discards_compatible_state(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        self._interrupted(path)

        manager = CheckpointManager(path)
        checkpoint = manager.begin("both", REQUESTED, resume=True, reset=True)

        assert not manager.resumed
        assert checkpoint.completed == []

    def test_resume_without_state(self, tmp_path: Path) -> None:
        manager = CheckpointManager(tmp_path / "state.json")
        checkpoint = manager.begin("both", REQUESTED, resume=True)

        assert not manager.resumed
        assert checkpoint.remaining() == REQUESTED

    def test_resume_with_corrupt_state(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("garbage", encoding="utf-8")

        checkpoint = CheckpointManager(path).begin("both", REQUESTED, resume=True)
        assert checkpoint.completed == []

    def test_resume_preserves_last_error(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        manager = CheckpointManager(path)
        manager.begin("both", REQUESTED)
        manager.mark_failed("orders", "boom")

        checkpoint = CheckpointManager(path).begin("both", REQUESTED, resume=True)
        assert checkpoint.last_error.collection == "orders"


class TestRemaining:
    """Resumed runs process exactly requested minus completed."""

    def test_every_completed_subset(self, tmp_path: Path) -> None:
        for size in range(len(REQUESTED) + 1):
            for completed in itertools.combinations(REQUESTED, size):
                path = tmp_path / f"state-{size}-{'-'.join(completed)}.json"
                manager = CheckpointManager(path)
                manager.begin("both", REQUESTED)
                for name in completed:
                    manager.mark_completed(name)

                checkpoint = CheckpointManager(path).begin("both", REQUESTED, resume=True)
                remaining = checkpoint.remaining()

                assert set(remaining) == set(REQUESTED) - set(completed)
                assert set(checkpoint.completed) | set(remaining) == set(REQUESTED)
                assert not set(checkpoint.completed) & set(remaining)
                assert remaining == [n for n in REQUESTED if n not in completed]
