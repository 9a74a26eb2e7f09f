"""Durable, resumable export progress.

The checkpoint file is the only signal that a resumable run exists.  It is
rewritten after every root collection finishes or fails, and deleted when a
run ends with nothing left to export.

States:
    FRESH      no usable state (none on disk, reset, or incompatible)
    RUNNING    state persisted for the current run
    COMPLETED  run finished; state deleted

Usage:
    from docstore_export.export.checkpoint import CheckpointManager

    checkpoints = CheckpointManager(Path(".export-state.json"))
    checkpoint = checkpoints.begin("both", ["users", "orders"], resume=True)
    for name in checkpoint.remaining():
        ...
        checkpoints.mark_completed(name)
    checkpoints.finish()
"""

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from docstore_export.export.models import ExportCheckpoint, LastError

logger = logging.getLogger(__name__)


class CheckpointState(str, Enum):
    FRESH = "fresh"
    RUNNING = "running"
    COMPLETED = "completed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CheckpointManager:
    """Load, advance and clear the checkpoint for one run.

    Args:
        path: Location of the state file (default name ``.export-state.json``).
    """

    def __init__(self, path: Path) -> None:
        self.path: Path = Path(path)
        self.state: CheckpointState = CheckpointState.FRESH
        self.checkpoint: ExportCheckpoint | None = None
        self.resumed: bool = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> ExportCheckpoint | None:
        """Read persisted state.

        Returns:
            The checkpoint, or None when there is no file or it cannot be
            parsed (logged as a warning).
        """
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ExportCheckpoint.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable export state %s: %s", self.path, e)
            return None

    def save(self) -> None:
        """Durably write the current checkpoint.

        Writes a sibling temp file, flushes it to disk, then atomically
        replaces the state file.
        """
        if self.checkpoint is None:
            return

        self.checkpoint.last_updated = _now()
        payload = self.checkpoint.model_dump(mode="json", by_alias=True, exclude_none=True)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        """Delete the state file if present."""
        if self.path.exists():
            self.path.unlink()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin(
        self,
        requested_format: str,
        requested_collections: list[str],
        resume: bool = False,
        reset: bool = False,
    ) -> ExportCheckpoint:
        """Start a run, reusing persisted progress when allowed.

        Persisted progress is reused only when *resume* is set and the
        stored format and (order-independent) collection set match.  A
        mismatch is logged and the run starts fresh.  *reset* deletes any
        persisted state first, whether or not it matches.

        Args:
            requested_format: Output format of this run.
            requested_collections: Root collections of this run.
            resume: Reuse compatible persisted progress.
            reset: Discard persisted progress unconditionally.

        Returns:
            The active checkpoint (already persisted).
        """
        self.resumed = False
        previous: ExportCheckpoint | None = None

        if reset:
            self.clear()
            logger.info("Export state cleared")
        elif resume:
            previous = self.load()
            if previous is None:
                logger.info("No previous export state found, starting fresh")
            elif not previous.is_compatible(requested_format, requested_collections):
                logger.warning(
                    "Previous export state does not match this run "
                    "(format %s, collections %s), starting fresh",
                    previous.requested_format,
                    ", ".join(previous.requested_collections),
                )
                previous = None

        if previous is not None:
            # Only keep completions that still belong to this run
            requested = set(requested_collections)
            completed = [name for name in dict.fromkeys(previous.completed) if name in requested]
            self.checkpoint = ExportCheckpoint(
                requested_format=requested_format,
                requested_collections=list(requested_collections),
                completed=completed,
                started_at=previous.started_at,
                last_updated=_now(),
                last_error=previous.last_error,
            )
            self.resumed = True
            logger.info(
                "Resuming export: %d/%d collections already completed",
                len(completed),
                len(requested_collections),
            )
        else:
            started = _now()
            self.checkpoint = ExportCheckpoint(
                requested_format=requested_format,
                requested_collections=list(requested_collections),
                started_at=started,
                last_updated=started,
            )

        self.state = CheckpointState.RUNNING
        self.save()
        return self.checkpoint

    def mark_completed(self, collection: str) -> None:
        """Record *collection* as fully flushed and persist."""
        checkpoint = self._require_running()
        if collection not in checkpoint.completed:
            checkpoint.completed.append(collection)
        self.save()

    def mark_failed(self, collection: str, error: BaseException | str) -> None:
        """Record the latest failure and persist."""
        checkpoint = self._require_running()
        checkpoint.last_error = LastError(collection=collection, message=str(error))
        self.save()

    def finish(self) -> None:
        """End the run: the state file is deleted."""
        self.clear()
        self.state = CheckpointState.COMPLETED

    def _require_running(self) -> ExportCheckpoint:
        if self.state is not CheckpointState.RUNNING or self.checkpoint is None:
            raise RuntimeError("Checkpoint is not running; call begin() first")
        return self.checkpoint
