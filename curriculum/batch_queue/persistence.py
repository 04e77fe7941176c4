"""Queue snapshot persistence with file locking and atomic writes.

The queue itself is in-memory only; callers that want durability wire
``SnapshotStore.save`` in as the QueueService persist callback and feed
``SnapshotStore.load()`` back through ``set_queue`` on restart.
"""

import fcntl
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .errors import QueueBusyError
from .paths import LOCK_NAME, RUN_LOCK_NAME
from .schemas import QueueItem

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"


class SnapshotStore:
    """Read and write queue snapshots as JSON.

    File layout::

        {"version": "1.0", "saved_at": "<iso>", "items": [QueueItem, ...]}
    """

    def __init__(self, snapshot_file: Path, lock_file: Optional[Path] = None):
        self.snapshot_file = snapshot_file
        self.lock_file = lock_file or snapshot_file.with_name(LOCK_NAME)
        self.run_lock_file = snapshot_file.with_name(RUN_LOCK_NAME)

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Exclusive fcntl lock shared with other processes (e.g. the CLI)."""
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        self.lock_file.touch(exist_ok=True)
        with open(self.lock_file, "w") as lock_fd:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)

    @contextmanager
    def run_lock(self) -> Iterator[None]:
        """Non-blocking exclusive lock held for the duration of a queue run.

        Processes that edit the snapshot take the same lock, so edits cannot
        race a running scheduler that would overwrite them on its next save.

        Raises:
            QueueBusyError: Another process holds the lock
        """
        self.run_lock_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.run_lock_file, "a") as lock_fd:
            try:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as e:
                raise QueueBusyError(
                    f"A queue run is active ({self.run_lock_file}); stop it first"
                ) from e
            try:
                yield
            finally:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)

    def load(self) -> list[QueueItem]:
        """Return the saved items, or [] if nothing was saved yet."""
        with self.lock():
            if not self.snapshot_file.exists():
                return []
            with open(self.snapshot_file, "r", encoding="utf-8") as f:
                data = json.load(f)

        items = data.get("items", []) if isinstance(data, dict) else data
        logger.debug(f"Loaded {len(items)} items from {self.snapshot_file}")
        return items

    def save(self, items: list[QueueItem]) -> None:
        """Write items atomically (temp file + rename)."""
        payload = {
            "version": SNAPSHOT_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "items": items,
        }
        with self.lock():
            self.snapshot_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.snapshot_file.with_suffix(".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            temp_file.replace(self.snapshot_file)

    def clear(self) -> bool:
        """Delete the snapshot. Returns True if a file was removed."""
        with self.lock():
            if self.snapshot_file.exists():
                self.snapshot_file.unlink()
                return True
        return False
