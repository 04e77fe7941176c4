"""Default locations for queue state.

All local state lives under .curriculum/ (override with CURRICULUM_STATE_DIR):
- .curriculum/queue.json - latest queue snapshot
- .curriculum/queue.lock - cross-process lock for the snapshot
- .curriculum/run.lock - held by the process currently running the queue
"""

from pathlib import Path

from curriculum.config import QueueSettings

SNAPSHOT_NAME = "queue.json"
LOCK_NAME = "queue.lock"
RUN_LOCK_NAME = "run.lock"


def state_dir(settings: QueueSettings | None = None) -> Path:
    return (settings or QueueSettings()).state_dir


def snapshot_file(settings: QueueSettings | None = None) -> Path:
    return state_dir(settings) / SNAPSHOT_NAME
