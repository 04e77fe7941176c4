"""
Schemas for the batch queue.

- QueueItem: TypedDict for one topic in the queue (JSON-friendly snapshots)
- RunConfig / PhaseConfig: frozen pydantic models supplied per run
- Enums for item status, phases, run state and scheduling mode
- Callback aliases for the generation collaborators and observers
"""

from .callbacks import (
    ContentGenerator,
    ContentSink,
    PersistCallback,
    StructureGenerator,
    UpdateListener,
)
from .config import PhaseConfig, RunConfig
from .enums import (
    ALLOWED_TRANSITIONS,
    IN_FLIGHT_STATUSES,
    ItemStatus,
    Phase,
    RunState,
    SchedulingMode,
)
from .items import GeneratedNote, QueueItem

__all__ = [
    # Callbacks
    "StructureGenerator",
    "ContentGenerator",
    "ContentSink",
    "PersistCallback",
    "UpdateListener",
    # Config
    "PhaseConfig",
    "RunConfig",
    # Enums
    "ItemStatus",
    "Phase",
    "RunState",
    "SchedulingMode",
    "ALLOWED_TRANSITIONS",
    "IN_FLIGHT_STATUSES",
    # Items
    "QueueItem",
    "GeneratedNote",
]
