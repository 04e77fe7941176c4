"""Enum types for the batch queue."""

from enum import Enum


class ItemStatus(Enum):
    """Queue item lifecycle states."""

    PENDING = "pending"  # Waiting for phase 1
    DRAFTING_STRUCT = "drafting_struct"  # Phase 1 call in flight
    STRUCT_READY = "struct_ready"  # Outline approved, waiting for phase 2
    PAUSED_FOR_REVIEW = "paused_for_review"  # Outline drafted, needs approval
    GENERATING_NOTE = "generating_note"  # Phase 2 call in flight
    DONE = "done"
    ERROR = "error"


class Phase(Enum):
    """Generation phases.

    STRUCTURE is the architect step (outline), CONTENT the factory step
    (full note from an approved outline).
    """

    STRUCTURE = "structure"
    CONTENT = "content"


class RunState(Enum):
    """Scheduler run state.

    IDLE: never started, or the last run drained all eligible work.
    RUNNING: the driver loop is active.
    HALTED: the last run ended through stop() or a breaker trip.
    """

    IDLE = "idle"
    RUNNING = "running"
    HALTED = "halted"


class SchedulingMode(Enum):
    """How the driver picks the next unit of work.

    PHASE_FIRST: drain phase 1 across the queue before any phase 2 call.
    PER_ITEM: take the first item with any eligible phase, so an
        auto-approved item finishes both phases before the next starts.
    """

    PHASE_FIRST = "phase_first"
    PER_ITEM = "per_item"


# Statuses that mean a generation call was in flight
IN_FLIGHT_STATUSES = frozenset({ItemStatus.DRAFTING_STRUCT, ItemStatus.GENERATING_NOTE})

# Legal status edges; anything else is a programming error
ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.DRAFTING_STRUCT}),
    ItemStatus.DRAFTING_STRUCT: frozenset(
        {ItemStatus.STRUCT_READY, ItemStatus.PAUSED_FOR_REVIEW, ItemStatus.ERROR}
    ),
    ItemStatus.PAUSED_FOR_REVIEW: frozenset({ItemStatus.STRUCT_READY, ItemStatus.PENDING}),
    ItemStatus.STRUCT_READY: frozenset({ItemStatus.GENERATING_NOTE}),
    ItemStatus.GENERATING_NOTE: frozenset({ItemStatus.DONE, ItemStatus.ERROR}),
    ItemStatus.DONE: frozenset(),
    ItemStatus.ERROR: frozenset({ItemStatus.DRAFTING_STRUCT, ItemStatus.GENERATING_NOTE}),
}
