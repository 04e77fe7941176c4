"""
Batch curriculum generation queue.

Drives an ordered list of topics through two generation phases:
- Phase 1 (architect): draft an outline per topic
- Phase 2 (factory): expand an approved outline into a full note

Provides:
- Per-item retries with exponential backoff
- A run-wide circuit breaker on consecutive item failures
- An optional human review gate between the phases
- Snapshot notifications for UIs and a JSON snapshot store
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    GenerationError,
    InvalidTransitionError,
    QueueBusyError,
    QueueError,
    QueueItemNotFoundError,
)
from .persistence import SnapshotStore
from .queue_service import QueueService
from .retry_policy import RetryDecision, RetryPolicy
from .schemas import (
    GeneratedNote,
    ItemStatus,
    Phase,
    PhaseConfig,
    QueueItem,
    RunConfig,
    RunState,
    SchedulingMode,
)

__all__ = [
    # Schemas
    "ItemStatus",
    "Phase",
    "RunState",
    "SchedulingMode",
    "QueueItem",
    "GeneratedNote",
    "PhaseConfig",
    "RunConfig",
    # Errors
    "GenerationError",
    "QueueError",
    "QueueItemNotFoundError",
    "InvalidTransitionError",
    "QueueBusyError",
    # Components
    "QueueService",
    "RetryPolicy",
    "RetryDecision",
    "CircuitBreaker",
    "CircuitState",
    "SnapshotStore",
]
