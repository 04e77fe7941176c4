"""Callback type aliases for the batch queue boundary."""

from typing import Awaitable, Callable, Optional

from .config import PhaseConfig
from .items import GeneratedNote, QueueItem

StructureGenerator = Callable[[str, PhaseConfig], Awaitable[str]]
"""Phase-1 collaborator.

Args:
    topic: Topic text
    phase_config: RunConfig.structure

Returns:
    Outline text. Any exception counts as a failed attempt.
"""

ContentGenerator = Callable[[str, str, PhaseConfig], Awaitable[str]]
"""Phase-2 collaborator.

Args:
    topic: Topic text
    structure: Approved outline
    phase_config: RunConfig.content

Returns:
    Note content. Any exception counts as a failed attempt.
"""

ContentSink = Callable[[GeneratedNote], Awaitable[None]]
"""Receives each finished note (storage, upload, ...)."""

PersistCallback = Callable[[list[QueueItem]], None]
"""Receives a queue snapshot after every state change."""

UpdateListener = Callable[[list[QueueItem], bool, Optional[str]], None]
"""Subscriber callback: (snapshot, is_processing, circuit_status)."""
