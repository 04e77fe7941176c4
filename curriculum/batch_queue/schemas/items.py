"""Queue item TypedDict and note dataclass."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from typing_extensions import TypedDict


class QueueItem(TypedDict):
    """A topic in the curriculum queue.

    Position in the containing list is the pick order.
    """

    id: str  # Stable opaque identifier (UUID when generated)
    topic: str  # Topic text sent to both phases
    status: str  # ItemStatus value
    structure: Optional[str]  # Phase-1 outline
    retry_count: int  # Failed attempts for the phase last claimed
    error_msg: Optional[str]  # Latest failure cause
    failed_phase: Optional[str]  # Phase value that put the item in "error"


@dataclass
class GeneratedNote:
    """Phase-2 output handed to the content sink."""

    item_id: str
    topic: str
    structure: str
    content: str
    provider: str
    model: str
    tags: list[str] = field(default_factory=list)
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
