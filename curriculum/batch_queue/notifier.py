"""Synchronous publish/subscribe for queue snapshots."""

import copy
import logging
from typing import Callable, Optional

from .schemas import QueueItem, UpdateListener

logger = logging.getLogger(__name__)


class QueueNotifier:
    """Registry of listeners called after every state-affecting operation.

    Listeners run synchronously, in subscription order, with
    ``(snapshot, is_processing, circuit_status)``. There is no batching;
    mutation cadence is bounded by generation latency. A listener that
    raises is logged and skipped so it cannot stall the scheduler.
    """

    def __init__(self) -> None:
        self._listeners: list[UpdateListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: UpdateListener) -> Callable[[], None]:
        """Register ``callback``; returns an idempotent unsubscribe handle."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def deliver(
        self,
        callback: UpdateListener,
        snapshot: list[QueueItem],
        is_processing: bool,
        circuit_status: Optional[str],
    ) -> None:
        """Invoke a single listener, isolating its failures."""
        try:
            callback(snapshot, is_processing, circuit_status)
        except Exception:
            logger.exception(f"Queue listener {callback!r} raised; continuing")

    def publish(
        self,
        snapshot: list[QueueItem],
        is_processing: bool,
        circuit_status: Optional[str],
    ) -> None:
        # Iterate a copy so listeners may unsubscribe while being notified;
        # each listener gets its own snapshot copy
        for callback in list(self._listeners):
            self.deliver(callback, copy.deepcopy(snapshot), is_processing, circuit_status)
