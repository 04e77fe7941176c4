"""
QueueService: the single entry point to the batch queue.

Owns the queue, circuit state and run state; composes the driver,
retry policy, breaker and notifier. Constructed explicitly at the
application's composition root with its collaborators injected.

Usage:
    service = QueueService(
        generate_structure=draft_outline,
        generate_content=write_note,
        persist=SnapshotStore(path).save,
    )
    unsubscribe = service.subscribe(render)
    service.set_queue(["Thermodynamics", "Entropy"])
    await service.start_processing(run_config)
"""

import logging
from typing import Callable, Iterable, Optional

from curriculum.config import QueueSettings

from .circuit_breaker import CircuitBreaker, CircuitState
from .driver import QueueDriver
from .errors import InvalidTransitionError, QueueBusyError, QueueError
from .notifier import QueueNotifier
from .retry_policy import RetryPolicy
from .schemas import (
    ContentGenerator,
    ContentSink,
    ItemStatus,
    PersistCallback,
    QueueItem,
    RunConfig,
    RunState,
    StructureGenerator,
    UpdateListener,
)
from .state import ItemInput, QueueState
from .stop import StopCoordinator

logger = logging.getLogger(__name__)


class QueueService:
    """Batch curriculum queue facade.

    Args:
        generate_structure: Phase-1 collaborator (topic, phase config) -> outline
        generate_content: Phase-2 collaborator (topic, outline, phase config) -> note
        persist: Called with a snapshot after every state change
        content_sink: Receives each finished note
        settings: Tuning knobs; defaults to QueueSettings()
        retry_policy: Override the policy built from settings
        breaker: Override the breaker built from settings
    """

    def __init__(
        self,
        generate_structure: Optional[StructureGenerator] = None,
        generate_content: Optional[ContentGenerator] = None,
        persist: Optional[PersistCallback] = None,
        content_sink: Optional[ContentSink] = None,
        settings: Optional[QueueSettings] = None,
        retry_policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.settings = settings or QueueSettings()
        self.generate_structure = generate_structure
        self.generate_content = generate_content
        self.content_sink = content_sink
        self._persist = persist

        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.base_delay,
            max_delay=self.settings.max_delay,
        )
        self.breaker = breaker or CircuitBreaker(threshold=self.settings.circuit_threshold)
        self.notifier = QueueNotifier()
        self.stopper = StopCoordinator()
        self.state = QueueState(on_change=self._publish)

        self._run_state = RunState.IDLE
        self._run_config: Optional[RunConfig] = None
        self._exhausted: set[str] = set()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def is_processing(self) -> bool:
        return self._run_state is RunState.RUNNING

    @property
    def circuit_state(self) -> CircuitState:
        return self.breaker.state

    @property
    def circuit_status(self) -> Optional[str]:
        return self.breaker.status_message

    @property
    def run_config(self) -> Optional[RunConfig]:
        return self._run_config

    def snapshot(self) -> list[QueueItem]:
        """Deep copy of the queue in pick order."""
        return self.state.snapshot()

    def get_item(self, item_id: str) -> QueueItem:
        """Copy of a single item.

        Raises:
            QueueItemNotFoundError: Unknown id
        """
        return dict(self.state.get(item_id))  # type: ignore[return-value]

    def get_stats(self) -> dict:
        """Queue statistics: totals by status plus run/circuit state."""
        return {
            "total": len(self.state),
            "by_status": self.state.count_by_status(),
            "run_state": self._run_state.value,
            "circuit": {
                "consecutive_failures": self.breaker.state.consecutive_failures,
                "tripped": self.breaker.tripped,
                "last_reason": self.breaker.state.last_reason,
            },
        }

    def subscribe(self, callback: UpdateListener) -> Callable[[], None]:
        """Register a listener and immediately send it the current state.

        Returns:
            Unsubscribe handle
        """
        unsubscribe = self.notifier.subscribe(callback)
        self.notifier.deliver(
            callback, self.state.snapshot(), self.is_processing, self.circuit_status
        )
        return unsubscribe

    # ------------------------------------------------------------------
    # Queue editing
    # ------------------------------------------------------------------

    def set_queue(self, items: Iterable[ItemInput]) -> None:
        """Replace the queue; resets circuit and run state.

        Accepts topic strings or QueueItem-like dicts (e.g. a persisted
        snapshot). Does not start processing.

        Raises:
            QueueBusyError: While a run is active
            ValueError: On invalid items or duplicate ids
        """
        self._ensure_idle("replace the queue")
        self.breaker.reset()
        self._exhausted.clear()
        self._run_state = RunState.IDLE
        self.state.replace(items)

    def clear(self) -> None:
        """Remove every item.

        Raises:
            QueueBusyError: While a run is active
        """
        self._ensure_idle("clear the queue")
        self._exhausted.clear()
        self.state.clear()

    def reorder(self, item_ids: list[str]) -> None:
        """Change pick order. Safe mid-run; statuses are untouched."""
        self.state.reorder(item_ids)

    def update_item_structure(self, item_id: str, new_structure: str) -> None:
        """Approve an outline (optionally edited) for phase 2.

        ``paused_for_review`` items move to ``struct_ready``; a
        ``struct_ready`` item just gets the edited outline.

        Raises:
            QueueItemNotFoundError: Unknown id
            InvalidTransitionError: Item is in any other state
            ValueError: Empty structure
        """
        if not new_structure or not new_structure.strip():
            raise ValueError("Structure text must not be empty")

        item = self.state.get(item_id)
        status = ItemStatus(item["status"])
        if status is ItemStatus.PAUSED_FOR_REVIEW:
            self.state.transition(
                item_id, ItemStatus.STRUCT_READY, structure=new_structure, error_msg=None
            )
            logger.info(f"Item {item_id[:8]} approved for content generation")
        elif status is ItemStatus.STRUCT_READY:
            self.state.update(item_id, structure=new_structure, error_msg=None)
            logger.info(f"Item {item_id[:8]} outline edited")
        else:
            raise InvalidTransitionError(item_id, status.value, ItemStatus.STRUCT_READY.value)

    def reject_structure(self, item_id: str) -> None:
        """Discard a drafted outline and send the item back to phase 1.

        Raises:
            QueueItemNotFoundError: Unknown id
            InvalidTransitionError: Item is not paused for review
        """
        self.state.transition(
            item_id,
            ItemStatus.PENDING,
            structure=None,
            retry_count=0,
            error_msg=None,
            failed_phase=None,
        )
        self._exhausted.discard(item_id)
        logger.info(f"Item {item_id[:8]} outline rejected, re-queued for drafting")

    def retry_item(self, item_id: str) -> None:
        """Make an ``error`` item eligible again, even within the current run.

        Raises:
            QueueItemNotFoundError: Unknown id
            InvalidTransitionError: Item is not in ``error``
        """
        item = self.state.get(item_id)
        if item["status"] != ItemStatus.ERROR.value:
            raise InvalidTransitionError(item_id, item["status"], "retry")
        self._exhausted.discard(item_id)
        self.state.update(item_id, retry_count=0)
        logger.info(f"Item {item_id[:8]} re-armed for {item['failed_phase']} retry")

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    async def start_processing(self, run_config: Optional[RunConfig] = None) -> RunState:
        """Run the scheduler until the queue drains, stop() lands, or the breaker trips.

        No-op if already running (a pending stop is cancelled instead) or if
        the breaker is tripped. Without ``run_config`` the previous run's
        configuration is reused.

        Returns:
            The run state after the call

        Raises:
            QueueError: No configuration or generators available
        """
        if self._run_state is RunState.RUNNING:
            if self.stopper.stop_requested:
                logger.info("Stop cancelled by start_processing; run continues")
                self.stopper.clear()
            else:
                logger.debug("start_processing ignored: already running")
            return self._run_state

        if self.breaker.tripped:
            logger.warning(f"start_processing ignored: {self.breaker.status_message}")
            return self._run_state

        config = run_config or self._run_config
        if config is None:
            raise QueueError("start_processing needs a RunConfig on first use")
        if self.generate_structure is None or self.generate_content is None:
            raise QueueError("QueueService was built without generation collaborators")

        self._run_config = config
        self._exhausted.clear()
        self.stopper.clear()
        self._run_state = RunState.RUNNING
        self._publish()

        driver = QueueDriver(
            state=self.state,
            run_config=config,
            generate_structure=self.generate_structure,
            generate_content=self.generate_content,
            retry_policy=self.retry_policy,
            breaker=self.breaker,
            stopper=self.stopper,
            exhausted=self._exhausted,
            content_sink=self.content_sink,
            cooldown=self.settings.cooldown,
        )
        final_state = RunState.HALTED
        try:
            final_state = await driver.run()
        finally:
            self._run_state = final_state
            self._publish()
        return final_state

    def stop(self) -> None:
        """Ask the running loop to halt after the in-flight call."""
        if self._run_state is not RunState.RUNNING:
            logger.debug("stop ignored: not running")
            return
        self.stopper.request_stop()
        self._publish()

    def reset_circuit(self) -> None:
        """Clear breaker state. Call start_processing again to resume."""
        self.breaker.reset()
        self._publish()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_idle(self, action: str) -> None:
        if self._run_state is RunState.RUNNING:
            raise QueueBusyError(f"Cannot {action} while processing; call stop() first")

    def _publish(self) -> None:
        snapshot = self.state.snapshot()
        if self._persist is not None:
            try:
                self._persist(snapshot)
            except Exception:
                logger.exception("Persisting queue snapshot failed")
        self.notifier.publish(snapshot, self.is_processing, self.circuit_status)
