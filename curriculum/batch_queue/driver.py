"""
Scheduler driver loop.

Provides:
- One generation call in flight at a time, picked by WorkScheduler
- Per-item retries with interruptible backoff (RetryPolicy)
- Run-wide halt on breaker trip (CircuitBreaker)
- Cooperative stop between suspension points (StopCoordinator)
- Optional cooldown between calls to smooth provider rate limits

Generation failures never escape the loop; they end up as item status,
error_msg and breaker state.
"""

import asyncio
import logging
import uuid
from typing import Optional

from curriculum.logging import end_run, start_run

from .circuit_breaker import CircuitBreaker
from .errors import GenerationError
from .retry_policy import RetryPolicy
from .schemas import (
    ContentGenerator,
    ContentSink,
    GeneratedNote,
    ItemStatus,
    Phase,
    RunConfig,
    RunState,
    StructureGenerator,
)
from .selection import WorkScheduler, WorkUnit
from .state import QueueState
from .stop import StopCoordinator

logger = logging.getLogger(__name__)

_CLAIM_STATUS = {
    Phase.STRUCTURE: ItemStatus.DRAFTING_STRUCT,
    Phase.CONTENT: ItemStatus.GENERATING_NOTE,
}


class QueueDriver:
    """Advance queue items through both phases for one run.

    Args:
        state: Queue state owned by the calling QueueService
        run_config: Frozen configuration for this run
        generate_structure: Phase-1 collaborator
        generate_content: Phase-2 collaborator
        retry_policy: Per-item attempt accounting
        breaker: Run-wide failure guard (shared across runs)
        stopper: Stop flag for this run
        exhausted: Ids that used up their attempts during this run; shared
            with the service so retry_item() can re-arm an item mid-run
        content_sink: Optional receiver for finished notes
        cooldown: Seconds to wait between generation calls
    """

    def __init__(
        self,
        state: QueueState,
        run_config: RunConfig,
        generate_structure: StructureGenerator,
        generate_content: ContentGenerator,
        retry_policy: RetryPolicy,
        breaker: CircuitBreaker,
        stopper: StopCoordinator,
        exhausted: set[str],
        content_sink: Optional[ContentSink] = None,
        cooldown: float = 0.0,
    ):
        self.state = state
        self.run_config = run_config
        self.generate_structure = generate_structure
        self.generate_content = generate_content
        self.retry_policy = retry_policy
        self.breaker = breaker
        self.stopper = stopper
        self.exhausted = exhausted
        self.content_sink = content_sink
        self.cooldown = cooldown
        self.scheduler = WorkScheduler(run_config.scheduling)
        self.calls_made = 0

    async def run(self) -> RunState:
        """Drive the queue until it drains, a stop lands, or the breaker trips.

        Returns:
            IDLE when no eligible work remains, HALTED otherwise
        """
        run_id = f"run-{uuid.uuid4().hex[:8]}"
        start_run(run_id)
        logger.info(
            f"Starting {run_id}: {len(self.state)} items, "
            f"auto_approve={self.run_config.auto_approve}, "
            f"scheduling={self.run_config.scheduling.value}"
        )
        cooldown_due = False

        try:
            while True:
                if self.breaker.tripped:
                    logger.warning(f"Halting {run_id}: {self.breaker.status_message}")
                    return RunState.HALTED
                if self.stopper.stop_requested:
                    logger.info(f"Halting {run_id}: stop requested")
                    return RunState.HALTED

                unit = self.scheduler.next_work(self.state.items, self.exhausted)
                if unit is None:
                    logger.info(f"{run_id} finished: no eligible work ({self.state.count_by_status()})")
                    return RunState.IDLE

                if cooldown_due and self.cooldown > 0:
                    cooldown_due = False
                    await self.stopper.wait_or_stop(self.cooldown)
                    # Re-check stop and re-scan; the queue may have been reordered
                    continue

                await self._process(unit)
                cooldown_due = True

        except asyncio.CancelledError:
            logger.info(f"{run_id} cancelled")
            raise

        except Exception:
            logger.exception(f"{run_id} aborted by unexpected error")
            return RunState.HALTED

        finally:
            logger.info(f"{run_id} made {self.calls_made} generation calls")
            end_run()

    async def _process(self, unit: WorkUnit) -> None:
        """Claim one item for one phase and see it to success or error."""
        item = self.state.transition(
            unit.item_id,
            _CLAIM_STATUS[unit.phase],
            retry_count=0,
            error_msg=None,
            failed_phase=None,
        )
        topic = item["topic"]
        structure = item["structure"] or ""
        logger.info(f"Item {unit.item_id[:8]} claimed for {unit.phase.value}: {topic[:50]}")

        while True:
            try:
                output = await self._call(unit.phase, topic, structure)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                current = self.state.get(unit.item_id)
                decision = self.retry_policy.evaluate(current, exc)

                if decision.retry:
                    self.state.update(
                        unit.item_id,
                        retry_count=decision.attempt,
                        error_msg=decision.message,
                    )
                    woken = await self.stopper.wait_or_stop(decision.delay)
                    if woken and self.stopper.stop_requested:
                        # Not exhausted and not counted: a later run retries it
                        self.state.transition(
                            unit.item_id,
                            ItemStatus.ERROR,
                            failed_phase=unit.phase.value,
                            error_msg=f"Stopped before next attempt ({decision.message})",
                        )
                        return
                    # A stop cancelled by start_processing() keeps the attempt count
                    continue

                self.exhausted.add(unit.item_id)
                self.breaker.record_failure(f"{topic[:50]}: {decision.message}")
                self.state.transition(
                    unit.item_id,
                    ItemStatus.ERROR,
                    retry_count=decision.attempt,
                    error_msg=decision.message,
                    failed_phase=unit.phase.value,
                )
                return

            self.breaker.record_success()
            if unit.phase is Phase.STRUCTURE:
                target = (
                    ItemStatus.STRUCT_READY
                    if self.run_config.auto_approve
                    else ItemStatus.PAUSED_FOR_REVIEW
                )
                self.state.transition(unit.item_id, target, structure=output, error_msg=None)
                logger.info(f"Item {unit.item_id[:8]} outline ready ({target.value})")
            else:
                await self._emit_note(unit.item_id, topic, structure, output)
                self.state.transition(unit.item_id, ItemStatus.DONE, error_msg=None)
                logger.info(f"Item {unit.item_id[:8]} done")
            return

    async def _call(self, phase: Phase, topic: str, structure: str) -> str:
        self.calls_made += 1
        if phase is Phase.STRUCTURE:
            output = await self.generate_structure(topic, self.run_config.structure)
        else:
            output = await self.generate_content(topic, structure, self.run_config.content)

        if not isinstance(output, str) or not output.strip():
            raise GenerationError(f"Empty {phase.value} response")
        return output

    async def _emit_note(self, item_id: str, topic: str, structure: str, content: str) -> None:
        if self.content_sink is None:
            return

        note = GeneratedNote(
            item_id=item_id,
            topic=topic,
            structure=structure,
            content=content,
            provider=self.run_config.content.provider,
            model=self.run_config.content.model,
            tags=list(self.run_config.tags),
        )
        try:
            await self.content_sink(note)
        except asyncio.CancelledError:
            raise
        except Exception:
            # Item is still marked done
            logger.exception(f"Content sink failed for item {item_id[:8]}")
