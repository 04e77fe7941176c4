"""Per-item retry accounting with exponential backoff."""

import logging
from dataclasses import dataclass

from .schemas import QueueItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of evaluating one failed generation attempt."""

    retry: bool  # Re-attempt the same phase after `delay`
    delay: float  # Seconds to wait before the next attempt (0 when not retrying)
    attempt: int  # Failed attempts so far for this phase
    message: str  # Value written to the item's error_msg


def describe_error(exc: BaseException) -> str:
    """Compact, single-line description of a failure cause."""
    text = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    return text or type(exc).__name__


class RetryPolicy:
    """Decide whether a failed attempt is retried or ends the item.

    The item's ``retry_count`` counts failed attempts for the phase it was
    last claimed for; the driver resets it on each claim. After failed
    attempt ``n`` the next attempt waits ``min(base_delay * 2**n, max_delay)``.
    """

    def __init__(self, max_attempts: int = 3, base_delay: float = 2.0, max_delay: float = 30.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be non-negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt that follows failed attempt ``attempt``."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def evaluate(self, item: QueueItem, exc: BaseException) -> RetryDecision:
        """Decide what follows a failed attempt on ``item``.

        The caller writes ``decision.attempt`` to ``retry_count`` and
        ``decision.message`` to ``error_msg``; the item is not modified here.
        """
        attempt = item.get("retry_count", 0) + 1
        cause = describe_error(exc)

        if attempt < self.max_attempts:
            delay = self.backoff_delay(attempt)
            logger.warning(
                f"Item {item['id'][:8]} attempt {attempt} failed, retrying in {delay:.1f}s: {cause}"
            )
            return RetryDecision(
                retry=True,
                delay=delay,
                attempt=attempt,
                message=f"Retry {attempt}/{self.max_attempts}: {cause}",
            )

        logger.error(f"Item {item['id'][:8]} failed after {attempt} attempts: {cause}")
        return RetryDecision(
            retry=False,
            delay=0.0,
            attempt=attempt,
            message=f"Max retries exceeded ({attempt}/{self.max_attempts}): {cause}",
        )
