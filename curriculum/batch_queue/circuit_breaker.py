"""Run-wide consecutive failure guard.

Per-item retries absorb a bad topic; the breaker catches the case where
the generation service itself is down. Each item that exhausts its
retries counts one failure and any success resets the count. Reaching
the threshold trips the breaker until an operator resets it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CircuitState:
    """Breaker counters, exposed to callers as a copy."""

    consecutive_failures: int = 0
    tripped: bool = False
    last_reason: Optional[str] = None


class CircuitBreaker:
    """Trip after ``threshold`` consecutive item failures."""

    def __init__(self, threshold: int = 3):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._state = CircuitState()

    @property
    def state(self) -> CircuitState:
        return CircuitState(
            consecutive_failures=self._state.consecutive_failures,
            tripped=self._state.tripped,
            last_reason=self._state.last_reason,
        )

    @property
    def tripped(self) -> bool:
        return self._state.tripped

    @property
    def status_message(self) -> Optional[str]:
        """Banner text while tripped, otherwise None."""
        if not self._state.tripped:
            return None
        return (
            f"Circuit breaker tripped after {self._state.consecutive_failures} "
            f"consecutive failures: {self._state.last_reason}"
        )

    def record_failure(self, reason: str) -> bool:
        """Count an item that exhausted its retries.

        Returns:
            True if this failure tripped (or the breaker was already tripped)
        """
        self._state.consecutive_failures += 1
        self._state.last_reason = reason

        if not self._state.tripped and self._state.consecutive_failures >= self.threshold:
            self._state.tripped = True
            logger.error(
                f"Circuit breaker tripped: {self._state.consecutive_failures} consecutive "
                f"item failures (last: {reason})"
            )
        return self._state.tripped

    def record_success(self) -> None:
        """Reset the consecutive failure count. A trip stays in place."""
        if self._state.consecutive_failures:
            logger.debug(
                f"Item succeeded, clearing {self._state.consecutive_failures} consecutive failures"
            )
        self._state.consecutive_failures = 0

    def reset(self) -> None:
        """Clear counters and the trip flag. Does not resume any run."""
        if self._state.tripped:
            logger.info("Circuit breaker reset")
        self._state = CircuitState()
