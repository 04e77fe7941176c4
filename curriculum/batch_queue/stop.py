"""
Cooperative stop coordination for the scheduler loop.

stop() never cancels an in-flight generation call. The driver checks
``stop_requested`` between suspension points, and backoff/cooldown waits
go through ``wait_or_stop`` so a stop wakes them immediately.

Usage:
    coordinator = StopCoordinator()

    while not coordinator.stop_requested:
        await do_one_call()
        if await coordinator.wait_or_stop(cooldown):
            break
"""

import asyncio
import logging
import signal
from typing import Optional

logger = logging.getLogger(__name__)


class StopCoordinator:
    """Stop flag backed by an asyncio.Event so waits can be interrupted."""

    def __init__(self) -> None:
        self._stop_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handlers_installed = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """Request a halt; wakes any coroutine blocked in wait_or_stop()."""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
            self._stop_event.set()

    def clear(self) -> None:
        """Re-arm for a new run (or cancel a stop that has not landed yet)."""
        self._stop_event.clear()

    async def wait_or_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds unless a stop arrives first.

        Returns:
            True if a stop was requested, False if the timeout expired
        """
        if timeout <= 0:
            await asyncio.sleep(0)
            return self.stop_requested
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to request_stop().

        Must be called with a running event loop. No-op on platforms
        without loop.add_signal_handler (Windows).
        """
        if self._handlers_installed:
            return

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Cannot install signal handlers: no running event loop")
            return

        try:
            self._loop.add_signal_handler(signal.SIGINT, self.request_stop)
            self._loop.add_signal_handler(signal.SIGTERM, self.request_stop)
            self._handlers_installed = True
            logger.debug("Signal handlers installed (SIGINT, SIGTERM)")
        except NotImplementedError:
            logger.warning("Signal handlers not supported on this platform")

    def remove_signal_handlers(self) -> None:
        if not self._handlers_installed or not self._loop:
            return

        try:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop.remove_signal_handler(signal.SIGTERM)
            self._handlers_installed = False
            logger.debug("Signal handlers removed")
        except (NotImplementedError, ValueError):
            pass
