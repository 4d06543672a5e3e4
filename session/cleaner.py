"""
Background expiry for a SessionRegistry.

SessionCleaner runs SessionRegistry.sweep() on a fixed interval from an
asyncio task. The task is owned by the cleaner and stops when stop() is
called, typically from an application lifespan handler.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from session.registry import SessionRegistry

logger = logging.getLogger(__name__)


class SessionCleaner:
    """
    Cancellable periodic sweep of idle sessions.

    Each iteration sweeps once and then sleeps for the interval, so the
    lag between a session becoming eligible and its removal is at most
    one interval. Sweeps run in a worker thread so the table locks never
    block the event loop. A failing sweep is logged and the loop carries on.

    Example:
        cleaner = SessionCleaner(registry)
        await cleaner.start()
        ...
        await cleaner.stop()

        # or
        async with SessionCleaner(registry):
            ...
    """

    def __init__(
        self,
        registry: SessionRegistry,
        interval: Optional[timedelta] = None
    ):
        """
        Initialize the cleaner.

        Args:
            registry: The registry to sweep.
            interval: Delay between sweeps. Defaults to the registry's
                configured cleaner_interval.
        """
        self.registry = registry
        self.interval = interval or registry.config.cleaner_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        """Whether the sweep task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep task. Does nothing if it is already running."""
        if self.running:
            return

        self._task = asyncio.create_task(self._run(), name="session-cleaner")
        logger.info(
            "Session cleaner started",
            extra={"extra_data": {"interval_seconds": self.interval.total_seconds()}}
        )

    async def stop(self) -> None:
        """
        Cancel the sweep task and wait for it to finish.

        A sweep already running in its worker thread completes on its own.
        """
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        # Cancellation of the caller itself still propagates
        await asyncio.wait({task})

        logger.info("Session cleaner stopped")

    async def _run(self) -> None:
        delay = self.interval.total_seconds()
        while True:
            try:
                await asyncio.to_thread(self.registry.sweep)
            except Exception:
                logger.exception("Session sweep failed")
            await asyncio.sleep(delay)

    async def __aenter__(self) -> "SessionCleaner":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def __repr__(self) -> str:
        return (
            f"SessionCleaner(interval={self.interval.total_seconds()}s, "
            f"running={self.running})"
        )
