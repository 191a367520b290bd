"""Cancellable periodic background tasks.

Components that need a timer (tracker cleanup, system metrics sampling)
own a PeriodicTask and start/stop it with their own lifetime:

    task = PeriodicTask("tracker-cleanup", 3600.0, tracker.cleanup_expired)
    task.start()
    ...
    await task.stop()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs an async callback every ``interval`` seconds until stopped.

    A failing run is logged and the schedule continues.

    Args:
        name: Name used in logs and as the asyncio task name
        interval: Seconds between runs
        callback: Coroutine function to run
        run_immediately: Run once right after start instead of waiting
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        run_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately
        self.run_count = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop. Idempotent."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("Started periodic task %s (every %.1fs)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped periodic task %s", self.name)

    async def run_once(self) -> None:
        """Run the callback once, logging failures."""
        try:
            await self.callback()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)
        finally:
            self.run_count += 1

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()
