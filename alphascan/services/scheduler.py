from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)


def seconds_until_next(interval: float, now: Optional[float] = None) -> float:
    """Seconds until the next wall-clock multiple of ``interval`` (cron-style alignment)."""
    now = time.time() if now is None else now
    remaining = interval - (now % interval)
    return remaining if remaining > 0 else interval


class Scheduler:
    """Fires ``job`` once after ``startup_delay`` and then on every interval boundary."""

    def __init__(
        self,
        job: Callable[[], object],
        interval_minutes: int = 10,
        startup_delay: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.job = job
        self.interval = interval_minutes * 60
        self.startup_delay = startup_delay
        self.sleep = sleep
        self._tasks = []

    def _fire(self, reason: str) -> None:
        log.info("%s scan starting...", reason)
        try:
            self.job()
        except Exception:
            log.exception("Scheduled scan failed to start")

    async def _startup(self) -> None:
        await self.sleep(self.startup_delay)
        self._fire("Initial")

    async def _loop(self) -> None:
        while True:
            await self.sleep(seconds_until_next(self.interval))
            self._fire("Scheduled")

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._tasks = [loop.create_task(self._startup()), loop.create_task(self._loop())]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
