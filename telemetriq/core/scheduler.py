from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class RecurringTask:
    """
    Invoke a synchronous callback every `period` seconds on the running
    asyncio loop.

    The callback runs to completion between awaits, so two invocations (or an
    invocation and any other loop-bound handler) never interleave.
    """

    def __init__(self, period: float, callback: Callable[[], object], name: str = "tick") -> None:
        if period <= 0:
            raise ValueError("period must be > 0")
        self.period = float(period)
        self.name = name
        self._callback = callback
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.info("Started recurring task %r (period=%.3fs)", self.name, self.period)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped recurring task %r after %d runs", self.name, self.runs)

    def run_once(self) -> None:
        self._callback()
        self.runs += 1

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.period
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            next_at += self.period
            try:
                self.run_once()
            except Exception:
                logger.exception("Recurring task %r failed; continuing", self.name)
