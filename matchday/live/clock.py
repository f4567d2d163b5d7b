"""
Cancellable match clock: one asyncio task per running clock, one tick per interval.

Every start() opens a new generation; stop() closes it and cancels the task. The
tick callback receives its generation so the owner can drop a tick that was
already in flight when the clock was stopped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class MatchClock:
    """
    Periodic tick source owned by a single live match engine.
    start() must be called from a running event loop.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        name: str = "match-clock",
    ) -> None:
        if interval < 0:
            raise ValueError("Clock interval must be >= 0")
        self.interval = interval
        self.name = name
        self._on_tick = on_tick
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        """True while the clock that produced this generation is still running."""
        return self._task is not None and generation == self._generation

    def start(self) -> None:
        """Begin ticking. No-op if already running. Raises RuntimeError without a running loop."""
        if self._task is not None:
            return
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._task = loop.create_task(self._run(self._generation), name=self.name)
        logger.debug("%s started (generation %d)", self.name, self._generation)

    def stop(self) -> None:
        """Stop ticking and cancel the task. Safe to call repeatedly."""
        task = self._task
        if task is None:
            return
        self._task = None
        self._generation += 1
        loop = task.get_loop()
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            task.cancel()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(task.cancel)
        logger.debug("%s stopped", self.name)

    async def _run(self, generation: int) -> None:
        while True:
            await self._sleep(self.interval)
            if generation != self._generation:
                return
            self._on_tick(generation)
