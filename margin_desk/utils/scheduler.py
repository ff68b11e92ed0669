"""
Cancellable fixed-interval task runner.

A PeriodicTask runs one coroutine function on a wall-clock cadence. Runs never
overlap: a run that overruns the interval pushes the next tick to the following
slot instead of starting a second copy.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)


class PeriodicTask:
    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[object]],
        *,
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Interval for '{name}' must be positive, got {interval}")
        self.name = name
        self.interval = float(interval)
        self._func = func
        self._run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the loop. Calling start() on a running task returns the existing loop."""
        if self.running:
            return self._task
        log.info("Starting periodic task '%s' (every %.1fs)", self.name, self.interval)
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind. In-flight work is cancelled too."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("Stopped periodic task '%s' after %d run(s)", self.name, self.runs)

    async def wait(self) -> None:
        """Block until the loop ends (it only ends when stopped or cancelled)."""
        if self._task is not None:
            await self._task

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        if not self._run_immediately:
            next_tick += self.interval
            await asyncio.sleep(self.interval)

        while True:
            try:
                await self._func()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # The callable owns its error handling; this only keeps the loop alive.
                log.error("Periodic task '%s' raised: %s", self.name, exc, exc_info=True)
            self.runs += 1

            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                missed = int((now - next_tick) // self.interval) + 1
                self.skipped_ticks += missed
                next_tick += missed * self.interval
                log.warning(
                    "Periodic task '%s' overran its %.1fs interval; skipping %d tick(s)",
                    self.name, self.interval, missed,
                )
            await asyncio.sleep(next_tick - now)
