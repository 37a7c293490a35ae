"""
Fixed-rate asyncio timer used by the schedulers.

Each tick runs as its own task, so a slow fetch never delays the next
tick.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class PeriodicTimer:
    """Fires an async callback every interval until stopped."""

    def __init__(self, name: str, callback: TickCallback):
        self.name = name
        self.callback = callback
        self.interval_seconds: float | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_tasks: set[asyncio.Task[None]] = set()

    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self, interval_seconds: float, fire_immediately: bool = True) -> None:
        """
        Start firing the callback.

        Args:
            interval_seconds: Spacing between ticks
            fire_immediately: Run the first tick now instead of after one interval
        """
        if self.is_running():
            self._loop_task.cancel()  # type: ignore[union-attr]

        self.interval_seconds = interval_seconds
        self._loop_task = asyncio.create_task(
            self._run(interval_seconds, fire_immediately), name=f"{self.name}-timer"
        )
        logger.debug(
            "Timer started", timer=self.name, interval_seconds=interval_seconds
        )

    def restart(self, interval_seconds: float) -> None:
        """Switch a running timer to a new interval; in-flight ticks continue."""
        if not self.is_running():
            return
        self.start(interval_seconds, fire_immediately=False)

    async def stop(self) -> None:
        """Cancel the timer and any in-flight ticks; no tick fires afterwards."""
        tasks = list(self._tick_tasks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tick_tasks.clear()
        logger.debug("Timer stopped", timer=self.name)

    async def _run(self, interval_seconds: float, fire_immediately: bool) -> None:
        if not fire_immediately:
            await asyncio.sleep(interval_seconds)
        while True:
            task = asyncio.create_task(self._guarded_tick(), name=f"{self.name}-tick")
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            await asyncio.sleep(interval_seconds)

    async def _guarded_tick(self) -> None:
        try:
            await self.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Timer tick failed", timer=self.name, error=str(e))
