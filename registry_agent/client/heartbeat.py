"""
Heartbeat Timer

A cancellable, recurring asyncio task that invokes a coroutine callback
every ``interval`` seconds.

Each tick launches the callback as its own task, so a slow callback never
delays the scheduling of the next tick. A tick that fires while the
previous callback is still running is skipped rather than overlapped.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class HeartbeatTimer:
    """Owned handle for one recurring heartbeat loop."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        on_error: Callable[[Exception], Awaitable[None]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            interval: Seconds between ticks
            callback: Coroutine function invoked on every tick
            on_error: Awaited with the exception when a tick's callback fails
            sleep: Sleep coroutine used between ticks
        """
        if interval <= 0:
            raise ValueError(f"Heartbeat interval must be positive, got {interval}")

        self.interval = interval
        self._callback = callback
        self._on_error = on_error
        self._sleep = sleep

        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._ticks = 0
        self._skipped = 0

    @property
    def is_armed(self) -> bool:
        return self._task is not None

    @property
    def stats(self) -> dict[str, int]:
        return {"ticks": self._ticks, "skipped": self._skipped}

    def start(self) -> bool:
        """
        Arm the timer. The first tick fires one interval from now.

        Returns:
            False if the timer was already armed
        """
        if self._task is not None:
            return False
        self._task = asyncio.create_task(self._run())
        return True

    async def stop(self) -> None:
        """Disarm the timer and wait for an in-flight callback to finish."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done() and inflight is not asyncio.current_task():
            await inflight

    async def _run(self) -> None:
        while True:
            try:
                await self._sleep(self.interval)
            except asyncio.CancelledError:
                break

            if self._inflight is not None and not self._inflight.done():
                self._skipped += 1
                logger.warning("Heartbeat tick skipped: previous heartbeat still in flight")
                continue

            self._ticks += 1
            self._inflight = asyncio.create_task(self._fire())

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"Scheduled heartbeat failed: {e}")
            if self._on_error is not None:
                await self._on_error(e)
