"""Periodic refresh timer with coalescing tolerance."""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from collections.abc import Awaitable
from collections.abc import Callable

logger = logging.getLogger(__name__)

TOLERANCE_RATIO = 0.1
MIN_TOLERANCE = 1.0
MAX_TOLERANCE = 30.0


def compute_tolerance(interval: float) -> float:
    """Return clamp(interval * 0.1, 1, 30), kept strictly below the interval."""
    if interval <= 0:
        raise ValueError("interval must be positive")
    tolerance = min(max(interval * TOLERANCE_RATIO, MIN_TOLERANCE), MAX_TOLERANCE)
    if tolerance >= interval:
        tolerance = interval / 2
    return tolerance


def next_wakeup(now: float, interval: float, tolerance: float) -> float:
    """First tolerance-grid point at or after ``now + interval``."""
    return math.ceil((now + interval) / tolerance) * tolerance


class PeriodicTimer:
    """Invoke a callback roughly every ``interval`` seconds.

    Wakeups land on a grid of ``tolerance``-sized slots so that several timers
    (and other periodic work on the loop) fire together. Each tick runs the
    callback in its own task; stopping the timer never cancels a tick that is
    already running.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None] | None],
    ) -> None:
        self.interval = interval
        self.tolerance = compute_tolerance(interval)
        self.callback = callback
        self._task: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            now = loop.time()
            await asyncio.sleep(next_wakeup(now, self.interval, self.tolerance) - now)
            self._tick()

    def _tick(self) -> None:
        result = self.callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
