"""Delayed task scheduling on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("campus_api.scheduler")


class ScheduledTask:
    """Handle for a delayed callback; `cancel()` is its cancellation token."""

    def __init__(self, delay: float, timer: Optional[asyncio.TimerHandle] = None):
        self.delay = delay
        self.cancelled = False
        self.fired = False
        self._timer = timer

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()


class AsyncioScheduler:
    """Run coroutine callbacks after a delay on the running event loop.

    The timer only spawns the coroutine; it is not awaited by anyone, so
    spawned tasks are kept referenced until they finish.
    """

    def __init__(self):
        self._running: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Callable[[], Awaitable]) -> ScheduledTask:
        loop = asyncio.get_running_loop()
        task = ScheduledTask(delay)
        task._timer = loop.call_later(delay, self._spawn, loop, task, callback)
        return task

    def _spawn(self, loop: asyncio.AbstractEventLoop, task: ScheduledTask, callback) -> None:
        if task.cancelled:
            return
        task.fired = True
        running = loop.create_task(callback())
        self._running.add(running)
        running.add_done_callback(self._finished)

    def _finished(self, running: asyncio.Task) -> None:
        self._running.discard(running)
        if not running.cancelled() and running.exception() is not None:
            logger.error("scheduled task failed", exc_info=running.exception())

    def cancel_running(self) -> None:
        for running in list(self._running):
            running.cancel()
