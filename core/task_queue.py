"""Process-wide gate for outbound catalog page requests."""

from __future__ import annotations

import asyncio
from typing import Optional, TypeVar

import aiolimiter

from core.types import AsyncTask
from utils.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class RateLimitedTaskQueue:
    """Run async tasks with bounded concurrency and spaced start times.

    At most ``concurrency`` tasks run at once, and two task starts are never
    closer than ``interval_seconds`` apart, even when a slot is free. Tasks
    are admitted in submission order; each caller awaits only its own task.
    """

    def __init__(self, concurrency: int = 2, interval_seconds: float = 2.0):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.interval_seconds = max(0.0, interval_seconds)

        self._semaphore = asyncio.Semaphore(concurrency)
        # One start per interval; level drains continuously between starts.
        self._start_limiter: Optional[aiolimiter.AsyncLimiter] = (
            aiolimiter.AsyncLimiter(1, self.interval_seconds)
            if self.interval_seconds > 0
            else None
        )
        self._running = 0
        self._pending = 0

    @property
    def running(self) -> int:
        return self._running

    @property
    def pending(self) -> int:
        return self._pending

    async def submit(self, task: AsyncTask[T]) -> T:
        """Wait for admission, run ``task`` and return its result.

        Exceptions raised by the task propagate to this caller only.
        """
        self._pending += 1
        admitted = False
        try:
            async with self._semaphore:
                if self._start_limiter is not None:
                    await self._start_limiter.acquire()
                self._pending -= 1
                admitted = True
                self._running += 1
                logger.debug(
                    "Task admitted (running=%d, pending=%d)", self._running, self._pending
                )
                try:
                    return await task()
                finally:
                    self._running -= 1
        finally:
            if not admitted:
                self._pending -= 1
