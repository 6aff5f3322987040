"""Countdown engine deriving remaining exam time from the wall clock."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import math
from typing import Callable

from exam_app.constants.exam_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_remaining(seconds: int) -> str:
    """Format whole seconds as MM:SS."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


class CountdownEngine:
    """Ticks once per interval and signals expiry exactly once.

    Remaining time is recomputed from ``clock()`` on every check instead of
    being decremented, so a suspended host resumes with the correct value.
    """

    def __init__(
        self,
        end_time: datetime,
        *,
        clock: Clock = utc_now,
        on_tick: Callable[[int], None] | None = None,
        on_expire: Callable[[], None] | None = None,
        interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._end_time = end_time
        self._clock = clock
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._interval = interval_seconds
        self._remaining: int | None = None
        self._expired = False
        self._task: asyncio.Task[None] | None = None

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def compute_remaining(self) -> int:
        delta = (self._end_time - self._clock()).total_seconds()
        return max(0, math.floor(delta))

    @property
    def remaining_seconds(self) -> int:
        if self._remaining is None:
            return self.compute_remaining()
        return self._remaining

    def check(self) -> int:
        """Re-evaluate remaining time, firing the expiry signal on first reaching zero."""
        if self._expired:
            return 0
        remaining = self.compute_remaining()
        # Never count back up if the wall clock is adjusted backwards.
        if self._remaining is not None:
            remaining = min(remaining, self._remaining)
        self._remaining = remaining
        if self._on_tick is not None:
            self._on_tick(remaining)
        if remaining == 0:
            self._expired = True
            logger.info("Countdown expired")
            if self._on_expire is not None:
                self._on_expire()
        return remaining

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="ExamCountdown")

    def stop(self) -> None:
        if self._task is not None:
            if self._task is not asyncio.current_task():
                self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while not self._expired:
            self.check()
            if self._expired:
                break
            await asyncio.sleep(self._interval)
