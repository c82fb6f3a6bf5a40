"""
services/countdown.py

Attempt countdown.

Remaining time is always derived from the fixed start timestamp, never
decremented, so a late or skipped tick cannot drift the clock. The
expiry callback runs at most once per controller.

States:
  Idle ──start()──> Running ──remaining == 0──> Expired
                       └────────cancel()──────> Cancelled
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from exam_prep_cbt.models.session_state import SessionClock, now_ms

logger = logging.getLogger(__name__)

WARNING_THRESHOLD_SECONDS = 600  # red timer under 10 minutes


class CountdownState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


def format_remaining(seconds: int) -> str:
    """MM:SS, minutes not wrapped at 60."""
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class CountdownController:
    """
    Ticks every `interval` seconds while Running and awaits `on_expire`
    once when the remaining time reaches zero.

    Args:
        on_expire: coroutine function invoked on expiry.
        clock:     returns the current time in epoch ms.
        interval:  seconds between ticks.
    """

    def __init__(
        self,
        on_expire: Callable[[], Awaitable[Any]],
        clock: Callable[[], int] = now_ms,
        interval: float = 1.0,
    ):
        self._on_expire = on_expire
        self._clock = clock
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.state = CountdownState.IDLE
        self.session_clock: Optional[SessionClock] = None

    @property
    def running(self) -> bool:
        return self.state is CountdownState.RUNNING

    def start(self, start_timestamp: int, duration_seconds: int) -> None:
        """Idle -> Running. Ignored in any other state. Needs a running event loop."""
        if self.state is not CountdownState.IDLE:
            logger.warning(f"countdown start ignored in state {self.state.value}")
            return
        self.session_clock = SessionClock(start_timestamp=start_timestamp, duration_seconds=duration_seconds)
        self.state = CountdownState.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def remaining(self) -> int:
        """Seconds left. 0 before start and once expired."""
        if self.session_clock is None:
            return 0
        if self.state is CountdownState.EXPIRED:
            return 0
        return self.session_clock.remaining(self._clock())

    def is_warning(self) -> bool:
        return self.running and self.remaining() < WARNING_THRESHOLD_SECONDS

    async def tick(self) -> int:
        """
        Recompute the remaining time; on reaching zero, expire and await the
        callback. Ticks outside Running change nothing.
        """
        if self.state is not CountdownState.RUNNING:
            return self.remaining()

        remaining = self.remaining()
        if remaining > 0:
            return remaining

        self.state = CountdownState.EXPIRED
        self._stop_ticker()
        logger.info("countdown expired, auto-submitting")
        await self._on_expire()
        return 0

    def cancel(self) -> None:
        """Stop ticking. Running -> Cancelled; an Expired countdown stays Expired."""
        self._stop_ticker()
        if self.state in (CountdownState.IDLE, CountdownState.RUNNING):
            self.state = CountdownState.CANCELLED

    async def _run(self) -> None:
        while self.state is CountdownState.RUNNING:
            await asyncio.sleep(self._interval)
            await self.tick()

    def _stop_ticker(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # the expiry callback runs inside the ticker; it exits on its own
        if task is _current_task():
            return
        task.cancel()


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
