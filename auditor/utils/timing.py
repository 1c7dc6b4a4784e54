"""
Timing utilities.

Provides latency measurement and the timer scheduler used for alert
channels.
"""

import asyncio
import time
from typing import Callable, Optional


class Timer:
    """
    High-precision timer for measuring operation latency.

    Uses monotonic clock for reliable measurements.
    """

    def __init__(self):
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None

    def start(self) -> "Timer":
        """Start the timer."""
        self._start_time = time.monotonic()
        self._end_time = None
        return self

    def stop(self) -> float:
        """
        Stop the timer and return elapsed time in milliseconds.

        Returns:
            Elapsed time in milliseconds
        """
        self._end_time = time.monotonic()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        """
        Get elapsed time in milliseconds.

        Returns:
            Elapsed time in milliseconds, or 0 if timer not started
        """
        if self._start_time is None:
            return 0.0

        end = self._end_time if self._end_time is not None else time.monotonic()
        return (end - self._start_time) * 1000.0


class LoopScheduler:
    """
    Timer scheduler on an asyncio event loop.

    call_later() returns a handle with cancel(), like asyncio.TimerHandle.
    Alert channels depend only on this interface so tests can substitute a
    scheduler driven by simulated time.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        """Run callback after delay_s seconds on the loop."""
        return self.loop.call_later(delay_s, callback)

    def time(self) -> float:
        """Current loop time in seconds."""
        return self.loop.time()
