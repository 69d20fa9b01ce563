"""Minimum-interval gate shared by every notification of a run."""

import threading
import time
from typing import Callable, Optional


class RateLimitGate:
    """
    Blocks until at least ``min_interval_ms`` has passed since the previous
    caller went through. Not a queue: callers are released one at a time in
    whatever order they acquire the lock.
    """

    def __init__(
        self,
        min_interval_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.min_interval_ms = min_interval_ms
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_sent: Optional[float] = None

    def wait(self) -> float:
        """
        Wait for the interval to elapse and mark a send.

        Returns:
            Seconds slept
        """
        with self._lock:
            slept = 0.0
            now = self._clock()

            if self._last_sent is not None:
                remaining = self.min_interval_ms / 1000.0 - (now - self._last_sent)
                if remaining > 0:
                    self._sleep(remaining)
                    slept = remaining
                    now = self._clock()

            self._last_sent = now
            return slept
