"""
Per-worker pacing for trace emission.

Each worker owns one RateLimiter, so the aggregate rate of a pool is rate x workers.
Permits are spaced 1/rate apart with at most one pending permit: a caller that falls
behind is re-anchored to the current time instead of bursting to catch up.
"""

import threading
import time
from collections.abc import Callable


class RateLimiter:
    """Token-paced gate; rate 0 means unlimited."""

    def __init__(self, rate: float, clock: Callable[[], float] = time.monotonic):
        self.rate = max(0.0, float(rate))
        self.interval = 1.0 / self.rate if self.rate > 0 else 0.0
        self._clock = clock
        self._next_permit: float | None = None

    @property
    def unlimited(self) -> bool:
        return self.interval == 0.0

    def reserve(self) -> float:
        """Take the next permit and return how long the caller must wait for it (seconds)."""
        if self.unlimited:
            return 0.0
        now = self._clock()
        if self._next_permit is None or self._next_permit < now:
            self._next_permit = now
        delay = self._next_permit - now
        self._next_permit += self.interval
        return delay

    def wait(self, stop_event: threading.Event | None = None) -> bool:
        """Block until the next permit. Returns False when stop_event was set before or during the wait."""
        if stop_event is not None and stop_event.is_set():
            return False
        delay = self.reserve()
        if delay <= 0:
            return True
        if stop_event is None:
            time.sleep(delay)
            return True
        return not stop_event.wait(delay)
