"""
Outbound Request Throttle
Keeps calls to the Lexware API under the account quota using a sliding
window. Clock and sleep are injectable so tests never wait on real time.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional

from . import quote_config as cfg


class RequestThrottle:
    """Sliding-window limiter shared by all Lexware calls of one process."""

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_requests = max(1, max_requests or cfg.LEXWARE_RATE_LIMIT_PER_SECOND)
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        # Scheduled start times of recent requests, ascending
        self._slots: List[float] = []
        self._blocked_until = 0.0

    def reserve(self) -> float:
        """Book the next free slot and return how long to wait for it."""
        with self._lock:
            now = self._clock()
            cutoff = now - self.window_seconds
            self._slots = [ts for ts in self._slots if ts > cutoff]

            slot = max(now, self._blocked_until)
            if len(self._slots) >= self.max_requests:
                slot = max(slot, self._slots[-self.max_requests] + self.window_seconds)

            self._slots.append(slot)
            return slot - now

    def acquire(self) -> float:
        """Block until a request may be sent. Returns the time waited."""
        wait = self.reserve()
        if wait > 0:
            self._sleep(wait)
        return wait

    def block_for(self, seconds: float) -> None:
        """Hold back all requests, e.g. after a 429 with Retry-After."""
        with self._lock:
            self._blocked_until = max(self._blocked_until, self._clock() + seconds)


# Process-wide instance used when no throttle is injected
_default_throttle: Optional[RequestThrottle] = None


def get_default_throttle() -> RequestThrottle:
    global _default_throttle
    if _default_throttle is None:
        _default_throttle = RequestThrottle()
    return _default_throttle
