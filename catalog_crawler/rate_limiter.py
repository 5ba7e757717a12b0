from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """Thread-safe token-bucket rate limiter.

    The bucket holds ``tokens_per_interval`` tokens (never less than one),
    starts full and refills continuously so that ``tokens_per_interval``
    tokens are granted per ``interval_secs``. Calling acquire() blocks the
    current thread until the requested tokens are available."""

    def __init__(
        self,
        tokens_per_interval: float,
        interval_secs: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        # Rates below one token per interval still grant whole tokens, just slowly.
        self._capacity = max(1.0, float(tokens_per_interval)) if tokens_per_interval > 0 else 0.0
        self._rate = tokens_per_interval / interval_secs if tokens_per_interval > 0 and interval_secs > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = self._capacity
        self._updated = clock()

    @property
    def enabled(self) -> bool:
        return self._rate > 0

    def acquire(self, tokens: float = 1.0) -> None:
        """Block until ``tokens`` are available, then consume them."""
        if not self.enabled:
            return
        if tokens > self._capacity:
            raise ValueError(f"cannot acquire {tokens} tokens from a bucket of {self._capacity}")
        # Waiters serialize on the lock so tokens are handed out in arrival order.
        with self._lock:
            self._refill()
            if self._tokens < tokens:
                self._sleep((tokens - self._tokens) / self._rate)
                self._refill()
            self._tokens -= tokens

    def available(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._updated = now
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
