from __future__ import annotations

import random


class BackoffStrategy:
    """Exponential backoff for navigation retries.

    Computes sleep duration as base * 2^attempt, capped at a configurable
    maximum, plus optional random jitter."""

    def __init__(self, base_seconds: float = 1.0, max_seconds: float = 10.0, jitter_ratio: float = 0.0) -> None:
        self._base = base_seconds
        self._max = max_seconds
        self._jitter_ratio = jitter_ratio

    def get_sleep(self, attempt: int) -> float:
        """Calculate the backoff sleep duration in seconds after a failed attempt (1-based)."""
        exp = min(self._max, self._base * (2 ** max(attempt, 0)))
        if self._jitter_ratio <= 0:
            return exp
        return exp + random.uniform(0, exp * self._jitter_ratio)
