from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Deque, Dict, List

from .models import LinkOutcome, MetricsSnapshot


class MetricsCollector:
    """Thread-safe collector for detail-scraping outcomes.

    Records LinkOutcome events and produces aggregated MetricsSnapshot
    objects over configurable sliding time windows."""

    def __init__(self, maxlen: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, LinkOutcome]] = deque(maxlen=maxlen)

    def record(self, outcome: LinkOutcome) -> None:
        """Record an outcome with the current timestamp."""
        with self._lock:
            self._events.append((time.time(), outcome))

    def snapshot(self, window_secs: int) -> MetricsSnapshot:
        """Return aggregated metrics for events within the last window_secs seconds."""
        now = time.time()
        cutoff = now - window_secs
        with self._lock:
            events: List[LinkOutcome] = [e for ts, e in self._events if ts >= cutoff]
        total = len(events)
        success_count = sum(1 for e in events if e.success)
        skipped_count = sum(1 for e in events if e.skipped)
        avg_latency_ms = (sum(e.latency_ms for e in events) / total) if total else 0.0

        return MetricsSnapshot(
            window_secs=window_secs,
            total=total,
            success_count=success_count,
            skipped_count=skipped_count,
            failure_count=total - success_count,
            avg_latency_ms=avg_latency_ms,
            timestamp=now,
        )

    def export_json(self) -> List[Dict]:
        """Export all recorded events as a list of dictionaries."""
        with self._lock:
            events = list(self._events)
        return [
            {
                "timestamp": ts,
                "url": e.url,
                "success": e.success,
                "skipped": e.skipped,
                "latency_ms": e.latency_ms,
                "attempt_count": e.attempt_count,
                "error_type": type(e.error).__name__ if e.error is not None else None,
            }
            for ts, e in events
        ]
