"""Producer/consumer hand-off between link collection and detail scraping."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Set

from .models import QueueStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSizingPolicy:
    """Shrinks batches while the crawl is struggling or congested.

    Below ``min_success_rate`` the batch is scaled by ``low_success_factor``;
    when more than ``in_flight_multiplier * max_size`` links are in flight it
    is further scaled by ``congestion_factor``. The result is floored and
    never drops below one."""

    min_success_rate: float = 0.8
    low_success_factor: float = 0.8
    in_flight_multiplier: float = 2.0
    congestion_factor: float = 0.7

    def size_for(self, max_size: int, success_rate: float, in_flight: int) -> int:
        size = float(max_size)
        if success_rate < self.min_success_rate:
            size *= self.low_success_factor
        if in_flight > self.in_flight_multiplier * max_size:
            size *= self.congestion_factor
        return max(1, math.floor(size))


class StatsTracker:
    """Processed/failed counters and a moving average of batch latency.

    Not thread-safe on its own; WorkQueue guards it with its lock."""

    def __init__(self) -> None:
        self.processed = 0
        self.failed = 0
        self.avg_processing_time_ms = 0.0

    @property
    def success_rate(self) -> float:
        total = self.processed + self.failed
        return self.processed / total if total else 1.0

    def record_success(self, count: int, elapsed_ms: float) -> None:
        # One observation per call, weighted by the previous processed count.
        before = self.processed
        self.avg_processing_time_ms = (self.avg_processing_time_ms * before + elapsed_ms) / (before + 1)
        self.processed += count

    def record_failure(self, count: int) -> None:
        self.failed += count


class WorkQueue:
    """Deduplicating FIFO of discovered links shared by both crawl loops.

    Every operation runs under one lock covering pending links, in-flight
    links and statistics, so each call is atomic with respect to the others.
    Waiters on wait_for_work() are woken whenever links arrive or the
    producer completes."""

    def __init__(
        self,
        policy: Optional[BatchSizingPolicy] = None,
        notify_interval: float = 0.1,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._policy = policy or BatchSizingPolicy()
        self._notify_interval = notify_interval
        self._log = log or logger
        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)
        self._pending: Deque[str] = deque()
        self._pending_set: Set[str] = set()
        self._in_flight: Set[str] = set()
        self._stats = StatsTracker()
        self._complete = False
        self._last_notified = 0.0

    def add_links(self, links: Iterable[str]) -> int:
        """Append links that are neither pending nor in flight; returns how many were added."""
        with self._cv:
            added = 0
            for link in links:
                if not link or link in self._in_flight or link in self._pending_set:
                    continue
                self._pending.append(link)
                self._pending_set.add(link)
                added += 1
            if added:
                self._cv.notify_all()
                self._announce(added)
            return added

    def get_batch(self, max_size: int) -> List[str]:
        """Move up to an adaptively sized number of links from pending to in flight."""
        with self._lock:
            if not self._pending or max_size <= 0:
                return []
            size = self._policy.size_for(max_size, self._stats.success_rate, len(self._in_flight))
            size = min(size, len(self._pending))
            batch = [self._pending.popleft() for _ in range(size)]
            for link in batch:
                self._pending_set.discard(link)
                self._in_flight.add(link)
            return batch

    def mark_processed(self, links: Iterable[str], success: bool, elapsed_ms: float) -> None:
        """Report the outcome of a batch and update statistics."""
        links = list(links)
        with self._cv:
            for link in links:
                self._in_flight.discard(link)
            if success:
                self._stats.record_success(len(links), elapsed_ms)
            else:
                self._stats.record_failure(len(links))
            # Completion may now be observable by waiters.
            self._cv.notify_all()

    def mark_complete(self) -> None:
        """Signal that no further links will be added. Idempotent."""
        with self._cv:
            if self._complete:
                return
            self._complete = True
            self._cv.notify_all()
        self._log.info("Link collection marked complete")

    def has_more(self) -> bool:
        with self._lock:
            return self._has_more_locked()

    def wait_for_work(self, timeout: float) -> bool:
        """Block until links are pending, the crawl is finished, or ``timeout`` elapses.

        Returns True when pending links are available."""
        deadline = time.monotonic() + max(0.0, timeout)
        with self._cv:
            while not self._pending and self._has_more_locked():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cv.wait(remaining)
            return bool(self._pending)

    def get_stats(self) -> QueueStats:
        with self._lock:
            return QueueStats(
                queue_size=len(self._pending),
                in_flight=len(self._in_flight),
                processed=self._stats.processed,
                failed=self._stats.failed,
                avg_processing_time_ms=self._stats.avg_processing_time_ms,
            )

    def size(self) -> int:
        with self._lock:
            return len(self._pending)

    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._complete

    def _has_more_locked(self) -> bool:
        return bool(self._pending) or not self._complete or bool(self._in_flight)

    def _announce(self, added: int) -> None:
        # Logging only; waiters were already notified.
        now = time.monotonic()
        if now - self._last_notified < self._notify_interval:
            return
        self._last_notified = now
        self._log.info("Added %d links to queue. Queue size: %d", added, len(self._pending))
