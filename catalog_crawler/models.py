from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class ResultRecord:
    title: str
    author: str
    recommendation_count: int
    url: str
    scraped_at: datetime


@dataclass(frozen=True)
class ErrorRecord:
    url: str
    error: str
    timestamp: datetime
    attempt_count: int


@dataclass(frozen=True)
class QueueStats:
    queue_size: int
    in_flight: int
    processed: int
    failed: int
    avg_processing_time_ms: float


@dataclass(frozen=True)
class ListingPage:
    links: List[str]
    next_url: Optional[str]


@dataclass(frozen=True)
class LinkOutcome:
    """Result of scraping one detail URL.

    A successful outcome without a record means the page was skipped."""

    url: str
    success: bool
    latency_ms: int
    record: Optional[ResultRecord] = None
    error: Optional[BaseException] = None
    attempt_count: int = 1

    @property
    def skipped(self) -> bool:
        return self.success and self.record is None


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total: int
    success_count: int
    skipped_count: int
    failure_count: int
    avg_latency_ms: float
    timestamp: float
