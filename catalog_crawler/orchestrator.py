"""Runs link collection and detail scraping concurrently over a shared WorkQueue."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .config import Config
from .controller import ThreadPoolController
from .errors import ExecutorClosedError
from .fetch_executor import FetchExecutor
from .log import event
from .metrics import MetricsCollector
from .models import ErrorRecord, LinkOutcome, QueueStats
from .scrapers import DetailScraper, ListingScraper
from .storage import StorageBase
from .work_queue import WorkQueue

logger = logging.getLogger(__name__)

MIN_WAIT_MS = 50.0
MAX_WAIT_MS = 1000.0
WAIT_FRACTION = 0.2


class CrawlOrchestrator:
    """Coordinates the collection loop (producer) and the detail loop (consumer).

    Each loop owns its FetchExecutor for the duration of the loop. The first
    failure in either loop stops both; shutdown() does the same on request.

    Example:
        orchestrator = CrawlOrchestrator(config, queue, listing, detail,
                                         link_executor, detail_executor,
                                         storage, error_storage)
        stats = orchestrator.run()
    """

    def __init__(
        self,
        config: Config,
        queue: WorkQueue,
        listing_scraper: ListingScraper,
        detail_scraper: DetailScraper,
        link_executor: FetchExecutor,
        detail_executor: FetchExecutor,
        storage: StorageBase,
        error_storage: StorageBase,
        metrics: Optional[MetricsCollector] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._queue = queue
        self._listing_scraper = listing_scraper
        self._detail_scraper = detail_scraper
        self._link_executor = link_executor
        self._detail_executor = detail_executor
        self._storage = storage
        self._error_storage = error_storage
        self._metrics = metrics
        self._log = log or logger
        self._stop = threading.Event()
        self._last_progress = time.monotonic()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self) -> QueueStats:
        """Run both loops to completion; re-raises the first failure after both stop."""
        started = time.monotonic()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="crawl-loop") as pool:
            futures: Dict[Future, str] = {
                pool.submit(self.collect_links): "collection",
                pool.submit(self.process_details): "details",
            }
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            if any(f.exception() is not None for f in done):
                self.shutdown()
            wait(futures)

        first_error: Optional[BaseException] = None
        for future, name in futures.items():
            exc = future.exception()
            if exc is not None and first_error is None:
                self._log.error("%s loop failed: %s", name, exc)
                first_error = exc
        if first_error is not None:
            raise first_error

        stats = self._queue.get_stats()
        self._log.info(
            event(
                "Crawl completed",
                processed=stats.processed,
                failed=stats.failed,
                duration=f"{time.monotonic() - started:.1f}s",
                avg_processing_time_ms=round(stats.avg_processing_time_ms),
            )
        )
        return stats

    def shutdown(self) -> None:
        """Stop taking new work and close both executors (best effort)."""
        if self._stop.is_set():
            return
        self._stop.set()
        self._log.warning("Shutdown requested; closing executors")
        self._queue.mark_complete()
        self._link_executor.close()
        self._detail_executor.close()

    def collect_links(self) -> int:
        """Walk the listing pages from the seed URL, feeding links into the queue.

        Returns the number of listing pages fetched. The queue is always marked
        complete on exit, including on failure."""
        pages = 0
        total = 0
        try:
            with self._link_executor:
                url: Optional[str] = self._config.seed_url
                while url and not self._stop.is_set():
                    listing = self._listing_scraper.scrape(url)
                    pages += 1
                    if not listing.links:
                        self._log.info("Page %d has no links; stopping", pages)
                        break
                    total += self._queue.add_links(listing.links)
                    self._log.info("Processed page %d. Total links: %d", pages, total)
                    url = listing.next_url
                else:
                    if not self._stop.is_set():
                        self._log.info("No more pages to process")
        except Exception as exc:  # noqa: BLE001
            if self._stop.is_set():
                self._log.warning("Link collection interrupted by shutdown: %s", exc)
                return pages
            self._log.error("Failed to scrape links: %s", exc)
            raise
        finally:
            self._queue.mark_complete()

        self._log.info("Link collection completed. Pages: %d, links collected: %d", pages, total)
        return pages

    def process_details(self) -> QueueStats:
        """Drain the queue in adaptive batches until collection is done and nothing is in flight."""
        controller = ThreadPoolController(max_workers=self._config.max_concurrent, thread_name_prefix="detail")
        try:
            with self._detail_executor:
                controller.start()
                while self._queue.has_more() and not self._stop.is_set():
                    batch = self._queue.get_batch(self._config.max_concurrent)
                    if batch:
                        self._process_batch(batch, controller)
                        self._log_progress()
                        continue
                    self._queue.wait_for_work(self._wait_seconds())
        except Exception as exc:  # noqa: BLE001
            if self._stop.is_set():
                self._log.warning("Detail scraping interrupted by shutdown: %s", exc)
                return self._queue.get_stats()
            self._log.error("Failed to scrape details: %s", exc)
            raise
        finally:
            controller.stop(wait=True)

        stats = self._queue.get_stats()
        self._log.info(
            event(
                "Details scraping completed",
                processed=stats.processed,
                failed=stats.failed,
                avg_processing_time_ms=round(stats.avg_processing_time_ms),
            )
        )
        return stats

    def _process_batch(self, batch: List[str], controller: ThreadPoolController) -> None:
        started = time.monotonic()
        try:
            futures = [controller.submit(self._detail_scraper.run, url) for url in batch]
            outcomes: List[LinkOutcome] = [f.result() for f in futures]

            records = [o.record for o in outcomes if o.success and o.record is not None]
            failures = [o for o in outcomes if not o.success]
            reported = [o for o in failures if not self._cut_short(o)]
            if records:
                self._storage.write_batch(records)
            if reported:
                self._error_storage.write_batch(self._error_records(reported))
        except Exception:
            self._queue.mark_processed(batch, False, _elapsed_ms(started))
            raise

        self._queue.mark_processed(batch, not failures, _elapsed_ms(started))
        stats = self._queue.get_stats()
        self._log.info(
            event(
                "Batch processing completed",
                successful=len(records),
                failed=len(failures),
                skipped=sum(1 for o in outcomes if o.skipped),
                queue_size=stats.queue_size,
                avg_processing_time_ms=round(stats.avg_processing_time_ms),
                total_processed=stats.processed,
            )
        )

    def _cut_short(self, outcome: LinkOutcome) -> bool:
        """True when an item failed only because shutdown closed the executor under it."""
        return self._stop.is_set() and isinstance(outcome.error, ExecutorClosedError)

    def _wait_seconds(self) -> float:
        avg = self._queue.get_stats().avg_processing_time_ms
        return min(max(avg * WAIT_FRACTION, MIN_WAIT_MS), MAX_WAIT_MS) / 1000.0

    def _log_progress(self) -> None:
        if self._metrics is None:
            return
        now = time.monotonic()
        if now - self._last_progress < self._config.progress_interval_secs:
            return
        self._last_progress = now
        window = int(self._config.progress_interval_secs) or 1
        snap = self._metrics.snapshot(window)
        self._log.info(
            event(
                "Progress",
                window_secs=snap.window_secs,
                scraped=snap.total,
                succeeded=snap.success_count,
                skipped=snap.skipped_count,
                failed=snap.failure_count,
                avg_latency_ms=round(snap.avg_latency_ms),
                executor=self._detail_executor.get_stats(),
            )
        )

    @staticmethod
    def _error_records(failures: Sequence[LinkOutcome]) -> List[ErrorRecord]:
        now = datetime.now(timezone.utc)
        return [
            ErrorRecord(
                url=o.url,
                error=f"{type(o.error).__name__}: {o.error}" if o.error is not None else "unknown error",
                timestamp=now,
                attempt_count=o.attempt_count,
            )
            for o in failures
        ]


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0
