from __future__ import annotations

from typing import Any, Optional

from .base import BaseScraper
from .context_pool import PageContext
from .errors import RetryExhaustedError
from .metrics import MetricsCollector
from .models import LinkOutcome, ListingPage, ResultRecord
from .parser import CatalogParser


class ListingScraper(BaseScraper):
    """Fetches one listing page and returns its item links and next page link."""

    def __init__(self, executor, parser: CatalogParser, *args, **kwargs) -> None:
        super().__init__(executor, *args, **kwargs)
        self._parser = parser

    def parse_page(self, page: PageContext, url: str) -> ListingPage:
        return self._parser.parse_listing(page.content, page.url or url)


class DetailScraper(BaseScraper):
    """Fetches one detail page and extracts its ResultRecord.

    run() never raises: every failure becomes a failed LinkOutcome."""

    def __init__(
        self,
        executor,
        parser: CatalogParser,
        *args,
        metrics: Optional[MetricsCollector] = None,
        **kwargs,
    ) -> None:
        super().__init__(executor, *args, **kwargs)
        self._parser = parser
        self._metrics = metrics

    def parse_page(self, page: PageContext, url: str) -> Optional[ResultRecord]:
        return self._parser.parse_detail(page.content, url)

    def run(self, url: str) -> LinkOutcome:
        start_ms = self._now_ms()
        try:
            record = self.scrape(url)
            outcome = LinkOutcome(
                url=url,
                success=True,
                latency_ms=self._now_ms() - start_ms,
                record=record,
            )
        except Exception as exc:  # noqa: BLE001
            outcome = LinkOutcome(
                url=url,
                success=False,
                latency_ms=self._now_ms() - start_ms,
                error=_root_cause(exc),
                attempt_count=getattr(exc, "attempt_count", 1),
            )
            self._log.error("Failed to process %s: %s", url, outcome.error)
        if self._metrics:
            self._metrics.record(outcome)
        return outcome


def _root_cause(exc: BaseException) -> Any:
    # Report the error that made the last attempt fail, not the retry wrapper.
    if isinstance(exc, RetryExhaustedError) and exc.cause is not None:
        return exc.cause
    return exc
