from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .context_pool import PageContext
from .fetch_executor import FetchExecutor
from .retry import RetryConfig, retry


class BaseScraper(ABC):
    """Abstract base class defining a common page scraping pipeline.

    scrape() validates the URL, then runs parse_page() on a context that has
    navigated to it. The whole fetch-and-parse step is retried as a unit, on
    top of the executor's own navigation retries.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._executor = executor
        self._retry_config = retry_config or RetryConfig()
        self._sleep = sleep
        self._log = log or logging.getLogger(type(self).__module__)

    def scrape(self, url: str) -> Any:
        self.validate(url)
        return retry(
            lambda: self._executor.execute_operation(lambda page: self.parse_page(page, url), url),
            self._retry_config,
            url,
            sleep=self._sleep,
            log=self._log,
        )

    def validate(self, url: str) -> None:
        if not url:
            raise ValueError("url is required")

    @abstractmethod
    def parse_page(self, page: PageContext, url: str) -> Any:
        ...

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
