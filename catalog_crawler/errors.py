from __future__ import annotations

from typing import Any, Dict, Optional


class ScrapingError(Exception):
    """Base error for crawl failures; carries the URL being processed."""

    def __init__(self, message: str, url: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.url = url
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class NetworkError(ScrapingError):
    """Navigation failed after all retries were exhausted."""

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Network error for {url}{detail}", url, cause)


class ParseError(ScrapingError):
    """Required fields were missing or the parser raised."""

    def __init__(
        self,
        url: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.context = dict(context or {})
        detail = f" {self.context}" if self.context else ""
        super().__init__(f"Failed to parse {url}{detail}", url, cause)


class RetryExhaustedError(ScrapingError):
    def __init__(self, url: str, attempt_count: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed after {attempt_count} attempts: {url}", url, cause)
        self.attempt_count = attempt_count


class ContextClosedError(RuntimeError):
    """The execution context was closed before or during navigation."""


class ExecutorClosedError(RuntimeError):
    """The executor is not initialized or has been closed."""


class ConfigError(ValueError):
    pass
