"""Bounded, rate-limited, retrying execution of page operations."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, TypeVar

from .backoff import BackoffStrategy
from .config import Config
from .context_pool import ContextPool, PageContext, SessionFactory
from .controller import ConcurrencyLimiter
from .errors import ExecutorClosedError, NetworkError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchExecutor:
    """Runs caller-supplied operations against pooled page contexts.

    Three constraints apply to every call: at most ``max_concurrent``
    operations run at once, each navigation consumes one token from a
    per-minute rate budget, and failed navigations are retried with
    exponential backoff.

    Example:
        with FetchExecutor(config) as executor:
            html = executor.execute_operation(lambda page: page.content, url)
    """

    def __init__(
        self,
        config: Config,
        session_factory: Optional[Any] = None,
        rate_limiter: Optional[RateLimiter] = None,
        backoff: Optional[BackoffStrategy] = None,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.Logger] = None,
        name: str = "fetch",
    ) -> None:
        self._config = config
        self._factory = session_factory or SessionFactory(impersonate=config.impersonate)
        self._rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_minute, interval_secs=60.0)
        self._backoff = backoff or BackoffStrategy()
        self._sleep = sleep
        self._log = log or logger
        self._name = name
        self._limiter = ConcurrencyLimiter(config.max_concurrent)
        self._pool = ContextPool(
            self._factory.create,
            max_size=config.pool_size,
            timeout_secs=config.timeout_ms / 1000.0,
        )
        self._lock = threading.Lock()
        self._initialized = False
        self._closed = False

    def __enter__(self) -> "FetchExecutor":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def initialize(self) -> None:
        """Pre-warm the context pool. Safe to call more than once."""
        with self._lock:
            if self._closed:
                raise ExecutorClosedError(f"{self._name} executor is closed")
            if self._initialized:
                return
            warmed = self._pool.warm(self._config.pool_size)
            self._initialized = True
        self._log.info(
            "%s executor initialized (pool=%d, max_concurrent=%d, rate_limit=%s/min)",
            self._name,
            warmed,
            self._config.max_concurrent,
            self._config.rate_limit_per_minute,
        )

    def execute_operation(self, operation: Callable[[PageContext], T], url: Optional[str] = None) -> T:
        """Run ``operation`` on a pooled context, navigating to ``url`` first when given.

        Raises:
            NetworkError: Navigation still failed after ``max_retries`` attempts
            ExecutorClosedError: The executor is not initialized or already closed
        """
        self._ensure_usable()
        with self._limiter.slot():
            context = self._pool.acquire()
            try:
                if url:
                    context = self._navigate(context, url)
                return operation(context)
            finally:
                self._pool.release(context)

    def close(self) -> None:
        """Dispose of all contexts and the session factory. Never raises."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._limiter.close()
        try:
            disposed = self._pool.close()
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Error during %s context cleanup: %s", self._name, exc)
            disposed = 0
        try:
            self._factory.close()
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Error closing %s session factory: %s", self._name, exc)
        self._log.info("%s executor closed (disposed %d contexts)", self._name, disposed)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_stats(self) -> dict:
        stats = self._pool.get_stats()
        stats["active"] = self._limiter.active
        return stats

    def _navigate(self, context: PageContext, url: str) -> PageContext:
        """Load ``url`` with retries; returns the context that holds the page.

        A context found closed is released for disposal and replaced by a fresh
        one. If navigation fails for good, a replacement is released here; the
        context passed in always stays with the caller."""
        attempts = max(1, self._config.max_retries)
        replaced = False
        for attempt in range(1, attempts + 1):
            if context.is_closed:
                self._pool.release(context)
                context = self._pool.create()
                replaced = True
            try:
                self._rate_limiter.acquire()
                context.goto(url)
                return context
            except Exception as exc:  # noqa: BLE001
                if attempt >= attempts:
                    self._log.error("Navigation failed after %d attempts: %s (%s)", attempts, url, exc)
                    if replaced:
                        self._pool.release(context)
                    raise NetworkError(url, exc) from exc
                delay = self._backoff.get_sleep(attempt)
                self._log.warning(
                    "Attempt %d failed: %s. Retrying in %dms... (%s)",
                    attempt,
                    url,
                    int(delay * 1000),
                    exc,
                )
                self._sleep(delay)
        raise RuntimeError("Navigation loop completed without result or exception")

    def _ensure_usable(self) -> None:
        if self._closed:
            raise ExecutorClosedError(f"{self._name} executor is closed")
        if not self._initialized:
            raise ExecutorClosedError(f"{self._name} executor is not initialized")
