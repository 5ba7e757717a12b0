"""Reusable HTTP execution contexts for page fetching."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Set

import requests
from curl_cffi import requests as curl_requests

from .errors import ContextClosedError, ExecutorClosedError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml;q=0.9",
    "Accept-Language": "el-GR,el;q=0.9,en;q=0.8",
}


class SessionFactory:
    """Creates HTTP sessions for page contexts.

    Sessions impersonate a desktop browser's TLS fingerprint through
    curl_cffi when ``impersonate`` is set, and are plain requests sessions
    otherwise. Only the HTML document is ever fetched; images, fonts,
    stylesheets and media are never loaded."""

    def __init__(self, impersonate: Optional[str] = "chrome120", headers: Optional[Mapping[str, str]] = None) -> None:
        self._impersonate = impersonate
        self._headers = dict(DEFAULT_HEADERS)
        if headers:
            self._headers.update(headers)
        self._closed = False

    def create(self) -> Any:
        if self._closed:
            raise ExecutorClosedError("session factory is closed")
        if self._impersonate:
            session = curl_requests.Session(impersonate=self._impersonate)
        else:
            session = requests.Session()
        session.headers.update(self._headers)
        return session

    def close(self) -> None:
        self._closed = True


class PageContext:
    """Browser-page-like wrapper around one HTTP session.

    Holds the most recently loaded document until stop() resets it."""

    def __init__(self, session: Any, timeout_secs: float = 30.0) -> None:
        self._session = session
        self._timeout = timeout_secs
        self._closed = False
        self.url: Optional[str] = None
        self.status_code: Optional[int] = None
        self.content: str = ""

    @property
    def is_closed(self) -> bool:
        return self._closed

    def goto(self, url: str) -> None:
        """Load ``url``; raises for transport errors and HTTP status >= 400."""
        if self._closed:
            raise ContextClosedError(f"context closed before navigation to {url}")
        response = self._session.get(url, timeout=self._timeout)
        if self._closed:
            raise ContextClosedError(f"context closed during navigation to {url}")
        response.raise_for_status()
        self.url = str(getattr(response, "url", url) or url)
        self.status_code = getattr(response, "status_code", None)
        self.content = response.text

    def stop(self) -> None:
        """Drop the loaded document so the context can be reused."""
        if self._closed:
            raise ContextClosedError("context is closed")
        self.url = None
        self.status_code = None
        self.content = ""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.content = ""
        self._session.close()


class ContextPool:
    """Bounded pool of live page contexts.

    Contexts are handed out by acquire() and come back through release(),
    which returns live contexts to the pool while it is under capacity and
    disposes of the rest. Every created context is tracked until disposed,
    so close() also reaches contexts that are still checked out."""

    def __init__(
        self,
        factory: Callable[[], Any],
        max_size: int = 20,
        timeout_secs: float = 30.0,
    ) -> None:
        self._factory = factory
        self._max_size = max_size
        self._timeout = timeout_secs
        self._lock = threading.Lock()
        self._idle: Deque[PageContext] = deque()
        self._open: Set[PageContext] = set()
        self._closed = False

    def acquire(self) -> PageContext:
        """Pop a live context from the pool or create a new one."""
        with self._lock:
            if self._closed:
                raise ExecutorClosedError("context pool is closed")
            while self._idle:
                context = self._idle.pop()
                if not context.is_closed:
                    return context
                self._open.discard(context)
        return self.create()

    def create(self) -> PageContext:
        context = PageContext(self._factory(), timeout_secs=self._timeout)
        with self._lock:
            if self._closed:
                closed = True
            else:
                closed = False
                self._open.add(context)
        if closed:
            self._dispose(context)
            raise ExecutorClosedError("context pool is closed")
        logger.debug("Created page context (%d open)", len(self._open))
        return context

    def release(self, context: PageContext) -> None:
        """Reset and return ``context`` to the pool, or dispose of it. Never raises."""
        if context.is_closed:
            self._forget(context)
            return
        with self._lock:
            reusable = not self._closed and len(self._idle) < self._max_size
        if not reusable:
            self._dispose(context)
            return
        try:
            context.stop()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to reset page context: %s", exc)
            self._dispose(context)
            return
        with self._lock:
            if not self._closed and len(self._idle) < self._max_size:
                self._idle.append(context)
                return
        self._dispose(context)

    def warm(self, count: int) -> int:
        """Pre-create up to ``count`` idle contexts; returns how many were added."""
        added = 0
        for _ in range(max(0, min(count, self._max_size) - len(self._idle))):
            context = self.create()
            with self._lock:
                self._idle.append(context)
            added += 1
        return added

    def close(self) -> int:
        """Dispose of every context, pooled or checked out. Never raises."""
        with self._lock:
            self._closed = True
            contexts = list(self._open)
            self._idle.clear()
        for context in contexts:
            self._dispose(context)
        logger.debug("Context pool closed (disposed %d)", len(contexts))
        return len(contexts)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "max_size": self._max_size,
                "open": len(self._open),
                "idle": len(self._idle),
                "in_use": len(self._open) - len(self._idle),
            }

    def _dispose(self, context: PageContext) -> None:
        try:
            context.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error closing page context: %s", exc)
        finally:
            self._forget(context)

    def _forget(self, context: PageContext) -> None:
        with self._lock:
            self._open.discard(context)
