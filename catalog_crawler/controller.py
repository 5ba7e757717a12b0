from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .errors import ExecutorClosedError


class ConcurrencyLimiter:
    """Admits at most ``limit`` concurrent holders of a slot.

    Waiters are woken through a condition variable; ordering among them is
    not strictly FIFO."""

    def __init__(self, limit: int) -> None:
        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)
        self._limit = max(1, int(limit))
        self._active = 0
        self._closed = False

    def acquire(self) -> None:
        """Block until a slot is free."""
        with self._cv:
            while not self._closed and self._active >= self._limit:
                self._cv.wait(timeout=0.5)
            if self._closed:
                raise ExecutorClosedError("concurrency limiter is closed")
            self._active += 1

    def release(self) -> None:
        with self._cv:
            self._active = max(0, self._active - 1)
            self._cv.notify_all()

    @contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def close(self) -> None:
        with self._cv:
            self._closed = True
            self._cv.notify_all()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        with self._lock:
            return self._active


class ThreadPoolController:
    """Dispatches work onto a bounded thread pool.

    Work submitted after stop() is not run; its future fails with
    ExecutorClosedError."""

    def __init__(self, max_workers: int, thread_name_prefix: str = "crawl") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix=thread_name_prefix)
        self._lock = threading.Lock()
        self._running = False

    def start(self) -> None:
        with self._lock:
            self._running = True

    def stop(self, wait: bool = True) -> None:
        with self._lock:
            self._running = False
        self._executor.shutdown(wait=wait, cancel_futures=False)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Submit ``fn(*args)`` for execution on the pool."""
        with self._lock:
            if self._running:
                return self._executor.submit(fn, *args)
        future: Future = Future()
        future.set_exception(ExecutorClosedError("controller is stopped"))
        return future

    @property
    def running(self) -> bool:
        return self._running
