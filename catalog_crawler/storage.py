from __future__ import annotations

import csv
import io
import json
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .models import ErrorRecord, ResultRecord


class StorageBase(ABC):
    """Abstract base class for all storage backends.

    Subclasses must implement write_batch() and close() to handle
    persistence of crawl output.
    """

    @abstractmethod
    def write_batch(self, items: Sequence[Any]) -> None:
        """Persist a batch of records."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


class CsvStorage(StorageBase):
    """Appends ResultRecords to a CSV file through an in-memory line buffer.

    Fields containing separators, quotes or newlines are quoted; the buffer is
    flushed once it holds ``buffer_size`` rows and on close()."""

    def __init__(self, path: str, buffer_size: int = 1000) -> None:
        self._path = Path(path)
        self._buffer_size = max(1, buffer_size)
        self._buffer: List[str] = []
        self._lock = threading.Lock()
        self._file: Optional[io.TextIOWrapper] = None

    def write_batch(self, items: Sequence[ResultRecord]) -> None:
        """Buffer a batch of records, flushing when the buffer is full."""
        rows = [self.format_row(record) for record in items]
        with self._lock:
            self._buffer.extend(rows)
            if len(self._buffer) >= self._buffer_size:
                self._flush_locked()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def close(self) -> None:
        with self._lock:
            self._flush_locked()
            if self._file is not None:
                self._file.close()
                self._file = None

    @staticmethod
    def format_row(record: ResultRecord) -> str:
        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
        writer.writerow(
            [
                record.title,
                record.author,
                record.recommendation_count,
                record.url,
                record.scraped_at.isoformat(),
            ]
        )
        return out.getvalue()

    def _flush_locked(self) -> None:
        if not self._buffer:
            return
        if self._file is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self._path.open("a", encoding="utf-8", newline="")
        self._file.write("".join(self._buffer))
        self._file.flush()
        self._buffer = []


class JsonlStorage(StorageBase):
    """Stores ErrorRecords as JSON Lines (.jsonl) using a background writer thread."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._queue: queue.Queue[Optional[ErrorRecord]] = queue.Queue()
        self._thread = threading.Thread(target=self._writer, daemon=True)
        self._thread.start()

    def write_batch(self, items: Sequence[ErrorRecord]) -> None:
        """Enqueue records for background writing."""
        for item in items:
            self._queue.put(item)

    def write(self, record: ErrorRecord) -> None:
        self._queue.put(record)

    def close(self) -> None:
        """Signal the writer thread to flush and stop."""
        self._queue.put(None)
        self._thread.join(timeout=5)

    def _writer(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is None:
                    break
                record = asdict(item)
                record["timestamp"] = item.timestamp.isoformat()
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
                f.flush()
