"""Tests for the storage backends."""

import json
import os
import tempfile
import unittest
from datetime import datetime, timezone

from catalog_crawler.models import ErrorRecord, ResultRecord
from catalog_crawler.storage import CsvStorage, JsonlStorage

WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _record(**overrides) -> ResultRecord:
    defaults = dict(title="Title", author="Author", recommendation_count=2, url="https://shop.test/a", scraped_at=WHEN)
    defaults.update(overrides)
    return ResultRecord(**defaults)


class TestCsvStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = os.path.join(self.tmp.name, "out", "books.csv")

    def _read(self) -> str:
        with open(self.path, encoding="utf-8") as f:
            return f.read()

    def test_format_row(self):
        row = CsvStorage.format_row(_record())
        self.assertEqual(row, "Title,Author,2,https://shop.test/a,2024-05-01T12:00:00+00:00\n")

    def test_quotes_separators_quotes_and_newlines(self):
        row = CsvStorage.format_row(_record(title='Say "hi", again', author="Line\nbreak"))
        self.assertTrue(row.startswith('"Say ""hi"", again","Line\nbreak",2,'))

    def test_buffers_until_close(self):
        """Rows should reach disk when the buffer fills or on close()."""
        storage = CsvStorage(self.path, buffer_size=10)
        storage.write_batch([_record()])
        self.assertFalse(os.path.exists(self.path))
        storage.close()
        self.assertEqual(self._read().count("\n"), 1)

    def test_flushes_when_buffer_full(self):
        storage = CsvStorage(self.path, buffer_size=2)
        storage.write_batch([_record(), _record(title="Second")])
        self.assertIn("Second", self._read())
        storage.close()

    def test_appends_to_existing_file(self):
        for title in ("First", "Second"):
            storage = CsvStorage(self.path)
            storage.write_batch([_record(title=title)])
            storage.close()
        lines = self._read().splitlines()
        self.assertEqual([line.split(",")[0] for line in lines], ["First", "Second"])


class TestJsonlStorage(unittest.TestCase):
    def test_writes_error_records(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "errors.jsonl")
            storage = JsonlStorage(path)
            storage.write_batch([ErrorRecord(url="https://shop.test/a", error="boom", timestamp=WHEN, attempt_count=3)])
            storage.close()
            with open(path, encoding="utf-8") as f:
                rows = [json.loads(line) for line in f]
        self.assertEqual(
            rows,
            [{"url": "https://shop.test/a", "error": "boom", "timestamp": "2024-05-01T12:00:00+00:00", "attempt_count": 3}],
        )


if __name__ == "__main__":
    unittest.main()
