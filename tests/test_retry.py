"""Tests for the generic retry helper."""

import unittest

from catalog_crawler.errors import RetryExhaustedError, ScrapingError
from catalog_crawler.retry import RetryConfig, retry


class Flaky:
    def __init__(self, failures: int, value: str = "ok") -> None:
        self.failures = failures
        self.calls = 0
        self.value = value

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"failure {self.calls}")
        return self.value


class TestRetry(unittest.TestCase):
    """Verify attempts, delays and the exhaustion error."""

    def setUp(self):
        self.sleeps = []

    def _retry(self, operation, config):
        return retry(operation, config, "https://shop.test/item", sleep=self.sleeps.append)

    def test_succeeds_on_third_attempt(self):
        """Two failures followed by a success should return the success value."""
        op = Flaky(failures=2)
        result = self._retry(op, RetryConfig(max_attempts=3, delay_ms=500, backoff_factor=1.5))
        self.assertEqual(result, "ok")
        self.assertEqual(op.calls, 3)

    def test_delays_grow_by_backoff_factor(self):
        self._retry(Flaky(failures=2), RetryConfig(max_attempts=3, delay_ms=500, backoff_factor=1.5))
        self.assertEqual(self.sleeps, [0.5, 0.75])

    def test_exhaustion_reports_attempt_count(self):
        """Failing every attempt should raise a wrapped error with attempt_count=3."""
        op = Flaky(failures=5)
        with self.assertRaises(RetryExhaustedError) as ctx:
            self._retry(op, RetryConfig(max_attempts=3, delay_ms=0))
        err = ctx.exception
        self.assertIsInstance(err, ScrapingError)
        self.assertEqual(err.attempt_count, 3)
        self.assertEqual(err.url, "https://shop.test/item")
        self.assertIsInstance(err.__cause__, ConnectionError)
        self.assertEqual(op.calls, 3)
        self.assertEqual(len(self.sleeps), 2)

    def test_no_sleep_after_first_success(self):
        self._retry(Flaky(failures=0), RetryConfig())
        self.assertEqual(self.sleeps, [])


if __name__ == "__main__":
    unittest.main()
