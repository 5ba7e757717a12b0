"""End-to-end tests for CrawlOrchestrator against a fake catalog site."""

import threading
import unittest

from catalog_crawler.errors import RetryExhaustedError
from catalog_crawler.fetch_executor import FetchExecutor
from catalog_crawler.metrics import MetricsCollector
from catalog_crawler.orchestrator import CrawlOrchestrator
from catalog_crawler.parser import CatalogParser
from catalog_crawler.scrapers import DetailScraper, ListingScraper

from fakes import (
    BASE_URL,
    FakeSessionFactory,
    FakeSite,
    MemoryStorage,
    RecordingQueue,
    detail_html,
    listing_html,
    make_config,
    no_sleep,
)


def _item(name: str) -> str:
    return f"{BASE_URL}/item/{name}"


def _page(n: int) -> str:
    return f"{BASE_URL}/list?page={n}"


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self):
        self.site = FakeSite(
            {
                _page(1): listing_html(["/item/a", "/item/b", "/item/c"], next_href="/list?page=2"),
                _page(2): listing_html(["/item/d"], next_href="/list?page=3"),
                _page(3): listing_html([]),
                _item("a"): detail_html("Alpha", "Author A", recommendations=2),
                _item("b"): detail_html("Beta", "Author B", recommendations=1),
                _item("c"): detail_html("Gamma", "Author C", recommendations=0),
                _item("d"): detail_html("Delta", "Author D", recommendations=5),
            }
        )
        self.config = make_config()
        self.queue = RecordingQueue()
        self.storage = MemoryStorage()
        self.error_storage = MemoryStorage()
        self.metrics = MetricsCollector()

    def build(self) -> CrawlOrchestrator:
        parser = CatalogParser()
        factory = FakeSessionFactory(self.site)
        self.link_executor = FetchExecutor(self.config, session_factory=factory, sleep=no_sleep, name="link")
        self.detail_executor = FetchExecutor(self.config, session_factory=factory, sleep=no_sleep, name="detail")
        return CrawlOrchestrator(
            config=self.config,
            queue=self.queue,
            listing_scraper=ListingScraper(self.link_executor, parser, self.config.page_retry, sleep=no_sleep),
            detail_scraper=DetailScraper(
                self.detail_executor, parser, self.config.detail_retry, sleep=no_sleep, metrics=self.metrics
            ),
            link_executor=self.link_executor,
            detail_executor=self.detail_executor,
            storage=self.storage,
            error_storage=self.error_storage,
            metrics=self.metrics,
        )

    def run_with_timeout(self, orchestrator: CrawlOrchestrator, timeout: float = 20.0):
        result = {}

        def target():
            try:
                result["stats"] = orchestrator.run()
            except Exception as exc:  # noqa: BLE001
                result["error"] = exc

        thread = threading.Thread(target=target, daemon=True)
        thread.start()
        thread.join(timeout)
        self.assertFalse(thread.is_alive(), "crawl did not terminate")
        return result


class TestCollectLinks(OrchestratorTestCase):
    def test_walks_pages_until_empty_page(self):
        """Three pages are fetched; the queue receives a, b, c, d exactly once and completes once."""
        orchestrator = self.build()
        pages = orchestrator.collect_links()
        self.assertEqual(pages, 3)
        self.assertEqual(self.queue.added, [_item(n) for n in "abcd"])
        self.assertEqual(self.queue.size(), 4)
        self.assertEqual(self.queue.complete_calls, 1)
        self.assertTrue(self.link_executor.closed)

    def test_stops_when_no_next_page(self):
        self.site.pages[_page(1)] = listing_html(["/item/a"])
        orchestrator = self.build()
        self.assertEqual(orchestrator.collect_links(), 1)
        self.assertEqual(self.queue.added, [_item("a")])

    def test_failure_still_marks_queue_complete(self):
        """A listing page that never loads propagates, but only after the queue is completed."""
        self.site.failures[_page(2)] = 100
        orchestrator = self.build()
        with self.assertRaises(RetryExhaustedError):
            orchestrator.collect_links()
        self.assertEqual(self.queue.complete_calls, 1)
        self.assertTrue(self.queue.is_complete)
        self.assertTrue(self.link_executor.closed)


class TestProcessDetails(OrchestratorTestCase):
    def test_drains_queue_and_writes_results(self):
        self.queue.add_links([_item(n) for n in "abcd"])
        self.queue.mark_complete()
        orchestrator = self.build()
        stats = orchestrator.process_details()
        self.assertEqual(stats.processed, 4)
        self.assertEqual(stats.failed, 0)
        self.assertEqual(sorted(r.title for r in self.storage.items), ["Alpha", "Beta", "Delta"])
        self.assertEqual(self.error_storage.items, [])
        self.assertFalse(self.queue.has_more())
        self.assertTrue(self.detail_executor.closed)

    def test_item_failure_does_not_abort_batch(self):
        """A broken item is logged as an ErrorRecord while the rest of its batch is stored."""
        self.site.pages[_item("b")] = "<html>maintenance</html>"
        self.queue.add_links([_item(n) for n in "abd"])
        self.queue.mark_complete()
        orchestrator = self.build()
        stats = orchestrator.process_details()
        self.assertEqual(sorted(r.title for r in self.storage.items), ["Alpha", "Delta"])
        self.assertEqual([e.url for e in self.error_storage.items], [_item("b")])
        self.assertEqual(self.error_storage.items[0].attempt_count, 2)
        self.assertIn("ParseError", self.error_storage.items[0].error)
        # The whole batch is reported as one failed unit.
        self.assertEqual(stats.failed, 3)
        self.assertEqual(stats.processed, 0)

    def test_items_cut_short_by_shutdown_are_not_error_records(self):
        """An item whose executor is closed by shutdown mid-fetch is not written as a scrape failure."""
        self.config = make_config(max_concurrent=1)
        self.queue.add_links([_item("a"), _item("b")])
        self.queue.mark_complete()
        orchestrator = self.build()
        self.site.on_fetch[_item("b")] = orchestrator.shutdown
        stats = orchestrator.process_details()
        self.assertTrue(orchestrator.stopped)
        self.assertEqual([r.title for r in self.storage.items], ["Alpha"])
        self.assertEqual(self.error_storage.items, [])
        self.assertEqual(stats.processed, 1)
        self.assertEqual(stats.failed, 1)


class TestRun(OrchestratorTestCase):
    def test_end_to_end(self):
        orchestrator = self.build()
        result = self.run_with_timeout(orchestrator)
        self.assertNotIn("error", result)
        stats = result["stats"]
        self.assertEqual(stats.processed + stats.failed, 4)
        self.assertEqual(self.queue.complete_calls, 1)
        self.assertEqual(sorted(r.title for r in self.storage.items), ["Alpha", "Beta", "Delta"])
        for item in "abcd":
            self.assertEqual(self.site.requests.count(_item(item)), 1)
        self.assertTrue(self.link_executor.closed)
        self.assertTrue(self.detail_executor.closed)

    def test_collection_failure_propagates(self):
        """A failing collection loop stops the crawl and surfaces its error."""
        self.site.failures[_page(1)] = 100
        orchestrator = self.build()
        result = self.run_with_timeout(orchestrator)
        self.assertIsInstance(result.get("error"), RetryExhaustedError)
        self.assertTrue(orchestrator.stopped)
        self.assertTrue(self.detail_executor.closed)

    def test_shutdown_stops_both_loops(self):
        orchestrator = self.build()
        orchestrator.shutdown()
        result = self.run_with_timeout(orchestrator)
        self.assertNotIn("error", result)
        self.assertTrue(orchestrator.stopped)
        self.assertTrue(self.queue.is_complete)


if __name__ == "__main__":
    unittest.main()
