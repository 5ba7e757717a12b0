from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from catalog_crawler.config import Config
from catalog_crawler.errors import ConfigError
from catalog_crawler.fetch_executor import FetchExecutor
from catalog_crawler.log import setup_logging
from catalog_crawler.metrics import MetricsCollector
from catalog_crawler.orchestrator import CrawlOrchestrator
from catalog_crawler.parser import CatalogParser
from catalog_crawler.rate_limiter import RateLimiter
from catalog_crawler.scrapers import DetailScraper, ListingScraper
from catalog_crawler.storage import CsvStorage, JsonlStorage, StorageBase
from catalog_crawler.work_queue import WorkQueue

logger = logging.getLogger("catalog_crawler")

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_orchestrator(
    config: Config,
    storage: StorageBase,
    error_storage: StorageBase,
) -> CrawlOrchestrator:
    """Wire every collaborator of a crawl from ``config``.

    Each executor gets its own rate budget, so the two loops together may
    navigate up to twice ``rate_limit_per_minute`` times a minute."""
    metrics = MetricsCollector()
    parser = CatalogParser(
        selectors=config.selectors,
        recommendation_header_prefix=config.recommendation_header_prefix,
        skip_unrecommended=config.skip_unrecommended,
    )
    link_executor = FetchExecutor(
        config, rate_limiter=RateLimiter(config.rate_limit_per_minute, interval_secs=60.0), name="link"
    )
    detail_executor = FetchExecutor(
        config, rate_limiter=RateLimiter(config.rate_limit_per_minute, interval_secs=60.0), name="detail"
    )

    return CrawlOrchestrator(
        config=config,
        queue=WorkQueue(),
        listing_scraper=ListingScraper(link_executor, parser, config.page_retry),
        detail_scraper=DetailScraper(detail_executor, parser, config.detail_retry, metrics=metrics),
        link_executor=link_executor,
        detail_executor=detail_executor,
        storage=storage,
        error_storage=error_storage,
        metrics=metrics,
    )


def load_config(args: argparse.Namespace) -> Config:
    config = Config.from_yaml(args.config) if args.config else Config()
    return config.with_overrides(
        base_url=args.base_url,
        list_path=args.list_path,
        max_concurrent=args.max_concurrent,
        rate_limit_per_minute=args.rate_limit,
        max_retries=args.max_retries,
        timeout_ms=args.timeout_ms,
        results_path=args.results,
        errors_path=args.errors,
        log_level=args.log_level,
    )


def run(config: Config) -> int:
    storage = CsvStorage(config.results_path)
    error_storage = JsonlStorage(config.errors_path)
    orchestrator = build_orchestrator(config, storage, error_storage)

    def _on_signal(signum, frame) -> None:
        logger.warning("Received signal %s", signum)
        orchestrator.shutdown()

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        stats = orchestrator.run()
    except Exception as exc:  # noqa: BLE001
        logger.error("Scraping process failed: %s", exc, exc_info=True)
        return EXIT_FAILURE
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        storage.close()
        error_storage.close()

    if orchestrator.stopped:
        logger.warning("Scraping stopped before completion")
        return EXIT_INTERRUPTED
    print(f"\nDONE: success={stats.processed} fail={stats.failed} total={stats.processed + stats.failed}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl a paginated catalog and scrape every item page")
    parser.add_argument("--config", help="Path to a YAML config file")

    parser.add_argument("--base-url", help="Site root, e.g. https://www.politeianet.gr")
    parser.add_argument("--list-path", help="Path of the first listing page, relative to the base URL")
    parser.add_argument("--results", help="Output CSV file path")
    parser.add_argument("--errors", help="Output JSONL file path for failed items")

    parser.add_argument("--max-concurrent", type=int, help="Max concurrent page operations per loop")
    parser.add_argument("--rate-limit", type=float, help="Navigations per minute")
    parser.add_argument("--max-retries", type=int, help="Navigation attempts per page")
    parser.add_argument("--timeout-ms", type=int, help="Navigation timeout in milliseconds")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")

    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (ConfigError, OSError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.log_level)
    logger.info("Starting crawl at %s", config.seed_url)
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
