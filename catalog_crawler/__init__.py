"""Catalog crawler package.

Harvests item links from a paginated listing and scrapes every linked detail
page, coordinating both stages through a shared work queue.

Key modules:
    work_queue      -- WorkQueue producer/consumer coordinator with adaptive batching
    fetch_executor  -- FetchExecutor bounded, rate-limited, retrying page executor
    context_pool    -- PageContext and ContextPool for reusable HTTP sessions
    orchestrator    -- CrawlOrchestrator running the collection and detail loops
    base            -- BaseScraper abstract class
    scrapers        -- ListingScraper, DetailScraper concrete implementations
    parser          -- CatalogParser HTML extraction
    controller      -- ConcurrencyLimiter and ThreadPoolController
    metrics         -- MetricsCollector for runtime statistics
    models          -- ResultRecord, ErrorRecord, QueueStats and friends
    errors          -- ScrapingError hierarchy
    rate_limiter    -- RateLimiter token bucket
    backoff         -- BackoffStrategy for exponential retry delays
    retry           -- generic retry helper
    storage         -- StorageBase, CsvStorage and JsonlStorage sinks
    config          -- Config loading and validation
    log             -- logging setup
"""
