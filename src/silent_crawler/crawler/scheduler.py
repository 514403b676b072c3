"""
Crawler scheduler that runs the worker pool and coordinates the frontier,
robots policy, fetcher, parser and result aggregation.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urljoin

from .fetcher import FetchResult, WebFetcher
from .parser import ContentParser, ParsedContent
from .robots import RobotsPolicy
from .url_frontier import URLFrontier, URLTask
from .url_normalizer import (
    Scope, URLScope, classify_url, extract_directory, get_host, normalize_url,
)
from ..storage.results import ResultAggregator, ResultSets
from ..utils.config import CrawlerConfig
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    urls_fetched: int = 0
    html_pages: int = 0
    non_html: int = 0
    errors: int = 0
    robots_blocked: int = 0
    external_skipped: int = 0
    links_discovered: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.urls_fetched / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Runs ``concurrency`` workers over a shared frontier until it drains.

    Each worker takes a URL, checks scope and robots policy, waits
    ``delay`` plus random jitter, fetches it, and feeds links found in
    HTML pages back into the frontier one level deeper.
    """

    def __init__(self, config: CrawlerConfig, fetcher: Optional[WebFetcher] = None,
                 parser: Optional[ContentParser] = None,
                 monitor: Optional[CrawlerMonitor] = None,
                 stats_interval: float = 30.0):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.seed_url = normalize_url(config.seed_url, config.seed_url)
        if self.seed_url is None:
            raise ValueError(f"Invalid seed URL: {config.seed_url}")
        self.scope = Scope.from_url(self.seed_url)

        self.fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.parser = parser or ContentParser()
        self.monitor = monitor or CrawlerMonitor()
        self.robots: Optional[RobotsPolicy] = None

        self.frontier = URLFrontier(max_depth=config.max_depth)
        self.results = ResultAggregator()

        self.stats = CrawlStats(start_time=time.time())
        self.stats_interval = stats_interval
        self.is_running = False
        self.workers: List[asyncio.Task] = []
        self._active_workers = 0

    async def initialize(self):
        """Create the fetcher (unless one was injected) and the robots policy."""
        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=self.config.user_agent,
                request_timeout=self.config.request_timeout,
                max_concurrent_requests=self.config.concurrency,
                max_content_size=self.config.max_content_size,
            )
            await self.fetcher.start()

        self.robots = RobotsPolicy(
            self.fetcher,
            user_agent=self.config.user_agent,
            respect_robots_txt=self.config.respect_robots_txt,
        )
        self.logger.info(f"Crawler scheduler initialized for root domain {self.scope.root_domain}")

    async def start_crawling(self) -> ResultSets:
        """
        Crawl from the seed URL until the frontier drains.

        Returns:
            Snapshot of the collected results
        """
        if self.is_running:
            raise RuntimeError("Crawler is already running")
        if self.robots is None:
            await self.initialize()

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())

        try:
            await self.frontier.offer(self.seed_url, 0)

            self.workers = [
                asyncio.create_task(self._worker(f"worker-{i}"))
                for i in range(self.config.concurrency)
            ]
            stats_task = asyncio.create_task(self._stats_reporter())

            self.logger.info(f"Started crawling {self.seed_url} with {len(self.workers)} workers")

            try:
                await asyncio.gather(*self.workers)
            finally:
                stats_task.cancel()
                await asyncio.gather(stats_task, return_exceptions=True)

            self._log_final_stats()
        finally:
            self.is_running = False
            await self._cleanup_workers()

        return self.results.snapshot()

    async def _worker(self, worker_id: str):
        """Worker coroutine that processes URLs until the frontier drains."""
        log = get_crawler_logger(__name__, worker_id=worker_id)
        log.debug("Worker started")

        while True:
            url_task = await self.frontier.take()
            if url_task is None:
                break

            self._active_workers += 1
            self.monitor.update_active_workers(self._active_workers)
            try:
                await self._process_url(url_task, log)
            except Exception as e:
                self.stats.errors += 1
                self.monitor.record_error('internal')
                log.error(f"Error processing {url_task.url}: {e}", exc_info=True)
            finally:
                self._active_workers -= 1
                self.monitor.update_active_workers(self._active_workers)
                await self.frontier.task_done(url_task)

        log.debug("Worker finished")

    async def _process_url(self, url_task: URLTask, log: CrawlerLogAdapter):
        """Process a single URL task."""
        if classify_url(url_task.url, self.scope) is URLScope.EXTERNAL:
            self.stats.external_skipped += 1
            return

        if not await self.robots.is_allowed(url_task.url):
            self.stats.robots_blocked += 1
            self.monitor.record_robots_blocked()
            log.log_url_event(logging.DEBUG, url_task.url, "Skipping disallowed URL")
            return

        await asyncio.sleep(self.config.delay + random.uniform(0, self.config.jitter))

        fetch_result = await self.fetcher.fetch(url_task.url)
        self.stats.urls_fetched += 1

        if not fetch_result.ok:
            self.stats.errors += 1
            self.monitor.record_fetch('error', fetch_result.fetch_time)
            self.monitor.record_error(self._error_type(fetch_result))
            log.log_url_event(
                logging.DEBUG, url_task.url,
                f"Fetch failed ({fetch_result.error}, linked from {url_task.parent_url or 'seed'})"
            )
            return

        if fetch_result.is_html:
            self.stats.html_pages += 1
            self.monitor.record_fetch('html', fetch_result.fetch_time)
            self._record_visit(url_task.url)

            # Links resolve against where redirects ended up
            page_url = fetch_result.final_url or url_task.url
            if classify_url(page_url, self.scope) is URLScope.EXTERNAL:
                log.log_url_event(logging.DEBUG, url_task.url, f"Redirected off-site to {page_url}")
                return

            if fetch_result.content:
                parsed_content = self.parser.parse(page_url, fetch_result.content)
                await self._queue_new_urls(parsed_content, url_task)
        else:
            self.stats.non_html += 1
            self.monitor.record_fetch('other', fetch_result.fetch_time)
            if self.config.record_non_html:
                self._record_visit(url_task.url)

    def _record_visit(self, url: str):
        self.results.record_url(url)
        self.results.record_directory(extract_directory(url))
        if classify_url(url, self.scope) is URLScope.SUBDOMAIN:
            self.results.record_subdomain(get_host(url))

    async def _queue_new_urls(self, parsed_content: ParsedContent, url_task: URLTask):
        """Normalize, classify and record the links of a page and queue in-scope ones."""
        base_url = parsed_content.url
        if parsed_content.base_href:
            base_url = urljoin(parsed_content.url, parsed_content.base_href)

        next_depth = url_task.depth + 1
        queued = 0

        for href in parsed_content.links:
            url = normalize_url(href, base_url)
            if url is None:
                continue

            scope = classify_url(url, self.scope)
            self.stats.links_discovered += 1
            self.monitor.record_link(scope.value)

            if scope is URLScope.EXTERNAL:
                if self.config.record_external:
                    self.results.record_external(url)
                continue

            if scope is URLScope.SUBDOMAIN:
                self.results.record_subdomain(get_host(url))

            if not await self.robots.is_allowed(url):
                continue

            self.results.record_directory(extract_directory(url))

            if next_depth <= self.config.max_depth:
                if await self.frontier.offer(url, next_depth, parent_url=url_task.url):
                    queued += 1

        self.logger.debug(f"Queued {queued} new URLs from {url_task.url}")

    @staticmethod
    def _error_type(fetch_result: FetchResult) -> str:
        if fetch_result.status_code:
            return f"http_{fetch_result.status_code}"
        if fetch_result.error == "Request timeout":
            return 'timeout'
        return 'transport'

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while True:
            await asyncio.sleep(self.stats_interval)
            self._log_current_stats()

    def _log_current_stats(self):
        frontier_stats = self.frontier.get_stats()
        self.monitor.update_queue_size(frontier_stats['total_queued'])
        counts = self.results.counts()

        self.logger.info(
            f"Crawl Progress: "
            f"Fetched={self.stats.urls_fetched}, "
            f"Queued={frontier_stats['total_queued']}, "
            f"InFlight={frontier_stats['in_flight']}, "
            f"URLs={counts['urls']}, "
            f"Errors={self.stats.errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    def _log_final_stats(self):
        frontier_stats = self.frontier.get_stats()
        counts = self.results.counts()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"URLs fetched: {self.stats.urls_fetched}")
        self.logger.info(f"HTML pages: {self.stats.html_pages}")
        self.logger.info(f"Non-HTML resources: {self.stats.non_html}")
        self.logger.info(f"Errors: {self.stats.errors}")
        self.logger.info(f"Blocked by robots.txt: {self.stats.robots_blocked}")
        self.logger.info(f"Links discovered: {self.stats.links_discovered}")
        self.logger.info(f"URLs scheduled: {frontier_stats['total_visited']}")
        self.logger.info(f"Results: {counts}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        if self.robots:
            self.logger.debug(f"Robots stats: {self.robots.stats}")
        self.logger.debug(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def stop_crawling(self):
        """Stop the crawling process; results collected so far are kept."""
        self.logger.info("Stopping crawler...")
        await self.frontier.close()
        await self._cleanup_workers()
        self.is_running = False

    async def _cleanup_workers(self):
        if self.workers:
            for worker in self.workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*self.workers, return_exceptions=True)
            self.workers.clear()

    async def close(self):
        """Release the fetcher if this scheduler created it."""
        if self.is_running:
            await self.stop_crawling()
        if self._owns_fetcher and self.fetcher:
            await self.fetcher.close()
        self.logger.debug("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'urls_fetched': self.stats.urls_fetched,
            'html_pages': self.stats.html_pages,
            'non_html': self.stats.non_html,
            'errors': self.stats.errors,
            'robots_blocked': self.stats.robots_blocked,
            'external_skipped': self.stats.external_skipped,
            'links_discovered': self.stats.links_discovered,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'is_running': self.is_running,
            **self.results.counts(),
        }
