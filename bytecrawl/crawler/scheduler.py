"""
Crawler scheduler that coordinates the worker pool and the overall crawl process.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from yarl import URL

from .url_frontier import URLFrontier
from .host_throttle import HostThrottle
from .fetcher import WebFetcher
from .parser import LinkExtractor
from .urls import registrable_domain, resolve, strip_fragment
from ..counting import ByteCounter
from ..utils.config import Config
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import MetricsCollector, format_byte_report


class WorkerState(Enum):
    """Where a worker is in its unit of work."""
    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    STOPPED = "stopped"


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    fetches_started: int = 0
    urls_fetched: int = 0
    html_pages: int = 0
    links_enqueued: int = 0
    duplicates_skipped: int = 0
    throttled: int = 0
    non_html_skipped: int = 0
    transport_errors: int = 0
    policy_skipped: int = 0
    errors: int = 0
    end_time: Optional[float] = None

    @property
    def elapsed_time(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.urls_fetched / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Runs a fixed pool of worker tasks over the URL frontier.

    A unit of work is: dequeue, claim, admit the host, fetch, keep only 200
    HTML responses, extract links, keep links inside the seeds' registrable
    domains, strip fragments, enqueue. Claims are checked before the host
    throttle, so a duplicate never uses up a host's budget. The crawl ends
    once the frontier is drained and no worker holds a URL; idle workers
    then get the shutdown signal and exit on their own.
    """

    def __init__(self, config: Config, byte_counter: Optional[ByteCounter] = None,
                 fetcher: Optional[WebFetcher] = None,
                 link_extractor: Optional[LinkExtractor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Components
        self.byte_counter = byte_counter if byte_counter is not None else ByteCounter()
        self.fetcher = fetcher
        self.link_extractor = link_extractor
        self.url_frontier: Optional[URLFrontier] = None
        self.host_throttle: Optional[HostThrottle] = None
        self.metrics: Optional[MetricsCollector] = None
        self._owns_fetcher = fetcher is None

        # Crawl state
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False
        self.workers: List[asyncio.Task] = []
        self.worker_states: Dict[str, WorkerState] = {}
        self.allowed_domains: Set[str] = set()
        self._stop_event = asyncio.Event()
        self._reporter_task: Optional[asyncio.Task] = None

    async def initialize(self):
        """Initialize all crawler components."""
        try:
            crawler_config = self.config.crawler

            self.url_frontier = URLFrontier()
            self.host_throttle = HostThrottle(crawler_config.host_fetch_limit)

            self.metrics = MetricsCollector(
                self.byte_counter,
                enable_prometheus=self.config.monitoring.metrics_enabled,
                prometheus_port=self.config.monitoring.prometheus_port
            )

            if self.fetcher is None:
                self.fetcher = WebFetcher(
                    user_agent=crawler_config.user_agent,
                    request_timeout=crawler_config.request_timeout,
                    max_connections=crawler_config.worker_count,
                    socket_factory=self.byte_counter.socket_factory
                )
            if self._owns_fetcher:
                await self.fetcher.start()

            if self.link_extractor is None:
                self.link_extractor = LinkExtractor()

            self.allowed_domains = {
                registrable_domain(URL(seed).host) for seed in crawler_config.seed_urls
            }

            self.metrics.start_prometheus_server()

            self.logger.info(f"Crawler scheduler initialized, allowed domains: "
                             f"{sorted(self.allowed_domains)}")

        except Exception as e:
            self.logger.error(f"Failed to initialize crawler scheduler: {e}")
            raise

    def add_seed_urls(self) -> int:
        """Add seed URLs to the frontier."""
        for seed in self.config.crawler.seed_urls:
            self.url_frontier.enqueue(strip_fragment(seed))

        self.logger.info(f"Added {len(self.config.crawler.seed_urls)} seed URLs to frontier")
        return len(self.config.crawler.seed_urls)

    async def start_crawling(self, max_pages: Optional[int] = None) -> CrawlStats:
        """
        Crawl until the frontier drains or `stop_crawling` is called.

        Args:
            max_pages: Maximum number of fetches (None falls back to the
                configured limit; both None means unlimited)

        Returns:
            Statistics for this crawl
        """
        if self.url_frontier is None:
            raise RuntimeError("initialize() must be called before start_crawling()")

        if self.is_running:
            self.logger.warning("Crawler is already running")
            return self.stats

        if max_pages is None:
            max_pages = self.config.crawler.max_pages

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())
        self._stop_event = asyncio.Event()

        try:
            self.add_seed_urls()

            worker_count = self.config.crawler.worker_count
            self.workers = [
                asyncio.create_task(self._worker(f"worker-{i}", max_pages),
                                    name=f"crawler-worker-{i}")
                for i in range(worker_count)
            ]

            # Start byte reporter
            self._reporter_task = asyncio.create_task(self._stats_reporter(),
                                                      name="byte-reporter")

            self.logger.info(f"Started crawling with {worker_count} workers")

            drained = asyncio.create_task(self.url_frontier.join())
            stopped = asyncio.create_task(self._stop_event.wait())
            done, pending = await asyncio.wait([drained, stopped],
                                               return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if drained in done:
                # Nothing queued and nobody busy: let idle workers exit.
                self.url_frontier.close(len(self.workers))
                await asyncio.gather(*self.workers, return_exceptions=True)
            else:
                self.logger.info("Crawl stopped before the frontier drained")

            self.stats.end_time = time.time()
            self._log_final_stats()

        finally:
            self.is_running = False
            if self.stats.end_time is None:
                self.stats.end_time = time.time()
            await self._stop_reporter()
            await self._cleanup_workers()

        return self.stats

    async def _worker(self, worker_id: str, max_pages: Optional[int] = None):
        """
        Worker coroutine that processes URLs from the frontier.
        """
        log = get_crawler_logger(__name__, worker=worker_id)
        self.worker_states[worker_id] = WorkerState.IDLE
        log.debug(f"Worker {worker_id} started")

        try:
            while True:
                url = await self.url_frontier.dequeue()
                if url is None:
                    break

                try:
                    await self._process_url(url, worker_id, log, max_pages)
                except Exception as e:
                    log.error(f"Error processing {url}: {e}", exc_info=True)
                    self.stats.errors += 1
                    self.metrics.record_outcome('error')
                finally:
                    self.worker_states[worker_id] = WorkerState.IDLE
                    self.url_frontier.task_done()
        finally:
            self.worker_states[worker_id] = WorkerState.STOPPED
            log.debug(f"Worker {worker_id} finished")

    async def _process_url(self, url: URL, worker_id: str, log: CrawlerLogAdapter,
                           max_pages: Optional[int] = None):
        """Process a single URL taken from the frontier."""
        if not self.url_frontier.try_claim(url):
            self.stats.duplicates_skipped += 1
            self.metrics.record_outcome('duplicate')
            return

        if not self.host_throttle.admit(url.host):
            self.stats.throttled += 1
            self.metrics.record_outcome('throttled')
            return

        # Reserve a fetch slot; no await between the check and the increment.
        if max_pages is not None and self.stats.fetches_started >= max_pages:
            self.stats.policy_skipped += 1
            self.metrics.record_outcome('policy_skipped')
            return
        self.stats.fetches_started += 1

        # Fetch the page
        self.worker_states[worker_id] = WorkerState.FETCHING
        task = asyncio.current_task()
        original_name = task.get_name()
        task.set_name(f"Crawler {url}")
        try:
            fetch_result = await self.fetcher.fetch(url)
        finally:
            task.set_name(original_name)

        self.stats.urls_fetched += 1
        self.metrics.observe_response_time(fetch_result.fetch_time)

        if fetch_result.error:
            self.stats.transport_errors += 1
            self.metrics.record_outcome('transport_error')
            log.log_url_event(logging.WARNING, url, f"Fetch failed ({fetch_result.error})")
            return

        if not fetch_result.is_html or fetch_result.body is None:
            self.stats.non_html_skipped += 1
            self.metrics.record_outcome('not_html')
            return

        # Parse content
        self.worker_states[worker_id] = WorkerState.PARSING
        self.stats.html_pages += 1
        self.metrics.record_outcome('html')

        base_url = fetch_result.final_url or str(url)
        hrefs = await asyncio.to_thread(
            self.link_extractor.extract_links, fetch_result.body, base_url, fetch_result.charset
        )
        added = self._queue_new_urls(hrefs, base_url)
        log.debug(f"Processed {url}: {len(hrefs)} links, {added} queued")

    def _queue_new_urls(self, hrefs: List[str], base_url: str) -> int:
        """Resolve, filter and queue the links found on one page."""
        added = 0
        for href in hrefs:
            link = resolve(base_url, href)
            if link is None:
                continue
            if registrable_domain(link.host) not in self.allowed_domains:
                continue
            link = strip_fragment(link)
            if self.url_frontier.is_claimed(link):
                continue
            self.url_frontier.enqueue(link)
            added += 1

        self.stats.links_enqueued += added
        return added

    @property
    def active_workers(self) -> int:
        return sum(1 for state in self.worker_states.values()
                   if state in (WorkerState.FETCHING, WorkerState.PARSING))

    async def _stats_reporter(self):
        """Periodically log the byte totals and crawl progress."""
        interval = self.config.monitoring.report_interval
        while True:
            await asyncio.sleep(interval)
            self._log_current_stats()

    def _log_current_stats(self):
        """Log current crawl statistics."""
        queued = self.url_frontier.pending_count
        self.metrics.update_queue_size(queued)
        self.metrics.update_active_workers(self.active_workers)

        self.logger.info(format_byte_report(self.byte_counter))
        self.logger.info(
            f"Crawl Progress: "
            f"Fetched={self.stats.urls_fetched}, "
            f"HTML={self.stats.html_pages}, "
            f"Queued={queued}, "
            f"Active={self.active_workers}, "
            f"Throttled={self.stats.throttled}, "
            f"TransportErrors={self.stats.transport_errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total URLs fetched: {self.stats.urls_fetched}")
        self.logger.info(f"HTML pages parsed: {self.stats.html_pages}")
        self.logger.info(f"Duplicates skipped: {self.stats.duplicates_skipped}")
        self.logger.info(f"Throttled: {self.stats.throttled}")
        self.logger.info(f"Transport errors: {self.stats.transport_errors}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(format_byte_report(self.byte_counter))
        self.logger.info(f"Frontier stats: {self.url_frontier.get_stats()}")
        self.logger.info(f"Host throttle stats: {self.host_throttle.get_stats()}")
        if self._owns_fetcher:
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    def stop_crawling(self):
        """Ask a running crawl to stop; in-flight fetches are cancelled."""
        self.logger.info("Stopping crawler...")
        self._stop_event.set()

    async def _stop_reporter(self):
        if self._reporter_task is not None:
            self._reporter_task.cancel()
            await asyncio.gather(self._reporter_task, return_exceptions=True)
            self._reporter_task = None

    async def _cleanup_workers(self):
        """Cancel and cleanup worker tasks."""
        if self.workers:
            for worker in self.workers:
                if not worker.done():
                    worker.cancel()

            # Wait for workers to finish
            await asyncio.gather(*self.workers, return_exceptions=True)
            self.workers.clear()

    async def close(self):
        """Stop background work and release the HTTP session."""
        if self.is_running:
            self.stop_crawling()
        await self._stop_reporter()
        await self._cleanup_workers()

        if self.fetcher and self._owns_fetcher:
            await self.fetcher.close()

        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get current crawl statistics."""
        return {
            'urls_fetched': self.stats.urls_fetched,
            'html_pages': self.stats.html_pages,
            'links_enqueued': self.stats.links_enqueued,
            'duplicates_skipped': self.stats.duplicates_skipped,
            'throttled': self.stats.throttled,
            'non_html_skipped': self.stats.non_html_skipped,
            'transport_errors': self.stats.transport_errors,
            'policy_skipped': self.stats.policy_skipped,
            'errors': self.stats.errors,
            'elapsed_time': self.stats.elapsed_time,
            'bytes_written': self.byte_counter.bytes_written(),
            'bytes_read': self.byte_counter.bytes_read(),
            'is_running': self.is_running
        }
