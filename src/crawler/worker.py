"""
Crawler worker: the long-running loop that drains the frontier one batch at a time.
"""

import asyncio
import logging
import time
from collections import Counter
from typing import Dict, List, Optional

from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_fixed

from .crawl_result import CrawlResult, StatusCode
from .crawl_url import CrawlUrl
from .policy import CrawlPolicy
from .processor import PageProcessor
from .url_frontier import Frontier
from ..storage.history import CrawlHistory, HistoryStoreError
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlMetrics


class CrawlerWorker:
    """
    Pulls batches from the frontier and processes them forever.

    ``run`` has no exit condition: it is stopped by cancelling the task that
    runs it. When a pull comes back empty the worker waits a fixed
    ``pull_retry_delay`` before pulling again.
    A URL is written to the history only once its result is attached.
    """

    def __init__(self, worker_id: str, frontier: Frontier, processor: PageProcessor,
                 history: CrawlHistory, policy: CrawlPolicy,
                 pull_size: int = 10, pull_retry_delay: float = 5.0,
                 history_retry_attempts: int = 3, history_retry_delay: float = 1.0,
                 metrics: Optional[CrawlMetrics] = None,
                 logger: Optional[CrawlerLogAdapter] = None):
        self.worker_id = worker_id
        self.frontier = frontier
        self.processor = processor
        self.history = history
        self.policy = policy
        self.pull_size = pull_size
        self.pull_retry_delay = pull_retry_delay
        self.history_retry_attempts = history_retry_attempts
        self.history_retry_delay = history_retry_delay
        self.metrics = metrics
        self.logger = logger or get_crawler_logger(__name__, worker_id=worker_id)

        # Statistics
        self.stats = {
            'pulls': 0,
            'empty_pulls': 0,
            'pull_errors': 0,
            'processed': 0,
            'unexpected_errors': 0,
            'skipped_finished': 0,
        }
        self.results: Counter = Counter()

    async def run(self):
        """Call the start hook, then pull and process batches until cancelled."""
        await self.policy.on_start()
        self.logger.info(f"Worker {self.worker_id} started")

        while True:
            batch = await self._pull()
            if not batch:
                await self._idle_wait()
                continue

            for crawl_url in batch:
                if crawl_url.is_finished:
                    self.stats['skipped_finished'] += 1
                    self.logger.warning(f"Skipping {crawl_url.url}: pulled with a result "
                                        f"already attached ({crawl_url.result.status.value})")
                    continue

                crawl_url.attach_result(await self._process(crawl_url))
                await self._record(crawl_url)

    async def _pull(self) -> List[CrawlUrl]:
        self.stats['pulls'] += 1
        try:
            batch = await self.frontier.pull(self.pull_size)
        except Exception as e:
            self.stats['pull_errors'] += 1
            self.logger.error(f"Worker {self.worker_id} failed to pull from frontier: {e}",
                              exc_info=True)
            return []

        if not batch:
            self.stats['empty_pulls'] += 1
            if self.metrics:
                self.metrics.record_empty_pull()
        return batch

    async def _idle_wait(self):
        """Sleep pull_retry_delay seconds before the next pull."""
        self.logger.debug(f"Frontier empty, worker {self.worker_id} idling "
                          f"{self.pull_retry_delay}s")
        await asyncio.sleep(self.pull_retry_delay)

    async def _process(self, crawl_url: CrawlUrl) -> CrawlResult:
        start_time = time.time()
        try:
            result = await self.processor.process_page(crawl_url)
        except Exception as e:
            self.stats['unexpected_errors'] += 1
            self.logger.error(f"Unexpected error processing {crawl_url.url}", exc_info=True)
            result = CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)

        self.stats['processed'] += 1
        self.results[result.status] += 1
        if self.metrics:
            self.metrics.record_result(result.status, time.time() - start_time)

        detail = f" ({result.detail})" if result.detail else ""
        self.logger.log_url_event(logging.DEBUG, crawl_url.url,
                                  f"{crawl_url.url} -> {result.status.value}{detail}")
        return result

    async def _record(self, crawl_url: CrawlUrl):
        """Append a finished task to the history store, retrying before giving up."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.history_retry_attempts),
                wait=wait_fixed(self.history_retry_delay),
            ):
                with attempt:
                    await self.history.add([crawl_url])
        except RetryError as e:
            cause = e.last_attempt.exception()
            self.logger.error(f"Worker {self.worker_id} could not record {crawl_url.url} "
                              f"after {self.history_retry_attempts} attempts: {cause}")
            raise HistoryStoreError(f"History append failed for {crawl_url.url}") from cause

    def get_stats(self) -> Dict:
        """Get worker statistics."""
        stats = self.stats.copy()
        stats['results'] = {status.value: count for status, count in self.results.items()}
        return stats
