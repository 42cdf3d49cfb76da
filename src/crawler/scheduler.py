"""
Crawler scheduler: builds the shared collaborators, runs the worker tasks and shuts them down.
"""

import asyncio
import logging
import time
from collections import Counter
from typing import Dict, List, Optional

import redis.asyncio as redis

from .crawl_url import CrawlUrl
from .fetcher import PageFetcher
from .parser import ContentParser
from .policy import CrawlPolicy, ScopedCrawlPolicy
from .processor import PageProcessor
from .robots import RobotsChecker
from .url_frontier import RedisFrontier
from .worker import CrawlerWorker
from ..storage.history import CrawlHistory
from ..utils.config import Config
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlMetrics


class CrawlerScheduler:
    """
    Supervises a pool of CrawlerWorker tasks sharing one frontier and one history store.

    Workers never stop by themselves; ``stop_crawling`` cancels them and then
    runs the policy's exit hook once.
    """

    def __init__(self, config: Config, policy: Optional[CrawlPolicy] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.policy = policy or ScopedCrawlPolicy(
            allowed_domains=config.crawler.allowed_domains,
            blocked_domains=config.crawler.blocked_domains
        )

        # Components
        self.redis_client: Optional[redis.Redis] = None
        self.frontier: Optional[RedisFrontier] = None
        self.fetcher: Optional[PageFetcher] = None
        self.robots: Optional[RobotsChecker] = None
        self.parser: Optional[ContentParser] = None
        self.history: Optional[CrawlHistory] = None
        self.metrics: Optional[CrawlMetrics] = None

        # Crawl state
        self.start_time = time.time()
        self.is_running = False
        self._exited = False
        self.workers: List[CrawlerWorker] = []
        self.worker_tasks: List[asyncio.Task] = []

    async def initialize(self):
        """Initialize all crawler components."""
        try:
            self.redis_client = redis.Redis(
                host=self.config.redis.host,
                port=self.config.redis.port,
                db=self.config.redis.db,
                password=self.config.redis.password,
                decode_responses=False
            )

            await self.redis_client.ping()
            self.logger.info("Redis connection established")

            self.frontier = RedisFrontier(self.redis_client, self.config.redis.frontier_key)

            self.fetcher = PageFetcher(
                user_agent=self.config.crawler.user_agent,
                request_timeout=self.config.crawler.request_timeout,
                max_content_size=self.config.crawler.max_content_size,
                max_connections=self.config.crawler.num_workers * 2
            )
            await self.fetcher.start()

            self.robots = RobotsChecker(
                user_agent=self.config.crawler.user_agent,
                enabled=self.config.crawler.respect_robots_txt
            )

            self.parser = ContentParser()

            self.history = CrawlHistory(self.config.history)
            await self.history.initialize()

            if self.config.monitoring.metrics_enabled:
                self.metrics = CrawlMetrics()
                self.metrics.start_server(self.config.monitoring.prometheus_port)

            self.logger.info("Crawler scheduler initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize crawler scheduler: {e}")
            raise

    async def add_seed_urls(self) -> int:
        """Push the configured seed URLs to the frontier in one batch."""
        crawl_id = self.config.crawler.crawl_id
        seeds = [CrawlUrl.seed(url, crawl_id) for url in self.config.crawler.seed_urls]
        added_count = await self.frontier.push(seeds)
        self.logger.info(f"Added {added_count} seed URLs to frontier")
        return added_count

    def _create_worker(self, worker_id: str) -> CrawlerWorker:
        crawler_config = self.config.crawler
        logger = get_crawler_logger(
            CrawlerWorker.__module__, worker_id=worker_id, crawl_id=crawler_config.crawl_id
        )
        processor = PageProcessor(
            frontier=self.frontier,
            fetcher=self.fetcher,
            parser=self.parser,
            robots=self.robots,
            policy=self.policy,
            follow_redirects=crawler_config.follow_redirects,
            max_depth=crawler_config.max_depth,
            logger=logger.bind(component='processor')
        )
        return CrawlerWorker(
            worker_id=worker_id,
            frontier=self.frontier,
            processor=processor,
            history=self.history,
            policy=self.policy,
            pull_size=crawler_config.pull_size,
            pull_retry_delay=crawler_config.pull_retry_delay,
            history_retry_attempts=self.config.history.retry_attempts,
            history_retry_delay=self.config.history.retry_delay,
            metrics=self.metrics,
            logger=logger
        )

    async def start_crawling(self, num_workers: Optional[int] = None):
        """
        Start the workers and wait on them.

        Args:
            num_workers: Number of worker tasks (defaults to the configured count)
        """
        if self.is_running:
            self.logger.warning("Crawler is already running")
            return

        self.is_running = True
        self.start_time = time.time()
        num_workers = num_workers or self.config.crawler.num_workers

        self.workers = [self._create_worker(f"worker-{i}") for i in range(num_workers)]
        self.worker_tasks = [
            asyncio.create_task(worker.run(), name=worker.worker_id)
            for worker in self.workers
        ]
        if self.metrics:
            self.metrics.set_active_workers(num_workers)

        stats_task = asyncio.create_task(self._stats_reporter())
        self.logger.info(f"Started crawling with {num_workers} workers")

        try:
            results = await asyncio.gather(*self.worker_tasks, return_exceptions=True)
            for worker, result in zip(self.workers, results):
                if isinstance(result, Exception):
                    self.logger.error(f"Worker {worker.worker_id} died: {result!r}")
        finally:
            stats_task.cancel()
            self.is_running = False

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while True:
            await asyncio.sleep(30)
            self._log_current_stats()

    def _log_current_stats(self):
        stats = self.get_stats()
        self.logger.info(
            f"Crawl Progress: "
            f"Processed={stats['processed']}, "
            f"EmptyPulls={stats['empty_pulls']}, "
            f"Results={stats['results']}, "
            f"Elapsed={stats['elapsed_time']:.0f}s"
        )

    async def stop_crawling(self):
        """Cancel the workers, then call the exit hook once."""
        self.logger.info("Stopping crawler...")
        for task in self.worker_tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*self.worker_tasks, return_exceptions=True)
        self.worker_tasks.clear()
        self.is_running = False
        if self.metrics:
            self.metrics.set_active_workers(0)

        if not self._exited:
            self._exited = True
            try:
                await self.policy.on_before_exit()
            except Exception as e:
                self.logger.error(f"Error in exit hook: {e}", exc_info=True)

    async def close(self):
        """Close all connections and cleanup resources."""
        try:
            if self.worker_tasks:
                await self.stop_crawling()

            if self.fetcher:
                await self.fetcher.close()

            if self.robots:
                await self.robots.close()

            if self.history:
                await self.history.close()

            if self.redis_client:
                await self.redis_client.aclose()

            self.logger.info("Crawler scheduler closed")

        except Exception as e:
            self.logger.error(f"Error during cleanup: {e}")

    def get_stats(self) -> Dict:
        """Aggregate statistics over all workers."""
        totals = Counter()
        results = Counter()
        for worker in self.workers:
            worker_stats = worker.get_stats()
            results.update(worker_stats.pop('results'))
            totals.update(worker_stats)

        return {
            'processed': totals['processed'],
            'pulls': totals['pulls'],
            'empty_pulls': totals['empty_pulls'],
            'pull_errors': totals['pull_errors'],
            'unexpected_errors': totals['unexpected_errors'],
            'skipped_finished': totals['skipped_finished'],
            'results': dict(results),
            'workers': len(self.workers),
            'elapsed_time': time.time() - self.start_time,
            'is_running': self.is_running
        }
