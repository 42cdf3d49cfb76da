"""Tests for src.crawler.scheduler that run without Redis."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeFrontier, RecordingPolicy
from src.crawler.crawl_result import CrawlResult, StatusCode
from src.crawler.crawl_url import CrawlUrl
from src.crawler.scheduler import CrawlerScheduler
from src.crawler.worker import CrawlerWorker
from src.storage.history import HistoryStoreError
from src.utils.config import ConfigManager


@pytest.fixture
def config():
    return ConfigManager.from_dict({
        'crawler': {
            'seed_urls': ['https://example.com/', 'https://example.org/'],
            'crawl_id': 'c7',
            'num_workers': 2,
        },
    })


@pytest.fixture
def scheduler(config):
    scheduler = CrawlerScheduler(config, policy=RecordingPolicy())
    scheduler.frontier = FakeFrontier()
    return scheduler


def fake_worker(worker_id, stats):
    worker = MagicMock()
    worker.worker_id = worker_id
    worker.get_stats.return_value = stats
    return worker


class TestSeeding:
    @pytest.mark.asyncio
    async def test_seeds_pushed_in_one_batch(self, scheduler):
        added = await scheduler.add_seed_urls()

        assert added == 2
        assert len(scheduler.frontier.pushes) == 1
        seeds = scheduler.frontier.pushes[0]
        assert [s.url for s in seeds] == ['https://example.com/', 'https://example.org/']
        assert all(s.depth == 0 and s.crawl_id == 'c7' and s.parent_url is None for s in seeds)


class TestStopping:
    @pytest.mark.asyncio
    async def test_exit_hook_runs_once(self, scheduler):
        scheduler.worker_tasks = [asyncio.create_task(asyncio.sleep(3600)) for _ in range(2)]
        tasks = list(scheduler.worker_tasks)

        await scheduler.stop_crawling()
        await scheduler.stop_crawling()

        assert all(t.cancelled() for t in tasks)
        assert scheduler.policy.hooks('on_before_exit') == [('on_before_exit',)]
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_exit_hook_failure_is_logged(self, config, caplog):
        policy = RecordingPolicy()
        policy.on_before_exit = AsyncMock(side_effect=RuntimeError("flush failed"))
        scheduler = CrawlerScheduler(config, policy=policy)

        await scheduler.stop_crawling()

        assert "Error in exit hook" in caplog.text


class TestStartCrawling:
    @pytest.mark.asyncio
    async def test_dead_worker_is_reported(self, scheduler, caplog):
        urls = [CrawlUrl.seed("https://example.com/", "c7")]
        processor = MagicMock()
        processor.process_page = AsyncMock(return_value=CrawlResult(StatusCode.SUCCESSFUL))
        history = MagicMock()
        history.add = AsyncMock(side_effect=HistoryStoreError("disk full"))

        def create_worker(worker_id):
            return CrawlerWorker(worker_id, FakeFrontier([urls]), processor, history,
                                 scheduler.policy, history_retry_attempts=1)

        scheduler._create_worker = create_worker

        await scheduler.start_crawling(num_workers=1)

        assert not scheduler.is_running
        assert "Worker worker-0 died" in caplog.text


class TestStats:
    def test_worker_stats_are_aggregated(self, scheduler):
        scheduler.workers = [
            fake_worker("worker-0", {
                'pulls': 3, 'empty_pulls': 1, 'pull_errors': 0, 'processed': 5,
                'unexpected_errors': 1, 'results': {'successful': 4, 'fetchError': 1},
            }),
            fake_worker("worker-1", {
                'pulls': 2, 'empty_pulls': 2, 'pull_errors': 1, 'processed': 1,
                'unexpected_errors': 0, 'results': {'successful': 1},
            }),
        ]

        stats = scheduler.get_stats()

        assert stats['processed'] == 6
        assert stats['pulls'] == 5
        assert stats['empty_pulls'] == 3
        assert stats['pull_errors'] == 1
        assert stats['results'] == {'successful': 5, 'fetchError': 1}
        assert stats['workers'] == 2
