"""
URL Frontier: the shared work queue that crawler workers pull from and push to.
"""

import json
import logging
from typing import List, Protocol, Sequence, Union

import redis.asyncio as redis

from .crawl_url import CrawlUrl


class Frontier(Protocol):
    """Queue of pending crawl work shared by all workers."""

    async def pull(self, max_count: int) -> List[CrawlUrl]:
        """Take between 0 and max_count tasks off the queue."""
        ...

    async def push(self, items: Union[CrawlUrl, Sequence[CrawlUrl]]) -> int:
        """Enqueue one task or a batch of tasks."""
        ...


class RedisFrontier:
    """
    Frontier backed by a Redis list.

    Each pull is a single LPOP with a count, so concurrent workers never
    receive the same task.
    """

    def __init__(self, redis_client: redis.Redis, key: str = "crawler:frontier"):
        self.redis_client = redis_client
        self.key = key
        self.logger = logging.getLogger(__name__)

    async def pull(self, max_count: int) -> List[CrawlUrl]:
        """Pull up to max_count tasks; returns an empty list when the queue is drained."""
        if max_count < 1:
            return []

        items = await self.redis_client.lpop(self.key, max_count)
        if not items:
            return []

        tasks = []
        for item in items:
            if isinstance(item, bytes):
                item = item.decode('utf-8')
            try:
                tasks.append(CrawlUrl.from_dict(json.loads(item)))
            except (ValueError, KeyError) as e:
                self.logger.error(f"Dropping malformed frontier entry {item!r}: {e}")

        self.logger.debug(f"Pulled {len(tasks)} URLs from frontier")
        return tasks

    async def push(self, items: Union[CrawlUrl, Sequence[CrawlUrl]]) -> int:
        """Push one or more tasks to the tail of the queue. Returns the count pushed."""
        if isinstance(items, CrawlUrl):
            items = [items]
        if not items:
            return 0

        payload = [json.dumps(task.to_dict()) for task in items]
        await self.redis_client.rpush(self.key, *payload)
        self.logger.debug(f"Pushed {len(payload)} URLs to frontier")
        return len(payload)

    async def size(self) -> int:
        """Number of tasks waiting in the queue."""
        return await self.redis_client.llen(self.key)

    async def clear(self):
        """Drop every pending task."""
        await self.redis_client.delete(self.key)
        self.logger.info("Frontier cleared")
