"""
CrawlUrl: one unit of crawl work and the lineage it carries through the frontier.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from .crawl_result import CrawlResult


@dataclass
class CrawlUrl:
    """
    Represents a URL crawling task.

    Seeds have depth 0 and no parent. Outlinks are one hop deeper than the page
    they were found on. Redirect targets keep the lineage of the URL that
    redirected to them.
    """
    url: str
    crawl_id: str
    parent_url: Optional[str] = None
    anchor: Optional[str] = None
    depth: int = 0
    crawl_start_time: Optional[float] = None
    http_status: Optional[int] = None
    result: Optional[CrawlResult] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.url:
            raise ValueError("CrawlUrl requires a non-empty url")
        if self.depth < 0:
            raise ValueError(f"depth must be non-negative, got {self.depth}")

    @classmethod
    def seed(cls, url: str, crawl_id: str) -> 'CrawlUrl':
        """Create a depth-0 task with no parent."""
        return cls(url=url, crawl_id=crawl_id)

    @property
    def is_seed(self) -> bool:
        return self.parent_url is None

    @property
    def is_finished(self) -> bool:
        return self.result is not None

    def outlink(self, url: str, anchor: Optional[str] = None) -> 'CrawlUrl':
        """Derive a task for a link discovered on this page."""
        return CrawlUrl(
            url=url,
            crawl_id=self.crawl_id,
            parent_url=self.url,
            anchor=anchor,
            depth=self.depth + 1
        )

    def redirect_to(self, url: str) -> 'CrawlUrl':
        """Derive the task for a redirect target; it is the same hop, so lineage is copied."""
        return CrawlUrl(
            url=url,
            crawl_id=self.crawl_id,
            parent_url=self.parent_url,
            anchor=self.anchor,
            depth=self.depth
        )

    def mark_started(self):
        self.crawl_start_time = time.time()

    def attach_result(self, result: CrawlResult):
        """Attach the processing outcome. A task can only be finished once."""
        if self.result is not None:
            raise ValueError(f"Result already attached to {self.url}")
        self.result = result

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'url': self.url,
            'crawl_id': self.crawl_id,
            'parent_url': self.parent_url,
            'anchor': self.anchor,
            'depth': self.depth,
            'crawl_start_time': self.crawl_start_time,
            'http_status': self.http_status,
            'result': self.result.to_dict() if self.result else None
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CrawlUrl':
        """Create CrawlUrl from dictionary."""
        result_data = data.get('result')
        return cls(
            url=data['url'],
            crawl_id=data['crawl_id'],
            parent_url=data.get('parent_url'),
            anchor=data.get('anchor'),
            depth=data.get('depth', 0),
            crawl_start_time=data.get('crawl_start_time'),
            http_status=data.get('http_status'),
            result=CrawlResult.from_dict(result_data) if result_data else None
        )
