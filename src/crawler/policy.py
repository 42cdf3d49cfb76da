"""
Crawl policies: the hooks a concrete crawl plugs into the worker and page processor.
"""

import logging
from typing import Iterable, Optional
from urllib.parse import urlparse

from .crawl_url import CrawlUrl
from .parser import Page


class CrawlPolicy:
    """
    Hook set injected into CrawlerWorker and PageProcessor.

    Every hook is a no-op by default and ``should_visit`` accepts everything.
    The status and error hooks are purely observational: they never change
    how a page is classified.
    """

    async def on_start(self):
        """Called once by each worker before its first pull."""

    async def on_before_exit(self):
        """Called by the supervisor after the workers have been stopped."""

    async def should_visit(self, crawl_url: CrawlUrl) -> bool:
        """Return False to skip a URL without fetching it."""
        return True

    async def handle_page_status_code(self, crawl_url: CrawlUrl, status_code: int,
                                      description: str):
        """Called with every status observed on a header fetch, custom codes included."""

    async def on_content_fetch_error(self, crawl_url: CrawlUrl, error: Exception):
        """Called when the body of a page could not be downloaded."""

    async def on_parse_error(self, crawl_url: CrawlUrl):
        """Called when fetched content could not be parsed."""

    async def visit(self, page: Page):
        """Consume a fetched and parsed page."""


SKIP_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
    '.css', '.js', '.ico', '.woff', '.woff2', '.ttf', '.eot'
)


class ScopedCrawlPolicy(CrawlPolicy):
    """
    Keeps a crawl inside a set of domains and logs error responses.
    """

    def __init__(self, allowed_domains: Optional[Iterable[str]] = None,
                 blocked_domains: Optional[Iterable[str]] = None,
                 skip_extensions: Iterable[str] = SKIP_EXTENSIONS):
        self.allowed_domains = {d.lower() for d in allowed_domains or ()}
        self.blocked_domains = {d.lower() for d in blocked_domains or ()}
        self.skip_extensions = tuple(skip_extensions)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _matches(domain: str, candidates) -> bool:
        return any(domain == c or domain.endswith('.' + c) for c in candidates)

    async def should_visit(self, crawl_url: CrawlUrl) -> bool:
        parsed = urlparse(crawl_url.url)
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            return False

        domain = parsed.hostname.lower()
        if self.blocked_domains and self._matches(domain, self.blocked_domains):
            return False
        if self.allowed_domains and not self._matches(domain, self.allowed_domains):
            return False

        return not parsed.path.lower().endswith(self.skip_extensions)

    async def handle_page_status_code(self, crawl_url: CrawlUrl, status_code: int,
                                      description: str):
        if 400 <= status_code < 600:
            self.logger.info(f"{crawl_url.url} answered {status_code} {description}")

    async def on_content_fetch_error(self, crawl_url: CrawlUrl, error: Exception):
        self.logger.warning(f"Content fetch failed for {crawl_url.url}: {error}")

    async def on_parse_error(self, crawl_url: CrawlUrl):
        self.logger.warning(f"Could not parse {crawl_url.url}")

    async def visit(self, page: Page):
        self.logger.info(
            f"Visited {page.url} (depth {page.crawl_url.depth}, "
            f"{len(page.outgoing_links)} links)"
        )
