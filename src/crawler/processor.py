"""
Page processor: turns one CrawlUrl into exactly one CrawlResult.
"""

from http import HTTPStatus
from typing import Optional

from .crawl_result import CrawlResult, StatusCode
from .crawl_url import CrawlUrl
from .fetcher import FetchResult, FetchStatus, PageFetcher
from .parser import ContentParser, Page, PayloadType
from .policy import CrawlPolicy
from .robots import RobotsChecker
from .url_frontier import Frontier
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger

UNLIMITED_DEPTH = -1


class PageProcessor:
    """
    Runs the fetch, classify, parse and visit pipeline for a single URL.

    Side effects are limited to pushing redirect targets and outlinks to the
    frontier and calling the policy hooks. Crawl failures are returned as
    CrawlResult values rather than raised.
    """

    def __init__(self, frontier: Frontier, fetcher: PageFetcher, parser: ContentParser,
                 robots: RobotsChecker, policy: CrawlPolicy,
                 follow_redirects: bool = True, max_depth: int = UNLIMITED_DEPTH,
                 logger: Optional[CrawlerLogAdapter] = None):
        self.frontier = frontier
        self.fetcher = fetcher
        self.parser = parser
        self.robots = robots
        self.policy = policy
        self.follow_redirects = follow_redirects
        self.max_depth = max_depth
        self.logger = logger or get_crawler_logger(__name__)

    def _within_depth(self, crawl_url: CrawlUrl) -> bool:
        return self.max_depth == UNLIMITED_DEPTH or crawl_url.depth < self.max_depth

    async def _notify(self, hook: str, crawl_url: CrawlUrl, *args):
        """Call an observational policy hook; its failures never change the result."""
        try:
            await getattr(self.policy, hook)(crawl_url, *args)
        except Exception:
            self.logger.error(f"Exception in {hook} hook for {crawl_url.url}", exc_info=True)

    async def process_page(self, crawl_url: CrawlUrl) -> CrawlResult:
        """
        Process one URL.

        Checks are made in order and the first one that applies decides the
        result: robots.txt, the policy filter, transport failure, redirect,
        content download, parsing, and finally the visit hook. Nothing raised
        by a collaborator or a policy hook escapes; only cancellation does.

        Args:
            crawl_url: The task to process; its start time and HTTP status
                are recorded on it

        Returns:
            The CrawlResult describing the outcome
        """
        crawl_url.mark_started()
        url = crawl_url.url

        try:
            allowed = await self.robots.allows(url)
        except Exception as e:
            self.logger.error(f"robots.txt check failed for {url}", exc_info=True)
            return CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)
        if not allowed:
            self.logger.debug(f"Excluded by robots.txt: {url}")
            return CrawlResult(StatusCode.ROBOTS_TXT_EXCLUDED)

        try:
            should_visit = await self.policy.should_visit(crawl_url)
        except Exception as e:
            self.logger.error(f"Exception in should_visit hook for {url}", exc_info=True)
            return CrawlResult.from_exception(StatusCode.SHOULD_NOT_VISIT, e)
        if not should_visit:
            self.logger.debug(f"Policy rejected: {url}")
            return CrawlResult(StatusCode.SHOULD_NOT_VISIT)

        try:
            fetch_result = await self.fetcher.fetch_header(crawl_url)
        except Exception as e:
            self.logger.error(f"Header fetch failed for {url}", exc_info=True)
            return CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)

        try:
            return await self._process_fetched(crawl_url, fetch_result)
        finally:
            try:
                await fetch_result.release()
            except Exception:
                self.logger.warning(f"Could not release connection for {url}", exc_info=True)

    async def _process_fetched(self, crawl_url: CrawlUrl, fetch_result: FetchResult) -> CrawlResult:
        url = crawl_url.url
        status_code = fetch_result.status_code
        status_desc = FetchStatus.get_status_description(status_code)

        await self._notify('handle_page_status_code', crawl_url, status_code, status_desc)

        if FetchStatus.is_custom_code(status_code):
            self.logger.warning(f"Fetch failed for {url}: {status_desc}")
            return CrawlResult(StatusCode.FETCH_ERROR, status_desc)

        crawl_url.http_status = status_code

        if status_code in (HTTPStatus.MOVED_PERMANENTLY, HTTPStatus.FOUND):
            return await self.process_redirection(fetch_result, crawl_url, True)

        if fetch_result.fetched_url != url:
            # Server or client side redirection happened
            return await self.process_redirection(fetch_result, crawl_url, False)

        page = Page(crawl_url)

        try:
            await fetch_result.fetch_content(page)
        except Exception as e:
            self.logger.error(f"Error during content fetch of {url}", exc_info=True)
            await self._notify('on_content_fetch_error', crawl_url, e)
            return CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)

        try:
            parsed = self.parser.parse(page, url)
        except Exception:
            self.logger.error(f"Parser raised for {url}", exc_info=True)
            parsed = False
        if not parsed:
            await self._notify('on_parse_error', crawl_url)
            return CrawlResult(StatusCode.FAILED_TO_PARSE)

        # Outlinks are only pushed while below max depth
        if page.payload_type is PayloadType.HTML and self._within_depth(crawl_url):
            outlinks = [crawl_url.outlink(link.url, link.anchor) for link in page.outgoing_links]
            if outlinks:
                try:
                    await self.frontier.push(outlinks)
                except Exception as e:
                    self.logger.error(f"Could not queue outlinks of {url}", exc_info=True)
                    return CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)
                self.logger.debug(f"Queued {len(outlinks)} outlinks from {url}")

        try:
            await self.policy.visit(page)
        except Exception as e:
            self.logger.error(f"Exception in visit hook for {url}", exc_info=True)
            return CrawlResult.from_exception(StatusCode.VISIT_ERROR, e)

        return CrawlResult(StatusCode.SUCCESSFUL)

    async def process_redirection(self, fetch_result: FetchResult, crawl_url: CrawlUrl,
                                  is_http_redirection: bool) -> CrawlResult:
        """
        Classify a redirect and, when following is enabled, queue its target.

        The target keeps the parent, depth and anchor of the redirecting URL.
        """
        if is_http_redirection:
            followed, not_followed = StatusCode.HTTP_REDIRECT, StatusCode.HTTP_REDIRECT_NOT_FOLLOWED
        else:
            followed, not_followed = StatusCode.REDIRECT, StatusCode.REDIRECT_NOT_FOLLOWED

        moved_to_url = fetch_result.moved_to_url or (
            None if is_http_redirection else fetch_result.fetched_url
        )

        if not self.follow_redirects:
            return CrawlResult(not_followed, moved_to_url)

        if not moved_to_url:
            self.logger.warning(f"Redirect without target from {crawl_url.url}")
            return CrawlResult(StatusCode.FETCH_ERROR, "Redirect without target")

        try:
            await self.frontier.push(crawl_url.redirect_to(moved_to_url))
        except Exception as e:
            self.logger.error(f"Could not queue redirect target of {crawl_url.url}", exc_info=True)
            return CrawlResult.from_exception(StatusCode.FETCH_ERROR, e)
        self.logger.debug(f"Following redirect {crawl_url.url} -> {moved_to_url}")
        return CrawlResult(followed, moved_to_url)
