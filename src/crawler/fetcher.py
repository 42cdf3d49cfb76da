"""
Page fetcher implementation: header fetch, redirect detection and bounded content download.
"""

import asyncio
import aiohttp
import logging
from enum import IntEnum
from http import HTTPStatus
from typing import Optional, Dict, TYPE_CHECKING
from urllib.parse import urljoin
from aiohttp import ClientSession, ClientTimeout, ClientError, ClientResponse

from .crawl_url import CrawlUrl

if TYPE_CHECKING:
    from .parser import Page


class FetchStatus(IntEnum):
    """Non-HTTP status codes reported when no usable HTTP response was obtained."""
    PAGE_TOO_BIG = 1001
    FATAL_TRANSPORT_ERROR = 1002
    TIMEOUT = 1003
    UNKNOWN_ERROR = 1004

    @staticmethod
    def is_custom_code(code: int) -> bool:
        return code in _CUSTOM_DESCRIPTIONS

    @staticmethod
    def get_status_description(code: int) -> str:
        """Human readable description of an HTTP or custom status code."""
        if code in _CUSTOM_DESCRIPTIONS:
            return _CUSTOM_DESCRIPTIONS[code]
        try:
            return HTTPStatus(code).phrase
        except ValueError:
            return "Unknown status"


_CUSTOM_DESCRIPTIONS: Dict[int, str] = {
    FetchStatus.PAGE_TOO_BIG: "Page size exceeds the maximum allowed",
    FetchStatus.FATAL_TRANSPORT_ERROR: "Fatal transport error",
    FetchStatus.TIMEOUT: "Request timeout",
    FetchStatus.UNKNOWN_ERROR: "Unknown error",
}

# Explicit redirects are reported through moved_to_url only.
HTTP_REDIRECT_CODES = (HTTPStatus.MOVED_PERMANENTLY, HTTPStatus.FOUND)
# Other redirects are reported as a change of the fetched URL.
IMPLICIT_REDIRECT_CODES = (
    HTTPStatus.SEE_OTHER,
    HTTPStatus.TEMPORARY_REDIRECT,
    HTTPStatus.PERMANENT_REDIRECT,
)


class PageFetchError(Exception):
    """Raised when the content of a page could not be downloaded."""
    pass


class FetchResult:
    """Outcome of a header fetch, holding the open response until content is read."""

    def __init__(self, status_code: int, fetched_url: str,
                 moved_to_url: Optional[str] = None,
                 response: Optional[ClientResponse] = None,
                 max_content_size: int = 10 * 1024 * 1024):
        self.status_code = status_code
        self.fetched_url = fetched_url
        self.moved_to_url = moved_to_url
        self.response = response
        self.max_content_size = max_content_size
        self.logger = logging.getLogger(__name__)

    async def fetch_content(self, page: 'Page'):
        """
        Download the response body into the page.

        Raises:
            PageFetchError: if there is no response, the body exceeds the
                size limit or the transfer fails
        """
        if self.response is None:
            raise PageFetchError(f"No response to read for {self.fetched_url}")

        try:
            content_bytes = b''
            async for chunk in self.response.content.iter_chunked(8192):
                content_bytes += chunk
                if len(content_bytes) > self.max_content_size:
                    raise PageFetchError(
                        f"Content exceeded size limit during reading: {self.fetched_url}"
                    )
        except (ClientError, asyncio.TimeoutError) as e:
            raise PageFetchError(f"Error reading content from {self.fetched_url}: {e}") from e

        page.content = content_bytes
        page.content_type = self.response.headers.get('content-type', '').lower()
        page.charset = self.response.charset
        self.logger.debug(f"Fetched content of {self.fetched_url} ({len(content_bytes)} bytes)")

    async def release(self):
        """Release the underlying connection."""
        if self.response is not None:
            self.response.release()
            self.response = None


class PageFetcher:
    """
    Fetches page headers and content over a shared aiohttp session.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_content_size: int = 10 * 1024 * 1024, max_connections: int = 20):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_content_size = max_content_size
        self.max_connections = max_connections

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections,
                    limit_per_host=10,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("PageFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("PageFetcher session closed")

    async def fetch_header(self, crawl_url: CrawlUrl) -> FetchResult:
        """
        Issue the request for a URL and inspect the response headers.

        Redirects are never followed here. A 301/302 is reported through
        ``moved_to_url``; a 303/307/308 is reported as a different
        ``fetched_url``. Transport failures come back as a custom
        ``FetchStatus`` code instead of raising.

        Args:
            crawl_url: The task to fetch

        Returns:
            FetchResult whose response must be released by the caller
        """
        if self.session is None:
            await self.start()

        url = crawl_url.url
        self.stats['total_requests'] += 1

        try:
            response = await self.session.get(url, allow_redirects=False)
        except asyncio.TimeoutError:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Timeout fetching {url}")
            return FetchResult(FetchStatus.TIMEOUT, url)
        except ClientError as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Client error fetching {url}: {e}")
            return FetchResult(FetchStatus.FATAL_TRANSPORT_ERROR, url)
        except Exception as e:
            self.stats['failed_requests'] += 1
            self.logger.error(f"Unexpected error fetching {url}: {e}")
            return FetchResult(FetchStatus.UNKNOWN_ERROR, url)

        status = response.status
        location = response.headers.get('location')
        target = urljoin(url, location) if location else None

        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {url}")
            response.release()
            self.stats['failed_requests'] += 1
            return FetchResult(FetchStatus.PAGE_TOO_BIG, url)

        self.stats['successful_requests'] += 1
        self.logger.debug(f"Fetched header of {url}: {status}")

        if status in HTTP_REDIRECT_CODES:
            return FetchResult(status, url, moved_to_url=target, response=response,
                               max_content_size=self.max_content_size)

        if status in IMPLICIT_REDIRECT_CODES and target:
            return FetchResult(status, target, moved_to_url=target, response=response,
                               max_content_size=self.max_content_size)

        return FetchResult(status, url, response=response,
                           max_content_size=self.max_content_size)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()

    def reset_stats(self):
        """Reset statistics counters."""
        for key in self.stats:
            self.stats[key] = 0
