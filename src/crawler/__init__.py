"""
Crawler core components.
"""

from .crawl_result import CrawlResult, StatusCode
from .crawl_url import CrawlUrl
from .url_frontier import Frontier, RedisFrontier
from .fetcher import PageFetcher, FetchResult, FetchStatus, PageFetchError
from .parser import ContentParser, Page, PayloadType, WebLink
from .robots import RobotsChecker
from .policy import CrawlPolicy, ScopedCrawlPolicy
from .processor import PageProcessor, UNLIMITED_DEPTH

__all__ = [
    'CrawlResult', 'StatusCode', 'CrawlUrl',
    'Frontier', 'RedisFrontier',
    'PageFetcher', 'FetchResult', 'FetchStatus', 'PageFetchError',
    'ContentParser', 'Page', 'PayloadType', 'WebLink',
    'RobotsChecker', 'CrawlPolicy', 'ScopedCrawlPolicy',
    'PageProcessor', 'UNLIMITED_DEPTH'
]
