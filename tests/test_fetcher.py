"""Tests for src.crawler.fetcher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from src.crawler.crawl_url import CrawlUrl
from src.crawler.fetcher import FetchResult, FetchStatus, PageFetchError, PageFetcher
from src.crawler.parser import Page

URL = "https://example.com/a"


def make_response(status=200, headers=None, chunks=(), charset='utf-8', error=None):
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.charset = charset

    async def iter_chunked(size):
        for chunk in chunks:
            yield chunk
        if error:
            raise error

    response.content.iter_chunked = iter_chunked
    return response


@pytest.fixture
def fetcher():
    fetcher = PageFetcher(user_agent="TestBot/1.0", max_content_size=100)
    fetcher.session = MagicMock()
    fetcher.session.get = AsyncMock()
    return fetcher


class TestFetchStatus:
    def test_custom_codes(self):
        assert FetchStatus.is_custom_code(1001)
        assert FetchStatus.is_custom_code(FetchStatus.UNKNOWN_ERROR)
        assert not FetchStatus.is_custom_code(404)

    def test_descriptions(self):
        assert FetchStatus.get_status_description(1003) == "Request timeout"
        assert FetchStatus.get_status_description(404) == "Not Found"
        assert FetchStatus.get_status_description(299) == "Unknown status"


class TestFetchHeader:
    @pytest.mark.asyncio
    async def test_plain_response(self, fetcher):
        response = make_response(200)
        fetcher.session.get.return_value = response

        result = await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))

        fetcher.session.get.assert_awaited_once_with(URL, allow_redirects=False)
        assert result.status_code == 200
        assert result.fetched_url == URL
        assert result.moved_to_url is None
        assert result.response is response

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [301, 302])
    async def test_explicit_redirect(self, fetcher, status):
        fetcher.session.get.return_value = make_response(status, {'location': '/b'})

        result = await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))

        assert result.status_code == status
        assert result.fetched_url == URL
        assert result.moved_to_url == "https://example.com/b"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [303, 307, 308])
    async def test_implicit_redirect(self, fetcher, status):
        fetcher.session.get.return_value = make_response(
            status, {'location': 'https://other.example.com/'}
        )

        result = await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))

        assert result.fetched_url == "https://other.example.com/"
        assert result.moved_to_url == "https://other.example.com/"

    @pytest.mark.asyncio
    async def test_oversized_content_length(self, fetcher):
        response = make_response(200, {'content-length': '1000'})
        fetcher.session.get.return_value = response

        result = await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))

        assert result.status_code == FetchStatus.PAGE_TOO_BIG
        assert result.response is None
        response.release.assert_called_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, expected", [
        (asyncio.TimeoutError(), FetchStatus.TIMEOUT),
        (aiohttp.ClientConnectionError("refused"), FetchStatus.FATAL_TRANSPORT_ERROR),
        (ValueError("bad url"), FetchStatus.UNKNOWN_ERROR),
    ])
    async def test_transport_failures(self, fetcher, error, expected):
        fetcher.session.get.side_effect = error

        result = await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))

        assert result.status_code == expected
        assert result.fetched_url == URL
        assert fetcher.get_stats()['failed_requests'] == 1

    @pytest.mark.asyncio
    async def test_stats_reset(self, fetcher):
        fetcher.session.get.return_value = make_response(200)
        await fetcher.fetch_header(CrawlUrl.seed(URL, "c1"))
        assert fetcher.get_stats()['successful_requests'] == 1

        fetcher.reset_stats()

        assert fetcher.get_stats() == {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
        }


class TestFetchContent:
    @pytest.mark.asyncio
    async def test_reads_body(self):
        response = make_response(200, {'content-type': 'Text/HTML'}, chunks=[b'<html>', b'</html>'])
        result = FetchResult(200, URL, response=response)
        page = Page(crawl_url=CrawlUrl.seed(URL, "c1"))

        await result.fetch_content(page)

        assert page.content == b'<html></html>'
        assert page.content_type == 'text/html'
        assert page.charset == 'utf-8'

    @pytest.mark.asyncio
    async def test_size_limit_enforced_while_reading(self):
        response = make_response(200, chunks=[b'x' * 60, b'x' * 60])
        result = FetchResult(200, URL, response=response, max_content_size=100)

        with pytest.raises(PageFetchError):
            await result.fetch_content(Page(crawl_url=CrawlUrl.seed(URL, "c1")))

    @pytest.mark.asyncio
    async def test_transfer_error_wrapped(self):
        response = make_response(200, chunks=[b'x'], error=aiohttp.ClientPayloadError("cut"))
        result = FetchResult(200, URL, response=response)

        with pytest.raises(PageFetchError):
            await result.fetch_content(Page(crawl_url=CrawlUrl.seed(URL, "c1")))

    @pytest.mark.asyncio
    async def test_no_response(self):
        result = FetchResult(FetchStatus.TIMEOUT, URL)

        with pytest.raises(PageFetchError):
            await result.fetch_content(Page(crawl_url=CrawlUrl.seed(URL, "c1")))

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self):
        response = make_response(200)
        result = FetchResult(200, URL, response=response)

        await result.release()
        await result.release()

        response.release.assert_called_once()
