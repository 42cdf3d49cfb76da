"""Tests for src.crawler.policy."""

from __future__ import annotations

import pytest

from src.crawler.crawl_url import CrawlUrl
from src.crawler.policy import CrawlPolicy, ScopedCrawlPolicy


def url(u):
    return CrawlUrl.seed(u, "c1")


class TestCrawlPolicy:
    @pytest.mark.asyncio
    async def test_defaults_accept_everything(self):
        policy = CrawlPolicy()

        assert await policy.should_visit(url("ftp://example.com/file"))
        assert await policy.on_start() is None
        assert await policy.on_before_exit() is None


class TestScopedCrawlPolicy:
    @pytest.mark.asyncio
    async def test_allowed_domains_include_subdomains(self):
        policy = ScopedCrawlPolicy(allowed_domains=["Example.com"])

        assert await policy.should_visit(url("https://example.com/"))
        assert await policy.should_visit(url("https://docs.example.com/page"))
        assert not await policy.should_visit(url("https://notexample.com/"))
        assert not await policy.should_visit(url("https://other.org/"))

    @pytest.mark.asyncio
    async def test_blocked_domains_win(self):
        policy = ScopedCrawlPolicy(allowed_domains=["example.com"],
                                   blocked_domains=["ads.example.com"])

        assert not await policy.should_visit(url("https://ads.example.com/banner"))
        assert not await policy.should_visit(url("https://x.ads.example.com/"))
        assert await policy.should_visit(url("https://www.example.com/"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [
        "https://example.com/logo.PNG",
        "https://example.com/report.pdf",
        "mailto:someone@example.com",
        "ftp://example.com/",
    ])
    async def test_unfetchable_targets_skipped(self, target):
        assert not await ScopedCrawlPolicy().should_visit(url(target))

    @pytest.mark.asyncio
    async def test_query_does_not_hide_extension_check(self):
        policy = ScopedCrawlPolicy()

        assert await policy.should_visit(url("https://example.com/page?file=a.pdf"))

    @pytest.mark.asyncio
    async def test_error_statuses_logged(self, caplog):
        policy = ScopedCrawlPolicy()

        with caplog.at_level("INFO", logger="src.crawler.policy"):
            await policy.handle_page_status_code(url("https://example.com/x"), 503,
                                                 "Service Unavailable")
            await policy.handle_page_status_code(url("https://example.com/y"), 200, "OK")

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["https://example.com/x answered 503 Service Unavailable"]
