"""Shared fixtures for crawler tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeFrontier, RecordingPolicy
from src.crawler.parser import ContentParser
from src.crawler.processor import PageProcessor, UNLIMITED_DEPTH


@pytest.fixture
def frontier():
    return FakeFrontier()


@pytest.fixture
def robots():
    checker = MagicMock()
    checker.allows = AsyncMock(return_value=True)
    return checker


@pytest.fixture
def fetcher():
    fake = MagicMock()
    fake.fetch_header = AsyncMock()
    return fake


@pytest.fixture
def policy():
    return RecordingPolicy()


@pytest.fixture
def make_processor(frontier, fetcher, robots, policy):
    def _make(follow_redirects=True, max_depth=UNLIMITED_DEPTH):
        return PageProcessor(
            frontier=frontier,
            fetcher=fetcher,
            parser=ContentParser(),
            robots=robots,
            policy=policy,
            follow_redirects=follow_redirects,
            max_depth=max_depth,
        )
    return _make
