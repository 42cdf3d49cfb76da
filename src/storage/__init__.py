"""
Storage layer for crawl history.
"""

from .history import CrawlHistory, HistoryStoreError, FileHistoryBackend

__all__ = ['CrawlHistory', 'HistoryStoreError', 'FileHistoryBackend']
