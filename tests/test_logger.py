"""Tests for src.utils.logger."""

from __future__ import annotations

import json
import logging

from src.utils.logger import (
    ContextTextFormatter,
    JSONFormatter,
    PerformanceFilter,
    get_crawler_logger,
    setup_logging,
)


class CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def capture(name):
    logger = logging.getLogger(name)
    handler = CapturingHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return handler


class TestCrawlerLogAdapter:
    def test_bound_context_reaches_record(self):
        handler = capture("tests.logger.bind")
        worker_log = get_crawler_logger("tests.logger.bind", worker_id="worker-1", crawl_id="c1")

        worker_log.bind(component="processor").info("hello")

        record = handler.records[0]
        assert record.worker_id == "worker-1"
        assert record.crawl_id == "c1"
        assert record.component == "processor"

    def test_bind_leaves_parent_unchanged(self):
        worker_log = get_crawler_logger("tests.logger.parent", worker_id="worker-1")

        worker_log.bind(component="processor")

        assert worker_log.extra == {'worker_id': 'worker-1'}

    def test_url_event(self):
        handler = capture("tests.logger.url")
        worker_log = get_crawler_logger("tests.logger.url", worker_id="worker-2")

        worker_log.log_url_event(logging.DEBUG, "https://example.com/", "processed")

        record = handler.records[0]
        assert record.url == "https://example.com/"
        assert record.event_type == "url_event"
        assert record.worker_id == "worker-2"


class TestJSONFormatter:
    def test_context_fields_are_serialized(self):
        record = logging.LogRecord("crawler", logging.INFO, __file__, 10, "msg %s", ("x",), None)
        record.worker_id = "worker-3"

        entry = json.loads(JSONFormatter().format(record))

        assert entry['message'] == "msg x"
        assert entry['level'] == "INFO"
        assert entry['worker_id'] == "worker-3"
        assert 'args' not in entry


class TestPerformanceFilter:
    def test_noisy_modules_suppressed(self):
        log_filter = PerformanceFilter()

        noisy = logging.LogRecord("aiohttp.access", logging.INFO, __file__, 1, "", None, None)
        ours = logging.LogRecord("src.crawler.worker", logging.INFO, __file__, 1, "", None, None)

        assert not log_filter.filter(noisy)
        assert log_filter.filter(ours)


class TestContextTextFormatter:
    def test_context_prefix(self):
        record = logging.LogRecord("crawler", logging.INFO, __file__, 1, "pulled", None, None)
        record.worker_id = "worker-4"
        record.crawl_id = "c1"

        text = ContextTextFormatter("%(levelname)s %(message)s").format(record)

        assert text == "[worker_id=worker-4 crawl_id=c1] INFO pulled"

    def test_no_context(self):
        record = logging.LogRecord("crawler", logging.INFO, __file__, 1, "pulled", None, None)

        assert ContextTextFormatter("%(message)s").format(record) == "pulled"


class TestSetupLogging:
    def test_file_and_console_handlers(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging({'level': 'DEBUG', 'file': str(tmp_path / "logs" / "crawler.log")},
                          enable_json=True)

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)
            assert (tmp_path / "logs").is_dir()
            assert logging.getLogger('aiohttp').level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
