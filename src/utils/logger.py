"""
Logging utilities for the crawler: structured formatting and context-bound loggers.

Worker and processor loggers are ``CrawlerLogAdapter`` instances carrying the
worker id and crawl id, so every line a worker emits can be traced back to it.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Dict, Any, Iterable, Optional
from datetime import datetime, timezone

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {
    'message', 'asctime', 'taskName'
}

# Context fields shown in plain-text output when present on a record.
_TEXT_CONTEXT_FIELDS = ('worker_id', 'crawl_id', 'component')

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LIBRARY_LOG_LEVELS = {
    'aiohttp': logging.WARNING,
    'cassandra': logging.WARNING,
    'redis': logging.WARNING,
    'asyncio': logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, bound context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain-text formatter prefixing messages with the bound worker context."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = [f"{key}={getattr(record, key)}"
                   for key in _TEXT_CONTEXT_FIELDS if hasattr(record, key)]
        if not context:
            return text
        return f"[{' '.join(context)}] {text}"


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Logger adapter that adds crawler-specific context."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        # Per-call extra wins over bound context
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context) -> 'CrawlerLogAdapter':
        """Return a new adapter carrying this adapter's context plus ``context``."""
        extra = dict(self.extra)
        extra.update(context)
        return CrawlerLogAdapter(self.logger, extra)

    def log_url_event(self, level: int, url: str, message: str, **kwargs):
        """Log an event about one URL, tagged so it can be filtered out of JSON logs."""
        extra = kwargs.get('extra', {})
        extra['url'] = url
        extra['event_type'] = 'url_event'
        kwargs['extra'] = extra
        self.log(level, message, **kwargs)


class PerformanceFilter(logging.Filter):
    """Drops records from chatty library loggers."""

    def __init__(self, suppress_modules: Optional[Iterable[str]] = None):
        super().__init__()
        self.suppress_modules = tuple(suppress_modules or ('aiohttp.access', 'aiohttp.client'))

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.suppress_modules)


def _attach(root_logger: logging.Logger, handler: logging.Handler, level: int,
            formatter: logging.Formatter, filtered: bool):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    if filtered:
        handler.addFilter(PerformanceFilter())
    root_logger.addHandler(handler)


def setup_logging(config: Dict[str, Any],
                  enable_json: bool = False,
                  enable_performance_filtering: bool = True) -> logging.Logger:
    """
    Route all crawler logging to stdout and a rotating log file.

    Args:
        config: Logging section of the configuration (level, file, format)
        enable_json: Emit one JSON object per line instead of plain text
        enable_performance_filtering: Drop records from chatty library loggers

    Returns:
        Configured root logger
    """
    log_file = Path(config.get('file', 'logs/crawler.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.get('level', 'INFO').upper()))
    root_logger.handlers.clear()

    if enable_json:
        formatter = JSONFormatter()
    else:
        formatter = ContextTextFormatter(config.get('format') or DEFAULT_FORMAT)

    _attach(root_logger, logging.StreamHandler(sys.stdout), logging.INFO,
            formatter, enable_performance_filtering)
    _attach(
        root_logger,
        logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=5,
            encoding='utf-8'
        ),
        logging.DEBUG,
        formatter,
        enable_performance_filtering
    )

    for logger_name, level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(logger_name).setLevel(level)

    root_logger.info(f"Logging to {log_file} at level {config.get('level', 'INFO')} "
                     f"(json={enable_json})")
    return root_logger


def get_crawler_logger(name: str, **extra_context) -> CrawlerLogAdapter:
    """
    Get a crawler-specific logger with additional context.

    Args:
        name: Logger name
        **extra_context: Context fields included in every record, e.g. worker_id

    Returns:
        CrawlerLogAdapter instance
    """
    return CrawlerLogAdapter(logging.getLogger(name), extra_context)
