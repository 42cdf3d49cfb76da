"""
Prometheus metrics for crawler workers.
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from ..crawler.crawl_result import StatusCode


class CrawlMetrics:
    """Collects per-result and idle metrics from all workers of a process."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()

        self.results_total = Counter(
            'crawler_results_total',
            'Processed URLs by crawl result status',
            ['status'],
            registry=self.registry
        )
        self.empty_pulls_total = Counter(
            'crawler_empty_pulls_total',
            'Pulls that returned no work',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'crawler_active_workers',
            'Number of running crawler workers',
            registry=self.registry
        )
        self.page_seconds = Histogram(
            'crawler_page_seconds',
            'Time spent processing one URL',
            registry=self.registry
        )

    def record_result(self, status: StatusCode, duration: float):
        self.results_total.labels(status=status.value).inc()
        self.page_seconds.observe(duration)

    def record_empty_pull(self):
        self.empty_pulls_total.inc()

    def set_active_workers(self, count: int):
        self.active_workers.set(count)

    def get_result_counts(self) -> Dict[str, float]:
        """Current value of the result counter per status."""
        counts = {}
        for status in StatusCode:
            value = self.registry.get_sample_value(
                'crawler_results_total', {'status': status.value}
            )
            if value:
                counts[status.value] = value
        return counts

    def start_server(self, port: int):
        """Expose the metrics over HTTP."""
        try:
            start_http_server(port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")
