"""
Prometheus metrics for the crawler.
"""

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class CrawlerMonitor:
    """High-level metrics interface backed by a private Prometheus registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()
        self.start_time = time.time()

        self.urls_fetched = Counter(
            'crawler_urls_fetched_total',
            'Total number of URLs fetched',
            ['outcome'],
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'Total number of per-URL fetch errors',
            ['error_type'],
            registry=self.registry
        )
        self.robots_blocked = Counter(
            'crawler_robots_blocked_total',
            'URLs skipped because robots.txt disallows them',
            registry=self.registry
        )
        self.links_discovered = Counter(
            'crawler_links_discovered_total',
            'Links discovered by scope',
            ['scope'],
            registry=self.registry
        )
        self.response_time = Histogram(
            'crawler_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'Number of URLs waiting in the frontier',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'crawler_active_workers',
            'Number of workers currently processing a URL',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Expose metrics over HTTP."""
        start_http_server(port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {port}")

    def record_fetch(self, outcome: str, response_time: float):
        self.urls_fetched.labels(outcome=outcome).inc()
        self.response_time.observe(response_time)

    def record_error(self, error_type: str):
        self.errors.labels(error_type=error_type).inc()

    def record_robots_blocked(self):
        self.robots_blocked.inc()

    def record_link(self, scope: str):
        self.links_discovered.labels(scope=scope).inc()

    def update_queue_size(self, size: int):
        self.queue_size.set(size)

    def update_active_workers(self, count: int):
        self.active_workers.set(count)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the main counters."""
        runtime = time.time() - self.start_time
        fetched = sum(
            self.get_value('crawler_urls_fetched_total', {'outcome': outcome})
            for outcome in ('html', 'other', 'error')
        )
        return {
            'runtime_seconds': runtime,
            'urls_fetched': fetched,
            'robots_blocked': self.get_value('crawler_robots_blocked_total'),
            'urls_per_second': fetched / runtime if runtime > 0 else 0,
        }
