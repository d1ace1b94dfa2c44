"""
Monitoring and metrics collection for the web crawler system.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


@dataclass
class MetricPoint:
    """Individual metric data point."""
    timestamp: float
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class Metric:
    """Metric container with history."""
    name: str
    description: str
    metric_type: str  # counter, gauge, histogram
    points: List[MetricPoint] = field(default_factory=list)
    current_value: float = 0.0


class MetricsCollector:
    """Collects and manages crawler metrics."""

    MAX_POINTS = 1000

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.metrics: Dict[str, Metric] = {}
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.prometheus_registry: Optional[CollectorRegistry] = None
        self.prometheus_metrics: Dict[str, Any] = {}

        if self.enable_prometheus:
            self._setup_prometheus()

    def _setup_prometheus(self):
        """Setup Prometheus metrics on a dedicated registry."""
        self.prometheus_registry = CollectorRegistry()

        self.prometheus_metrics = {
            'urls_fetched_total': Counter(
                'crawler_urls_fetched_total',
                'Total number of URLs fetched successfully',
                registry=self.prometheus_registry
            ),
            'fetch_failures_total': Counter(
                'crawler_fetch_failures_total',
                'Total number of failed fetches',
                registry=self.prometheus_registry
            ),
            'urls_skipped_total': Counter(
                'crawler_urls_skipped_total',
                'Total number of crawl tasks that returned without fetching',
                ['reason'],
                registry=self.prometheus_registry
            ),
            'fetch_time_seconds': Histogram(
                'crawler_fetch_time_seconds',
                'Time spent in a single fetch',
                registry=self.prometheus_registry
            ),
            'tasks_in_flight': Gauge(
                'crawler_tasks_in_flight',
                'Number of fetches currently in progress',
                registry=self.prometheus_registry
            )
        }

        self.logger.info("Prometheus metrics initialized")

    def start_prometheus_server(self):
        """Expose the registry over HTTP."""
        if not self.enable_prometheus:
            return

        start_http_server(self.prometheus_port, registry=self.prometheus_registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def record_metric(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                      description: str = "", metric_type: str = "gauge", delta: float = 0.0):
        """Record a metric value."""
        labels = labels or {}

        if name not in self.metrics:
            self.metrics[name] = Metric(
                name=name,
                description=description,
                metric_type=metric_type
            )

        metric = self.metrics[name]
        metric.points.append(MetricPoint(timestamp=time.time(), value=value, labels=labels))
        metric.current_value = value

        if len(metric.points) > self.MAX_POINTS:
            metric.points = metric.points[-self.MAX_POINTS:]

        if self.enable_prometheus and name in self.prometheus_metrics:
            prom_metric = self.prometheus_metrics[name]
            if labels:
                prom_metric = prom_metric.labels(**labels)

            if metric_type == "counter":
                prom_metric.inc(delta)
            elif metric_type == "histogram":
                prom_metric.observe(value)
            else:
                prom_metric.set(value)

    def increment_counter(self, name: str, labels: Optional[Dict[str, str]] = None,
                          description: str = ""):
        """Increment a counter metric."""
        current_value = 0.0
        if name in self.metrics:
            current_value = self.metrics[name].current_value

        self.record_metric(name, current_value + 1, labels, description, "counter", delta=1.0)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                  description: str = ""):
        """Set a gauge metric value."""
        self.record_metric(name, value, labels, description, "gauge")

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                          description: str = ""):
        """Record a histogram observation."""
        self.record_metric(name, value, labels, description, "histogram")

    def get_current_values(self) -> Dict[str, float]:
        """Get current values of all metrics."""
        return {name: metric.current_value for name, metric in self.metrics.items()}

    def export_metrics_json(self, file_path: str):
        """Export metrics to JSON file."""
        export_data = {
            'export_time': datetime.now(timezone.utc).isoformat(),
            'metrics': {}
        }

        for name, metric in self.metrics.items():
            export_data['metrics'][name] = {
                'description': metric.description,
                'type': metric.metric_type,
                'current_value': metric.current_value,
                'points': [
                    {
                        'timestamp': point.timestamp,
                        'value': point.value,
                        'labels': point.labels
                    }
                    for point in metric.points[-100:]
                ]
            }

        with open(file_path, 'w') as f:
            json.dump(export_data, f, indent=2)

        self.logger.info(f"Metrics exported to {file_path}")


class CrawlerMonitor:
    """High-level monitoring interface for the crawl coordinator."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def record_fetch(self, url: str, fetch_time: float):
        """Record a successful fetch."""
        self.metrics.increment_counter('urls_fetched_total', description='URLs fetched')
        self.metrics.observe_histogram('fetch_time_seconds', fetch_time,
                                       description='Fetch time')

    def record_failure(self, url: str, fetch_time: float):
        """Record a failed fetch."""
        self.metrics.increment_counter('fetch_failures_total', description='Failed fetches')
        self.metrics.observe_histogram('fetch_time_seconds', fetch_time,
                                       description='Fetch time')

    def record_skip(self, url: str, reason: str):
        """Record a crawl task that returned without fetching."""
        self.metrics.increment_counter('urls_skipped_total', {'reason': reason},
                                       'Crawl tasks that did not fetch')

    def update_in_flight(self, count: int):
        self.metrics.set_gauge('tasks_in_flight', count, description='Fetches in progress')

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        current_values = self.metrics.get_current_values()
        runtime = time.time() - self.start_time

        return {
            'runtime_seconds': runtime,
            'metrics': current_values,
            'rates': {
                'urls_per_second': current_values.get('urls_fetched_total', 0) / runtime if runtime > 0 else 0,
            }
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Build a monitor, starting the Prometheus endpoint when enabled."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
