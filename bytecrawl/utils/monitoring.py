"""
Monitoring and metrics collection for the crawler.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Iterator

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server
from prometheus_client.core import CounterMetricFamily, Metric

from ..counting import ByteCounter

BYTES_IN_MEGABYTE = Decimal(1048576)
_MEGABYTE_PLACES = Decimal('0.0001')


def to_megabytes(byte_count: int) -> str:
    """Format a byte count as megabytes with four decimal places, rounding half up."""
    megabytes = Decimal(byte_count) / BYTES_IN_MEGABYTE
    return str(megabytes.quantize(_MEGABYTE_PLACES, rounding=ROUND_HALF_UP))


def format_byte_report(byte_counter: ByteCounter) -> str:
    """One-line summary of the traffic seen by a ByteCounter."""
    return (f"Data written: {to_megabytes(byte_counter.bytes_written())}MB, "
            f"Data read: {to_megabytes(byte_counter.bytes_read())}MB")


class ByteCounterCollector:
    """Prometheus collector that reads a ByteCounter at scrape time."""

    def __init__(self, byte_counter: ByteCounter):
        self.byte_counter = byte_counter

    def collect(self) -> Iterator[Metric]:
        yield CounterMetricFamily(
            'crawler_bytes_written',
            'Bytes written to the network by the HTTP client',
            value=self.byte_counter.bytes_written()
        )
        yield CounterMetricFamily(
            'crawler_bytes_read',
            'Bytes read from the network by the HTTP client',
            value=self.byte_counter.bytes_read()
        )


class MetricsCollector:
    """Collects crawler metrics in a private Prometheus registry."""

    def __init__(self, byte_counter: Optional[ByteCounter] = None,
                 enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.registry = CollectorRegistry()
        self.fetch_outcomes = Counter(
            'crawler_fetch_outcomes_total',
            'Units of work by outcome',
            ['outcome'],
            registry=self.registry
        )
        self.response_time = Histogram(
            'crawler_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'Number of URLs in queue',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'crawler_active_workers',
            'Number of workers currently fetching or parsing',
            registry=self.registry
        )

        if byte_counter is not None:
            self.registry.register(ByteCounterCollector(byte_counter))

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def record_outcome(self, outcome: str):
        """Count one unit of work ending with `outcome`."""
        self.fetch_outcomes.labels(outcome=outcome).inc()

    def observe_response_time(self, seconds: float):
        self.response_time.observe(seconds)

    def update_queue_size(self, size: int):
        self.queue_size.set(size)

    def update_active_workers(self, count: int):
        self.active_workers.set(count)

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read the current value of a sample, e.g. 'crawler_bytes_read_total'."""
        return self.registry.get_sample_value(name, labels or {})
