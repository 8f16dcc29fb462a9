"""
Prometheus metrics for the link identity and scoring pipeline.

Defines and exposes metrics for:
- Canonicalization outcomes and redirect resolution latency
- Mention ingestion outcomes and batch latency
- Feed fetch outcomes
- Canonical URL cache effectiveness

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import Counter, Histogram, start_http_server

from linksignal.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for linksignal.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_canonicalization("success", from_cache=False)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""
        self.canonicalizations = Counter(
            "linksignal_canonicalizations_total",
            "Total canonicalization attempts",
            ["status"],  # success, failed, rejected
        )

        self.fast_path_extractions = Counter(
            "linksignal_fast_path_extractions_total",
            "Destinations extracted from known redirect wrappers without a request",
            ["platform"],
        )

        self.redirect_latency = Histogram(
            "linksignal_redirect_resolution_seconds",
            "Time spent resolving redirects over the network",
            buckets=LATENCY_BUCKETS,
        )

        self.mentions_ingested = Counter(
            "linksignal_mentions_ingested_total",
            "Mention ingestion outcomes",
            ["outcome"],  # created, refreshed, duplicate, rejected, error
        )

        self.batch_latency = Histogram(
            "linksignal_batch_latency_seconds",
            "Time to ingest a batch of candidate URLs",
            buckets=LATENCY_BUCKETS,
        )

        self.feed_fetches = Counter(
            "linksignal_feed_fetches_total",
            "Feed fetch outcomes",
            ["status"],  # success, error
        )

        self.cache_hits = Counter(
            "linksignal_canonical_cache_hits_total",
            "Canonical URL cache hits",
        )

        self.cache_misses = Counter(
            "linksignal_canonical_cache_misses_total",
            "Canonical URL cache misses",
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (default from settings)
        """
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_canonicalization(self, status: str, from_cache: bool | None = None) -> None:
        """
        Record a canonicalization outcome.

        Args:
            status: success, failed or rejected
            from_cache: Whether the canonical URL came from the cache; None
                when no cache was consulted
        """
        self.canonicalizations.labels(status=status).inc()
        if from_cache is not None:
            if from_cache:
                self.cache_hits.inc()
            else:
                self.cache_misses.inc()

    def record_fast_path(self, platform: str) -> None:
        """Record a wrapper destination extracted without a network request."""
        self.fast_path_extractions.labels(platform=platform).inc()

    def record_ingest(self, outcome: str) -> None:
        """Record a mention ingestion outcome."""
        self.mentions_ingested.labels(outcome=outcome).inc()

    def record_feed_fetch(self, status: str) -> None:
        """Record a feed fetch outcome."""
        self.feed_fetches.labels(status=status).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
