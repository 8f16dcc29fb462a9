"""Observability layer - logging and metrics."""

from linksignal.observability.logging import setup_logging
from linksignal.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
