"""Observability layer - logging and metrics."""

from shelfspot.observability.logging import setup_logging
from shelfspot.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
