"""
Prometheus metrics for the alerting and scoring engine.

Defines and exposes metrics for:
- Alert sweeps and item checks (rules checked, triggered, sent, re-armed)
- Per-channel delivery outcomes
- Score recomputation (successes, failures, dropped invalidations)
- Recompute queue depth

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from shelfspot.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_sweep("full", checked=10, triggered=2, sent=1, reset=0)
        metrics.record_delivery("email", "sent")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Alert evaluation
        self.alert_rules_checked = Counter(
            "shelfspot_alert_rules_checked_total",
            "Total alert rules evaluated",
            ["scope"],  # scope: full, item
        )

        self.alerts_triggered = Counter(
            "shelfspot_alerts_triggered_total",
            "Total alert rules found at or below threshold",
            ["scope"],
        )

        self.alerts_sent = Counter(
            "shelfspot_alerts_sent_total",
            "Total alert rules included in a delivered notification",
            ["scope"],
        )

        self.alerts_reset = Counter(
            "shelfspot_alerts_reset_total",
            "Total alert rules re-armed after stock recovered",
            ["scope"],
        )

        self.sweep_latency = Histogram(
            "shelfspot_alert_sweep_latency_seconds",
            "Time to evaluate, dispatch and persist one alert pass",
            ["scope"],
            buckets=LATENCY_BUCKETS,
        )

        # Notification delivery
        self.notifications_delivered = Counter(
            "shelfspot_notifications_total",
            "Notification attempts by channel and outcome",
            ["channel", "status"],  # status: sent, failed, skipped
        )

        # Scoring
        self.scores_recomputed = Counter(
            "shelfspot_scores_recomputed_total",
            "Item importance scores recomputed and persisted",
            ["trigger"],  # trigger: invalidation, manual, bulk
        )

        self.score_recompute_errors = Counter(
            "shelfspot_score_recompute_errors_total",
            "Failed importance score recomputations",
            ["trigger"],
        )

        self.invalidations_dropped = Counter(
            "shelfspot_score_invalidations_dropped_total",
            "Invalidations dropped because the recompute queue was full",
        )

        self.recompute_queue_depth = Gauge(
            "shelfspot_recompute_queue_depth",
            "Item ids waiting for score recomputation",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_sweep(
        self,
        scope: str,
        checked: int,
        triggered: int,
        sent: int,
        reset: int,
        latency: float | None = None,
    ) -> None:
        """Record the outcome of one alert pass."""
        self.alert_rules_checked.labels(scope=scope).inc(checked)
        self.alerts_triggered.labels(scope=scope).inc(triggered)
        self.alerts_sent.labels(scope=scope).inc(sent)
        self.alerts_reset.labels(scope=scope).inc(reset)

        if latency is not None:
            self.sweep_latency.labels(scope=scope).observe(latency)

    def record_delivery(self, channel: str, status: str) -> None:
        """Record one channel attempt outcome."""
        self.notifications_delivered.labels(channel=channel, status=status).inc()

    def record_recompute(self, trigger: str, success: bool = True) -> None:
        """Record one score recomputation."""
        if success:
            self.scores_recomputed.labels(trigger=trigger).inc()
        else:
            self.score_recompute_errors.labels(trigger=trigger).inc()

    def record_invalidation_dropped(self) -> None:
        self.invalidations_dropped.inc()

    def set_recompute_queue_depth(self, depth: int) -> None:
        self.recompute_queue_depth.set(depth)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
