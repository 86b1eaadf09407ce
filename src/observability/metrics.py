"""
Prometheus metrics for monitoring the code-watch engine.

Defines and exposes metrics for:
- Source checks by outcome
- Source skips by reason
- Fetch latency
- Discovered and notified codes

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

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the code watcher.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_check("game8", "changed", latency=0.8)
        metrics.record_skip("destructoid", "backoff active")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.source_checks = Counter(
            "endfield_codes_source_checks_total",
            "Total source checks performed",
            ["source", "outcome"],  # outcome: changed, not_modified, error
        )

        self.source_skips = Counter(
            "endfield_codes_source_skips_total",
            "Total source checks skipped",
            ["source", "reason"],
        )

        self.fetch_latency = Histogram(
            "endfield_codes_fetch_latency_seconds",
            "Time to fetch and extract one source page",
            ["source"],
            buckets=LATENCY_BUCKETS,
        )

        self.codes_discovered = Counter(
            "endfield_codes_discovered_total",
            "Total codes seen for the first time",
        )

        self.codes_notified = Counter(
            "endfield_codes_notified_total",
            "Total codes that crossed the notification threshold",
        )

        self.codes_known = Gauge(
            "endfield_codes_known",
            "Number of codes currently tracked",
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
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_check(
        self,
        source: str,
        outcome: str,
        latency: float | None = None,
    ) -> None:
        """
        Record a completed source check.

        Args:
            source: Source id
            outcome: changed, not_modified or error
            latency: Optional fetch latency in seconds
        """
        self.source_checks.labels(source=source, outcome=outcome).inc()

        if latency is not None:
            self.fetch_latency.labels(source=source).observe(latency)

    def record_skip(self, source: str, reason: str) -> None:
        """Record a skipped source check."""
        # Error messages are unbounded; collapse them to one label value
        if reason.startswith("error:"):
            reason = "error"
        self.source_skips.labels(source=source, reason=reason).inc()

    def record_cycle(self, discovered: int, notified: int, known: int) -> None:
        """
        Record the outcome of one watch cycle.

        Args:
            discovered: Codes created this cycle
            notified: Codes that became notifiable this cycle
            known: Total tracked codes after the cycle
        """
        if discovered:
            self.codes_discovered.inc(discovered)
        if notified:
            self.codes_notified.inc(notified)
        self.codes_known.set(known)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
