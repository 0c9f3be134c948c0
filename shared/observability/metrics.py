"""Prometheus metrics for the dimension-reduction optimizer and estimators."""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from shared.config import SDRSettings


class SDRMetrics:
    """Metrics collection for SDR estimation."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        # Optimizer metrics
        self.optimizer_duration = Histogram(
            "sdr_optimizer_duration_seconds",
            "Duration of per-arm dimension-reduction optimizations",
            ["arm", "status"],
            registry=self.registry,
        )

        self.optimizer_runs = Counter(
            "sdr_optimizer_runs_total",
            "Total number of per-arm dimension-reduction optimizations",
            ["arm", "status"],
            registry=self.registry,
        )

        self.objective_evaluations = Counter(
            "sdr_objective_evaluations_total",
            "Total number of objective evaluations",
            ["arm"],
            registry=self.registry,
        )

        self.sample_size_gauge = Gauge(
            "sdr_arm_sample_size",
            "Number of observations in the arm of the latest optimization",
            ["arm"],
            registry=self.registry,
        )

        # Error metrics
        self.errors = Counter(
            "sdr_errors_total",
            "Total errors",
            ["error_type", "component"],
            registry=self.registry,
        )

    def record_optimizer_run(
        self,
        arm: int,
        duration: float,
        status: str,
        n_evaluations: int,
        sample_size: int,
    ) -> None:
        """Record one per-arm optimization."""
        arm_label = str(arm)
        self.optimizer_duration.labels(arm=arm_label, status=status).observe(duration)
        self.optimizer_runs.labels(arm=arm_label, status=status).inc()
        self.objective_evaluations.labels(arm=arm_label).inc(n_evaluations)
        self.sample_size_gauge.labels(arm=arm_label).set(sample_size)

    def record_error(self, error_type: str, component: str) -> None:
        """Record an error."""
        self.errors.labels(error_type=error_type, component=component).inc()


# Global metrics instance
_metrics: SDRMetrics | None = None


def get_metrics() -> SDRMetrics:
    """Get the global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = SDRMetrics()
    return _metrics


def setup_metrics(settings: SDRSettings | None = None) -> SDRMetrics | None:
    """Set up metrics collection and expose it over HTTP when enabled."""
    if settings is None:
        settings = SDRSettings()

    if not settings.enable_metrics:
        return None

    metrics = get_metrics()
    start_http_server(settings.metrics_port, registry=metrics.registry)
    return metrics
