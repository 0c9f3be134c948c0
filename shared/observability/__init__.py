"""Logging and metrics for SDR estimation runs."""

from .logging import get_logger, setup_logging
from .metrics import SDRMetrics, get_metrics, setup_metrics

__all__ = [
    "SDRMetrics",
    "get_logger",
    "get_metrics",
    "setup_logging",
    "setup_metrics",
]
