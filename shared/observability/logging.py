"""Logging setup for SDR estimation runs."""

import logging
import sys

from shared.config import Environment, SDRSettings


def setup_logging(settings: SDRSettings | None = None) -> None:
    """Set up logging configuration."""
    if settings is None:
        settings = SDRSettings()

    log_level = getattr(logging, settings.log_level)
    # Production runs never log below INFO
    if settings.environment == Environment.PRODUCTION:
        log_level = max(log_level, logging.INFO)

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level, format=log_format, handlers=[logging.StreamHandler(sys.stdout)]
    )

    logging.getLogger("sdr_causal").setLevel(log_level)
    # joblib worker chatter
    logging.getLogger("joblib").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
