"""Configuration management for SDR estimation runs."""

from .base import BaseConfiguration, Environment
from .sdr_config import SDRSettings

__all__ = [
    "BaseConfiguration",
    "Environment",
    "SDRSettings",
]
