"""Synthetic data generation for tests and examples."""

from .synthetic import (
    SDRSample,
    SyntheticSDRGenerator,
    generate_single_index_observational,
)

__all__ = [
    "SDRSample",
    "SyntheticSDRGenerator",
    "generate_single_index_observational",
]
