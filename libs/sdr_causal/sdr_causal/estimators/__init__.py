"""Estimators module.

This module provides the per-arm dimension-reduction optimizer and the
imputation estimator of the average treatment effect built on it.
"""

from .dimension_reduction import (
    DimensionReductionOptimizer,
    estimate_projection,
    lower_block_to_vector,
    normalize_projection,
    vector_to_projection,
)
from .sdr_imputation import SDRImputationEstimator

__all__ = [
    "DimensionReductionOptimizer",
    "SDRImputationEstimator",
    "estimate_projection",
    "lower_block_to_vector",
    "normalize_projection",
    "vector_to_projection",
]
