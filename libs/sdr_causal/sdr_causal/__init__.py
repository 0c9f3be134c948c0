"""Sufficient dimension reduction for causal effect estimation.

Kernel-smoothed single- and multiple-index outcome models per treatment arm,
an imputation estimator of the average treatment effect and its closed-form
asymptotic variance.
"""

__version__ = "0.1.0"

from .core import *
from .data import *
from .estimators import (
    DimensionReductionOptimizer,
    SDRImputationEstimator,
    estimate_projection,
)
from .inference import (
    aipw_ate,
    aipw_variance,
    bias_correction_matrix,
    imp_variance,
    imputation_ate,
    naive_potential_outcomes,
)
from .smoothing import (
    nw_kernel_regress,
    nw_kernel_regress_with_derivative,
    resolve_bandwidth,
    silverman_bandwidth,
)

__all__ = [
    "__version__",
    "DimensionReductionOptimizer",
    "SDRImputationEstimator",
    "estimate_projection",
    "aipw_ate",
    "aipw_variance",
    "bias_correction_matrix",
    "imp_variance",
    "imputation_ate",
    "naive_potential_outcomes",
    "nw_kernel_regress",
    "nw_kernel_regress_with_derivative",
    "resolve_bandwidth",
    "silverman_bandwidth",
]
