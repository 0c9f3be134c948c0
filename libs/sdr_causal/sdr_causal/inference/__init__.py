"""Point estimates and plug-in variance of the SDR imputation estimator."""

from .variance import (
    aipw_ate,
    aipw_variance,
    bias_correction_matrix,
    centered_lower_block,
    imp_variance,
    imputation_ate,
    naive_potential_outcomes,
)

__all__ = [
    "aipw_ate",
    "aipw_variance",
    "bias_correction_matrix",
    "centered_lower_block",
    "imp_variance",
    "imputation_ate",
    "naive_potential_outcomes",
]
