"""Validation utilities shared by the smoothing, optimization and variance code.

All checks raise ``DataValidationError``; none of them coerce or clip.
"""

from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import DataValidationError


def validate_input_dimensions(
    covariates: NDArray[Any] | pd.DataFrame,
    outcome: NDArray[Any] | pd.Series,
    treatment: NDArray[Any] | pd.Series,
) -> tuple[NDArray[Any], NDArray[Any], NDArray[Any]]:
    """Validate and convert the (X, Y, T) triple.

    Args:
        covariates: Covariate matrix, shape (n, p)
        outcome: Outcome vector, shape (n,)
        treatment: Binary treatment vector, shape (n,)

    Returns:
        Tuple of float covariates (n, p), float outcome (n,), int treatment (n,)

    Raises:
        DataValidationError: If dimensions don't match or values are missing
    """
    x = np.asarray(covariates, dtype=float)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    if x.ndim != 2 or x.shape[0] < 1 or x.shape[1] < 1:
        raise DataValidationError(
            f"Covariates must be a non-empty (n, p) matrix. Got shape {x.shape}."
        )

    y = np.asarray(outcome, dtype=float).reshape(-1)
    n_samples_x = x.shape[0]
    n_samples_y = len(y)
    n_samples_t = len(np.asarray(treatment).reshape(-1))

    if n_samples_y != n_samples_x:
        raise DataValidationError(
            f"Outcome must have same number of samples as covariates. "
            f"Got {n_samples_y} and {n_samples_x} respectively."
        )
    if n_samples_t != n_samples_x:
        raise DataValidationError(
            f"Treatment must have same number of samples as covariates. "
            f"Got {n_samples_t} and {n_samples_x} respectively."
        )

    if np.any(~np.isfinite(x)):
        raise DataValidationError("Covariates contain NaN or infinite values.")
    if np.any(~np.isfinite(y)):
        raise DataValidationError("Outcome contains NaN or infinite values.")

    t = validate_binary_treatment(treatment)
    return x, y, t


def validate_binary_treatment(
    treatment: NDArray[Any] | pd.Series,
) -> NDArray[Any]:
    """Validate a 0/1 treatment with nonempty treated and control groups.

    Raises:
        DataValidationError: If treatment is not binary or a group is empty
    """
    if isinstance(treatment, pd.Series):
        t_array = treatment.to_numpy(dtype=float)
    else:
        t_array = np.asarray(treatment, dtype=float).reshape(-1)

    if np.any(np.isnan(t_array)):
        raise DataValidationError("Treatment contains NaN values.")

    if not np.all(np.isin(t_array, [0.0, 1.0])):
        raise DataValidationError(
            f"Treatment must take values in {{0, 1}}. "
            f"Found values: {np.unique(t_array)}"
        )

    n_treated = int(np.sum(t_array == 1.0))
    n_control = len(t_array) - n_treated
    if n_treated < 1 or n_control < 1:
        raise DataValidationError(
            f"Both treated and control groups must be nonempty. "
            f"Got {n_treated} treated and {n_control} control units."
        )

    return t_array.astype(int)


def validate_structural_dimension(d: int, p: int) -> int:
    """Check 1 <= d <= p."""
    if int(d) != d or not 1 <= d <= p:
        raise DataValidationError(
            f"Structural dimension must be an integer in [1, {p}]. Got {d}."
        )
    return int(d)


def validate_bandwidth(bandwidth: float, name: str = "bandwidth") -> float:
    """Check that a bandwidth is a finite positive number."""
    bw = float(bandwidth)
    if not np.isfinite(bw) or bw <= 0.0:
        raise DataValidationError(f"{name} must be positive and finite. Got {bandwidth}.")
    return bw


def validate_propensity_scores(
    propensity: NDArray[Any],
    n_samples: int | None = None,
) -> NDArray[Any]:
    """Validate propensity scores lie strictly inside (0, 1).

    Scores at or beyond the boundary make the inverse weights blow up, so they
    are rejected rather than clipped.

    Raises:
        DataValidationError: If propensity scores are invalid
    """
    pr = np.asarray(propensity, dtype=float).reshape(-1)

    if n_samples is not None and len(pr) != n_samples:
        raise DataValidationError(
            f"Propensity scores must have {n_samples} entries. Got {len(pr)}."
        )

    if np.any(np.isnan(pr)):
        raise DataValidationError("Propensity scores contain NaN values.")

    if np.any((pr <= 0.0) | (pr >= 1.0)):
        n_bad = int(np.sum((pr <= 0.0) | (pr >= 1.0)))
        raise DataValidationError(
            f"Propensity scores must lie strictly inside (0, 1); "
            f"{n_bad} value(s) are on or beyond the boundary."
        )

    return pr


def validate_projection(beta: NDArray[Any], p: int, d: int, name: str = "beta") -> NDArray[Any]:
    """Validate a (p, d) projection matrix."""
    b = np.asarray(beta, dtype=float)
    if b.ndim == 1:
        b = b.reshape(-1, 1)
    if b.shape != (p, d):
        raise DataValidationError(f"{name} must have shape ({p}, {d}). Got {b.shape}.")
    if np.any(~np.isfinite(b)):
        raise DataValidationError(f"{name} contains NaN or infinite values.")
    return b
