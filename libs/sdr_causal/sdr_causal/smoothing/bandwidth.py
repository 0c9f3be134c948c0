"""Bandwidth rules for kernel smoothing on the reduced index."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..core.base import DataValidationError
from ..utils.validation import validate_bandwidth

logger = logging.getLogger(__name__)


def silverman_bandwidth(index: NDArray[Any], scale: float = 1.0) -> float:
    """Rule-of-thumb bandwidth ``scale * sd(index) * n ** (-1/5)``.

    The standard deviation is the sample standard deviation over all entries
    of ``index`` (all index dimensions pooled); ``n`` is the number of rows.

    Raises:
        DataValidationError: If the index has fewer than two rows or no spread
    """
    scale = validate_bandwidth(scale, name="bandwidth scale")
    u = np.asarray(index, dtype=float)
    if u.ndim == 1:
        u = u.reshape(-1, 1)
    n = u.shape[0]
    if n < 2:
        raise DataValidationError(
            f"At least two observations are needed to derive a bandwidth. Got {n}."
        )
    sd = float(np.std(u, ddof=1))
    if not np.isfinite(sd) or sd <= 0.0:
        raise DataValidationError(
            "Projected index has zero variance; cannot derive a bandwidth"
        )
    return scale * sd * n ** (-1.0 / 5.0)


def resolve_bandwidth(
    value: float,
    index: NDArray[Any],
    treatment: NDArray[Any],
    arm: int,
    explicit_bandwidth: bool,
) -> float:
    """Return the bandwidth for one arm.

    Args:
        value: Bandwidth (explicit) or scale of the rule-of-thumb bandwidth
        index: Projected index for all observations, shape (n,) or (n, d)
        treatment: Binary treatment vector, shape (n,)
        arm: 1 for the treated arm, 0 for the control arm
        explicit_bandwidth: Whether ``value`` is already a bandwidth

    Returns:
        Positive bandwidth
    """
    if explicit_bandwidth:
        return validate_bandwidth(value)

    u = np.asarray(index, dtype=float)
    mask = np.asarray(treatment).reshape(-1) == arm
    bandwidth = silverman_bandwidth(u[mask], scale=value)
    logger.debug(
        f"Derived bandwidth {bandwidth:.6g} for arm {arm} "
        f"(scale={value}, n_arm={int(mask.sum())})"
    )
    return bandwidth
