"""Plug-in asymptotic variance of the SDR imputation estimator.

The variance is ``mean((T1 + T2 - T3 - T4 + T5) ** 2) / n`` where, per
observation,

* ``T1`` centres the difference of the fitted surfaces by the imputation
  estimate,
* ``T2`` / ``T3`` are the treated / control augmentation terms built from the
  kernel-smoothed inverse propensity weights,
* ``T4`` / ``T5`` propagate the estimation error of ``beta1`` / ``beta0``
  through the regression derivative.

Derivative blocks are laid out as ``(n, d, p - d)`` arrays flattened to
``k * (p - d) + j``, the column-major ``vec`` of the lower projection block.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..core.base import (
    DataValidationError,
    ImputationOutput,
    NumericalDegeneracyError,
    PropensityOutput,
)
from ..core.config import EpanechnikovKernel, KernelSpec
from ..smoothing.bandwidth import resolve_bandwidth
from ..smoothing.nadaraya_watson import nw_kernel_regress
from ..utils.validation import (
    validate_bandwidth,
    validate_input_dimensions,
    validate_projection,
    validate_propensity_scores,
    validate_structural_dimension,
)

logger = logging.getLogger(__name__)


def _vec_outer(dm: NDArray[Any], block: NDArray[Any]) -> NDArray[Any]:
    """Row-wise ``vec(block_i (x) dm_i)``, shape (n, d * (p - d))."""
    return np.einsum("ik,ij->ikj", dm, block).reshape(dm.shape[0], -1)


def centered_lower_block(
    covariates: NDArray[Any],
    beta: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
) -> NDArray[Any]:
    """``x_lower - E[x_lower | x beta]`` smoothed over all observations."""
    d = beta.shape[1]
    x_lower = covariates[:, d:]
    return x_lower - nw_kernel_regress(x_lower, covariates @ beta, bandwidth, kernel)


def bias_correction_matrix(
    covariates: NDArray[Any],
    treatment: NDArray[Any],
    dm: NDArray[Any],
    beta: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
) -> NDArray[Any]:
    """Inverse sensitivity of the arm's estimating equation to ``vec(B)``.

    Solves ``A b = I`` for ``A = (1/n) sum_i T_i v_i v_i'`` with
    ``v_i = vec(xc_i (x) dm_i)``, ``xc`` the centred lower covariate block and
    ``T`` the arm indicator (pass ``1 - T`` for the control arm).

    Returns:
        Matrix of shape (d * (p - d), d * (p - d))

    Raises:
        NumericalDegeneracyError: If ``A`` is singular
    """
    x = np.asarray(covariates, dtype=float)
    t = np.asarray(treatment, dtype=float).reshape(-1)
    n = x.shape[0]

    xc = centered_lower_block(x, beta, bandwidth, kernel)
    v = _vec_outer(dm, xc)
    a = (v * t[:, None]).T @ v / n

    if a.size == 0:
        return a
    if not np.all(np.isfinite(a)):
        raise NumericalDegeneracyError("Bias-correction system has non-finite entries")
    cond = np.linalg.cond(a)
    if not np.isfinite(cond) or cond > 1.0 / np.finfo(float).eps:
        raise NumericalDegeneracyError(
            "Bias-correction system is singular; the arm's derivative carries "
            "no information about the lower covariate block"
        )
    try:
        return np.linalg.solve(a, np.eye(a.shape[0]))
    except np.linalg.LinAlgError as e:
        raise NumericalDegeneracyError(f"Bias-correction solve failed: {e}") from e


def naive_potential_outcomes(
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    m1: NDArray[Any],
    m0: NDArray[Any],
) -> tuple[NDArray[Any], NDArray[Any]]:
    """Observed outcome for the received arm, fitted surface otherwise."""
    y = np.asarray(outcome, dtype=float)
    treated = np.asarray(treatment).reshape(-1) == 1
    y1 = np.where(treated, y, m1)
    y0 = np.where(treated, m0, y)
    return y1, y0


def imputation_ate(
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    m1: NDArray[Any],
    m0: NDArray[Any],
) -> tuple[float, float, float]:
    """Imputation estimate of the ATE.

    Returns:
        Tuple of (ate, E[Y(1)], E[Y(0)])
    """
    y1, y0 = naive_potential_outcomes(outcome, treatment, m1, m0)
    e1, e0 = float(np.mean(y1)), float(np.mean(y0))
    return e1 - e0, e1, e0


def aipw_ate(
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    m1: NDArray[Any],
    m0: NDArray[Any],
    propensity: NDArray[Any],
) -> float:
    """Augmented inverse probability weighting estimate of the ATE."""
    y = np.asarray(outcome, dtype=float)
    t = np.asarray(treatment, dtype=float).reshape(-1)
    pr = validate_propensity_scores(propensity, len(y))
    scores = m1 - m0 + t * (y - m1) / pr - (1.0 - t) * (y - m0) / (1.0 - pr)
    return float(np.mean(scores))


def _derivative_correction(
    x_lower: NDArray[Any],
    xc: NDArray[Any],
    dm: NDArray[Any],
    b: NDArray[Any],
    weight: NDArray[Any],
    residual: NDArray[Any],
) -> NDArray[Any]:
    """Per-observation first-order correction for the estimated projection."""
    n = x_lower.shape[0]
    gradient = _vec_outer(dm, x_lower) * (weight / n)[:, None]
    direction = ((gradient @ b) * residual[:, None]).sum(axis=0)
    return _vec_outer(dm, xc) @ direction


def aipw_variance(
    covariates: NDArray[Any],
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    beta1: NDArray[Any],
    m1: NDArray[Any],
    dm1: NDArray[Any],
    beta0: NDArray[Any],
    m0: NDArray[Any],
    dm0: NDArray[Any],
    propensity: NDArray[Any],
    bw1: float,
    bw0: float,
    kernel: KernelSpec,
    treated_bias_kernel: KernelSpec | None = None,
) -> float:
    """Plug-in variance of the imputation estimator.

    Args:
        covariates: Covariate matrix, shape (n, p)
        outcome: Outcome vector, shape (n,)
        treatment: Binary treatment vector, shape (n,)
        beta1, beta0: Projection directions, shape (p, d)
        m1, m0: Regression surfaces at every observation, shape (n,)
        dm1, dm0: Surface derivatives w.r.t. the index, shape (n, d)
        propensity: Propensity scores strictly inside (0, 1), shape (n,)
        bw1, bw0: Index bandwidths of the two arms
        kernel: Kernel variant used for every smoothing step
        treated_bias_kernel: Kernel of the treated arm's bias-correction
            matrix; defaults to ``kernel``

    Returns:
        Non-negative variance of the ATE estimate

    Raises:
        DataValidationError: On invalid input
        NumericalDegeneracyError: On zero kernel weight or a singular
            bias-correction system
    """
    x, y, t = validate_input_dimensions(covariates, outcome, treatment)
    n, p = x.shape
    b1 = np.asarray(beta1, dtype=float)
    d = validate_structural_dimension(b1.shape[1] if b1.ndim == 2 else 1, p)
    beta1 = validate_projection(b1, p, d, "beta1")
    beta0 = validate_projection(beta0, p, d, "beta0")
    pr = validate_propensity_scores(propensity, n)
    bw1 = validate_bandwidth(bw1, "bw1")
    bw0 = validate_bandwidth(bw0, "bw0")

    m1 = np.asarray(m1, dtype=float).reshape(-1)
    m0 = np.asarray(m0, dtype=float).reshape(-1)
    dm1 = np.asarray(dm1, dtype=float)
    dm0 = np.asarray(dm0, dtype=float)
    for name, values in (("m1", m1), ("m0", m0)):
        if values.shape != (n,):
            raise DataValidationError(f"{name} must have {n} entries. Got {values.shape}.")
    for name, values in (("dm1", dm1), ("dm0", dm0)):
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        if values.shape != (n, d):
            raise DataValidationError(f"{name} must have shape ({n}, {d}). Got {values.shape}.")
    dm1 = dm1.reshape(n, d)
    dm0 = dm0.reshape(n, d)
    t = t.astype(float)
    index1 = x @ beta1
    index0 = x @ beta0

    _, e1, e0 = imputation_ate(y, t, m1, m0)
    term1 = m1 - m0 - (e1 - e0)

    term2 = nw_kernel_regress(1.0 / pr, index1, bw1, kernel) * t * (y - m1)
    term3 = nw_kernel_regress(1.0 / (1.0 - pr), index0, bw0, kernel) * (1.0 - t) * (y - m0)

    if p > d:
        x_lower = x[:, d:]

        # SDRcausal's imp.var fixes this matrix to Epanechnikov whatever the
        # configured kernel; pass treated_bias_kernel=EpanechnikovKernel() to
        # reproduce its numbers.
        b1_kernel = kernel if treated_bias_kernel is None else treated_bias_kernel
        b1 = bias_correction_matrix(x, t, dm1, beta1, bw1, b1_kernel)
        xc1 = centered_lower_block(x, beta1, bw1, kernel)
        term4 = _derivative_correction(x_lower, xc1, dm1, b1, 1.0 - pr, t * (y - m1))

        b0 = bias_correction_matrix(x, 1.0 - t, dm0, beta0, bw0, kernel)
        xc0 = centered_lower_block(x, beta0, bw0, kernel)
        term5 = _derivative_correction(x_lower, xc0, dm0, b0, pr, (1.0 - t) * (y - m0))
    else:
        term4 = np.zeros(n)
        term5 = np.zeros(n)

    influence = term1 + term2 - term3 - term4 + term5
    variance = float(np.mean(influence**2) / n)

    logger.debug(
        "Variance terms (mean square): "
        + ", ".join(
            f"T{i}={np.mean(term**2):.4g}"
            for i, term in enumerate([term1, term2, term3, term4, term5], start=1)
        )
    )
    if not np.isfinite(variance):
        raise NumericalDegeneracyError("Variance estimate is not finite")
    return variance


def imp_variance(
    covariates: NDArray[Any],
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    imputation: ImputationOutput,
    propensity: PropensityOutput,
    bandwidth_scale1: float | None = None,
    bandwidth_scale0: float | None = None,
    kernel: KernelSpec | None = None,
    explicit_bandwidth: bool = True,
    treated_bias_kernel: KernelSpec | None = None,
) -> float:
    """Variance of the imputation estimator from the per-stage records.

    Args:
        covariates: Covariate matrix, shape (n, p)
        outcome: Outcome vector, shape (n,)
        treatment: Binary treatment vector, shape (n,)
        imputation: Per-arm beta, surface and derivative
        propensity: Propensity scores
        bandwidth_scale1: Bandwidth (explicit) or rule-of-thumb scale for the
            treated arm; defaults to the bandwidth stored in ``imputation``
        bandwidth_scale0: Same for the control arm
        kernel: Kernel variant, Epanechnikov by default
        explicit_bandwidth: Whether the scales are bandwidths
        treated_bias_kernel: Kernel of the treated arm's bias-correction
            matrix; defaults to ``kernel``

    Returns:
        Non-negative variance of the ATE estimate
    """
    kernel = kernel if kernel is not None else EpanechnikovKernel()
    x, y, t = validate_input_dimensions(covariates, outcome, treatment)
    treated, control = imputation.treated, imputation.control

    if bandwidth_scale1 is None:
        bw1, explicit1 = treated.bandwidth, True
    else:
        bw1, explicit1 = bandwidth_scale1, explicit_bandwidth
    if bandwidth_scale0 is None:
        bw0, explicit0 = control.bandwidth, True
    else:
        bw0, explicit0 = bandwidth_scale0, explicit_bandwidth

    bw1 = resolve_bandwidth(bw1, x @ treated.beta, t, 1, explicit1)
    bw0 = resolve_bandwidth(bw0, x @ control.beta, t, 0, explicit0)

    return aipw_variance(
        x,
        y,
        t,
        treated.beta,
        treated.m,
        treated.dm,
        control.beta,
        control.m,
        control.dm,
        propensity.pr,
        bw1,
        bw0,
        kernel,
        treated_bias_kernel=treated_bias_kernel,
    )
