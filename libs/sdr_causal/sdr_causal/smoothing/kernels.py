"""Kernel functions and bandwidth-scaled product kernel weights.

Weights are computed between evaluation points and source points on the
reduced index. Pairs whose normalized distance falls outside the kernel's
support radius get exactly zero weight: for the Epanechnikov kernel that is
the natural support ``|u| < 1``, for the Gaussian kernel the radius is derived
from ``gauss_cutoff``.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..core.config import EpanechnikovKernel, GaussianKernel, KernelSpec
from ..utils.validation import validate_bandwidth


def kernel_weight(u: NDArray[Any] | float, kernel: KernelSpec) -> NDArray[Any]:
    """Evaluate the kernel at normalized distances ``u``.

    Epanechnikov: ``0.75 * (1 - u**2)`` for ``|u| < 1``. Gaussian:
    ``exp(-u**2 / 2)`` inside the cutoff radius. Zero elsewhere.
    """
    u = np.asarray(u, dtype=float)
    inside = np.abs(u) < kernel.support_radius
    if isinstance(kernel, EpanechnikovKernel):
        values = 0.75 * (1.0 - u**2)
    elif isinstance(kernel, GaussianKernel):
        values = np.exp(-0.5 * u**2)
    else:
        raise TypeError(f"Unsupported kernel specification: {kernel!r}")
    return np.where(inside, values, 0.0)


def kernel_derivative(u: NDArray[Any] | float, kernel: KernelSpec) -> NDArray[Any]:
    """Derivative of :func:`kernel_weight` with respect to ``u``."""
    u = np.asarray(u, dtype=float)
    inside = np.abs(u) < kernel.support_radius
    if isinstance(kernel, EpanechnikovKernel):
        values = -1.5 * u
    elif isinstance(kernel, GaussianKernel):
        values = -u * np.exp(-0.5 * u**2)
    else:
        raise TypeError(f"Unsupported kernel specification: {kernel!r}")
    return np.where(inside, values, 0.0)


def _normalized_differences(
    eval_points: NDArray[Any], source_points: NDArray[Any], bandwidth: float
) -> NDArray[Any]:
    eval_points = np.asarray(eval_points, dtype=float)
    source_points = np.asarray(source_points, dtype=float)
    if eval_points.ndim == 1:
        eval_points = eval_points.reshape(-1, 1)
    if source_points.ndim == 1:
        source_points = source_points.reshape(-1, 1)
    if eval_points.shape[1] != source_points.shape[1]:
        raise ValueError(
            f"Index dimension mismatch: evaluation points have {eval_points.shape[1]} "
            f"columns, source points have {source_points.shape[1]}"
        )
    # (m, n, d)
    return (eval_points[:, None, :] - source_points[None, :, :]) / bandwidth


def product_kernel_weights(
    eval_points: NDArray[Any],
    source_points: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
) -> NDArray[Any]:
    """Product-kernel weights over the index dimensions, shape (m, n).

    Raises:
        DataValidationError: If the bandwidth is not positive
    """
    bandwidth = validate_bandwidth(bandwidth)
    z = _normalized_differences(eval_points, source_points, bandwidth)
    return np.prod(kernel_weight(z, kernel), axis=2)


def product_kernel_weights_with_gradient(
    eval_points: NDArray[Any],
    source_points: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
) -> tuple[NDArray[Any], NDArray[Any]]:
    """Product-kernel weights and their gradient w.r.t. the evaluation point.

    Returns:
        Tuple of weights (m, n) and gradient (m, n, d)
    """
    bandwidth = validate_bandwidth(bandwidth)
    z = _normalized_differences(eval_points, source_points, bandwidth)
    k = kernel_weight(z, kernel)
    dk = kernel_derivative(z, kernel)

    d = z.shape[2]
    weights = np.prod(k, axis=2)
    gradient = np.empty_like(z)
    for j in range(d):
        others = np.prod(np.delete(k, j, axis=2), axis=2) if d > 1 else 1.0
        gradient[:, :, j] = dk[:, :, j] * others / bandwidth
    return weights, gradient
