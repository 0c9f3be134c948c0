"""Nadaraya-Watson kernel regression on a reduced index.

For each evaluation point ``u_i`` the estimate is the kernel-weighted local
average ``sum_j w_ij t_j / sum_j w_ij`` over the source observations. When the
evaluation points are the source points themselves, the observation's own
weight is included (leave-one-in) unless ``leave_out`` names a source row to
drop for each evaluation point.

Complexity is O(m * n * d) per call for m evaluation and n source points.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..core.base import NumericalDegeneracyError
from ..core.config import KernelSpec
from .kernels import product_kernel_weights, product_kernel_weights_with_gradient


def _as_targets(targets: NDArray[Any], n_sources: int) -> tuple[NDArray[Any], bool]:
    t = np.asarray(targets, dtype=float)
    squeeze = t.ndim == 1
    if squeeze:
        t = t.reshape(-1, 1)
    if t.shape[0] != n_sources:
        raise ValueError(
            f"Targets have {t.shape[0]} rows but there are {n_sources} source points"
        )
    return t, squeeze


def _as_index(index: NDArray[Any]) -> NDArray[Any]:
    u = np.asarray(index, dtype=float)
    if u.ndim == 1:
        u = u.reshape(-1, 1)
    return u


def _as_leave_out(leave_out: NDArray[Any], n_eval: int, n_sources: int) -> NDArray[Any]:
    rows = np.asarray(leave_out, dtype=int).reshape(-1)
    if rows.shape[0] != n_eval:
        raise ValueError(
            f"leave_out has {rows.shape[0]} entries but there are {n_eval} "
            f"evaluation points"
        )
    if np.any((rows < 0) | (rows >= n_sources)):
        raise ValueError(f"leave_out entries must lie in [0, {n_sources})")
    return rows


def _check_total_weight(total: NDArray[Any], bandwidth: float) -> None:
    empty = total <= 0.0
    if np.any(empty):
        raise NumericalDegeneracyError(
            f"Zero total kernel weight at {int(np.sum(empty))} evaluation point(s) "
            f"with bandwidth {bandwidth:.6g}; increase the bandwidth"
        )


def nw_kernel_regress(
    targets: NDArray[Any],
    eval_index: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
    source_index: NDArray[Any] | None = None,
    leave_out: NDArray[Any] | None = None,
) -> NDArray[Any]:
    """Kernel-weighted local average of ``targets`` at ``eval_index``.

    Args:
        targets: Values to smooth, shape (n,) or (n, k), one row per source point
        eval_index: Index values to evaluate at, shape (m,) or (m, d)
        bandwidth: Shared bandwidth over all index dimensions
        kernel: Kernel variant
        source_index: Index values of the source observations, shape (n, d);
            defaults to ``eval_index``
        leave_out: Source row whose weight is zeroed for each evaluation
            point, shape (m,); None keeps every source point

    Returns:
        Smoothed values, shape (m,) or (m, k) matching ``targets``

    Raises:
        DataValidationError: If the bandwidth is not positive
        NumericalDegeneracyError: If an evaluation point has zero total weight
    """
    u_eval = _as_index(eval_index)
    u_src = u_eval if source_index is None else _as_index(source_index)
    t, squeeze = _as_targets(targets, u_src.shape[0])

    w = product_kernel_weights(u_eval, u_src, bandwidth, kernel)
    if leave_out is not None:
        own = _as_leave_out(leave_out, u_eval.shape[0], u_src.shape[0])
        w[np.arange(u_eval.shape[0]), own] = 0.0
    total = w.sum(axis=1)
    _check_total_weight(total, bandwidth)

    fitted = np.einsum("mn,nk->mk", w, t) / total[:, None]
    return fitted[:, 0] if squeeze else fitted


def nw_kernel_regress_with_derivative(
    targets: NDArray[Any],
    eval_index: NDArray[Any],
    bandwidth: float,
    kernel: KernelSpec,
    source_index: NDArray[Any] | None = None,
    leave_out: NDArray[Any] | None = None,
) -> tuple[NDArray[Any], NDArray[Any]]:
    """Kernel regression together with its derivative w.r.t. the index.

    The derivative of ``N(u) / D(u)`` is ``(N'(u) - m(u) D'(u)) / D(u)``, with
    ``N`` and ``D`` the weighted sums of targets and of weights. ``leave_out``
    drops the same source rows from both sums.

    Returns:
        Tuple of fitted values, shape (m,) or (m, k), and derivatives, shape
        (m, d) or (m, k, d)
    """
    u_eval = _as_index(eval_index)
    u_src = u_eval if source_index is None else _as_index(source_index)
    t, squeeze = _as_targets(targets, u_src.shape[0])

    w, g = product_kernel_weights_with_gradient(u_eval, u_src, bandwidth, kernel)
    if leave_out is not None:
        own = _as_leave_out(leave_out, u_eval.shape[0], u_src.shape[0])
        rows = np.arange(u_eval.shape[0])
        w[rows, own] = 0.0
        g[rows, own, :] = 0.0
    total = w.sum(axis=1)
    _check_total_weight(total, bandwidth)

    fitted = np.einsum("mn,nk->mk", w, t) / total[:, None]
    d_numerator = np.einsum("mnd,nk->mkd", g, t)
    d_total = g.sum(axis=1)
    derivative = (
        d_numerator - fitted[:, :, None] * d_total[:, None, :]
    ) / total[:, None, None]

    if squeeze:
        return fitted[:, 0], derivative[:, 0, :]
    return fitted, derivative
