"""Kernel-weighted dimension reduction for one treatment arm.

The projection direction is parameterised as ``beta = [I_d; B]``: the first
``d`` covariates carry an identity block and the ``(p - d) x d`` lower block
``B`` is estimated. For the observations of one arm, with index
``u_i = x_i' beta``, the optimizer minimises the weighted leave-one-out
least-squares criterion

    Q(B) = mean_i w_i (y_i - m_{-i}(u_i))^2

where ``m_{-i}`` is the Nadaraya-Watson mean (h11) fitted without observation
``i`` and ``w_i = 1 / s2(u_i)`` is the inverse residual variance (h14) at the
starting direction. Its first-order condition is the SDR estimating equation
``mean_i s_i = 0`` with

    s_i = (y_i - m(u_i)) / s2(u_i) * vec((x_lower_i - E[x_lower | u_i]) (x) m'(u_i))

built from the derivative (h12) and the centring of the lower block (h13).
The mean score at the solution is reported as ``ArmFit.score_norm``; ``m'`` is
taken w.r.t. the standardised index so the norm does not depend on the scale
of ``B``.

Residual contributions are independent per observation. They are mapped over
row chunks by a thread pool and folded single-threaded in observation order,
so the objective does not depend on how the rows were partitioned.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from scipy.optimize import minimize

from ..core.base import ArmFit, ConvergenceError, DataValidationError
from ..core.config import SDRConfig
from ..smoothing.bandwidth import resolve_bandwidth, silverman_bandwidth
from ..smoothing.nadaraya_watson import (
    nw_kernel_regress,
    nw_kernel_regress_with_derivative,
)
from ..utils.validation import (
    validate_input_dimensions,
    validate_projection,
    validate_structural_dimension,
)

if TYPE_CHECKING:
    from shared.observability.metrics import SDRMetrics

logger = logging.getLogger(__name__)

# Residual variance weights are floored at this fraction of the arm's outcome
# variance so isolated index values cannot produce unbounded weights.
_VARIANCE_FLOOR = 1e-2


@dataclass(frozen=True)
class _IndexState:
    """Projection, arm index and nested bandwidths at one parameter value."""

    beta: NDArray[Any]
    index: NDArray[Any]
    spread: float
    h_mean: float
    h_derivative: float
    h_centering: float
    h_variance: float


def normalize_projection(beta: NDArray[Any], d: int) -> NDArray[Any]:
    """Rescale ``beta`` so that its upper ``d x d`` block is the identity.

    Raises:
        DataValidationError: If the upper block is singular
    """
    upper = beta[:d, :]
    try:
        return beta @ np.linalg.inv(upper)
    except np.linalg.LinAlgError as e:
        raise DataValidationError(
            "Upper d x d block of the initial projection is singular"
        ) from e


def lower_block_to_vector(lower: NDArray[Any]) -> NDArray[Any]:
    """Column-major ``vec`` of the (p - d, d) lower block."""
    return np.asarray(lower, dtype=float).T.reshape(-1)


def vector_to_projection(theta: NDArray[Any], p: int, d: int) -> NDArray[Any]:
    """Inverse of :func:`lower_block_to_vector`, returning the full (p, d) beta."""
    lower = np.asarray(theta, dtype=float).reshape(d, p - d).T
    return np.vstack([np.eye(d), lower])


def _residual_variance(
    rows: NDArray[Any],
    state: _IndexState,
    y: NDArray[Any],
    variance_floor: float,
    kernel: Any,
) -> NDArray[Any]:
    """Leave-one-out local variance of ``y`` at the index of ``rows``."""
    moments = nw_kernel_regress(
        np.column_stack([y, y**2]),
        state.index[rows],
        state.h_variance,
        kernel,
        source_index=state.index,
        leave_out=rows,
    )
    return np.maximum(moments[:, 1] - moments[:, 0] ** 2, variance_floor)


def _residual_contributions(
    rows: NDArray[Any],
    states: list[_IndexState],
    y: NDArray[Any],
    weights: NDArray[Any],
    kernel: Any,
) -> NDArray[Any]:
    """Weighted leave-one-out squared residuals for ``rows`` under each state.

    Returns:
        Array of shape (len(rows), len(states))
    """
    out = np.empty((len(rows), len(states)))
    for s, state in enumerate(states):
        m = nw_kernel_regress(
            y,
            state.index[rows],
            state.h_mean,
            kernel,
            source_index=state.index,
            leave_out=rows,
        )
        out[:, s] = weights[rows] * (y[rows] - m) ** 2
    return out


def _score_contributions(
    rows: NDArray[Any],
    state: _IndexState,
    y: NDArray[Any],
    x_lower: NDArray[Any],
    variance_floor: float,
    kernel: Any,
) -> NDArray[Any]:
    """Per-observation estimating-equation scores for ``rows``.

    Returns:
        Array of shape (len(rows), d * (p - d))
    """
    u_all = state.index
    u = u_all[rows]
    m = nw_kernel_regress(
        y, u, state.h_mean, kernel, source_index=u_all, leave_out=rows
    )
    _, dm = nw_kernel_regress_with_derivative(
        y, u, state.h_derivative, kernel, source_index=u_all, leave_out=rows
    )
    x_center = nw_kernel_regress(
        x_lower, u, state.h_centering, kernel, source_index=u_all, leave_out=rows
    )
    s2 = _residual_variance(rows, state, y, variance_floor, kernel)

    xc = x_lower[rows] - x_center
    weight = (y[rows] - m) / s2
    # [i, k, j] = dm[i, k] * xc[i, j], flattened to k * (p - d) + j
    outer = np.einsum("ik,ij->ikj", dm * state.spread, xc).reshape(len(rows), -1)
    return weight[:, None] * outer


class DimensionReductionOptimizer:
    """Estimate the SDR projection direction for one arm.

    Attributes:
        config: Kernel, bandwidth and optimizer settings
        metrics: Optional metrics recorder
        n_evaluations_: Objective evaluations used by the last ``estimate`` call
        result_: Scipy ``OptimizeResult`` of the last ``estimate`` call
    """

    def __init__(
        self,
        config: SDRConfig | None = None,
        metrics: SDRMetrics | None = None,
    ) -> None:
        self.config = config if config is not None else SDRConfig()
        self.metrics = metrics
        self.n_evaluations_ = 0
        self.result_: Any = None
        self._iterations = 0
        self._last_objective = float("nan")

    def _diverged(self, reason: str) -> ConvergenceError:
        logger.warning(
            f"Dimension reduction diverged after {self._iterations} iterations: "
            f"{reason}"
        )
        return ConvergenceError(
            f"Dimension reduction diverged: {reason}",
            n_iterations=self._iterations,
            objective=self._last_objective,
        )

    def _index_state(
        self,
        theta: NDArray[Any],
        x_arm: NDArray[Any],
        p: int,
        d: int,
    ) -> _IndexState:
        """Index and nested bandwidths at ``theta``.

        Raises:
            ConvergenceError: If ``theta`` or the index is not finite, or the
                index has collapsed to a point
        """
        if not np.all(np.isfinite(theta)):
            raise self._diverged("parameters are not finite")
        beta = vector_to_projection(theta, p, d)
        with np.errstate(over="ignore", invalid="ignore"):
            index = x_arm @ beta
            spread = float(np.std(index, ddof=1))
        if not np.all(np.isfinite(index)) or not np.isfinite(spread):
            raise self._diverged("projected index is not finite")
        if spread <= 0.0:
            raise self._diverged("projected index has collapsed to a point")

        bw = self.config.bandwidths

        def _bw(value: float) -> float:
            if bw.explicit_bandwidth:
                return value
            return silverman_bandwidth(index, scale=value)

        return _IndexState(
            beta=beta,
            index=index,
            spread=spread,
            h_mean=_bw(bw.mean),
            h_derivative=_bw(bw.derivative),
            h_centering=_bw(bw.centering),
            h_variance=_bw(bw.variance),
        )

    def estimate(
        self,
        covariates: NDArray[Any],
        outcome: NDArray[Any],
        treatment: NDArray[Any],
        beta_guess: NDArray[Any],
        arm: int = 1,
    ) -> ArmFit:
        """Solve for the projection direction of ``arm``.

        Args:
            covariates: Covariate matrix, shape (n, p)
            outcome: Outcome vector, shape (n,)
            treatment: Binary treatment vector, shape (n,)
            beta_guess: Initial projection, shape (p, d); d is the structural
                dimension
            arm: 1 for the treated arm, 0 for the control arm

        Returns:
            ArmFit with the converged beta, and the surface ``m`` and its
            derivative ``dm`` evaluated at every observation

        Raises:
            DataValidationError: On invalid or degenerate input
            NumericalDegeneracyError: If a kernel regression has zero weight
            ConvergenceError: If the optimizer does not converge or diverges
        """
        if arm not in (0, 1):
            raise DataValidationError(f"arm must be 0 or 1. Got {arm}.")

        x, y, t = validate_input_dimensions(covariates, outcome, treatment)
        p = x.shape[1]
        guess = np.asarray(beta_guess, dtype=float)
        if guess.ndim == 1:
            guess = guess.reshape(-1, 1)
        d = validate_structural_dimension(guess.shape[1], p)
        guess = validate_projection(guess, p, d, name="beta_guess")

        mask = t == arm
        x_arm, y_arm = x[mask], y[mask]
        n_arm = x_arm.shape[0]
        if n_arm < p:
            raise DataValidationError(
                f"Arm {arm} has {n_arm} observations, fewer than the {p} covariates"
            )
        x_lower = x_arm[:, d:]
        if p > d and np.any(np.std(x_lower, axis=0) == 0.0):
            raise DataValidationError(
                f"Lower covariate block has a zero-variance column in arm {arm}"
            )
        y_var = float(np.var(y_arm))
        if y_var <= 0.0:
            raise DataValidationError(f"Outcome has zero variance in arm {arm}")

        theta0 = lower_block_to_vector(normalize_projection(guess, d)[d:, :])
        opt = self.config.optimizer
        kernel = self.config.kernel
        variance_floor = _VARIANCE_FLOOR * y_var
        all_rows = np.arange(n_arm)
        chunks = [c for c in np.array_split(all_rows, opt.n_threads) if len(c)]

        logger.info(
            f"Dimension reduction for arm {arm}: n_arm={n_arm}, p={p}, d={d}, "
            f"method={opt.method}, n_threads={opt.n_threads}"
        )

        self.n_evaluations_ = 0
        self._iterations = 0
        self._last_objective = float("nan")
        start_time = time.perf_counter()
        status = "success"
        try:
            if theta0.size == 0:
                theta_hat, objective, n_iterations, score_norm = theta0, 0.0, 0, 0.0
            else:
                start = self._index_state(theta0, x_arm, p, d)
                weights = 1.0 / _residual_variance(
                    all_rows, start, y_arm, variance_floor, kernel
                )

                with Parallel(n_jobs=opt.n_threads, backend="threading") as parallel:

                    def mean_residuals(thetas: list[NDArray[Any]]) -> NDArray[Any]:
                        states = [self._index_state(th, x_arm, p, d) for th in thetas]
                        parts = parallel(
                            delayed(_residual_contributions)(
                                rows, states, y_arm, weights, kernel
                            )
                            for rows in chunks
                        )
                        self.n_evaluations_ += len(thetas)
                        # Fold in observation order.
                        return np.concatenate(parts, axis=0).sum(axis=0) / n_arm

                    theta_hat, objective, n_iterations = self._minimize(
                        theta0, mean_residuals
                    )

                    final = self._index_state(theta_hat, x_arm, p, d)
                    parts = parallel(
                        delayed(_score_contributions)(
                            rows, final, y_arm, x_lower, variance_floor, kernel
                        )
                        for rows in chunks
                    )
                    score = np.concatenate(parts, axis=0).sum(axis=0) / n_arm
                    score_norm = float(np.linalg.norm(score))
        except ConvergenceError:
            status = "not_converged"
            raise
        except Exception:
            status = "failed"
            raise
        finally:
            duration = time.perf_counter() - start_time
            if self.metrics is not None:
                self.metrics.record_optimizer_run(
                    arm=arm,
                    duration=duration,
                    status=status,
                    n_evaluations=self.n_evaluations_,
                    sample_size=n_arm,
                )

        beta_hat = vector_to_projection(theta_hat, p, d)
        index_all = x @ beta_hat
        bandwidth = resolve_bandwidth(
            self.config.bandwidths.index,
            index_all,
            t,
            arm,
            self.config.bandwidths.explicit_bandwidth,
        )
        m, dm = nw_kernel_regress_with_derivative(
            y_arm, index_all, bandwidth, kernel, source_index=index_all[mask]
        )

        logger.info(
            f"Arm {arm} converged after {n_iterations} iterations "
            f"({self.n_evaluations_} evaluations, objective={objective:.4g}, "
            f"score norm={score_norm:.3e}, bandwidth={bandwidth:.4g})"
        )

        return ArmFit(
            arm=arm,
            beta=beta_hat,
            m=m,
            dm=dm,
            bandwidth=bandwidth,
            objective=objective,
            n_iterations=n_iterations,
            converged=True,
            score_norm=score_norm,
        )

    def _minimize(
        self,
        theta0: NDArray[Any],
        mean_residuals: Any,
    ) -> tuple[NDArray[Any], float, int]:
        """Run scipy ``minimize`` on the leave-one-out criterion."""
        opt = self.config.optimizer
        tol = opt.convergence_tolerance
        q = theta0.size

        def objective(theta: NDArray[Any]) -> float:
            value = float(mean_residuals([theta])[0])
            self._last_objective = value
            return value

        def objective_and_gradient(theta: NDArray[Any]) -> tuple[float, NDArray[Any]]:
            eps = opt.finite_difference_step
            thetas = [theta]
            for k in range(q):
                step = np.zeros(q)
                step[k] = eps
                thetas.extend([theta + step, theta - step])
            values = mean_residuals(thetas)
            self._last_objective = float(values[0])
            return float(values[0]), (values[1::2] - values[2::2]) / (2.0 * eps)

        def count_iteration(xk: NDArray[Any]) -> None:
            self._iterations += 1

        if opt.method == "Nelder-Mead":
            simplex = np.vstack([theta0, theta0 + opt.simplex_step * np.eye(q)])
            result = minimize(
                objective,
                theta0,
                method="Nelder-Mead",
                callback=count_iteration,
                options={
                    "maxiter": opt.max_iterations,
                    "xatol": tol,
                    "fatol": tol,
                    "initial_simplex": simplex,
                },
            )
        elif opt.method == "BFGS":
            result = minimize(
                objective_and_gradient,
                theta0,
                method="BFGS",
                jac=True,
                callback=count_iteration,
                options={"maxiter": opt.max_iterations, "gtol": tol},
            )
        else:
            result = minimize(
                objective_and_gradient,
                theta0,
                method="L-BFGS-B",
                jac=True,
                callback=count_iteration,
                options={"maxiter": opt.max_iterations, "ftol": tol, "gtol": tol},
            )

        self.result_ = result
        n_iterations = int(getattr(result, "nit", self._iterations))
        if not result.success:
            logger.warning(
                f"Dimension reduction did not converge after {n_iterations} "
                f"iterations: {result.message}"
            )
            raise ConvergenceError(
                f"Dimension reduction did not converge: {result.message}",
                n_iterations=n_iterations,
                objective=float(result.fun),
            )
        return np.asarray(result.x, dtype=float), float(result.fun), n_iterations


def estimate_projection(
    covariates: NDArray[Any],
    outcome: NDArray[Any],
    treatment: NDArray[Any],
    beta_guess: NDArray[Any],
    arm: int = 1,
    config: SDRConfig | None = None,
) -> ArmFit:
    """Functional form of :meth:`DimensionReductionOptimizer.estimate`."""
    return DimensionReductionOptimizer(config).estimate(
        covariates, outcome, treatment, beta_guess, arm=arm
    )
