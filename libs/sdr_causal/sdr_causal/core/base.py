"""Base classes and interfaces for the SDR causal estimators.

This module provides the data models, result records and exception hierarchy
shared by the kernel smoothing engine, the dimension-reduction optimizer and
the variance estimator.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class TreatmentData(BaseModel):
    """Data model for a binary treatment indicator."""

    values: pd.Series | NDArray[Any] = Field(
        ..., description="Treatment assignment values (0/1)"
    )
    name: str = Field(default="treatment", description="Name of the treatment variable")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.Series | NDArray[Any]) -> pd.Series | NDArray[Any]:
        """Validate treatment values are not empty."""
        if len(v) == 0:
            raise ValueError("Treatment values cannot be empty")
        return v

    def to_numpy(self) -> NDArray[Any]:
        """Return the treatment indicator as an integer array."""
        return np.asarray(self.values, dtype=float).reshape(-1).astype(int)


class OutcomeData(BaseModel):
    """Data model for a real-valued outcome."""

    values: pd.Series | NDArray[Any] = Field(..., description="Outcome values")
    name: str = Field(default="outcome", description="Name of the outcome variable")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.Series | NDArray[Any]) -> pd.Series | NDArray[Any]:
        """Validate outcome values are not empty."""
        if len(v) == 0:
            raise ValueError("Outcome values cannot be empty")
        return v

    def to_numpy(self) -> NDArray[Any]:
        return np.asarray(self.values, dtype=float).reshape(-1)


class CovariateData(BaseModel):
    """Data model for the covariate matrix.

    The column order matters: the first ``d`` columns carry the identity block
    of the projection direction, the remaining ``p - d`` columns form the
    "lower" block whose coefficients are estimated.
    """

    values: pd.DataFrame | NDArray[Any] = Field(..., description="Covariate values")
    names: list[str] = Field(
        default_factory=list, description="Names of the covariate variables"
    )

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(
        cls, v: pd.DataFrame | NDArray[Any]
    ) -> pd.DataFrame | NDArray[Any]:
        """Validate covariate values are not empty."""
        if len(v) == 0:
            raise ValueError("Covariate values cannot be empty")
        return v

    def to_numpy(self) -> NDArray[Any]:
        x = np.asarray(self.values, dtype=float)
        if x.ndim == 1:
            x = x.reshape(-1, 1)
        return x


@dataclass(frozen=True)
class ArmFit:
    """Dimension-reduction output for one treatment arm.

    Attributes:
        arm: 1 for the treated arm, 0 for the control arm
        beta: Projection direction, shape (p, d), upper d x d block is identity
        m: Regression surface evaluated at every observation's index, shape (n,)
        dm: Derivative of the surface w.r.t. the index, shape (n, d)
        bandwidth: Index bandwidth actually used for ``m`` and ``dm``
        objective: Final value of the leave-one-out least-squares criterion
        n_iterations: Optimizer iterations used
        converged: Whether the optimizer met its stopping rule
        score_norm: Norm of the mean estimating-equation score at ``beta``
    """

    arm: int
    beta: NDArray[Any]
    m: NDArray[Any]
    dm: NDArray[Any]
    bandwidth: float
    objective: float = float("nan")
    n_iterations: int = 0
    converged: bool = True
    score_norm: float = 0.0

    @property
    def structural_dimension(self) -> int:
        return int(self.beta.shape[1])


@dataclass(frozen=True)
class ImputationOutput:
    """Per-arm outcome-regression record consumed by the variance estimator."""

    treated: ArmFit
    control: ArmFit

    @property
    def beta1_hat(self) -> NDArray[Any]:
        return self.treated.beta

    @property
    def beta0_hat(self) -> NDArray[Any]:
        return self.control.beta

    @property
    def bw1(self) -> float:
        return self.treated.bandwidth

    @property
    def bw0(self) -> float:
        return self.control.bandwidth


@dataclass(frozen=True)
class PropensityOutput:
    """Propensity-score record; scores must lie strictly inside (0, 1)."""

    pr: NDArray[Any]
    method: str = "external"

    def __post_init__(self) -> None:
        pr = np.asarray(self.pr, dtype=float).reshape(-1)
        if pr.size == 0:
            raise DataValidationError("Propensity scores cannot be empty")
        if not np.all(np.isfinite(pr)) or np.any(pr <= 0.0) or np.any(pr >= 1.0):
            raise DataValidationError(
                "Propensity scores must lie strictly inside the open interval (0, 1)"
            )
        object.__setattr__(self, "pr", pr)


@dataclass
class CausalEffect:
    """Result of an average treatment effect analysis."""

    ate: float
    ate_se: float | None = None
    ate_ci_lower: float | None = None
    ate_ci_upper: float | None = None
    confidence_level: float = 0.95

    potential_outcome_treated: float | None = None  # E[Y(1)]
    potential_outcome_control: float | None = None  # E[Y(0)]

    method: str = "unknown"
    n_observations: int | None = None
    n_treated: int | None = None
    n_control: int | None = None

    diagnostics: dict[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate the causal effect estimates after initialization."""
        if self.ate_ci_lower is not None and self.ate_ci_upper is not None:
            if self.ate_ci_lower > self.ate_ci_upper:
                raise ValueError("Lower confidence bound cannot exceed upper bound")

        if self.confidence_level <= 0 or self.confidence_level >= 1:
            raise ValueError("Confidence level must be between 0 and 1")

    @property
    def is_significant(self) -> bool:
        """True if the confidence interval excludes zero."""
        if self.ate_ci_lower is None or self.ate_ci_upper is None:
            return False
        return self.ate_ci_lower > 0 or self.ate_ci_upper < 0

    @property
    def confidence_interval(self) -> tuple[float, float] | None:
        if self.ate_ci_lower is not None and self.ate_ci_upper is not None:
            return (self.ate_ci_lower, self.ate_ci_upper)
        return None

    def covers(self, value: float) -> bool:
        """Check whether the confidence interval contains ``value``."""
        interval = self.confidence_interval
        if interval is None:
            return False
        return interval[0] <= value <= interval[1]


class CausalInferenceError(Exception):
    """Base exception class for causal inference specific errors."""

    pass


class DataValidationError(CausalInferenceError):
    """Raised when input data fails validation."""

    pass


class EstimationError(CausalInferenceError):
    """Raised when estimation process fails."""

    pass


class NumericalDegeneracyError(EstimationError):
    """Raised on zero kernel weight or a singular linear system."""

    pass


class ConvergenceError(EstimationError):
    """Raised when the optimizer does not satisfy its stopping rule."""

    def __init__(
        self, message: str, n_iterations: int = 0, objective: float = float("nan")
    ) -> None:
        super().__init__(message)
        self.n_iterations = n_iterations
        self.objective = objective


class BaseEstimator(abc.ABC):
    """Abstract base class for causal effect estimators.

    Attributes:
        is_fitted: Whether the estimator has been fitted to data
        treatment_data: The treatment assignment data
        outcome_data: The outcome variable data
        covariate_data: The covariate data
        _causal_effect: Cached causal effect estimate
    """

    def __init__(
        self,
        random_state: int | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the base estimator.

        Args:
            random_state: Random seed for reproducible results
            verbose: Whether to log progress at INFO level
        """
        self.random_state = random_state
        self.verbose = verbose
        self.is_fitted = False

        self.treatment_data: TreatmentData | None = None
        self.outcome_data: OutcomeData | None = None
        self.covariate_data: CovariateData | None = None

        self._causal_effect: CausalEffect | None = None

    @abc.abstractmethod
    def _fit_implementation(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData | None = None,
    ) -> None:
        """Implement the specific fitting logic for this estimator."""
        pass

    @abc.abstractmethod
    def _estimate_ate_implementation(self) -> CausalEffect:
        """Implement the specific ATE estimation logic for this estimator."""
        pass

    def fit(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData | None = None,
    ) -> BaseEstimator:
        """Fit the estimator to data.

        Raises:
            DataValidationError: If input data fails validation
            NumericalDegeneracyError: If kernel smoothing degenerates
            ConvergenceError: If an optimizer exhausts its budget
            EstimationError: If fitting fails for any other reason
        """
        self._validate_inputs(treatment, outcome, covariates)

        self.treatment_data = treatment
        self.outcome_data = outcome
        self.covariate_data = covariates
        self._causal_effect = None

        try:
            self._fit_implementation(treatment, outcome, covariates)
            self.is_fitted = True
        except CausalInferenceError:
            raise
        except Exception as e:
            raise EstimationError(f"Failed to fit estimator: {str(e)}") from e

        if self.verbose:
            logger.info(f"Successfully fitted {self.__class__.__name__}")

        return self

    def estimate_ate(self, use_cache: bool = True) -> CausalEffect:
        """Estimate the Average Treatment Effect.

        Raises:
            EstimationError: If estimator is not fitted or estimation fails
        """
        if not self.is_fitted:
            raise EstimationError("Estimator must be fitted before estimation")

        if use_cache and self._causal_effect is not None:
            return self._causal_effect

        try:
            causal_effect = self._estimate_ate_implementation()
        except CausalInferenceError:
            raise
        except Exception as e:
            raise EstimationError(f"Failed to estimate ATE: {str(e)}") from e

        self._causal_effect = causal_effect

        if self.verbose:
            logger.info(f"Estimated ATE: {causal_effect.ate:.4f}")
            if causal_effect.ate_ci_lower is not None:
                logger.info(
                    f"{causal_effect.confidence_level:.0%} CI: "
                    f"[{causal_effect.ate_ci_lower:.4f}, {causal_effect.ate_ci_upper:.4f}]"
                )

        return causal_effect

    def _validate_inputs(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData | None = None,
    ) -> None:
        """Validate input data shapes and the binary treatment.

        Raises:
            DataValidationError: If any validation checks fail
        """
        if len(treatment.values) != len(outcome.values):
            raise DataValidationError(
                f"Treatment ({len(treatment.values)}) and outcome ({len(outcome.values)}) "
                "must have the same number of observations"
            )

        if covariates is not None:
            if len(covariates.values) != len(treatment.values):
                raise DataValidationError(
                    f"Covariates ({len(covariates.values)}) must have the same number "
                    f"of observations as treatment ({len(treatment.values)})"
                )

        t = np.asarray(treatment.values, dtype=float)
        if np.isnan(t).any():
            raise DataValidationError("Treatment values cannot contain missing data")

        if not np.isin(t, [0.0, 1.0]).all():
            raise DataValidationError("Treatment must be binary with values 0 and 1")

        if len(np.unique(t)) < 2:
            raise DataValidationError(
                "Binary treatment must have both treated and control units"
            )

    def summary(self) -> str:
        """Summary of the fitted estimator and results."""
        if not self.is_fitted:
            return f"{self.__class__.__name__} (not fitted)"

        summary_lines = [
            f"{self.__class__.__name__} Summary",
            "=" * 40,
            f"Fitted: {self.is_fitted}",
            f"Observations: {len(self.treatment_data.values) if self.treatment_data else 'N/A'}",
        ]

        if self.treatment_data is not None:
            t = self.treatment_data.to_numpy()
            summary_lines.extend(
                [
                    f"Treated units: {int(np.sum(t == 1))}",
                    f"Control units: {int(np.sum(t == 0))}",
                ]
            )

        if self._causal_effect:
            summary_lines.extend(
                [
                    "",
                    "Causal Effect Estimate:",
                    f"ATE: {self._causal_effect.ate:.4f}",
                ]
            )
            if self._causal_effect.ate_ci_lower is not None:
                summary_lines.append(
                    f"{self._causal_effect.confidence_level:.0%} CI: "
                    f"[{self._causal_effect.ate_ci_lower:.4f}, "
                    f"{self._causal_effect.ate_ci_upper:.4f}]"
                )
                summary_lines.append(
                    f"Significant: {self._causal_effect.is_significant}"
                )

        return "\n".join(summary_lines)
