"""Synthetic single-index data for testing the SDR imputation estimator.

Potential outcomes depend on the covariates only through one index per arm,
so the true projection directions and the true ATE are known.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import CovariateData, OutcomeData, TreatmentData


@dataclass
class SDRSample:
    """Raw arrays of one simulated dataset together with the ground truth."""

    covariates: NDArray[Any]
    outcome: NDArray[Any]
    treatment: NDArray[Any]
    propensity: NDArray[Any]
    beta1: NDArray[Any]
    beta0: NDArray[Any]
    true_ate: float


class SyntheticSDRGenerator:
    """Generator for observational datasets with single-index outcome models."""

    def __init__(self, random_state: Optional[int] = None):
        """Initialize the synthetic data generator.

        Args:
            random_state: Random seed for reproducible results
        """
        self.random_state = random_state
        if random_state is not None:
            np.random.seed(random_state)

    def generate_arrays(
        self,
        n_samples: int = 200,
        n_covariates: int = 5,
        treatment_effect: float = 1.0,
        index_slope: float = 0.5,
        noise_std: float = 0.5,
        selection_strength: float = 0.4,
    ) -> SDRSample:
        """Simulate one dataset.

        The outcome models are ``Y(1) = tau + g(x'beta1) + e`` and
        ``Y(0) = g(x'beta0) + e`` with ``g(u) = u + 0.5 sin(u)``. The covariates
        are standard normal, so both indices are symmetric around zero and the
        true ATE equals ``tau``. Treatment follows a logistic model in the
        first two covariates.

        Args:
            n_samples: Number of observations
            n_covariates: Number of covariates (at least 2)
            treatment_effect: True average treatment effect ``tau``
            index_slope: Loading of the second covariate in both indices
            noise_std: Standard deviation of the outcome noise
            selection_strength: Strength of the treatment selection

        Returns:
            SDRSample with arrays, propensity and true parameters
        """
        if n_covariates < 2:
            raise ValueError("n_covariates must be at least 2")

        x = np.random.normal(0.0, 1.0, size=(n_samples, n_covariates))

        beta1 = np.zeros((n_covariates, 1))
        beta1[0, 0], beta1[1, 0] = 1.0, index_slope
        beta0 = np.zeros((n_covariates, 1))
        beta0[0, 0], beta0[1, 0] = 1.0, -index_slope

        logits = selection_strength * (x[:, 0] + x[:, 1])
        propensity = 1.0 / (1.0 + np.exp(-logits))
        treatment = np.random.binomial(1, propensity)

        u1 = (x @ beta1).ravel()
        u0 = (x @ beta0).ravel()
        y1 = treatment_effect + u1 + 0.5 * np.sin(u1)
        y0 = u0 + 0.5 * np.sin(u0)
        noise = np.random.normal(0.0, noise_std, n_samples)
        outcome = np.where(treatment == 1, y1, y0) + noise

        return SDRSample(
            covariates=x,
            outcome=outcome,
            treatment=treatment,
            propensity=propensity,
            beta1=beta1,
            beta0=beta0,
            true_ate=float(treatment_effect),
        )

    def generate(
        self, n_samples: int = 200, n_covariates: int = 5, **kwargs: Any
    ) -> tuple[TreatmentData, OutcomeData, CovariateData]:
        """Simulate one dataset as estimator-ready data objects.

        Returns:
            Tuple of (treatment, outcome, covariates) data objects
        """
        sample = self.generate_arrays(
            n_samples=n_samples, n_covariates=n_covariates, **kwargs
        )
        names = [f"X{i + 1}" for i in range(n_covariates)]

        treatment_data = TreatmentData(
            values=pd.Series(sample.treatment), name="treatment"
        )
        outcome_data = OutcomeData(values=pd.Series(sample.outcome), name="outcome")
        covariate_data = CovariateData(
            values=pd.DataFrame(sample.covariates, columns=names), names=names
        )
        return treatment_data, outcome_data, covariate_data


def generate_single_index_observational(
    n_samples: int = 200,
    treatment_effect: float = 1.0,
    random_state: Optional[int] = None,
) -> tuple[TreatmentData, OutcomeData, CovariateData]:
    """Convenience wrapper around :meth:`SyntheticSDRGenerator.generate`."""
    generator = SyntheticSDRGenerator(random_state=random_state)
    return generator.generate(n_samples=n_samples, treatment_effect=treatment_effect)
