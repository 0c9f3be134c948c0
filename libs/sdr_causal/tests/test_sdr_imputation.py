"""Tests for the SDR imputation estimator."""

import numpy as np
import pandas as pd
import pytest

from sdr_causal.core.base import (
    CausalEffect,
    CovariateData,
    DataValidationError,
    EstimationError,
    OutcomeData,
    TreatmentData,
)
from sdr_causal.estimators.sdr_imputation import SDRImputationEstimator


class TestSDRImputationEstimator:
    """Test cases for fitting and estimating with the SDR imputation estimator."""

    def test_fit_and_estimate(self, sdr_data, gaussian_config):
        """A fitted estimator returns a complete causal effect."""
        treatment, outcome, covariates = sdr_data
        estimator = SDRImputationEstimator(config=gaussian_config, random_state=42)
        estimator.fit(treatment, outcome, covariates)
        effect = estimator.estimate_ate()

        assert isinstance(effect, CausalEffect)
        assert estimator.is_fitted
        assert effect.method == "SDR imputation"
        assert effect.n_observations == 200
        assert effect.n_treated + effect.n_control == 200
        assert effect.ate_se > 0
        assert effect.ate_ci_lower < effect.ate < effect.ate_ci_upper
        assert effect.ate == pytest.approx(
            effect.potential_outcome_treated - effect.potential_outcome_control
        )

    def test_recovers_treatment_effect(self, sdr_data, gaussian_config):
        """The estimate lies near the true effect of 1.0."""
        treatment, outcome, covariates = sdr_data
        effect = (
            SDRImputationEstimator(config=gaussian_config)
            .fit(treatment, outcome, covariates)
            .estimate_ate()
        )
        assert abs(effect.ate - 1.0) < 0.5

    def test_wald_interval_width(self, sdr_data, gaussian_config):
        """The interval is ate +/- z * se for the requested level."""
        treatment, outcome, covariates = sdr_data
        effect = (
            SDRImputationEstimator(config=gaussian_config, confidence_level=0.9)
            .fit(treatment, outcome, covariates)
            .estimate_ate()
        )
        half_width = (effect.ate_ci_upper - effect.ate_ci_lower) / 2
        assert half_width == pytest.approx(1.6448536 * effect.ate_se, rel=1e-6)
        assert effect.confidence_level == 0.9

    def test_diagnostics(self, sdr_data, gaussian_config):
        """Per-arm fits and the AIPW cross-check are reported."""
        treatment, outcome, covariates = sdr_data
        estimator = SDRImputationEstimator(config=gaussian_config)
        effect = estimator.fit(treatment, outcome, covariates).estimate_ate()

        diagnostics = effect.diagnostics
        assert diagnostics["variance"] == pytest.approx(effect.ate_se**2)
        assert diagnostics["beta1_hat"].shape == (5, 1)
        assert diagnostics["bw1"] == estimator.imputation_.bw1
        assert diagnostics["bw0"] == estimator.imputation_.bw0
        assert np.isfinite(diagnostics["aipw_ate"])
        assert diagnostics["score_norm1"] == estimator.imputation_.treated.score_norm
        assert diagnostics["score_norm0"] >= 0.0
        assert estimator.propensity_.method == "logistic"

    def test_explicit_beta_guesses(self, sdr_sample, gaussian_config):
        """User-supplied starting directions are accepted."""
        treatment = TreatmentData(values=pd.Series(sdr_sample.treatment))
        outcome = OutcomeData(values=pd.Series(sdr_sample.outcome))
        covariates = CovariateData(values=sdr_sample.covariates)

        estimator = SDRImputationEstimator(
            beta1_guess=sdr_sample.beta1,
            beta0_guess=sdr_sample.beta0,
            config=gaussian_config,
        )
        estimator.fit(treatment, outcome, covariates)
        assert estimator.imputation_.beta1_hat.shape == (5, 1)
        assert estimator.imputation_.beta0_hat[0, 0] == 1.0

    def test_cached_estimate(self, sdr_data, gaussian_config):
        treatment, outcome, covariates = sdr_data
        estimator = SDRImputationEstimator(config=gaussian_config)
        estimator.fit(treatment, outcome, covariates)
        assert estimator.estimate_ate() is estimator.estimate_ate()

    def test_requires_covariates(self, sdr_data):
        treatment, outcome, _ = sdr_data
        with pytest.raises(DataValidationError, match="covariates"):
            SDRImputationEstimator().fit(treatment, outcome, None)

    def test_estimate_before_fit(self):
        with pytest.raises(EstimationError, match="fitted"):
            SDRImputationEstimator().estimate_ate()

    def test_invalid_confidence_level(self):
        with pytest.raises(ValueError, match="Confidence level"):
            SDRImputationEstimator(confidence_level=1.5)

    def test_non_binary_treatment_rejected(self, sdr_data):
        _, outcome, covariates = sdr_data
        treatment = TreatmentData(values=pd.Series(np.full(200, 2)))
        with pytest.raises(DataValidationError, match="binary"):
            SDRImputationEstimator().fit(treatment, outcome, covariates)

    def test_summary(self, sdr_data, gaussian_config):
        treatment, outcome, covariates = sdr_data
        estimator = SDRImputationEstimator(config=gaussian_config)
        assert "not fitted" in estimator.summary()
        estimator.fit(treatment, outcome, covariates).estimate_ate()
        assert "SDRImputationEstimator" in estimator.summary()
