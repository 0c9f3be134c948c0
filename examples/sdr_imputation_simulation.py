"""Example: SDR Imputation Estimator on Simulated Single-Index Data.

This example simulates observational data where each potential outcome
depends on the covariates through one linear index, estimates the projection
direction for each arm, and reports the imputation ATE with its closed-form
standard error. A small Monte Carlo loop checks the Wald interval coverage.

Settings are read from ``SDR_``-prefixed environment variables, e.g.

    SDR_KERNEL=GAUSS SDR_BANDWIDTH_SCALE=1.5 SDR_N_THREADS=4 \
        python examples/sdr_imputation_simulation.py
"""

import time

import numpy as np

from sdr_causal.core.base import CausalInferenceError
from sdr_causal.data.synthetic import SyntheticSDRGenerator
from sdr_causal.estimators.sdr_imputation import SDRImputationEstimator
from shared.config import SDRSettings
from shared.observability.logging import get_logger, setup_logging
from shared.observability.metrics import SDRMetrics, setup_metrics

logger = get_logger(__name__)


def run_once(settings, metrics, seed, n_samples=200):
    """Fit the estimator on one simulated dataset."""
    generator = SyntheticSDRGenerator(random_state=seed)
    treatment, outcome, covariates = generator.generate(n_samples=n_samples)

    estimator = SDRImputationEstimator(
        config=settings.to_sdr_config(),
        confidence_level=settings.confidence_level,
        metrics=metrics,
        random_state=seed,
    )
    return estimator.fit(treatment, outcome, covariates).estimate_ate()


def main():
    """Run the SDR imputation example."""
    settings = SDRSettings()
    setup_logging(settings)
    for issue in settings.validate_configuration():
        logger.warning(f"Configuration: {issue}")
    metrics = setup_metrics(settings) or SDRMetrics()

    print("=== SDR Imputation Estimator on Simulated Data ===")
    print(f"Kernel: {settings.kernel}, threads: {settings.n_threads}")
    print()

    effect = run_once(settings, metrics, seed=2024)
    diagnostics = effect.diagnostics
    print("True ATE:       1.0000")
    print(f"Imputation ATE: {effect.ate:.4f} (SE {effect.ate_se:.4f})")
    print(
        f"{effect.confidence_level:.0%} CI:        "
        f"[{effect.ate_ci_lower:.4f}, {effect.ate_ci_upper:.4f}]"
    )
    print(f"AIPW ATE:       {diagnostics['aipw_ate']:.4f}")
    print(f"beta1_hat:      {np.round(diagnostics['beta1_hat'].ravel(), 3)}")
    print(f"beta0_hat:      {np.round(diagnostics['beta0_hat'].ravel(), 3)}")
    print()

    n_reps = 20
    print(f"Monte Carlo coverage over {n_reps} replications...")
    start = time.perf_counter()
    covered, failures = [], 0
    for rep in range(n_reps):
        try:
            covered.append(run_once(settings, metrics, seed=rep).covers(1.0))
        except CausalInferenceError as e:
            failures += 1
            metrics.record_error(type(e).__name__, "sdr_imputation")
            logger.warning(f"Replication {rep} failed: {e}")

    if covered:
        print(f"Coverage: {np.mean(covered):.2f} ({len(covered)} fits, {failures} failed)")
    print(f"Elapsed: {time.perf_counter() - start:.1f}s")


if __name__ == "__main__":
    main()
