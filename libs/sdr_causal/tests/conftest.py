"""Shared test fixtures for the SDR causal library."""

import numpy as np
import pytest

from sdr_causal.core.config import (
    BandwidthConfig,
    GaussianKernel,
    OptimizerConfig,
    SDRConfig,
)
from sdr_causal.data.synthetic import SyntheticSDRGenerator


@pytest.fixture
def random_state():
    """Provide a consistent random state for reproducible tests."""
    return 42


@pytest.fixture
def sdr_sample(random_state):
    """Single-index observational sample with n=200, p=5, d=1."""
    generator = SyntheticSDRGenerator(random_state=random_state)
    return generator.generate_arrays(n_samples=200, n_covariates=5)


@pytest.fixture
def sdr_data(random_state):
    """Same design as ``sdr_sample`` wrapped in data objects."""
    generator = SyntheticSDRGenerator(random_state=random_state)
    return generator.generate(n_samples=200, n_covariates=5)


@pytest.fixture
def gaussian_config():
    """Default truncated Gaussian kernel and bandwidths, larger iteration budget."""
    return SDRConfig(
        kernel=GaussianKernel(),
        bandwidths=BandwidthConfig(),
        optimizer=OptimizerConfig(max_iterations=4000, convergence_tolerance=1e-6),
    )


@pytest.fixture
def smooth_index_data():
    """Noise-free single-index surface on a regular grid."""
    u = np.linspace(-2.0, 2.0, 81)
    return u, np.sin(u)
