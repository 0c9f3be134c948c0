"""Tests for configuration value objects."""

import pytest
from pydantic import ValidationError

from sdr_causal.core.config import (
    DEFAULT_GAUSS_CUTOFF,
    BandwidthConfig,
    EpanechnikovKernel,
    GaussianKernel,
    OptimizerConfig,
    SDRConfig,
    kernel_from_name,
)


class TestKernelSpec:
    """Test cases for kernel selection."""

    def test_kernel_from_name(self):
        assert isinstance(kernel_from_name("EPAN"), EpanechnikovKernel)
        gauss = kernel_from_name("gauss", gauss_cutoff=0.01)
        assert isinstance(gauss, GaussianKernel)
        assert gauss.gauss_cutoff == 0.01

    def test_unknown_kernel_name(self):
        with pytest.raises(ValueError, match="Unknown kernel"):
            kernel_from_name("TRIANGLE")

    def test_discriminated_union_from_dict(self):
        """Kernel variants are selected by their ``kind`` tag."""
        config = SDRConfig.model_validate(
            {"kernel": {"kind": "GAUSS", "gauss_cutoff": 0.02}}
        )
        assert isinstance(config.kernel, GaussianKernel)
        assert config.kernel.gauss_cutoff == 0.02

    def test_epanechnikov_support(self):
        assert EpanechnikovKernel().support_radius == 1.0


class TestBandwidthConfig:
    """Test cases for the five nested bandwidths."""

    def test_default_scales(self):
        """The returned surface is narrower than the nested smoothers."""
        bw = BandwidthConfig()
        assert bw.explicit_bandwidth is False
        assert bw.index == 0.7
        assert (bw.mean, bw.derivative, bw.centering, bw.variance) == (
            1.0,
            1.0,
            1.0,
            1.0,
        )

    def test_uniform(self):
        bw = BandwidthConfig.uniform(0.3, explicit_bandwidth=True)
        assert bw.explicit_bandwidth is True
        assert bw.index == bw.mean == bw.derivative == bw.centering == bw.variance == 0.3

    def test_nonpositive_values_rejected(self):
        with pytest.raises(ValidationError):
            BandwidthConfig(mean=0.0)
        with pytest.raises(ValidationError):
            BandwidthConfig(variance=-0.5)

    def test_frozen(self):
        bw = BandwidthConfig()
        with pytest.raises(ValidationError):
            bw.index = 2.0


class TestOptimizerConfig:
    """Test cases for optimizer settings."""

    def test_defaults(self):
        config = OptimizerConfig()
        assert config.method == "Nelder-Mead"
        assert config.max_iterations == 2000
        assert config.n_threads == 1

    def test_invalid_method(self):
        with pytest.raises(ValidationError):
            OptimizerConfig(method="Powell")

    def test_invalid_thread_count(self):
        with pytest.raises(ValidationError):
            OptimizerConfig(n_threads=0)

    def test_sdr_config_shortcuts(self):
        config = SDRConfig(
            bandwidths=BandwidthConfig(explicit_bandwidth=True),
            optimizer=OptimizerConfig(n_threads=4),
        )
        assert config.n_threads == 4
        assert config.explicit_bandwidth is True
        assert isinstance(config.kernel, GaussianKernel)

    def test_default_kernel_has_wide_support(self):
        """The default truncated Gaussian reaches past seven bandwidths."""
        kernel = SDRConfig().kernel
        assert isinstance(kernel, GaussianKernel)
        assert kernel.gauss_cutoff == DEFAULT_GAUSS_CUTOFF
        assert kernel.support_radius > 7.0
        assert kernel_from_name("GAUSS") == kernel
