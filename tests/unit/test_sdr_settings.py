"""Tests for environment-driven SDR settings."""

import pytest
from pydantic import ValidationError

from sdr_causal.core.config import EpanechnikovKernel, GaussianKernel, SDRConfig
from shared.config import Environment, SDRSettings


class TestSDRSettings:
    """Test cases for SDRSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SDR_KERNEL", raising=False)
        settings = SDRSettings()
        assert settings.kernel == "GAUSS"
        assert settings.n_threads == 1

        config = settings.to_sdr_config()
        assert config == SDRConfig()
        assert settings.environment == Environment.DEVELOPMENT

    def test_environment_variables(self, monkeypatch):
        """SDR_-prefixed variables override the defaults."""
        monkeypatch.setenv("SDR_KERNEL", "gauss")
        monkeypatch.setenv("SDR_GAUSS_CUTOFF", "0.01")
        monkeypatch.setenv("SDR_N_THREADS", "4")
        monkeypatch.setenv("SDR_EXPLICIT_BANDWIDTH", "true")
        monkeypatch.setenv("SDR_BANDWIDTH_SCALE", "0.8")

        settings = SDRSettings()
        assert settings.kernel == "GAUSS"
        assert settings.n_threads == 4

        config = settings.to_sdr_config()
        assert isinstance(config.kernel, GaussianKernel)
        assert config.kernel.gauss_cutoff == 0.01
        assert config.n_threads == 4
        assert config.explicit_bandwidth is True
        assert config.bandwidths.variance == 0.8
        assert config.bandwidths.index == 0.7

    def test_to_sdr_config_defaults(self):
        config = SDRSettings(kernel="EPAN", method="BFGS").to_sdr_config()
        assert isinstance(config.kernel, EpanechnikovKernel)
        assert config.optimizer.method == "BFGS"

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            SDRSettings(kernel="TRIANGLE")
        with pytest.raises(ValidationError):
            SDRSettings(confidence_level=1.0)
        with pytest.raises(ValidationError):
            SDRSettings(log_level="chatty")
        with pytest.raises(ValidationError):
            SDRSettings(n_threads=0)

    def test_log_level_normalized(self):
        assert SDRSettings(log_level="debug").log_level == "DEBUG"

    def test_validate_configuration(self):
        settings = SDRSettings(
            environment=Environment.PRODUCTION,
            log_level="DEBUG",
            max_iterations=10,
            bandwidth_scale=0.2,
        )
        issues = settings.validate_configuration()
        assert len(issues) == 3
        assert SDRSettings().validate_configuration() == []
