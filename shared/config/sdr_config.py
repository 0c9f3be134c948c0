"""Environment settings for SDR causal estimation runs."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from sdr_causal.core.config import (
    DEFAULT_GAUSS_CUTOFF,
    BandwidthConfig,
    OptimizerConfig,
    SDRConfig,
    kernel_from_name,
)

from .base import BaseConfiguration, Environment


class SDRSettings(BaseConfiguration):
    """Settings read from ``SDR_``-prefixed environment variables.

    Example:
        ``SDR_KERNEL=GAUSS SDR_N_THREADS=4 python run.py``
    """

    model_config = SettingsConfigDict(
        env_prefix="SDR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Kernel smoothing
    kernel: Literal["EPAN", "GAUSS"] = Field(
        default="GAUSS", description="Kernel used by every smoothing step"
    )
    gauss_cutoff: float = Field(
        default=DEFAULT_GAUSS_CUTOFF,
        gt=0.0,
        description="Density cutoff of the Gaussian kernel",
    )
    explicit_bandwidth: bool = Field(
        default=False, description="Treat bandwidth values as bandwidths, not scales"
    )
    index_bandwidth_scale: float = Field(
        default=0.7, gt=0.0, description="Bandwidth (scale) of the returned surface"
    )
    bandwidth_scale: float = Field(
        default=1.0, gt=0.0, description="Bandwidth (scale) of the nested smoothers"
    )

    # Optimizer
    method: Literal["Nelder-Mead", "BFGS", "L-BFGS-B"] = Field(
        default="Nelder-Mead", description="Scipy optimization method"
    )
    max_iterations: int = Field(default=2000, ge=1, description="Optimizer budget")
    convergence_tolerance: float = Field(
        default=1e-6, gt=0.0, description="Optimizer tolerance"
    )
    n_threads: int = Field(default=1, ge=1, description="Worker threads")

    # Inference
    confidence_level: float = Field(
        default=0.95, description="Confidence level of the Wald interval"
    )

    # Observability
    log_level: str = Field(default="INFO", description="Root logging level")
    enable_metrics: bool = Field(default=False, description="Enable metrics collection")
    metrics_port: int = Field(default=9090, description="Metrics endpoint port")

    @field_validator("kernel", mode="before")
    @classmethod
    def normalize_kernel(cls, v: str) -> str:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("confidence_level")
    @classmethod
    def validate_confidence_level(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("Confidence level must be between 0 and 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def to_sdr_config(self) -> SDRConfig:
        """Build the value object passed explicitly through the pipeline."""
        return SDRConfig(
            kernel=kernel_from_name(self.kernel, self.gauss_cutoff),
            bandwidths=BandwidthConfig(
                explicit_bandwidth=self.explicit_bandwidth,
                index=self.index_bandwidth_scale,
                mean=self.bandwidth_scale,
                derivative=self.bandwidth_scale,
                centering=self.bandwidth_scale,
                variance=self.bandwidth_scale,
            ),
            optimizer=OptimizerConfig(
                method=self.method,
                max_iterations=self.max_iterations,
                convergence_tolerance=self.convergence_tolerance,
                n_threads=self.n_threads,
            ),
        )

    def validate_configuration(self) -> list[str]:
        """Validate SDR specific configuration."""
        issues = super().validate_configuration()

        if self.environment == Environment.PRODUCTION and self.log_level == "DEBUG":
            issues.append("DEBUG logging is verbose for production runs")

        if self.max_iterations < 100:
            issues.append("Iteration budget might be too small to converge")

        smallest = min(self.index_bandwidth_scale, self.bandwidth_scale)
        if not self.explicit_bandwidth and smallest < 0.5:
            issues.append(
                "Small bandwidth scales risk zero kernel weight at extreme indices"
            )

        return issues
