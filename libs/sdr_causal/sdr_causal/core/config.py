"""Configuration value objects for kernel smoothing and dimension reduction.

Every regression, optimization and variance call receives these objects
explicitly; nothing reads a process-wide default.
"""

from __future__ import annotations

import math
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

# Peak of the standard normal density, 1 / sqrt(2 * pi).
_NORMAL_PEAK_DENSITY = 1.0 / math.sqrt(2.0 * math.pi)

# Support radius of about 7.3 bandwidths. Extreme index values of one arm still
# see the other arm's observations, and the truncation step stays below the
# resolution of the finite-difference gradient.
DEFAULT_GAUSS_CUTOFF = 1e-12


class EpanechnikovKernel(BaseModel):
    """Epanechnikov kernel, compact support on (-1, 1)."""

    kind: Literal["EPAN"] = "EPAN"

    model_config = {"frozen": True}

    @property
    def support_radius(self) -> float:
        return 1.0


class GaussianKernel(BaseModel):
    """Gaussian kernel truncated where the normal density drops below a cutoff.

    Attributes:
        gauss_cutoff: Density threshold; normalized distances whose standard
            normal density is below it get zero weight
    """

    kind: Literal["GAUSS"] = "GAUSS"
    gauss_cutoff: float = Field(
        default=DEFAULT_GAUSS_CUTOFF,
        gt=0.0,
        description="Density threshold below which Gaussian weights are zero",
    )

    model_config = {"frozen": True}

    @field_validator("gauss_cutoff")
    @classmethod
    def validate_gauss_cutoff(cls, v: float) -> float:
        """The cutoff must be below the peak density or the support is empty."""
        if v >= _NORMAL_PEAK_DENSITY:
            raise ValueError(
                f"gauss_cutoff must be below the standard normal peak density "
                f"({_NORMAL_PEAK_DENSITY:.4f}), got {v}"
            )
        return v

    @property
    def support_radius(self) -> float:
        """Normalized distance at which the normal density equals the cutoff."""
        return math.sqrt(-2.0 * math.log(self.gauss_cutoff / _NORMAL_PEAK_DENSITY))


KernelSpec = Annotated[
    Union[EpanechnikovKernel, GaussianKernel], Field(discriminator="kind")
]


def kernel_from_name(
    name: str, gauss_cutoff: float = DEFAULT_GAUSS_CUTOFF
) -> KernelSpec:
    """Map the string surface ("EPAN" / "GAUSS") to a kernel variant.

    Raises:
        ValueError: If the kernel name is unknown
    """
    key = name.strip().upper()
    if key == "EPAN":
        return EpanechnikovKernel()
    elif key == "GAUSS":
        return GaussianKernel(gauss_cutoff=gauss_cutoff)
    else:
        raise ValueError(f"Unknown kernel: {name!r}. Expected 'EPAN' or 'GAUSS'")


class BandwidthConfig(BaseModel):
    """Bandwidths of the dimension-reduction problem for one arm.

    With ``explicit_bandwidth`` the values are bandwidths on the index scale.
    Otherwise they are scales of the rule-of-thumb bandwidth
    ``scale * sd(index) * n_arm ** (-1/5)``, re-derived from the current
    projection. The returned surface defaults to a narrower scale (0.7) than
    the nested smoothers (1.0).

    Attributes:
        explicit_bandwidth: Use the values directly as bandwidths
        index: Bandwidth of the returned surface ``m`` and derivative ``dm``
        mean: Bandwidth of the leave-one-out outcome mean in the objective
        derivative: Bandwidth of the mean derivative in the estimating-equation
            score
        centering: Bandwidth of E[x_lower | index] in the score
        variance: Bandwidth of the residual variance weights
    """

    explicit_bandwidth: bool = Field(
        default=False, description="Use values as bandwidths instead of scales"
    )
    index: float = Field(default=0.7, gt=0.0, description="h0: index bandwidth")
    mean: float = Field(default=1.0, gt=0.0, description="h11: outcome mean")
    derivative: float = Field(default=1.0, gt=0.0, description="h12: mean derivative")
    centering: float = Field(default=1.0, gt=0.0, description="h13: covariate centering")
    variance: float = Field(default=1.0, gt=0.0, description="h14: residual variance")

    model_config = {"frozen": True}

    @classmethod
    def uniform(cls, value: float, explicit_bandwidth: bool = False) -> BandwidthConfig:
        """Use the same value for all five bandwidths."""
        return cls(
            explicit_bandwidth=explicit_bandwidth,
            index=value,
            mean=value,
            derivative=value,
            centering=value,
            variance=value,
        )


class OptimizerConfig(BaseModel):
    """Settings of the dimension-reduction optimizer.

    Attributes:
        method: Scipy ``minimize`` method
        max_iterations: Iteration budget; exhausting it is an error
        convergence_tolerance: Tolerance on parameters and objective
        finite_difference_step: Step for the central-difference gradient
        simplex_step: Edge length of the initial Nelder-Mead simplex
        n_threads: Worker threads for per-observation score accumulation
    """

    method: Literal["Nelder-Mead", "BFGS", "L-BFGS-B"] = Field(
        default="Nelder-Mead", description="Scipy optimization method"
    )
    max_iterations: int = Field(
        default=2000, ge=1, le=100000, description="Maximum optimizer iterations"
    )
    convergence_tolerance: float = Field(
        default=1e-6, gt=0.0, description="Convergence tolerance for optimization"
    )
    finite_difference_step: float = Field(
        default=1e-6, gt=0.0, description="Central-difference step for gradients"
    )
    simplex_step: float = Field(
        default=0.1, gt=0.0, description="Edge length of the initial Nelder-Mead simplex"
    )
    n_threads: int = Field(default=1, ge=1, description="Number of worker threads")

    model_config = {"frozen": True}


class SDRConfig(BaseModel):
    """Aggregate configuration threaded through the SDR pipeline."""

    kernel: KernelSpec = Field(default_factory=GaussianKernel)
    bandwidths: BandwidthConfig = Field(default_factory=BandwidthConfig)
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)

    model_config = {"frozen": True}

    @property
    def n_threads(self) -> int:
        return self.optimizer.n_threads

    @property
    def explicit_bandwidth(self) -> bool:
        return self.bandwidths.explicit_bandwidth
