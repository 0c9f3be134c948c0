"""Core data models, configuration and error types."""

from .base import (
    ArmFit,
    BaseEstimator,
    CausalEffect,
    CausalInferenceError,
    ConvergenceError,
    CovariateData,
    DataValidationError,
    EstimationError,
    ImputationOutput,
    NumericalDegeneracyError,
    OutcomeData,
    PropensityOutput,
    TreatmentData,
)
from .config import (
    BandwidthConfig,
    EpanechnikovKernel,
    GaussianKernel,
    KernelSpec,
    OptimizerConfig,
    SDRConfig,
    kernel_from_name,
)

__all__ = [
    "ArmFit",
    "BaseEstimator",
    "CausalEffect",
    "CausalInferenceError",
    "ConvergenceError",
    "CovariateData",
    "DataValidationError",
    "EstimationError",
    "ImputationOutput",
    "NumericalDegeneracyError",
    "OutcomeData",
    "PropensityOutput",
    "TreatmentData",
    "BandwidthConfig",
    "EpanechnikovKernel",
    "GaussianKernel",
    "KernelSpec",
    "OptimizerConfig",
    "SDRConfig",
    "kernel_from_name",
]
