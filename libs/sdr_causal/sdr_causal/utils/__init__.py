"""Utility modules for input validation."""

from .validation import (
    validate_bandwidth,
    validate_binary_treatment,
    validate_input_dimensions,
    validate_projection,
    validate_propensity_scores,
    validate_structural_dimension,
)

__all__ = [
    "validate_bandwidth",
    "validate_binary_treatment",
    "validate_input_dimensions",
    "validate_projection",
    "validate_propensity_scores",
    "validate_structural_dimension",
]
