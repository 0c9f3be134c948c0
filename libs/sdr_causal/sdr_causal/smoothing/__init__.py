"""Kernel smoothing engine: kernels, Nadaraya-Watson regression, bandwidths."""

from .bandwidth import resolve_bandwidth, silverman_bandwidth
from .kernels import (
    kernel_derivative,
    kernel_weight,
    product_kernel_weights,
    product_kernel_weights_with_gradient,
)
from .nadaraya_watson import nw_kernel_regress, nw_kernel_regress_with_derivative

__all__ = [
    "kernel_derivative",
    "kernel_weight",
    "nw_kernel_regress",
    "nw_kernel_regress_with_derivative",
    "product_kernel_weights",
    "product_kernel_weights_with_gradient",
    "resolve_bandwidth",
    "silverman_bandwidth",
]
