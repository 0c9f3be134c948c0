"""Tests for Nadaraya-Watson kernel regression."""

import numpy as np
import pytest

from sdr_causal.core.base import DataValidationError, NumericalDegeneracyError
from sdr_causal.core.config import EpanechnikovKernel, GaussianKernel
from sdr_causal.smoothing.nadaraya_watson import (
    nw_kernel_regress,
    nw_kernel_regress_with_derivative,
)


class TestNadarayaWatson:
    """Test cases for the kernel-weighted local average."""

    def test_constant_target_reproduced(self):
        """Local averages of a constant are that constant."""
        u = np.linspace(-1, 1, 25)
        fitted = nw_kernel_regress(np.full(25, 3.0), u, 0.3, EpanechnikovKernel())
        np.testing.assert_allclose(fitted, 3.0)

    def test_leave_one_in_single_source(self):
        """With one source point the observation's own value is returned."""
        fitted = nw_kernel_regress(
            np.array([2.5]), np.array([0.0]), 0.5, EpanechnikovKernel()
        )
        assert fitted[0] == pytest.approx(2.5)

    def test_matches_explicit_weighted_average(self):
        """Fitted values equal sum(w t) / sum(w) computed by hand."""
        u_src = np.array([0.0, 0.2, 0.5, 0.9])
        targets = np.array([1.0, 2.0, 4.0, 8.0])
        u_eval = np.array([0.3])
        h = 0.5

        z = (u_eval[0] - u_src) / h
        w = np.where(np.abs(z) < 1, 0.75 * (1 - z**2), 0.0)
        expected = np.sum(w * targets) / np.sum(w)

        fitted = nw_kernel_regress(
            targets, u_eval, h, EpanechnikovKernel(), source_index=u_src
        )
        assert fitted[0] == pytest.approx(expected)

    def test_multi_column_targets(self):
        """Each target column is smoothed with the same weights."""
        u = np.linspace(-1, 1, 30)
        targets = np.column_stack([u, 2 * u, np.ones(30)])
        fitted = nw_kernel_regress(targets, u, 0.4, GaussianKernel())

        assert fitted.shape == (30, 3)
        np.testing.assert_allclose(fitted[:, 1], 2 * fitted[:, 0])
        np.testing.assert_allclose(fitted[:, 2], 1.0)

    def test_zero_weight_raises(self):
        """An isolated evaluation point is a numerical degeneracy."""
        u_src = np.linspace(-1, 1, 20)
        with pytest.raises(NumericalDegeneracyError, match="Zero total kernel weight"):
            nw_kernel_regress(
                np.ones(20), np.array([10.0]), 0.1, EpanechnikovKernel(), source_index=u_src
            )

    def test_invalid_bandwidth_raises(self):
        """Bandwidth must be positive."""
        u = np.linspace(0, 1, 5)
        with pytest.raises(DataValidationError):
            nw_kernel_regress(np.ones(5), u, 0.0, EpanechnikovKernel())

    def test_target_length_mismatch_raises(self):
        """Targets need one row per source point."""
        u = np.linspace(0, 1, 5)
        with pytest.raises(ValueError, match="source points"):
            nw_kernel_regress(np.ones(4), u, 0.5, EpanechnikovKernel())

    def test_two_dimensional_index(self):
        """A (n, 2) index uses the product kernel."""
        rng = np.random.RandomState(3)
        u = rng.normal(size=(40, 2))
        y = u[:, 0] + u[:, 1]
        fitted = nw_kernel_regress(y, u, 1.0, GaussianKernel())
        assert fitted.shape == (40,)
        assert np.all(np.isfinite(fitted))

    def test_leave_out_excludes_own_weight(self):
        """Dropping the evaluation point's own row averages its neighbours."""
        u = np.array([0.0, 0.1, 0.2])
        targets = np.array([1.0, 5.0, 9.0])
        fitted = nw_kernel_regress(
            targets, u[[1]], 1.0, EpanechnikovKernel(), source_index=u, leave_out=[1]
        )
        # Neighbours at equal distance carry equal weight.
        assert fitted[0] == pytest.approx(5.0)

        own = nw_kernel_regress(
            targets, u[[0]], 0.05, EpanechnikovKernel(), source_index=u
        )
        assert own[0] == pytest.approx(1.0)

    def test_leave_out_isolated_point_raises(self):
        """Without its own weight an isolated point has nothing to average."""
        u = np.array([-0.1, 0.0, 0.1, 5.0])
        with pytest.raises(NumericalDegeneracyError, match="Zero total kernel weight"):
            nw_kernel_regress(
                np.ones(4), u, 0.5, EpanechnikovKernel(), leave_out=np.arange(4)
            )

    def test_leave_out_length_mismatch_raises(self):
        u = np.linspace(0, 1, 5)
        with pytest.raises(ValueError, match="leave_out"):
            nw_kernel_regress(np.ones(5), u, 0.5, GaussianKernel(), leave_out=[0, 1])


class TestNadarayaWatsonDerivative:
    """Test cases for the regression derivative."""

    def test_fitted_values_match_plain_regression(self, smooth_index_data):
        """The derivative routine returns the same fitted values."""
        u, y = smooth_index_data
        kernel = GaussianKernel()
        fitted, _ = nw_kernel_regress_with_derivative(y, u, 0.3, kernel)
        np.testing.assert_allclose(fitted, nw_kernel_regress(y, u, 0.3, kernel))

    def test_derivative_matches_finite_difference(self, smooth_index_data):
        """d m(u) / du equals the central difference of the fitted surface."""
        u_src, y = smooth_index_data
        kernel = GaussianKernel()
        u_eval = np.array([-1.3, -0.4, 0.0, 0.7, 1.5])
        h = 0.3

        _, dm = nw_kernel_regress_with_derivative(
            y, u_eval, h, kernel, source_index=u_src
        )
        eps = 1e-6
        upper = nw_kernel_regress(y, u_eval + eps, h, kernel, source_index=u_src)
        lower = nw_kernel_regress(y, u_eval - eps, h, kernel, source_index=u_src)

        assert dm.shape == (5, 1)
        np.testing.assert_allclose(dm[:, 0], (upper - lower) / (2 * eps), atol=1e-5)

    def test_derivative_tracks_true_slope(self, smooth_index_data):
        """In the interior the derivative of a smooth surface is close to cos(u)."""
        u, y = smooth_index_data
        _, dm = nw_kernel_regress_with_derivative(y, u, 0.15, GaussianKernel())
        interior = np.abs(u) < 1.0
        np.testing.assert_allclose(dm[interior, 0], np.cos(u[interior]), atol=0.1)

    def test_multi_column_derivative_shape(self):
        """Derivatives of k targets on a d-dimensional index are (m, k, d)."""
        rng = np.random.RandomState(5)
        u = rng.normal(size=(30, 2))
        targets = rng.normal(size=(30, 3))
        fitted, derivative = nw_kernel_regress_with_derivative(
            targets, u, 1.2, GaussianKernel()
        )
        assert fitted.shape == (30, 3)
        assert derivative.shape == (30, 3, 2)

    def test_leave_out_derivative_matches_finite_difference(self, smooth_index_data):
        """The leave-one-out derivative is the slope of the leave-one-out fit."""
        u_src, y = smooth_index_data
        kernel = GaussianKernel()
        rows = np.array([10, 25, 40, 61])
        h = 0.3

        fitted, dm = nw_kernel_regress_with_derivative(
            y, u_src[rows], h, kernel, source_index=u_src, leave_out=rows
        )
        plain = nw_kernel_regress(
            y, u_src[rows], h, kernel, source_index=u_src, leave_out=rows
        )
        eps = 1e-6
        upper = nw_kernel_regress(
            y, u_src[rows] + eps, h, kernel, source_index=u_src, leave_out=rows
        )
        lower = nw_kernel_regress(
            y, u_src[rows] - eps, h, kernel, source_index=u_src, leave_out=rows
        )

        np.testing.assert_allclose(fitted, plain)
        np.testing.assert_allclose(dm[:, 0], (upper - lower) / (2 * eps), atol=1e-5)
