"""
Unit tests for NURBS bases and curves.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal

from mortarIGA.discretization.knot_vector import KnotVector, make_open_knot_vector
from mortarIGA.errors import DegenerateDenominatorError
from mortarIGA.geometry.nurbs import (
    BSplineBasis2D, NURBSBasis2D, NURBSCurve, make_basis_2d
)
from mortarIGA.geometry.primitives import make_nurbs_quarter_annulus


class TestNURBSCurve:
    """Tests for NURBS curves."""

    def test_bspline_curve_endpoints(self):
        """Test that B-spline curve interpolates endpoints."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        control_points = np.array([
            [0.0, 0.0],
            [0.5, 1.0],
            [1.0, 1.0],
            [1.5, 0.0]
        ])

        curve = NURBSCurve(kv, control_points)

        assert_array_almost_equal(curve.eval_point(0.0), [0.0, 0.0])
        assert_array_almost_equal(curve.eval_point(1.0), [1.5, 0.0])

    def test_quarter_circle(self):
        """Test that a rational quadratic reproduces a circular arc."""
        kv = KnotVector(np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), 2)
        control_points = np.array([[1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        weights = np.array([1.0, 1.0 / np.sqrt(2.0), 1.0])

        curve = NURBSCurve(kv, control_points, weights)

        for xi in np.linspace(0.0, 1.0, 7):
            assert_almost_equal(np.linalg.norm(curve.eval_point(xi)), 1.0, decimal=14)

    def test_linearize_straight_curve(self):
        """Test that degree 1 curves are linearized through their breakpoints."""
        kv = KnotVector(np.array([0.0, 0.0, 0.5, 1.0, 1.0]), 1)
        curve = NURBSCurve(kv, np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]]))

        assert_array_almost_equal(curve.linearize(), [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]])

    def test_linearize_curved(self):
        """Test sampling density of curved trimming curves."""
        kv = KnotVector(np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), 2)
        curve = NURBSCurve(kv, np.array([[0.0, 0.0], [0.5, 1.0], [1.0, 0.0]]))

        polyline = curve.linearize(n_samples_per_span=8)
        assert polyline.shape == (9, 2)
        assert_array_almost_equal(polyline[-1], [1.0, 0.0])

    def test_wrong_number_of_control_points(self):
        """Test that the control point count is checked."""
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ValueError):
            NURBSCurve(kv, np.zeros((3, 2)))

    def test_vanishing_weight_function(self):
        """Test that a zero weight function raises DegenerateDenominatorError."""
        kv = KnotVector(np.array([0.0, 0.0, 1.0, 1.0]), 1)
        curve = NURBSCurve(kv, np.array([[0.0, 0.0], [1.0, 0.0]]), np.zeros(2))

        with pytest.raises(DegenerateDenominatorError):
            curve.eval_point(0.5)


class TestNURBSBasis2D:
    """Tests for the rational tensor-product basis."""

    @pytest.fixture
    def rational_basis(self):
        kv_u = make_open_knot_vector(n_basis=3, degree=2)
        kv_v = make_open_knot_vector(n_basis=4, degree=2)
        weights = np.linspace(0.5, 2.0, 12)
        return NURBSBasis2D(kv_u, kv_v, weights)

    def test_partition_of_unity(self, rational_basis):
        """Test that rational functions sum to 1 and derivatives to 0."""
        for u, v in [(0.1, 0.2), (0.5, 0.5), (0.9, 0.95)]:
            table = rational_basis.evaluate_with_derivatives(u, v, 2)
            assert_almost_equal(np.sum(table[0, 0]), 1.0, decimal=14)
            for k, l in [(1, 0), (0, 1), (1, 1), (2, 0), (0, 2)]:
                assert_almost_equal(np.sum(table[k, l]), 0.0, decimal=10)

    def test_derivatives_finite_difference(self, rational_basis):
        """Test rational first and second derivatives against finite differences."""
        u, v, h = 0.3, 0.6, 1e-5
        spans = rational_basis.find_span(u, v)

        def R(a, b):
            return rational_basis.evaluate_with_derivatives(a, b, 1, spans)

        table = rational_basis.evaluate_with_derivatives(u, v, 2, spans)
        assert_array_almost_equal(table[1, 0], (R(u + h, v)[0, 0] - R(u - h, v)[0, 0]) / (2 * h), decimal=7)
        assert_array_almost_equal(table[0, 1], (R(u, v + h)[0, 0] - R(u, v - h)[0, 0]) / (2 * h), decimal=7)
        assert_array_almost_equal(table[1, 1], (R(u, v + h)[1, 0] - R(u, v - h)[1, 0]) / (2 * h), decimal=5)
        assert_array_almost_equal(table[2, 0], (R(u + h, v)[1, 0] - R(u - h, v)[1, 0]) / (2 * h), decimal=5)

    def test_constant_weights_give_polynomial_basis(self):
        """Test that constant weights select the polynomial basis."""
        kv = make_open_knot_vector(n_basis=3, degree=2)
        assert isinstance(make_basis_2d(kv, kv, np.full(9, 2.0)), BSplineBasis2D)
        assert not make_basis_2d(kv, kv, np.full(9, 2.0)).is_rational
        assert make_basis_2d(kv, kv, np.linspace(1.0, 2.0, 9)).is_rational

    def test_invalid_weights(self):
        """Test that non-positive weights or wrong sizes are rejected."""
        kv = make_open_knot_vector(n_basis=3, degree=2)
        with pytest.raises(ValueError):
            NURBSBasis2D(kv, kv, np.zeros(9))
        with pytest.raises(ValueError):
            NURBSBasis2D(kv, kv, np.ones(8))


class TestQuarterAnnulus:
    """Tests for the rational quarter annulus patch."""

    def test_exact_arcs(self):
        """Test that the eta boundaries are exact circular arcs."""
        patch = make_nurbs_quarter_annulus(inner_radius=0.5, outer_radius=1.0)

        for v in np.linspace(0.0, 1.0, 9):
            assert_almost_equal(np.linalg.norm(patch.eval_point(0.0, v)), 0.5, decimal=14)
            assert_almost_equal(np.linalg.norm(patch.eval_point(1.0, v)), 1.0, decimal=14)

    def test_corners(self):
        """Test the parametrization orientation."""
        patch = make_nurbs_quarter_annulus(inner_radius=1.0, outer_radius=2.0)

        assert_array_almost_equal(patch.eval_point(0.0, 0.0), [1.0, 0.0, 0.0])
        assert_array_almost_equal(patch.eval_point(1.0, 0.0), [2.0, 0.0, 0.0])
        assert_array_almost_equal(patch.eval_point(1.0, 1.0), [0.0, 2.0, 0.0])

    def test_normal(self):
        """Test that the patch normal points along +z."""
        patch = make_nurbs_quarter_annulus()
        assert_array_almost_equal(patch.normal(0.3, 0.7), [0.0, 0.0, 1.0])
