"""
Unit tests for Gauss quadrature on lines, triangles and quadrilaterals.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal

from mortarIGA.quadrature.gauss import (
    gauss_legendre_1d, gauss_quad, gauss_triangle, GaussQuadrature,
    is_supported_triangle_rule, is_supported_quad_rule
)


class TestGaussLegendre1D:
    """Tests for 1D Gauss-Legendre quadrature."""

    def test_weights_sum_to_one(self):
        """Test that weights sum to 1 (domain is [0,1])."""
        for n in [1, 2, 3, 4, 5]:
            pts, wts = gauss_legendre_1d(n)
            assert_almost_equal(np.sum(wts), 1.0, decimal=14)

    def test_points_in_domain(self):
        """Test that all points are in [0, 1]."""
        for n in [1, 2, 3, 4, 5]:
            pts, wts = gauss_legendre_1d(n)
            assert np.all(pts >= 0.0)
            assert np.all(pts <= 1.0)

    def test_integrate_polynomial(self):
        """Test exact integration of polynomials up to degree 2n-1."""
        # ∫_0^1 x^3 dx = 1/4
        pts, wts = gauss_legendre_1d(2)
        assert_almost_equal(np.sum(pts**3 * wts), 0.25, decimal=14)

        # ∫_0^1 x^5 dx = 1/6
        pts, wts = gauss_legendre_1d(3)
        assert_almost_equal(np.sum(pts**5 * wts), 1.0 / 6.0, decimal=14)

    def test_invalid_n(self):
        """Test that n < 1 is rejected."""
        with pytest.raises(ValueError):
            gauss_legendre_1d(0)


class TestGaussQuad:
    """Tests for the tensor-product rule on [-1, 1]^2."""

    def test_weights_sum_to_area(self):
        """Test that weights sum to the reference area 4."""
        for n_points in [1, 4, 9, 16, 25]:
            pts, wts = gauss_quad(n_points)
            assert len(wts) == n_points
            assert_almost_equal(np.sum(wts), 4.0, decimal=13)

    def test_integrate_polynomial(self):
        """Test exactness for x^2 y^2 with 2x2 points."""
        pts, wts = gauss_quad(4)
        # ∫∫ x^2 y^2 over [-1,1]^2 = (2/3)^2
        result = np.sum(pts[:, 0]**2 * pts[:, 1]**2 * wts)
        assert_almost_equal(result, 4.0 / 9.0, decimal=14)

    def test_xi_runs_fastest(self):
        """Test the ordering of the product points."""
        pts, _ = gauss_quad(4)
        assert pts[0, 1] == pts[1, 1]
        assert pts[0, 0] == pts[2, 0]

    def test_non_square_count(self):
        """Test that non-square point counts are rejected."""
        with pytest.raises(ValueError):
            gauss_quad(5)


class TestGaussTriangle:
    """Tests for rules on the unit reference triangle."""

    @staticmethod
    def monomial_integral(i, j):
        """Exact ∫ a^i b^j over the reference triangle: i! j! / (i + j + 2)!"""
        from math import factorial
        return factorial(i) * factorial(j) / factorial(i + j + 2)

    def test_weights_sum_to_area(self):
        """Test that weights sum to the area 1/2."""
        for n_points in [1, 3, 6, 7, 9, 16, 25]:
            pts, wts = gauss_triangle(n_points)
            assert len(wts) == n_points
            assert_almost_equal(np.sum(wts), 0.5, decimal=12)

    def test_points_inside_triangle(self):
        """Test that all points are inside the reference triangle."""
        for n_points in [1, 3, 6, 7, 16]:
            pts, _ = gauss_triangle(n_points)
            assert np.all(pts >= 0.0)
            assert np.all(pts.sum(axis=1) <= 1.0)

    @pytest.mark.parametrize("n_points, degree", [(1, 1), (3, 2), (6, 4), (7, 5), (16, 5)])
    def test_polynomial_exactness(self, n_points, degree):
        """Test exact integration of all monomials up to the rule degree."""
        pts, wts = gauss_triangle(n_points)
        for i in range(degree + 1):
            for j in range(degree + 1 - i):
                result = np.sum(pts[:, 0]**i * pts[:, 1]**j * wts)
                assert result == pytest.approx(self.monomial_integral(i, j), abs=1e-12)

    def test_unsupported_count(self):
        """Test that unsupported point counts are rejected."""
        with pytest.raises(ValueError):
            gauss_triangle(12)


class TestGaussQuadrature:
    """Tests for GaussQuadrature class."""

    def test_triangle_rule(self):
        """Test creating a triangle rule."""
        rule = GaussQuadrature.triangle(7)

        assert rule.shape == 'triangle'
        assert rule.n_points == 7
        assert rule.n_vertices == 3
        assert rule.points.shape == (7, 2)

    def test_quad_rule(self):
        """Test creating a quadrilateral rule and iterating it."""
        rule = GaussQuadrature.quad(9)
        items = list(rule)

        assert rule.n_vertices == 4
        assert len(items) == 9
        assert_array_almost_equal(items[0][0], rule.points[0])
        assert_almost_equal(sum(w for _, w in items), 4.0)

    def test_unknown_shape(self):
        """Test that an unknown reference shape is rejected."""
        with pytest.raises(ValueError):
            GaussQuadrature('hexahedron', 8)

    def test_supported_counts(self):
        """Test the rule availability checks used by the configuration."""
        assert is_supported_triangle_rule(7)
        assert is_supported_triangle_rule(16)
        assert not is_supported_triangle_rule(12)
        assert is_supported_quad_rule(25)
        assert not is_supported_quad_rule(6)

    def test_cached_rules_are_read_only(self):
        """Test that shared cached rules cannot be modified in place."""
        for points, weights in (gauss_legendre_1d(3), gauss_quad(9),
                                gauss_triangle(3), gauss_triangle(16)):
            with pytest.raises(ValueError):
                weights[0] = 0.0
            with pytest.raises(ValueError):
                points *= 2.0

        points, weights = gauss_triangle(3)
        assert_almost_equal(weights.sum(), 0.5)
