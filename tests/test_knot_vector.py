"""
Unit tests for knot vector utilities.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_equal, assert_array_almost_equal

from mortarIGA.discretization.knot_vector import (
    KnotVector, make_open_knot_vector, KNOT_SPAN_TOLERANCE
)
from mortarIGA.errors import KnotSpanError


class TestKnotVector:
    """Tests for KnotVector class."""

    def test_open_knot_vector_creation(self):
        """Test creating an open (clamped) uniform knot vector."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        assert kv.degree == 2
        assert kv.n_basis == 5
        assert len(kv.knots) == 5 + 2 + 1  # n + p + 1

        assert_array_equal(kv.knots[:3], [0.0, 0.0, 0.0])
        assert_array_equal(kv.knots[-3:], [1.0, 1.0, 1.0])

    def test_knot_vector_domain(self):
        """Test that domain is correctly computed."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(-1.0, 2.0))
        assert kv.domain == (-1.0, 2.0)

    def test_elements_skip_repeated_knots(self):
        """Test that zero-length spans are not elements."""
        kv = KnotVector(np.array([0.0, 0.0, 0.0, 0.5, 0.5, 1.0, 1.0, 1.0]), 2)

        assert kv.n_elements == 2
        assert kv.elements == [(0.0, 0.5), (0.5, 1.0)]
        assert kv.element_spans == [2, 4]
        assert_array_equal(kv.unique_knots, [0.0, 0.5, 1.0])

    def test_find_span_interior(self):
        """Test finding knot span for interior points."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        assert kv.find_span(0.25) == 2
        assert kv.find_span(0.75) == 3
        # Knot values belong to the span on their right
        assert kv.find_span(0.5) == 3

    def test_find_span_boundaries(self):
        """Test finding knot span at domain boundaries."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        assert kv.find_span(0.0) == 2
        # Last span is closed
        assert kv.find_span(1.0) == 3

    def test_find_span_skips_zero_length_span(self):
        """Test that a repeated interior knot never yields an empty span."""
        kv = KnotVector(np.array([0.0, 0.0, 0.0, 0.5, 0.5, 1.0, 1.0, 1.0]), 2)

        assert kv.find_span(0.5) == 4
        assert kv.find_span(0.4999) == 2

    def test_clamp_within_tolerance(self):
        """Test that values slightly outside the domain are clamped."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        assert kv.clamp(1.0 + 0.5 * KNOT_SPAN_TOLERANCE) == 1.0
        assert kv.clamp(-0.5 * KNOT_SPAN_TOLERANCE) == 0.0
        assert kv.clamp(0.3) == 0.3
        assert kv.find_span(1.0 + 0.5 * KNOT_SPAN_TOLERANCE) == 3

    def test_out_of_domain_raises(self):
        """Test that values far outside the domain raise KnotSpanError."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        with pytest.raises(KnotSpanError) as excinfo:
            kv.find_span(1.1)
        assert excinfo.value.xi == 1.1
        assert excinfo.value.domain == (0.0, 1.0)

        with pytest.raises(KnotSpanError):
            kv.clamp(-0.01)

    def test_invalid_knot_vectors(self):
        """Test validation of knot vector input."""
        with pytest.raises(ValueError):
            KnotVector(np.array([0.0, 1.0, 0.5, 1.0]), 1)

        with pytest.raises(ValueError):
            KnotVector(np.array([0.0, 0.0, 1.0]), 2)

        with pytest.raises(ValueError):
            make_open_knot_vector(n_basis=2, degree=2)

    def test_greville_abscissae(self):
        """Test Greville abscissae of a quadratic open knot vector."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        # knots = [0, 0, 0, 0.5, 1, 1, 1]
        assert_array_almost_equal(kv.greville_abscissae(), [0.0, 0.25, 0.75, 1.0])
