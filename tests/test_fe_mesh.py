"""
Unit tests for the counterpart FE mesh and its shape functions.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_array_equal

from mortarIGA.discretization.fe_mesh import (
    FEMesh, shape_functions, shape_function_derivatives, local_coords
)
from mortarIGA.errors import ConfigurationError
from mortarIGA.geometry.primitives import make_fe_quad_mesh, make_fe_triangle_mesh


class TestFEMesh:
    """Tests for FEMesh tables and validation."""

    def test_node_ids_to_indices(self):
        """Test that connectivity given by ids is stored as indices."""
        nodes = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [2.0, 0.0]])
        mesh = FEMesh(nodes, [10, 20, 30, 40, 20, 50, 30], [4, 3],
                      node_ids=[10, 20, 30, 40, 50])

        assert mesh.n_nodes == 5
        assert mesh.n_elements == 2
        assert_array_equal(mesh.element_nodes(0), [0, 1, 2, 3])
        assert_array_equal(mesh.element_nodes(1), [1, 4, 2])
        assert mesh.node_to_elem_table[1] == [0, 1]
        assert mesh.node_to_elem_table[3] == [0]

    def test_2d_nodes_padded(self):
        """Test that planar node coordinates get z = 0."""
        mesh = FEMesh(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]), [0, 1, 2], [3])
        assert mesh.nodes.shape == (3, 3)
        assert_array_almost_equal(mesh.element_coordinates(0)[:, 2], 0.0)

    def test_unknown_node_id(self):
        """Test that an element referring to an unknown id is rejected."""
        nodes = np.zeros((3, 3))
        with pytest.raises(ConfigurationError, match="node ID 7"):
            FEMesh(nodes, [0, 1, 7], [3])

    def test_duplicate_node_ids(self):
        """Test that duplicate node ids are rejected."""
        with pytest.raises(ConfigurationError):
            FEMesh(np.zeros((3, 3)), [1, 2, 2], [3], node_ids=[1, 2, 2])

    def test_unsupported_element(self):
        """Test that only triangles and quadrilaterals are accepted."""
        with pytest.raises(ConfigurationError):
            FEMesh(np.zeros((5, 3)), [0, 1, 2, 3, 4], [5])

    def test_connectivity_size_mismatch(self):
        """Test that element sizes must add up to the connectivity length."""
        with pytest.raises(ConfigurationError):
            FEMesh(np.zeros((4, 3)), [0, 1, 2, 3], [3])

    def test_structured_meshes(self):
        """Test the structured mesh factories."""
        quads = make_fe_quad_mesh(nx=3, ny=2)
        assert quads.n_nodes == 12
        assert quads.n_elements == 6
        assert_array_equal(quads.element_nodes(0), [0, 1, 5, 4])

        triangles = make_fe_triangle_mesh(nx=3, ny=2)
        assert triangles.n_elements == 12
        assert_array_equal(triangles.element_nodes(1), [0, 5, 4])


class TestShapeFunctions:
    """Tests for linear triangle and bilinear quadrilateral shape functions."""

    def test_partition_of_unity(self):
        """Test that shape functions sum to 1."""
        assert shape_functions(3, (0.2, 0.3)).sum() == pytest.approx(1.0)
        assert shape_functions(4, (-0.4, 0.7)).sum() == pytest.approx(1.0)

    def test_nodal_values(self):
        """Test the Kronecker property at the reference corners."""
        corners = [(-1.0, -1.0), (1.0, -1.0), (1.0, 1.0), (-1.0, 1.0)]
        for k, xi in enumerate(corners):
            expected = np.zeros(4)
            expected[k] = 1.0
            assert_array_almost_equal(shape_functions(4, xi), expected)

    def test_derivatives_sum_to_zero(self):
        """Test that shape function derivatives sum to 0."""
        assert_array_almost_equal(shape_function_derivatives(4, (0.3, -0.2)).sum(axis=0), [0.0, 0.0])
        assert_array_almost_equal(shape_function_derivatives(3, (0.3, 0.2)).sum(axis=0), [0.0, 0.0])

    def test_unsupported_node_count(self):
        with pytest.raises(ValueError):
            shape_functions(6, (0.0, 0.0))


class TestLocalCoordinates:
    """Tests for the inverse element maps."""

    def test_triangle(self):
        """Test barycentric coordinates in a triangle."""
        vertices = np.array([[0.0, 0.0], [2.0, 0.0], [0.0, 1.0]])
        assert_array_almost_equal(local_coords(vertices, (1.0, 0.25)), [0.5, 0.25])

    def test_quad_centre_and_corner(self):
        """Test the inverse bilinear map of a quadrilateral."""
        vertices = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 1.0], [0.0, 1.0]])
        assert_array_almost_equal(local_coords(vertices, (1.0, 0.5)), [0.0, 0.0])
        assert_array_almost_equal(local_coords(vertices, (2.0, 1.0)), [1.0, 1.0])

    def test_distorted_quad_round_trip(self):
        """Test that the Newton inverse recovers the reference point."""
        vertices = np.array([[0.0, 0.0], [1.0, 0.1], [1.3, 1.2], [-0.1, 0.9]])
        xi = np.array([0.35, -0.6])
        point = shape_functions(4, xi) @ vertices

        assert_array_almost_equal(local_coords(vertices, point), xi, decimal=10)
