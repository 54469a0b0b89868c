"""
Counterpart finite element mesh and its low-order shape functions.

The FE side of the coupling is a surface mesh of linear triangles and
bilinear quadrilaterals given by node coordinates, node ids and a flat
connectivity list of node ids with a per-element node count. The mapper
works on node indices (position in the node array); the direct element
table translates connectivity ids to indices once.

Reference elements:
- triangle: vertices (0,0), (1,0), (0,1); N = [1 - a - b, a, b]
- quadrilateral: [-1,1]^2 with vertices (-1,-1), (1,-1), (1,1), (-1,1);
  N_k = (1 + xi xi_k)(1 + eta eta_k) / 4
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

QUAD_CORNERS = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])


def shape_functions(n_nodes: int, xi: Sequence[float]) -> np.ndarray:
    """
    Linear triangle or bilinear quadrilateral shape functions.

    Parameters:
        n_nodes: 3 (triangle) or 4 (quadrilateral)
        xi: Reference coordinates

    Returns:
        Array of n_nodes shape function values
    """
    a, b = xi[0], xi[1]
    if n_nodes == 3:
        return np.array([1.0 - a - b, a, b])
    if n_nodes == 4:
        return 0.25 * (1.0 + a * QUAD_CORNERS[:, 0]) * (1.0 + b * QUAD_CORNERS[:, 1])
    raise ValueError(f"Unsupported element with {n_nodes} nodes")


def shape_function_derivatives(n_nodes: int, xi: Sequence[float]) -> np.ndarray:
    """Derivatives dN/dxi, shape (n_nodes, 2)."""
    a, b = xi[0], xi[1]
    if n_nodes == 3:
        return np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])
    if n_nodes == 4:
        dN = np.zeros((4, 2))
        dN[:, 0] = 0.25 * QUAD_CORNERS[:, 0] * (1.0 + b * QUAD_CORNERS[:, 1])
        dN[:, 1] = 0.25 * QUAD_CORNERS[:, 1] * (1.0 + a * QUAD_CORNERS[:, 0])
        return dN
    raise ValueError(f"Unsupported element with {n_nodes} nodes")


def local_coords_in_triangle(vertices: np.ndarray, point: Sequence[float]) -> np.ndarray:
    """
    Reference coordinates (a, b) of a 2D point in a triangle.

    Solves point = P0 + a (P1 - P0) + b (P2 - P0); points outside the
    triangle give coordinates outside the reference triangle.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    A = np.column_stack((vertices[1] - vertices[0], vertices[2] - vertices[0]))
    return np.linalg.solve(A, np.asarray(point, dtype=np.float64) - vertices[0])


def local_coords_in_quad(vertices: np.ndarray, point: Sequence[float],
                         max_iterations: int = 20, tolerance: float = 1e-12) -> np.ndarray:
    """
    Reference coordinates (xi, eta) of a 2D point in a bilinear quadrilateral.

    Newton-Raphson on x(xi, eta) = point, started at the element centre.
    Exact in one step for parallelograms.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    target = np.asarray(point, dtype=np.float64)
    xi = np.zeros(2)
    for _ in range(max_iterations):
        residual = shape_functions(4, xi) @ vertices - target
        J = vertices.T @ shape_function_derivatives(4, xi)
        delta = np.linalg.solve(J, -residual)
        xi += delta
        if np.linalg.norm(delta) < tolerance:
            break
    return xi


def local_coords(vertices: np.ndarray, point: Sequence[float]) -> np.ndarray:
    """Dispatch on the number of vertices (3 or 4)."""
    if len(vertices) == 3:
        return local_coords_in_triangle(vertices, point)
    return local_coords_in_quad(vertices, point)


class FEMesh:
    """
    Counterpart surface mesh.

    Parameters:
        nodes: Node coordinates, shape (n_nodes, 3) (2D input is padded with z = 0)
        elems: Flat connectivity of node ids
        num_nodes_per_elem: Number of nodes of every element (3 or 4)
        node_ids: Node ids used by elems; defaults to 0..n_nodes-1

    Attributes:
        direct_elem_table: Per element, array of node indices
        node_to_elem_table: Per node, list of element indices using it
    """

    def __init__(self, nodes: np.ndarray, elems: Sequence[int],
                 num_nodes_per_elem: Sequence[int],
                 node_ids: Optional[Sequence[int]] = None):
        nodes = np.atleast_2d(np.asarray(nodes, dtype=np.float64))
        if nodes.shape[1] == 2:
            nodes = np.column_stack((nodes, np.zeros(len(nodes))))
        if nodes.shape[1] != 3:
            raise ConfigurationError(f"Nodes must have 2 or 3 coordinates, got {nodes.shape[1]}")
        self.nodes = nodes
        self.node_ids = (np.arange(len(nodes)) if node_ids is None
                         else np.asarray(node_ids, dtype=int))
        if len(self.node_ids) != len(nodes):
            raise ConfigurationError("node_ids must have one id per node")
        self.elems = np.asarray(elems, dtype=int)
        self.num_nodes_per_elem = np.asarray(num_nodes_per_elem, dtype=int)

        if np.any((self.num_nodes_per_elem != 3) & (self.num_nodes_per_elem != 4)):
            raise ConfigurationError("Only linear triangles and quadrilaterals are supported")
        if self.num_nodes_per_elem.sum() != len(self.elems):
            raise ConfigurationError(
                f"Connectivity has {len(self.elems)} entries but the element sizes "
                f"add up to {self.num_nodes_per_elem.sum()}"
            )
        self._init_tables()

    def _init_tables(self):
        index_of = {int(node_id): i for i, node_id in enumerate(self.node_ids)}
        if len(index_of) != len(self.node_ids):
            raise ConfigurationError("Duplicate node ids in FE mesh")

        self.direct_elem_table: List[np.ndarray] = []
        self.node_to_elem_table: List[List[int]] = [[] for _ in range(self.n_nodes)]
        offset = 0
        for e, n in enumerate(self.num_nodes_per_elem):
            ids = self.elems[offset:offset + n]
            try:
                indices = np.array([index_of[int(i)] for i in ids], dtype=int)
            except KeyError as exc:
                raise ConfigurationError(f"Cannot find node ID {exc.args[0]} of element {e}") from exc
            self.direct_elem_table.append(indices)
            for node in indices:
                self.node_to_elem_table[node].append(e)
            offset += n

        orphans = sum(1 for elems in self.node_to_elem_table if not elems)
        if orphans:
            logger.warning("%d FE nodes do not belong to any element", orphans)

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_elements(self) -> int:
        return len(self.num_nodes_per_elem)

    def element_nodes(self, e: int) -> np.ndarray:
        """Node indices of element e."""
        return self.direct_elem_table[e]

    def element_coordinates(self, e: int) -> np.ndarray:
        """Node coordinates of element e, shape (n, 3)."""
        return self.nodes[self.direct_elem_table[e]]
