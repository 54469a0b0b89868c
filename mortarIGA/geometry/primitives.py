"""
Primitive geometry factory functions.

Factories for the patches and counterpart meshes used in examples and
tests:
- unit square and rectangles (polynomial B-spline patches)
- quarter annulus (rational patch with exact circular arcs)
- rectangular trimming and plates with a rectangular hole
- structured quadrilateral and triangle FE meshes
"""

import numpy as np
from typing import Optional, Tuple

from ..discretization.fe_mesh import FEMesh
from ..discretization.knot_vector import KnotVector, make_open_knot_vector
from .patch import PatchSurface
from .trimming import Trimming, TrimmingLoop


def make_nurbs_unit_square(p: int = 2, n_elem_xi: int = 4, n_elem_eta: int = 4,
                           trimming: Optional[Trimming] = None,
                           dof_offset: int = 0) -> PatchSurface:
    """
    Create a patch representing the unit square [0,1]^2 in the plane z = 0.

    Control points sit at the Greville abscissae, so the geometric map is
    the identity: S(u, v) = (u, v, 0).

    Parameters:
        p: Polynomial degree in both directions
        n_elem_xi: Number of elements in xi direction
        n_elem_eta: Number of elements in eta direction
        trimming: Optional trimming of the patch
        dof_offset: Global DOF index of the first control point

    Returns:
        PatchSurface representing the unit square
    """
    return make_nurbs_rectangle((0.0, 1.0), (0.0, 1.0), p, n_elem_xi, n_elem_eta,
                                trimming=trimming, dof_offset=dof_offset)


def make_nurbs_rectangle(x_range: Tuple[float, float] = (0.0, 1.0),
                         y_range: Tuple[float, float] = (0.0, 1.0),
                         p: int = 2,
                         n_elem_xi: int = 4,
                         n_elem_eta: int = 4,
                         z: float = 0.0,
                         trimming: Optional[Trimming] = None,
                         dof_offset: int = 0) -> PatchSurface:
    """
    Create a patch representing the rectangle x_range x y_range at height z.

    The parametric domain is [0,1]^2 and the map is affine.
    """
    n_basis_xi = n_elem_xi + p
    n_basis_eta = n_elem_eta + p

    kv_xi = make_open_knot_vector(n_basis_xi, p, domain=(0.0, 1.0))
    kv_eta = make_open_knot_vector(n_basis_eta, p, domain=(0.0, 1.0))

    greville_xi = kv_xi.greville_abscissae()
    greville_eta = kv_eta.greville_abscissae()

    x0, x1 = x_range
    y0, y1 = y_range
    control_points = np.zeros((n_basis_xi * n_basis_eta, 3))

    idx = 0
    for j in range(n_basis_eta):
        for i in range(n_basis_xi):
            control_points[idx, 0] = x0 + greville_xi[i] * (x1 - x0)
            control_points[idx, 1] = y0 + greville_eta[j] * (y1 - y0)
            control_points[idx, 2] = z
            idx += 1

    n_total = n_basis_xi * n_basis_eta
    return PatchSurface(kv_xi, kv_eta, control_points, weights=np.ones(n_total),
                        trimming=trimming,
                        dof_indices=np.arange(dof_offset, dof_offset + n_total))


def make_nurbs_quarter_annulus(inner_radius: float = 0.5,
                               outer_radius: float = 1.0,
                               p_radial: int = 1,
                               n_elem_radial: int = 1,
                               dof_offset: int = 0) -> PatchSurface:
    """
    Create a rational patch representing a quarter annulus.

    - xi (radial): 0 at inner radius, 1 at outer radius
    - eta (angular): 0 at angle 0, 1 at angle 90 degrees (degree 2,
      middle control point weight 1/sqrt(2))

    Returns:
        PatchSurface whose boundaries in eta are exact circular arcs
    """
    n_basis_xi = n_elem_radial + p_radial
    kv_xi = make_open_knot_vector(n_basis_xi, p_radial, domain=(0.0, 1.0))
    kv_eta = KnotVector(np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), 2)

    greville_xi = kv_xi.greville_abscissae()
    w_diag = 1.0 / np.sqrt(2.0)
    directions = [(1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]

    control_points = np.zeros((n_basis_xi * 3, 3))
    weights = np.ones(n_basis_xi * 3)
    idx = 0
    for j in range(3):
        for i in range(n_basis_xi):
            r = inner_radius + greville_xi[i] * (outer_radius - inner_radius)
            control_points[idx, :2] = r * np.array(directions[j])
            if j == 1:
                weights[idx] = w_diag
            idx += 1

    return PatchSurface(kv_xi, kv_eta, control_points, weights=weights,
                        dof_indices=np.arange(dof_offset, dof_offset + len(weights)))


def make_rectangular_trimming(domain: Tuple[Tuple[float, float], Tuple[float, float]] = ((0.0, 1.0), (0.0, 1.0)),
                              hole: Optional[Tuple[Tuple[float, float], Tuple[float, float]]] = None) -> Trimming:
    """
    Trimming made of a counter-clockwise outer rectangle and an optional
    clockwise rectangular hole, both given as ((u0, u1), (v0, v1)).
    """
    (u0, u1), (v0, v1) = domain
    outer = np.array([[u0, v0], [u1, v0], [u1, v1], [u0, v1], [u0, v0]])
    loops = [TrimmingLoop([outer])]
    if hole is not None:
        (a0, a1), (b0, b1) = hole
        inner = np.array([[a0, b0], [a0, b1], [a1, b1], [a1, b0], [a0, b0]])
        loops.append(TrimmingLoop([inner]))
    return Trimming(loops)


def _grid_nodes(x_range, y_range, nx, ny, z):
    xs = np.linspace(x_range[0], x_range[1], nx + 1)
    ys = np.linspace(y_range[0], y_range[1], ny + 1)
    return np.array([(x, y, z) for y in ys for x in xs])


def make_fe_quad_mesh(x_range: Tuple[float, float] = (0.0, 1.0),
                      y_range: Tuple[float, float] = (0.0, 1.0),
                      nx: int = 2, ny: int = 2, z: float = 0.0,
                      first_node_id: int = 1) -> FEMesh:
    """
    Structured mesh of nx x ny bilinear quadrilaterals (counter-clockwise).

    Node ids start at first_node_id to exercise the id-to-index table.
    """
    nodes = _grid_nodes(x_range, y_range, nx, ny, z)
    node_ids = np.arange(first_node_id, first_node_id + len(nodes))
    elems = []
    for j in range(ny):
        for i in range(nx):
            n0 = j * (nx + 1) + i
            elems.extend(node_ids[[n0, n0 + 1, n0 + nx + 2, n0 + nx + 1]])
    return FEMesh(nodes, elems, [4] * (nx * ny), node_ids)


def make_fe_triangle_mesh(x_range: Tuple[float, float] = (0.0, 1.0),
                          y_range: Tuple[float, float] = (0.0, 1.0),
                          nx: int = 2, ny: int = 2, z: float = 0.0,
                          first_node_id: int = 1) -> FEMesh:
    """Structured mesh of 2 * nx * ny linear triangles (counter-clockwise)."""
    nodes = _grid_nodes(x_range, y_range, nx, ny, z)
    node_ids = np.arange(first_node_id, first_node_id + len(nodes))
    elems = []
    for j in range(ny):
        for i in range(nx):
            n0 = j * (nx + 1) + i
            n1, n2, n3 = n0 + 1, n0 + nx + 2, n0 + nx + 1
            elems.extend(node_ids[[n0, n1, n2]])
            elems.extend(node_ids[[n0, n2, n3]])
    return FEMesh(nodes, elems, [3] * (2 * nx * ny), node_ids)


def make_plate_patch(x_range: Tuple[float, float] = (0.0, 1.0),
                     y_range: Tuple[float, float] = (0.0, 1.0),
                     hole: Tuple[Tuple[float, float], Tuple[float, float]] = ((0.25, 0.75), (0.25, 0.75)),
                     p: int = 2, n_elem_xi: int = 4, n_elem_eta: int = 4,
                     dof_offset: int = 0) -> PatchSurface:
    """
    Rectangular plate with a rectangular hole cut by trimming.

    The hole is given in parameter space ((u0, u1), (v0, v1)) of [0,1]^2;
    the untrimmed surface still covers the hole.
    """
    trimming = make_rectangular_trimming(hole=hole)
    return make_nurbs_rectangle(x_range, y_range, p, n_elem_xi, n_elem_eta,
                                trimming=trimming, dof_offset=dof_offset)
