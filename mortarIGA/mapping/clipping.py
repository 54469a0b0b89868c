"""
Parametric polygons of the FE elements and their clipping.

Every FE element is turned into a polygon in the parameter plane of each
patch it projects on:

- full elements (all nodes projected on the patch) use the projected
  corner coordinates directly
- split elements (some nodes projected) are completed by intersecting the
  element edges with the patch boundary and extrapolating the outside
  corners along those edges

The polygon is then clipped by the patch domain, the trimmed region and
the knot span grid. The resulting fragments are triangulated unless they
are already a triangle or a convex quadrilateral, so that every fragment
can be integrated by a reference rule and lies in one knot span.

Polygon geometry uses shapely.
"""

import logging
from typing import List, Optional, Set, Tuple

import numpy as np
from shapely.geometry import Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import triangulate

from ..discretization.fe_mesh import FEMesh
from ..errors import BoundaryProjectionNonConvergence
from ..geometry.patch import BoundaryProjection, PatchSurface
from ..io.config import MapperConfig
from .projection import ProjectionResult

logger = logging.getLogger(__name__)

RATIO_TOLERANCE = 1e-6
TRIANGLE_CLEAN_TOLERANCE = 1e-8
DEFAULT_CLEAN_TOLERANCE = 1e-9


# ----------------------------------------------------------------------
# Polygon utilities
# ----------------------------------------------------------------------

def polygon_area(polygon: np.ndarray) -> float:
    """Signed shoelace area, positive for counter-clockwise polygons."""
    p = np.asarray(polygon, dtype=np.float64)
    if len(p) < 3:
        return 0.0
    x, y = p[:, 0], p[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def is_convex(polygon: np.ndarray, tol: float = 1e-14) -> bool:
    """Whether a polygon has no reflex corner (either orientation)."""
    p = np.asarray(polygon, dtype=np.float64)
    n = len(p)
    signs = set()
    for i in range(n):
        a, b, c = p[i - 1], p[i], p[(i + 1) % n]
        cross = (b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])
        if abs(cross) > tol:
            signs.add(cross > 0)
    return len(signs) <= 1


def clean_polygon(polygon: np.ndarray, tol: float = DEFAULT_CLEAN_TOLERANCE) -> np.ndarray:
    """
    Remove duplicate and collinear vertices.

    A vertex is dropped when it is closer than tol to its predecessor or
    to the segment joining its two neighbours. Repeats until stable.

    Returns:
        (k, 2) array, possibly with fewer than 3 vertices
    """
    points = [np.asarray(p, dtype=np.float64) for p in polygon]
    changed = True
    while changed and len(points) >= 3:
        changed = False
        for i in range(len(points)):
            prev, cur, nxt = points[i - 1], points[i], points[(i + 1) % len(points)]
            if np.linalg.norm(cur - prev) < tol or _distance_to_segment(cur, prev, nxt) < tol:
                del points[i]
                changed = True
                break
    if len(points) == 2 and np.linalg.norm(points[0] - points[1]) < tol:
        points = points[:1]
    return np.array(points).reshape(-1, 2)


def _distance_to_segment(p: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    ab = b - a
    length2 = ab @ ab
    if length2 == 0.0:
        return float(np.linalg.norm(p - a))
    t = min(max((p - a) @ ab / length2, 0.0), 1.0)
    return float(np.linalg.norm(p - (a + t * ab)))


def _to_shapely(polygon: np.ndarray) -> Polygon:
    return Polygon(np.asarray(polygon, dtype=np.float64)).buffer(0)


def _exterior(polygon: Polygon) -> np.ndarray:
    """Counter-clockwise exterior ring without the closing point."""
    coords = np.asarray(orient(polygon, 1.0).exterior.coords)[:-1]
    return coords[:, :2]


def _polygon_parts(geometry) -> List[np.ndarray]:
    """
    Split a clipping result into simple polygons.

    Parts with holes are triangulated; lines and points are dropped.
    """
    if geometry.is_empty:
        return []
    if geometry.geom_type == 'Polygon':
        if len(geometry.interiors):
            return [_exterior(t) for t in _triangulate_shapely(geometry)]
        return [_exterior(geometry)]
    if hasattr(geometry, 'geoms'):
        parts = []
        for geom in geometry.geoms:
            parts.extend(_polygon_parts(geom))
        return parts
    return []


def _triangulate_shapely(polygon: Polygon) -> List[Polygon]:
    """Delaunay triangles of the polygon vertices that lie inside the polygon."""
    return [t for t in triangulate(polygon)
            if polygon.contains(t.representative_point())]


def _ear_clipping(polygon: np.ndarray) -> List[np.ndarray]:
    p = np.asarray(polygon, dtype=np.float64)
    if polygon_area(p) < 0:
        p = p[::-1]
    indices = list(range(len(p)))
    triangles = []

    def is_ear(i_prev, i, i_next):
        a, b, c = p[i_prev], p[i], p[i_next]
        if polygon_area(np.array([a, b, c])) <= 0:
            return False
        for k in indices:
            if k in (i_prev, i, i_next):
                continue
            if _point_in_triangle(p[k], a, b, c):
                return False
        return True

    guard = 0
    while len(indices) > 3 and guard < len(p) ** 2:
        guard += 1
        for k in range(len(indices)):
            i_prev, i, i_next = indices[k - 1], indices[k], indices[(k + 1) % len(indices)]
            if is_ear(i_prev, i, i_next):
                triangles.append(p[[i_prev, i, i_next]])
                del indices[k]
                break
        else:
            break
    if len(indices) == 3:
        triangles.append(p[indices])
    return triangles


def _point_in_triangle(q, a, b, c) -> bool:
    d1 = (q[0] - b[0]) * (a[1] - b[1]) - (a[0] - b[0]) * (q[1] - b[1])
    d2 = (q[0] - c[0]) * (b[1] - c[1]) - (b[0] - c[0]) * (q[1] - c[1])
    d3 = (q[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (q[1] - a[1])
    has_neg = d1 < 0 or d2 < 0 or d3 < 0
    has_pos = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_neg and has_pos)


def triangulate_polygon(polygon: np.ndarray) -> List[np.ndarray]:
    """
    Split a polygon into pieces integrable by a reference rule.

    Triangles and convex quadrilaterals are returned unchanged. Other
    polygons are triangulated with shapely (vertex Delaunay restricted to
    the polygon); when that does not tile the polygon, ear clipping is used.
    """
    polygon = np.asarray(polygon, dtype=np.float64)
    if len(polygon) < 4 or (len(polygon) == 4 and is_convex(polygon)):
        return [polygon]

    shape = _to_shapely(polygon)
    triangles = _triangulate_shapely(shape)
    covered = sum(t.area for t in triangles)
    if triangles and abs(covered - shape.area) <= 1e-10 * max(shape.area, 1.0):
        return [_exterior(t) for t in triangles]
    logger.debug("Delaunay triangulation does not tile polygon, using ear clipping")
    return _ear_clipping(polygon)


# ----------------------------------------------------------------------
# Clipping
# ----------------------------------------------------------------------

def clip_by_patch(polygon: np.ndarray, patch: PatchSurface) -> np.ndarray:
    """
    Intersection of a polygon with the parameter rectangle of the patch.

    Returns:
        The largest resulting part, or an empty (0, 2) array
    """
    (u0, u1), (v0, v1) = patch.domain
    parts = _polygon_parts(_to_shapely(polygon).intersection(box(u0, v0, u1, v1)))
    if not parts:
        return np.zeros((0, 2))
    return max(parts, key=lambda p: abs(polygon_area(p)))


def clip_by_trimming(polygon: np.ndarray, patch: PatchSurface) -> List[np.ndarray]:
    """Intersection with the trimmed region; zero or more polygons."""
    if not patch.is_trimmed:
        return [np.asarray(polygon, dtype=np.float64)]
    return _polygon_parts(_to_shapely(polygon).intersection(patch.trimming.region))


def knot_span_range(polygon: np.ndarray, patch: PatchSurface) -> Tuple[int, int, int, int]:
    """(min span u, max span u, min span v, max span v) over the polygon vertices."""
    spans_u = [patch.kv_u.find_span(u) for u, _ in polygon]
    spans_v = [patch.kv_v.find_span(v) for _, v in polygon]
    return min(spans_u), max(spans_u), min(spans_v), max(spans_v)


def clip_by_knot_spans(polygon: np.ndarray,
                       patch: PatchSurface) -> List[Tuple[np.ndarray, Tuple[int, int]]]:
    """
    Split a polygon along the knot lines.

    Returns:
        List of (fragment, (span_u, span_v)); the input polygon itself when
        all its vertices lie in one span. Spans of zero length are skipped.
    """
    min_u, max_u, min_v, max_v = knot_span_range(polygon, patch)
    if min_u == max_u and min_v == max_v:
        return [(np.asarray(polygon, dtype=np.float64), (min_u, min_v))]

    shape = _to_shapely(polygon)
    knots_u, knots_v = patch.kv_u.knots, patch.kv_v.knots
    fragments = []
    for span_u in range(min_u, max_u + 1):
        if knots_u[span_u] == knots_u[span_u + 1]:
            continue
        for span_v in range(min_v, max_v + 1):
            if knots_v[span_v] == knots_v[span_v + 1]:
                continue
            window = box(knots_u[span_u], knots_v[span_v], knots_u[span_u + 1], knots_v[span_v + 1])
            for part in _polygon_parts(shape.intersection(window)):
                fragments.append((part, (span_u, span_v)))
    return fragments


# ----------------------------------------------------------------------
# Element polygons
# ----------------------------------------------------------------------

def classify_element(elem_nodes: np.ndarray, projection: ProjectionResult,
                     n_patches: int) -> Tuple[Set[int], Set[int]]:
    """
    Patches an element projects on.

    Returns:
        (full, split): patches holding all the element nodes, and patches
        holding some but not all of them
    """
    full, split = set(), set()
    for patch_index in range(n_patches):
        inside = [projection.is_projected(node, patch_index) for node in elem_nodes]
        if all(inside):
            full.add(patch_index)
        elif any(inside):
            split.add(patch_index)
    return full, split


def build_full_polygon(elem_nodes: np.ndarray, projection: ProjectionResult,
                       patch_index: int) -> np.ndarray:
    """Projected corners of an element lying completely on a patch."""
    return np.array([projection.uv(node, patch_index) for node in elem_nodes])


def overlaps_patch(elem_nodes: np.ndarray, mesh: FEMesh, projection: ProjectionResult,
                   patch_index: int, patch: PatchSurface, config: MapperConfig,
                   tol: float = RATIO_TOLERANCE) -> bool:
    """
    Whether the element covers part of the patch, not just its boundary.

    The points halfway between the element centroid and each projected
    node are projected; one landing strictly inside the domain (and the
    trimmed region) within max_projection_distance is an overlap.
    """
    coords = mesh.nodes
    centroid = coords[elem_nodes].mean(axis=0)
    (u0, u1), (v0, v1) = patch.domain
    for node in elem_nodes:
        if not projection.is_projected(node, patch_index):
            continue
        u, v = projection.uv(node, patch_index)
        result = patch.project_point(0.5 * (centroid + coords[node]), u, v)
        if not result.converged or result.distance > config.projection.max_projection_distance:
            continue
        if min(result.u - u0, u1 - result.u, result.v - v0, v1 - result.v) > tol \
                and patch.is_inside(result.u, result.v):
            return True
    return False


def project_line_on_boundary(patch: PatchSurface, p_in: np.ndarray, p_out: np.ndarray,
                             u: float, v: float, config: MapperConfig) -> BoundaryProjection:
    """
    Boundary crossing of the segment p_in -> p_out.

    Newton-Raphson first; bisection when Newton fails or ends farther than
    max_projection_distance from the surface.
    """
    max_distance = config.projection.max_projection_distance
    newton = config.newton_raphson_boundary
    result = patch.project_on_boundary_newton(p_in, p_out, u, v,
                                              newton.max_iterations, newton.tolerance)
    if not result.converged or result.distance > max_distance:
        logger.debug("Boundary projection by Newton-Raphson did not converge, trying bisection")
        bisection = config.bisection
        result = patch.project_on_boundary_bisection(p_in, p_out, u, v,
                                                     bisection.max_iterations, bisection.tolerance,
                                                     max_distance=max_distance)
    if not result.converged:
        logger.warning("Point projection on patch boundary did not converge; relax the "
                       "boundary Newton-Raphson or bisection settings")
    elif result.distance > max_distance:
        logger.warning("Point projection on patch boundary found too far: distance %.3e "
                       "for a maximum of %.3e", result.distance, max_distance)
    return result


def build_boundary_polygon(elem: int, mesh: FEMesh, projection: ProjectionResult,
                           patch_index: int, patch: PatchSurface,
                           config: MapperConfig) -> Optional[np.ndarray]:
    """
    Parametric polygon of an element only partly projected on a patch.

    Corners inside the patch keep their projection. For a corner outside,
    the element edges towards inside corners are intersected with the
    patch boundary; the hit at fraction div of the edge is extrapolated
    to the corner: uv = uv_in + (uv_hit - uv_in) / div. When both
    neighbours are inside, the two extrapolated lines are intersected.

    Returns:
        (k, 2) polygon, or None when a boundary projection failed on a
        trimmed patch (the element is skipped on that patch)

    Raises:
        BoundaryProjectionNonConvergence: boundary projection failed on an
            untrimmed patch
    """
    nodes = mesh.element_nodes(elem)
    n = len(nodes)
    coords = mesh.nodes
    inside_nodes = [node for node in nodes if projection.is_projected(node, patch_index)]
    polygon = []

    for i in range(n):
        node, node_prev, node_next = nodes[i], nodes[(i - 1) % n], nodes[(i + 1) % n]
        if projection.is_projected(node, patch_index):
            polygon.append(projection.uv(node, patch_index))
            continue

        prev_in = projection.is_projected(node_prev, patch_index)
        next_in = projection.is_projected(node_next, patch_index)
        P1 = coords[node]
        converged = True
        div = 0.0
        uv = uv_in = None

        if prev_in and next_in:
            uv0_in = np.array(projection.uv(node_prev, patch_index))
            hit0 = project_line_on_boundary(patch, coords[node_prev], P1, *uv0_in, config)
            uv2_in = np.array(projection.uv(node_next, patch_index))
            hit2 = project_line_on_boundary(patch, coords[node_next], P1, *uv2_in, config)
            converged = hit2.converged
            uv0, uv2 = np.array([hit0.u, hit0.v]), np.array([hit2.u, hit2.v])
            d0, d2 = uv0_in - uv0, uv2_in - uv2
            denominator = d0[0] * d2[1] - d0[1] * d2[0]
            if hit0.div >= RATIO_TOLERANCE and hit2.div >= RATIO_TOLERANCE and abs(denominator) > RATIO_TOLERANCE:
                c0 = uv0_in[0] * uv0[1] - uv0_in[1] * uv0[0]
                c2 = uv2_in[0] * uv2[1] - uv2_in[1] * uv2[0]
                polygon.append(((c0 * d2[0] - d0[0] * c2) / denominator,
                                (c0 * d2[1] - d0[1] * c2) / denominator))
                continue
            if hit0.div >= RATIO_TOLERANCE:
                uv, uv_in, div = uv0, uv0_in, hit0.div
            elif hit2.div >= RATIO_TOLERANCE:
                uv, uv_in, div = uv2, uv2_in, hit2.div
        elif next_in or prev_in:
            neighbour = node_next if next_in else node_prev
            uv_in = np.array(projection.uv(neighbour, patch_index))
            hit = project_line_on_boundary(patch, coords[neighbour], P1, *uv_in, config)
            converged = hit.converged
            uv, div = np.array([hit.u, hit.v]), hit.div

        if div < RATIO_TOLERANCE:
            for other in inside_nodes:
                if div >= RATIO_TOLERANCE:
                    break
                if other in (node_prev, node_next):
                    continue
                uv_in = np.array(projection.uv(other, patch_index))
                hit = project_line_on_boundary(patch, coords[other], P1, *uv_in, config)
                converged = hit.converged
                uv, div = np.array([hit.u, hit.v]), hit.div

        if div >= RATIO_TOLERANCE:
            polygon.append(tuple(uv_in + (uv - uv_in) / div))

        if not converged:
            if patch.is_trimmed:
                logger.warning("Cannot find point projection on patch boundary; element %d "
                               "on patch %d not integrated and skipped", elem, patch_index)
                return None
            raise BoundaryProjectionNonConvergence(elem, patch_index, int(node), int(node_next))

    return np.array(polygon).reshape(-1, 2)
