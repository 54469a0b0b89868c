"""
Trimmed NURBS surface patch.

A patch maps the parameter rectangle [u0, u1] x [v0, v1] to Cartesian
space:

    S(u, v) = sum_a R_a(u, v) * P_a

with R_a the (rational) basis of mortarIGA.geometry.nurbs. Trimming loops
restrict the material region to a subset of the rectangle; evaluation and
projection always act on the untrimmed surface, the trimmed region only
enters through clipping.

Operations used by the mapper:
- point projection: Newton-Raphson on the orthogonality conditions
      (S - P) . S_u = 0,   (S - P) . S_v = 0
- boundary projection: intersection of a physical segment P_in -> P_out
  with the image of the domain boundary, by Newton-Raphson on the
  line/edge closest-point conditions or, as a slower fallback, by
  bisection along the segment
- bounding box test and grid-sampled initial guesses
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..discretization.control_point import ControlPoint, create_control_points_from_array
from ..discretization.knot_vector import KnotVector
from .nurbs import make_basis_2d
from .trimming import Trimming, TrimmingLoop

logger = logging.getLogger(__name__)


@dataclass
class PointProjection:
    """
    Result of projecting a Cartesian point on a patch.

    Attributes:
        u, v: Parametric location (clamped into the domain)
        point: Surface point S(u, v)
        converged: Orthogonality (or coincidence) reached within tolerance
        residual_converged: Newton update stagnated below tolerance
        distance: |S(u, v) - P|
    """
    u: float
    v: float
    point: np.ndarray
    converged: bool
    residual_converged: bool
    distance: float


@dataclass
class BoundaryProjection:
    """
    Intersection of a segment P_in -> P_out with the patch boundary.

    Attributes:
        u, v: Parametric location of the hit on the domain boundary
        div: Fraction of the segment where the boundary is hit, in [0, 1]
        distance: Distance between the segment point and the surface
        converged: Whether the algorithm converged
    """
    u: float
    v: float
    div: float
    distance: float
    converged: bool


class PatchSurface:
    """
    One trimmed NURBS surface patch.

    Parameters:
        kv_u, kv_v: Knot vectors
        control_points: List of ControlPoint, or array (n_u * n_v, 2|3) in
                        control net order (index j * n_u + i)
        weights: Optional weights when control_points is an array
        trimming: Optional Trimming or list of TrimmingLoop
        dof_indices: Optional global DOF indices when control_points is an array
    """

    def __init__(self, kv_u: KnotVector, kv_v: KnotVector,
                 control_points: Union[Sequence[ControlPoint], np.ndarray],
                 weights: Optional[np.ndarray] = None,
                 trimming: Optional[Union[Trimming, Sequence[TrimmingLoop]]] = None,
                 dof_indices: Optional[np.ndarray] = None):
        n_expected = kv_u.n_basis * kv_v.n_basis
        if len(control_points) > 0 and isinstance(control_points[0], ControlPoint):
            net = list(control_points)
        else:
            net = create_control_points_from_array(control_points, weights, dof_indices)
        if len(net) != n_expected:
            raise ValueError(
                f"Expected {kv_u.n_basis} x {kv_v.n_basis} = {n_expected} control points, "
                f"got {len(net)}"
            )

        self.kv_u = kv_u
        self.kv_v = kv_v
        self.control_point_net: List[ControlPoint] = net
        self._coordinates = np.array([cp.coordinates for cp in net])
        self._weights = np.array([cp.weight for cp in net])
        self._dof_indices = np.array([cp.dof_index for cp in net], dtype=int)
        self.basis = make_basis_2d(kv_u, kv_v, self._weights)

        if trimming is not None and not isinstance(trimming, Trimming):
            trimming = Trimming(trimming)
        if trimming is not None and trimming.n_loops == 0:
            trimming = None
        self.trimming = trimming

        self._sample_cache: Dict[Tuple[int, int], Tuple[np.ndarray, np.ndarray]] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self.kv_u.degree, self.kv_v.degree)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """((u0, u1), (v0, v1))."""
        return (self.kv_u.domain, self.kv_v.domain)

    @property
    def n_control_points(self) -> int:
        return len(self.control_point_net)

    @property
    def control_points(self) -> np.ndarray:
        return self._coordinates

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def dof_indices(self) -> np.ndarray:
        """Global DOF index of every control point in net order."""
        return self._dof_indices

    @property
    def is_trimmed(self) -> bool:
        return self.trimming is not None

    @property
    def bounding_box(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis aligned box (min, max) of the control net; contains the surface."""
        return (self._coordinates.min(axis=0), self._coordinates.max(axis=0))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def clamp(self, u: float, v: float) -> Tuple[float, float]:
        """Clip (u, v) into the parameter rectangle."""
        (u0, u1), (v0, v1) = self.domain
        return (min(max(u, u0), u1), min(max(v, v0), v1))

    def local_basis(self, u: float, v: float, n_ders: int = 0,
                    spans: Optional[Tuple[int, int]] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Basis table and indices of the functions non-zero at (u, v).

        Parameters:
            u, v: Parametric location
            n_ders: Highest total derivative order
            spans: Optional knot span pair to evaluate in

        Returns:
            (table, cp_indices, dof_indices) where table has shape
            (n_ders+1, n_ders+1, n_local), cp_indices are control net indices
            and dof_indices the global DOF indices
        """
        if spans is None:
            spans = self.basis.find_span(u, v)
        table = self.basis.evaluate_with_derivatives(u, v, n_ders, spans)
        cp_indices = self.basis.basis_function_indices(*spans)
        return table, cp_indices, self._dof_indices[cp_indices]

    def surface_derivatives(self, u: float, v: float, n_ders: int = 1,
                            spans: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """
        Surface point and partial derivatives.

        Returns:
            Array D of shape (n_ders+1, n_ders+1, 3), D[k, l] = d^{k+l}S/du^k dv^l
        """
        table, cp_indices, _ = self.local_basis(u, v, n_ders, spans)
        return np.tensordot(table, self._coordinates[cp_indices], axes=([2], [0]))

    def eval_point(self, u: float, v: float) -> np.ndarray:
        """Cartesian point S(u, v)."""
        return self.surface_derivatives(u, v, 0)[0, 0]

    def base_vectors(self, u: float, v: float,
                     spans: Optional[Tuple[int, int]] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Point and covariant base vectors (S, G1 = S_u, G2 = S_v)."""
        D = self.surface_derivatives(u, v, 1, spans)
        return D[0, 0], D[1, 0], D[0, 1]

    def normal(self, u: float, v: float) -> np.ndarray:
        """Unit surface normal G1 x G2 / |G1 x G2|."""
        _, G1, G2 = self.base_vectors(u, v)
        n = np.cross(G1, G2)
        return n / np.linalg.norm(n)

    def is_inside_domain(self, u: float, v: float, tol: float = 0.0) -> bool:
        (u0, u1), (v0, v1) = self.domain
        return (u0 - tol <= u <= u1 + tol) and (v0 - tol <= v <= v1 + tol)

    def is_inside(self, u: float, v: float) -> bool:
        """In the parameter rectangle and, if trimmed, in the trimmed region."""
        if not self.is_inside_domain(u, v):
            return False
        return self.trimming is None or self.trimming.contains(u, v)

    def is_point_in_bounding_box(self, point: np.ndarray, tol: float) -> bool:
        """Whether point lies in the bounding box enlarged by tol in every direction."""
        lo, hi = self.bounding_box
        point = np.asarray(point, dtype=np.float64)
        return bool(np.all(point >= lo - tol) and np.all(point <= hi + tol))

    # ------------------------------------------------------------------
    # Sampling and initial guesses
    # ------------------------------------------------------------------

    def sample_grid(self, n_u: int, n_v: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Uniform parametric sampling of the untrimmed surface (cached).

        Returns:
            (params, points): arrays of shape (n_u * n_v, 2) and (n_u * n_v, 3)
        """
        key = (n_u, n_v)
        if key not in self._sample_cache:
            (u0, u1), (v0, v1) = self.domain
            us = np.linspace(u0, u1, max(n_u, 2))
            vs = np.linspace(v0, v1, max(n_v, 2))
            params = np.array([(u, v) for v in vs for u in us])
            points = np.array([self.eval_point(u, v) for u, v in params])
            self._sample_cache[key] = (params, points)
        return self._sample_cache[key]

    def find_initial_guess(self, point: np.ndarray, n_u: int, n_v: int) -> Tuple[float, float]:
        """Closest sample of an n_u x n_v parametric grid to point."""
        params, points = self.sample_grid(n_u, n_v)
        k = int(np.argmin(np.linalg.norm(points - np.asarray(point), axis=1)))
        return float(params[k, 0]), float(params[k, 1])

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def project_point(self, point: np.ndarray, u0: float, v0: float,
                      max_iterations: int = 20,
                      tolerance: float = 1e-6) -> PointProjection:
        """
        Orthogonal projection of a Cartesian point by Newton-Raphson.

        The iteration solves F(u, v) = [(S - P) . S_u, (S - P) . S_v] = 0 with
        the Jacobian

            [[S_u . S_u + R . S_uu,  S_u . S_v + R . S_uv],
             [S_u . S_v + R . S_uv,  S_v . S_v + R . S_vv]],   R = S - P.

        Iterates are clipped into the domain, so a point beyond the patch edge
        stagnates on the boundary: residual_converged is then True while
        converged stays False.

        Parameters:
            point: Cartesian point P
            u0, v0: Initial guess
            max_iterations: Iteration cap
            tolerance: Tolerance on the orthogonality cosines, the
                       coincidence distance and the relative update

        Returns:
            PointProjection
        """
        P = np.asarray(point, dtype=np.float64)
        (ua, ub), (va, vb) = self.domain
        scale = max(ub - ua, vb - va)
        u, v = self.clamp(u0, v0)
        converged = False
        residual_converged = False

        for _ in range(max_iterations):
            D = self.surface_derivatives(u, v, 2)
            converged = self._is_orthogonal(D, P, tolerance)
            if converged:
                residual_converged = True
                break

            S, Su, Sv = D[0, 0], D[1, 0], D[0, 1]
            R = S - P
            J = np.array([
                [Su @ Su + R @ D[2, 0], Su @ Sv + R @ D[1, 1]],
                [Su @ Sv + R @ D[1, 1], Sv @ Sv + R @ D[0, 2]],
            ])
            F = np.array([R @ Su, R @ Sv])
            try:
                du, dv = np.linalg.solve(J, -F)
            except np.linalg.LinAlgError:
                logger.debug("Singular projection Jacobian at (u, v) = (%g, %g)", u, v)
                break

            u_new, v_new = self.clamp(u + du, v + dv)
            step = np.hypot(u_new - u, v_new - v)
            u, v = u_new, v_new
            if step < tolerance * scale:
                residual_converged = True
                converged = self._is_orthogonal(self.surface_derivatives(u, v, 1), P, tolerance)
                break

        S = self.eval_point(u, v)
        return PointProjection(u=u, v=v, point=S, converged=converged,
                               residual_converged=residual_converged,
                               distance=float(np.linalg.norm(S - P)))

    @staticmethod
    def _is_orthogonal(D: np.ndarray, P: np.ndarray, tolerance: float) -> bool:
        R = D[0, 0] - P
        distance = np.linalg.norm(R)
        if distance < tolerance:
            return True
        Su, Sv = D[1, 0], D[0, 1]
        cos_u = abs(R @ Su) / (distance * np.linalg.norm(Su))
        cos_v = abs(R @ Sv) / (distance * np.linalg.norm(Sv))
        return cos_u < tolerance and cos_v < tolerance

    def _boundary_edges(self) -> List[Tuple[int, float]]:
        """Domain edges as (free direction, fixed parameter value)."""
        (u0, u1), (v0, v1) = self.domain
        # direction 0: u runs, v fixed; direction 1: v runs, u fixed
        return [(0, v0), (0, v1), (1, u0), (1, u1)]

    def project_on_boundary_newton(self, p_in: np.ndarray, p_out: np.ndarray,
                                   u: float, v: float,
                                   max_iterations: int = 20,
                                   tolerance: float = 1e-6) -> BoundaryProjection:
        """
        Intersect the segment p_in -> p_out with the patch boundary (Newton-Raphson).

        For every edge C(lam) of the domain boundary, solve for (lam, t) the
        closest-point conditions between C and the line P(t) = p_in + t d:

            (C - P) . C' = 0,   (C - P) . d = 0

        Edges whose solution has t outside [0, 1] are discarded; among the
        others the one closest to the line wins. A hit at t = 0 on an edge
        that already carries p_in is no crossing: it is only kept when no
        other edge qualifies.

        Parameters:
            p_in: Cartesian point whose projection (u, v) is inside the patch
            p_out: Cartesian point outside the patch
            u, v: Parametric location of p_in (initial guess on the edge)

        Returns:
            BoundaryProjection; converged is False when no edge qualifies
        """
        p_in = np.asarray(p_in, dtype=np.float64)
        d = np.asarray(p_out, dtype=np.float64) - p_in
        best = best_degenerate = None

        for direction, fixed in self._boundary_edges():
            kv = self.kv_u if direction == 0 else self.kv_v
            lo, hi = kv.domain
            lam = min(max(u if direction == 0 else v, lo), hi)
            t = 0.5
            edge_converged = False

            for _ in range(max_iterations):
                uv = (lam, fixed) if direction == 0 else (fixed, lam)
                D = self.surface_derivatives(uv[0], uv[1], 2)
                C = D[0, 0]
                dC = D[1, 0] if direction == 0 else D[0, 1]
                ddC = D[2, 0] if direction == 0 else D[0, 2]
                R = C - (p_in + t * d)
                J = np.array([
                    [dC @ dC + R @ ddC, -(d @ dC)],
                    [dC @ d, -(d @ d)],
                ])
                F = np.array([R @ dC, R @ d])
                try:
                    dlam, dt = np.linalg.solve(J, -F)
                except np.linalg.LinAlgError:
                    break
                lam_new = min(max(lam + dlam, lo), hi)
                t += dt
                step = abs(lam_new - lam)
                lam = lam_new
                if step < tolerance * (hi - lo) and abs(dt) < tolerance:
                    edge_converged = True
                    break

            if not edge_converged or t < -tolerance or t > 1.0 + tolerance:
                continue
            t = min(max(t, 0.0), 1.0)
            uv = (lam, fixed) if direction == 0 else (fixed, lam)
            distance = float(np.linalg.norm(self.eval_point(*uv) - (p_in + t * d)))
            hit = BoundaryProjection(u=uv[0], v=uv[1], div=t, distance=distance, converged=True)
            fixed_lo, fixed_hi = (self.kv_v if direction == 0 else self.kv_u).domain
            on_edge = abs((v if direction == 0 else u) - fixed) <= tolerance * (fixed_hi - fixed_lo)
            if on_edge or t <= tolerance:
                if best_degenerate is None or distance < best_degenerate.distance:
                    best_degenerate = hit
            elif best is None or distance < best.distance:
                best = hit

        crossing_tolerance = tolerance * max(float(np.linalg.norm(d)), 1.0)
        if best_degenerate is not None and (best is None or best.distance > crossing_tolerance):
            best = best_degenerate
        if best is None:
            return BoundaryProjection(u=u, v=v, div=0.0, distance=np.inf, converged=False)
        return best

    def project_on_boundary_bisection(self, p_in: np.ndarray, p_out: np.ndarray,
                                      u: float, v: float,
                                      max_iterations: int = 40,
                                      tolerance: float = 1e-6,
                                      max_distance: float = 1e-2) -> BoundaryProjection:
        """
        Intersect the segment p_in -> p_out with the patch boundary (bisection).

        A segment point P(t) counts as inside when its projection converges
        in the domain within max_distance. The bracket [0, 1] is halved
        until shorter than tolerance.

        Returns:
            BoundaryProjection; converged is False when p_out is itself
            inside or the bracket did not shrink below tolerance
        """
        p_in = np.asarray(p_in, dtype=np.float64)
        d = np.asarray(p_out, dtype=np.float64) - p_in

        def inside(projection: PointProjection) -> bool:
            return projection.converged and projection.distance < max_distance

        end = self.project_point(p_in + d, u, v)
        if inside(end):
            return BoundaryProjection(u=end.u, v=end.v, div=1.0,
                                      distance=end.distance, converged=False)

        lo, hi = 0.0, 1.0
        u_lo, v_lo = u, v
        for _ in range(max_iterations):
            if hi - lo < tolerance:
                break
            mid = 0.5 * (lo + hi)
            projection = self.project_point(p_in + mid * d, u_lo, v_lo)
            if inside(projection):
                lo, u_lo, v_lo = mid, projection.u, projection.v
            else:
                hi = mid

        div = 0.5 * (lo + hi)
        target = p_in + div * d
        projection = self.project_point(target, u_lo, v_lo)
        return BoundaryProjection(u=projection.u, v=projection.v, div=div,
                                  distance=projection.distance,
                                  converged=hi - lo < tolerance)
