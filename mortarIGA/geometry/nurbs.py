"""
Tensor-product B-spline and NURBS bases on a surface patch.

A NURBS basis function is

    R_a(u, v) = N_a(u, v) * w_a / W(u, v),    W = sum_b N_b(u, v) * w_b

where N_a are tensor-product B-spline functions and w_a positive weights.
The R_a form a partition of unity and are non-negative.

Derivatives of the quotient follow from the Leibniz rule applied to
N_a w_a = R_a W:

    R^{(k,l)} = ( A^{(k,l)}
                  - sum_{i=1..k} C(k,i) W^{(i,0)} R^{(k-i,l)}
                  - sum_{j=1..l} C(l,j) W^{(0,j)} R^{(k,l-j)}
                  - sum_{i=1..k} sum_{j=1..l} C(k,i) C(l,j) W^{(i,j)} R^{(k-i,l-j)} ) / W

Two variants share the same interface (find_span, evaluate,
evaluate_with_derivatives, basis_function_indices); make_basis_2d picks
the rational one only when the weights are not all equal.

The module also provides NURBSCurve, used for trimming curves in the
parameter plane of a patch.
"""

import math
import numpy as np
from typing import Optional, Tuple

from ..discretization.knot_vector import KnotVector
from ..errors import DegenerateDenominatorError
from .bspline import eval_basis_1d, eval_basis_ders_2d


class BSplineBasis2D:
    """
    Polynomial tensor-product basis.

    Attributes:
        kv_u, kv_v: Knot vectors in u and v
    """

    is_rational = False

    def __init__(self, kv_u: KnotVector, kv_v: KnotVector):
        self.kv_u = kv_u
        self.kv_v = kv_v

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self.kv_u.degree, self.kv_v.degree)

    @property
    def n_basis(self) -> Tuple[int, int]:
        """Number of basis functions per direction."""
        return (self.kv_u.n_basis, self.kv_v.n_basis)

    @property
    def n_local(self) -> int:
        """Number of basis functions non-zero on one knot span."""
        return (self.kv_u.degree + 1) * (self.kv_v.degree + 1)

    def find_span(self, u: float, v: float) -> Tuple[int, int]:
        return (self.kv_u.find_span(u), self.kv_v.find_span(v))

    def basis_function_indices(self, span_u: int, span_v: int) -> np.ndarray:
        """
        Global indices (j * n_u + i) of the functions non-zero on a span.

        The order matches the local ordering of evaluate().
        """
        p, q = self.degrees
        n_u = self.kv_u.n_basis
        i = np.arange(span_u - p, span_u + 1)
        j = np.arange(span_v - q, span_v + 1)
        return (j[:, None] * n_u + i[None, :]).ravel()

    def evaluate(self, u: float, v: float,
                 spans: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """Values of the non-zero basis functions, shape (n_local,)."""
        return self.evaluate_with_derivatives(u, v, 0, spans)[0, 0]

    def evaluate_with_derivatives(self, u: float, v: float, n_ders: int,
                                  spans: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """
        Basis functions and partial derivatives up to total order n_ders.

        Returns:
            Array D of shape (n_ders+1, n_ders+1, n_local) where
            D[k, l] holds d^{k+l}/du^k dv^l of the local functions.
        """
        return eval_basis_ders_2d(self.kv_u, self.kv_v, u, v, n_ders, spans)


class NURBSBasis2D(BSplineBasis2D):
    """
    Rational tensor-product basis.

    Attributes:
        weights: Control point weights in control net order, shape (n_u * n_v,)
    """

    is_rational = True

    def __init__(self, kv_u: KnotVector, kv_v: KnotVector, weights: np.ndarray):
        super().__init__(kv_u, kv_v)
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (kv_u.n_basis * kv_v.n_basis,):
            raise ValueError(
                f"Expected {kv_u.n_basis * kv_v.n_basis} weights, got {weights.shape}"
            )
        if np.any(weights <= 0.0):
            raise ValueError("NURBS weights must be positive.")
        self.weights = weights

    def evaluate_with_derivatives(self, u: float, v: float, n_ders: int,
                                  spans: Optional[Tuple[int, int]] = None) -> np.ndarray:
        if spans is None:
            spans = self.find_span(u, v)
        N = eval_basis_ders_2d(self.kv_u, self.kv_v, u, v, n_ders, spans)
        w = self.weights[self.basis_function_indices(*spans)]

        A = N * w[None, None, :]
        W = A.sum(axis=2)
        denominator = W[0, 0]
        if not np.isfinite(denominator) or abs(denominator) < 1e-14:
            raise DegenerateDenominatorError(
                f"NURBS weight function vanishes at (u, v) = ({u}, {v})"
            )

        R = np.zeros_like(N)
        for k in range(n_ders + 1):
            for l in range(n_ders + 1 - k):
                value = A[k, l].copy()
                for i in range(1, k + 1):
                    value -= math.comb(k, i) * W[i, 0] * R[k - i, l]
                for j in range(1, l + 1):
                    value -= math.comb(l, j) * W[0, j] * R[k, l - j]
                for i in range(1, k + 1):
                    for j in range(1, l + 1):
                        value -= math.comb(k, i) * math.comb(l, j) * W[i, j] * R[k - i, l - j]
                R[k, l] = value / denominator
        return R


def make_basis_2d(kv_u: KnotVector, kv_v: KnotVector,
                  weights: Optional[np.ndarray] = None) -> BSplineBasis2D:
    """Select the polynomial or the rational variant for the given weights."""
    if weights is None:
        return BSplineBasis2D(kv_u, kv_v)
    weights = np.asarray(weights, dtype=np.float64)
    if np.allclose(weights, weights.flat[0]) and weights.flat[0] > 0.0:
        # Constant weights cancel out of the quotient
        return BSplineBasis2D(kv_u, kv_v)
    return NURBSBasis2D(kv_u, kv_v, weights)


class NURBSCurve:
    """
    NURBS curve in arbitrary dimensional space.

    Used for trimming curves, where the "physical" space is the (u, v)
    parameter plane of a patch.
    """

    def __init__(self, knot_vector: KnotVector,
                 control_points: np.ndarray,
                 weights: Optional[np.ndarray] = None):
        """
        Parameters:
            knot_vector: KnotVector defining the basis
            control_points: Array of shape (n, d) where n = n_basis functions
            weights: Array of shape (n,), defaults to 1.0 (B-spline)
        """
        self.knot_vector = knot_vector
        self.control_points = np.atleast_2d(control_points).astype(np.float64)
        n = knot_vector.n_basis
        if self.control_points.shape[0] != n:
            raise ValueError(
                f"Expected {n} control points, got {self.control_points.shape[0]}"
            )
        self.weights = (np.ones(n) if weights is None
                        else np.asarray(weights, dtype=np.float64))

    @property
    def degree(self) -> int:
        return self.knot_vector.degree

    def eval_point(self, xi: float) -> np.ndarray:
        """Evaluate C(xi) = sum N_i w_i P_i / sum N_i w_i."""
        kv = self.knot_vector
        span = kv.find_span(xi)
        N = eval_basis_1d(kv, xi, span)
        idx = np.arange(span - kv.degree, span + 1)
        Nw = N * self.weights[idx]
        W = Nw.sum()
        if abs(W) < 1e-14:
            raise DegenerateDenominatorError(f"Curve weight function vanishes at {xi}")
        return Nw @ self.control_points[idx] / W

    def linearize(self, n_samples_per_span: int = 10) -> np.ndarray:
        """
        Sample the curve into a polyline.

        Straight (degree 1) curves are returned through their breakpoints only.

        Returns:
            Array of shape (m, d), first and last points at the curve ends
        """
        kv = self.knot_vector
        breakpoints = kv.unique_knots
        if self.degree == 1 and np.allclose(self.weights, self.weights[0]):
            params = breakpoints
        else:
            params = [breakpoints[0]]
            for a, b in zip(breakpoints[:-1], breakpoints[1:]):
                params.extend(np.linspace(a, b, n_samples_per_span + 1)[1:])
            params = np.asarray(params)
        return np.array([self.eval_point(t) for t in params])
