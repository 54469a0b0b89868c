"""
Gauss quadrature rules for mortar integration.

Three families are needed:
- 1D Gauss-Legendre on [0, 1], used along patch interface curves
- tensor-product Gauss-Legendre on the reference quadrilateral [-1, 1]^2
  (weights sum to 4), used for convex quadrilateral fragments
- rules on the reference triangle {(a, b): a, b >= 0, a + b <= 1}
  (weights sum to 1/2), used for triangular fragments

n points of Gauss-Legendre integrate polynomials up to degree 2n-1 exactly.

Triangle rules: the symmetric rules with 1, 3, 6 and 7 points (exact to
degree 1, 2, 4 and 5), and for any other square count m = n^2 the
collapsed (Duffy) product rule

    a = s,  b = t (1 - s),  w = w_s w_t (1 - s)

with s, t Gauss-Legendre on [0, 1], exact to degree 2n - 2.

Usage:
    points, weights = gauss_legendre_1d(n)       # 1D on [0,1]
    rule = GaussQuadrature.triangle(16)          # 16 points on the triangle
    rule = GaussQuadrature.quad(25)              # 5x5 points on [-1,1]^2
"""

import numpy as np
from typing import Tuple
from functools import lru_cache


def _read_only(*arrays: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Cached rules are shared between callers and must not be modified."""
    for array in arrays:
        array.setflags(write=False)
    return arrays


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where:
        - points: Array of n quadrature points in [0, 1]
        - weights: Array of n quadrature weights (sum to 1)
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")

    # Standard points on [-1, 1] mapped by x = (xi + 1) / 2
    points_std, weights_std = np.polynomial.legendre.leggauss(n)
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std

    return _read_only(points, weights)


def _square_root(n_points: int) -> int:
    n = int(round(np.sqrt(n_points)))
    if n < 1 or n * n != n_points:
        raise ValueError(
            f"Unsupported number of Gauss points: {n_points}. "
            f"Product rules need a square number of points."
        )
    return n


@lru_cache(maxsize=16)
def gauss_quad(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tensor-product Gauss-Legendre rule on [-1, 1]^2.

    Parameters:
        n_points: Total number of points, a square number n^2

    Returns:
        (points, weights): arrays of shape (n^2, 2) and (n^2,), xi running fastest
    """
    n = _square_root(n_points)
    pts, wts = np.polynomial.legendre.leggauss(n)

    points = np.zeros((n * n, 2))
    weights = np.zeros(n * n)
    idx = 0
    for j in range(n):
        for i in range(n):
            points[idx] = (pts[i], pts[j])
            weights[idx] = wts[i] * wts[j]
            idx += 1

    return _read_only(points, weights)


def _symmetric_triangle_rule(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """Symmetric rules in area coordinates (weights normalized to 1)."""
    if n_points == 1:
        bary = [(1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0)]
        w = [1.0]
    elif n_points == 3:
        bary = [(2.0 / 3.0, 1.0 / 6.0, 1.0 / 6.0),
                (1.0 / 6.0, 2.0 / 3.0, 1.0 / 6.0),
                (1.0 / 6.0, 1.0 / 6.0, 2.0 / 3.0)]
        w = [1.0 / 3.0] * 3
    elif n_points == 6:
        a, wa = 0.445948490915965, 0.223381589678011
        b, wb = 0.091576213509771, 0.109951743655322
        bary = [(1 - 2 * a, a, a), (a, 1 - 2 * a, a), (a, a, 1 - 2 * a),
                (1 - 2 * b, b, b), (b, 1 - 2 * b, b), (b, b, 1 - 2 * b)]
        w = [wa] * 3 + [wb] * 3
    elif n_points == 7:
        a, wa = 0.470142064105115, 0.132394152788506
        b, wb = 0.101286507323456, 0.125939180544827
        bary = [(1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0),
                (1 - 2 * a, a, a), (a, 1 - 2 * a, a), (a, a, 1 - 2 * a),
                (1 - 2 * b, b, b), (b, 1 - 2 * b, b), (b, b, 1 - 2 * b)]
        w = [0.225] + [wa] * 3 + [wb] * 3
    else:
        raise KeyError(n_points)
    bary = np.array(bary)
    # (a, b) = weights of the 2nd and 3rd vertex
    return bary[:, 1:].copy(), np.array(w)


@lru_cache(maxsize=16)
def gauss_triangle(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Quadrature rule on the unit reference triangle.

    Parameters:
        n_points: 1, 3, 6, 7 (symmetric rules) or any square number
                  (collapsed product rule)

    Returns:
        (points, weights): arrays of shape (n_points, 2) and (n_points,);
        weights sum to the triangle area 1/2
    """
    try:
        points, weights = _symmetric_triangle_rule(n_points)
        return _read_only(points, 0.5 * weights)
    except KeyError:
        pass

    n = _square_root(n_points)
    s, ws = gauss_legendre_1d(n)
    points = np.zeros((n * n, 2))
    weights = np.zeros(n * n)
    idx = 0
    for i in range(n):
        for j in range(n):
            points[idx] = (s[i], s[j] * (1.0 - s[i]))
            weights[idx] = ws[i] * ws[j] * (1.0 - s[i])
            idx += 1

    return _read_only(points, weights)


class GaussQuadrature:
    """
    Quadrature rule on a reference triangle or quadrilateral.

    Attributes:
        shape: 'triangle' or 'quad'
        points: Array (n_points, 2) of reference coordinates
        weights: Array (n_points,) of weights
    """

    def __init__(self, shape: str, n_points: int):
        if shape == 'triangle':
            self.points, self.weights = gauss_triangle(n_points)
        elif shape == 'quad':
            self.points, self.weights = gauss_quad(n_points)
        else:
            raise ValueError(f"Unknown reference shape: {shape}")
        self.shape = shape

    @classmethod
    def triangle(cls, n_points: int) -> 'GaussQuadrature':
        return cls('triangle', n_points)

    @classmethod
    def quad(cls, n_points: int) -> 'GaussQuadrature':
        return cls('quad', n_points)

    @property
    def n_points(self) -> int:
        """Total number of quadrature points."""
        return len(self.weights)

    @property
    def n_vertices(self) -> int:
        return 3 if self.shape == 'triangle' else 4

    def __iter__(self):
        return zip(self.points, self.weights)


def is_supported_triangle_rule(n_points: int) -> bool:
    if n_points in (1, 3, 6, 7):
        return True
    n = int(round(np.sqrt(n_points)))
    return n >= 1 and n * n == n_points


def is_supported_quad_rule(n_points: int) -> bool:
    n = int(round(np.sqrt(n_points)))
    return n >= 1 and n * n == n_points
