"""
B-spline basis function evaluation.

On a knot span [xi_s, xi_{s+1}) exactly the p+1 functions
N_{s-p,p}, ..., N_{s,p} are non-zero. They are built degree by degree
with the Cox-de Boor recursion

    N_{i,d}(xi) = (xi - xi_i)/(xi_{i+d} - xi_i) * N_{i,d-1}(xi)
                + (xi_{i+d+1} - xi)/(xi_{i+d+1} - xi_{i+1}) * N_{i+1,d-1}(xi)

and differentiated with

    N'_{i,d} = d/(xi_{i+d} - xi_i) * N_{i,d-1} - d/(xi_{i+d+1} - xi_{i+1}) * N_{i+1,d-1}

where quotients with a vanishing denominator are taken as zero. The k-th
derivative of the degree p functions follows by applying the second
relation k times to the degree p-k functions.

Surface (tensor-product) tables are built from two 1D derivative tables.
"""

import numpy as np
from typing import List, Optional, Tuple

from ..discretization.knot_vector import KnotVector


def _ratio(num: float, den: float) -> float:
    return num / den if den > 0.0 else 0.0


def _basis_by_degree(knots: np.ndarray, span: int, xi: float, p: int) -> List[np.ndarray]:
    """Non-zero functions on the span for every degree 0..p."""
    levels = [np.ones(1)]
    for d in range(1, p + 1):
        lower = levels[-1]
        values = np.zeros(d + 1)
        for j in range(d + 1):
            i = span - d + j
            if j > 0:
                values[j] += _ratio(xi - knots[i], knots[i + d] - knots[i]) * lower[j - 1]
            if j < d:
                values[j] += _ratio(knots[i + d + 1] - xi, knots[i + d + 1] - knots[i + 1]) * lower[j]
        levels.append(values)
    return levels


def _differentiate(knots: np.ndarray, span: int, lower: np.ndarray, d: int) -> np.ndarray:
    """Map degree d-1 coefficients on the span to the derivative of the degree d functions."""
    result = np.zeros(d + 1)
    for j in range(d + 1):
        i = span - d + j
        if j > 0:
            result[j] += d * _ratio(lower[j - 1], knots[i + d] - knots[i])
        if j < d:
            result[j] -= d * _ratio(lower[j], knots[i + d + 1] - knots[i + 1])
    return result


def eval_basis_1d(kv: KnotVector, xi: float,
                  span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate all non-zero B-spline basis functions at a parameter value.

    Returns:
        Array of shape (p+1,) containing N_{span-p,p}(xi) to N_{span,p}(xi)
    """
    if span is None:
        span = kv.find_span(xi)
    return _basis_by_degree(kv.knots, span, kv.clamp(xi), kv.degree)[-1]


def eval_basis_ders_1d(kv: KnotVector, xi: float, n_ders: int,
                       span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate B-spline basis functions and derivatives at a parameter value.

    Parameters:
        kv: Knot vector
        xi: Parameter value
        n_ders: Number of derivatives to compute (0 = just values)
        span: Optional pre-computed span index

    Returns:
        Array of shape (n_ders+1, p+1) where result[k, j] is the k-th derivative
        of the j-th non-zero basis function. Derivatives above the degree
        are identically zero.
    """
    p = kv.degree
    if span is None:
        span = kv.find_span(xi)
    levels = _basis_by_degree(kv.knots, span, kv.clamp(xi), p)

    ders = np.zeros((n_ders + 1, p + 1))
    for k in range(min(n_ders, p) + 1):
        coefficients = levels[p - k]
        for d in range(p - k + 1, p + 1):
            coefficients = _differentiate(kv.knots, span, coefficients, d)
        ders[k] = coefficients
    return ders


def eval_basis_ders_2d(kv_u: KnotVector, kv_v: KnotVector,
                       u: float, v: float, n_ders: int,
                       spans: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Tensor-product B-spline basis functions and mixed partial derivatives.

    Parameters:
        kv_u, kv_v: Knot vectors in u and v
        u, v: Parameter values
        n_ders: Highest total derivative order k + l
        spans: Optional pre-computed (span_u, span_v)

    Returns:
        Array D of shape (n_ders+1, n_ders+1, (p+1)*(q+1)) with
        D[k, l, j*(p+1)+i] = d^{k+l} N_i(u) N_j(v) / du^k dv^l.
        Entries with k + l > n_ders are left at zero.
    """
    if spans is None:
        spans = (kv_u.find_span(u), kv_v.find_span(v))
    Nu = eval_basis_ders_1d(kv_u, u, n_ders, spans[0])
    Nv = eval_basis_ders_1d(kv_v, v, n_ders, spans[1])

    n_local = Nu.shape[1] * Nv.shape[1]
    table = np.zeros((n_ders + 1, n_ders + 1, n_local))
    for k in range(n_ders + 1):
        for l in range(n_ders + 1 - k):
            # u index runs fastest
            table[k, l, :] = np.outer(Nv[l], Nu[k]).ravel()
    return table
