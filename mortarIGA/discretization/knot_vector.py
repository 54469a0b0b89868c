"""
Univariate knot vectors of the patch parametrizations.

Notation: p is the degree, n = len(knots) - p - 1 the number of basis
functions and [knots[p], knots[n]] the parametric domain. Only spans of
non-zero length are elements; a point on an interior knot belongs to the
span on its right, a point on the upper end to the last element.

Parameters that fall slightly outside the domain (projection iterates,
clipped polygon vertices) are clamped back when they are within
KNOT_SPAN_TOLERANCE of the end knots. Anything farther out is an error.
"""

import numpy as np
from typing import List, Tuple
from dataclasses import dataclass

from ..errors import KnotSpanError

KNOT_SPAN_TOLERANCE = 1e-6


@dataclass
class KnotVector:
    """
    Knot sequence together with its degree.

    Attributes:
        knots: Non-decreasing knot values
        degree: Polynomial degree p
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        self.knots = np.asarray(self.knots, dtype=np.float64)
        self._check()
        lengths = np.diff(self.knots[self.degree:self.n_basis + 1])
        self._element_spans = [self.degree + int(i) for i in np.flatnonzero(lengths > 0)]

    def _check(self):
        p, m = self.degree, len(self.knots)
        if p < 0:
            raise ValueError(f"Degree must be non-negative, got {p}.")
        if m < 2 * p + 2:
            raise ValueError(f"A degree {p} knot vector needs {2 * p + 2} knots or more, got {m}.")
        if np.any(np.diff(self.knots) < 0):
            raise ValueError("Knot values must not decrease.")
        if self.knots[p] >= self.knots[m - p - 1]:
            raise ValueError("Parametric domain of the knot vector has zero length.")

    @property
    def n_basis(self) -> int:
        return len(self.knots) - self.degree - 1

    @property
    def n_elements(self) -> int:
        return len(self._element_spans)

    @property
    def element_spans(self) -> List[int]:
        """Index i of every element [knots[i], knots[i+1]]."""
        return list(self._element_spans)

    @property
    def elements(self) -> List[Tuple[float, float]]:
        """Element intervals in parametric order."""
        return [(self.knots[i], self.knots[i + 1]) for i in self._element_spans]

    @property
    def unique_knots(self) -> np.ndarray:
        """Breakpoints of the domain, element ends included."""
        return np.unique(self.knots[self.degree:self.n_basis + 1])

    @property
    def domain(self) -> Tuple[float, float]:
        return float(self.knots[self.degree]), float(self.knots[self.n_basis])

    def clamp(self, xi: float, tol: float = KNOT_SPAN_TOLERANCE) -> float:
        """
        Pull xi back into the domain when it lies at most tol outside.

        Raises:
            KnotSpanError: if xi lies farther than tol outside the domain
        """
        lower, upper = self.domain
        if lower - tol > xi or xi > upper + tol:
            raise KnotSpanError(xi, self.domain)
        return min(max(xi, lower), upper)

    def find_span(self, xi: float) -> int:
        """
        Index i of the element [knots[i], knots[i+1]) that contains xi.

        Repeated interior knots are skipped, so the returned span always
        has non-zero length. The last element is closed on the right.

        Raises:
            KnotSpanError: if xi lies outside the domain beyond tolerance
        """
        xi = self.clamp(xi)
        span = int(np.searchsorted(self.knots, xi, side='right')) - 1
        return min(max(span, self._element_spans[0]), self._element_spans[-1])

    def greville_abscissae(self) -> np.ndarray:
        """
        Parameter at which each basis function is anchored.

        Entry i is the mean of knots[i+1], ..., knots[i+p]. Degree zero
        bases use the span midpoints instead.
        """
        p, n = self.degree, self.n_basis
        if p == 0:
            return 0.5 * (self.knots[:n] + self.knots[1:n + 1])
        running = np.concatenate(([0.0], np.cumsum(self.knots)))
        return (running[p + 1:n + p + 1] - running[1:n + 1]) / p


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Clamped knot vector with equally spaced interior knots.

    Both end knots are repeated degree + 1 times so the first and last
    control points are interpolated.
    """
    n_interior = n_basis - degree - 1
    if n_interior < 0:
        raise ValueError(f"{n_basis} basis functions are too few for degree {degree}.")

    start, end = domain
    interior = np.linspace(start, end, n_interior + 2)[1:-1]
    knots = np.concatenate((np.full(degree + 1, start), interior, np.full(degree + 1, end)))
    return KnotVector(knots, degree)
