"""
Trimming loops in the parameter plane of a patch.

A trimming loop is an ordered, closed chain of curves in (u, v). Each curve
is either a polyline or a 2D NURBS curve; loops are linearized into closed
polylines before clipping.

Fill rule: counter-clockwise loops bound material, clockwise loops cut
holes (positive fill). The trimmed region is therefore the union of the
counter-clockwise loops minus the union of the clockwise ones.
"""

import logging
from typing import List, Sequence, Union

import numpy as np
from shapely.geometry import Point, Polygon
from shapely.ops import unary_union

from .nurbs import NURBSCurve

logger = logging.getLogger(__name__)


class TrimmingCurve:
    """
    One curve of a trimming loop.

    Parameters:
        curve: Either an (m, 2) array of polyline points or a NURBSCurve
               with 2D control points in the parameter plane
        n_samples_per_span: Sampling density for NURBS curves
    """

    def __init__(self, curve: Union[np.ndarray, NURBSCurve],
                 n_samples_per_span: int = 10):
        self.curve = curve
        self.n_samples_per_span = n_samples_per_span
        if not isinstance(curve, NURBSCurve):
            points = np.asarray(curve, dtype=np.float64)
            if points.ndim != 2 or points.shape[1] != 2 or len(points) < 2:
                raise ValueError("Polyline trimming curve needs an (m >= 2, 2) array")
            self.curve = points

    def polyline(self) -> np.ndarray:
        """Points of the curve as an (m, 2) array."""
        if isinstance(self.curve, NURBSCurve):
            return self.curve.linearize(self.n_samples_per_span)[:, :2]
        return self.curve.copy()


class TrimmingLoop:
    """Closed chain of trimming curves."""

    def __init__(self, curves: Sequence[Union[TrimmingCurve, np.ndarray, NURBSCurve]]):
        if len(curves) == 0:
            raise ValueError("A trimming loop needs at least one curve")
        self.curves = [c if isinstance(c, TrimmingCurve) else TrimmingCurve(c)
                       for c in curves]
        self._polyline = None

    def polyline(self) -> np.ndarray:
        """
        Closed polyline of the loop without the repeated closing point.

        Consecutive curves are chained; the start of a curve that coincides
        with the end of the previous one is dropped.
        """
        if self._polyline is None:
            points = []
            for curve in self.curves:
                pts = curve.polyline()
                if points and np.allclose(points[-1], pts[0]):
                    pts = pts[1:]
                points.extend(pts)
            points = np.array(points)
            if len(points) > 1 and np.allclose(points[0], points[-1]):
                points = points[:-1]
            if len(points) < 3:
                raise ValueError("Trimming loop degenerates to fewer than 3 points")
            self._polyline = points
        return self._polyline

    @property
    def signed_area(self) -> float:
        """Shoelace area, positive for counter-clockwise loops."""
        p = self.polyline()
        x, y = p[:, 0], p[:, 1]
        return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))

    @property
    def is_outer(self) -> bool:
        return self.signed_area > 0.0


class Trimming:
    """
    All trimming loops of a patch and the resulting trimmed region.

    Attributes:
        loops: Trimming loops in input order
        region: shapely geometry of the trimmed area in (u, v)
    """

    def __init__(self, loops: Sequence[TrimmingLoop]):
        self.loops = list(loops)
        self._region = None

    @property
    def n_loops(self) -> int:
        return len(self.loops)

    @property
    def region(self):
        if self._region is None:
            outer = [Polygon(loop.polyline()) for loop in self.loops if loop.is_outer]
            holes = [Polygon(loop.polyline()) for loop in self.loops if not loop.is_outer]
            if not outer:
                raise ValueError("Trimming has no counter-clockwise (outer) loop")
            region = unary_union([p.buffer(0) for p in outer])
            if holes:
                region = region.difference(unary_union([p.buffer(0) for p in holes]))
            logger.debug("Trimmed region: %d outer loop(s), %d hole(s), area %.6g",
                         len(outer), len(holes), region.area)
            self._region = region
        return self._region

    def contains(self, u: float, v: float, tol: float = 1e-10) -> bool:
        """Whether (u, v) lies in the trimmed region (boundary included)."""
        return self.region.distance(Point(u, v)) <= tol

    def polylines(self) -> List[np.ndarray]:
        return [loop.polyline() for loop in self.loops]
