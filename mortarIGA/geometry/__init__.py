"""
Geometry module: B-spline/NURBS bases, trimmed surface patches and
multipatch collections.
"""

from .nurbs import BSplineBasis2D, NURBSBasis2D, NURBSCurve, make_basis_2d
from .trimming import TrimmingCurve, TrimmingLoop, Trimming
from .patch import PatchSurface, PointProjection, BoundaryProjection
from .multipatch import PatchCollection, WeakContinuityCondition
from .primitives import (
    make_nurbs_unit_square,
    make_nurbs_rectangle,
    make_nurbs_quarter_annulus,
    make_plate_patch,
    make_rectangular_trimming,
    make_fe_quad_mesh,
    make_fe_triangle_mesh,
)
