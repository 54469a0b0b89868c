"""
Discretization module.

Provides:
- KnotVector: Knot vector representation with span lookup
- ControlPoint: First-class control point object
- FEMesh: Counterpart linear finite element mesh
"""

from .knot_vector import KnotVector, make_open_knot_vector, KNOT_SPAN_TOLERANCE
from .control_point import ControlPoint, create_control_points_from_array
from .fe_mesh import FEMesh, shape_functions, local_coords
