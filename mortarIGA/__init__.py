"""
mortarIGA - Isogeometric mortar mapping

Transfer of field data between a trimmed multipatch NURBS surface (IGA
side) and a non-matching linear finite element surface mesh (FE side)
with the mortar method.

Key modules:
- geometry: B-spline/NURBS bases, trimmed patches, multipatch collections
- discretization: Knot vectors, control points, the counterpart FE mesh
- quadrature: Gauss rules on lines, triangles and quadrilaterals
- mapping: Projection, clipping, assembly and the mapper itself
- postprocess / visualization: Diagnostic dumps and plots

Quick start:
    from mortarIGA.geometry.primitives import make_nurbs_unit_square, make_fe_quad_mesh
    from mortarIGA.mapping import IGAMortarMapper

    patch = make_nurbs_unit_square(p=2, n_elem_xi=3, n_elem_eta=3)
    mesh = make_fe_quad_mesh(nx=4, ny=4)

    mapper = IGAMortarMapper([patch], mesh, is_mapping_iga2fem=True)
    mapper.build_coupling_matrices()

    fe_values = mapper.consistent_mapping(iga_values)
    iga_forces = mapper.conservative_mapping(fe_forces)
"""

__version__ = "0.1.0"
__author__ = "Wataru Fukuda"

# Core imports for convenience
from .errors import (
    MortarMapperError,
    ConfigurationError,
    ProjectionFailure,
    BoundaryProjectionNonConvergence,
    ConsistencyError,
)
from .geometry.patch import PatchSurface
from .geometry.multipatch import PatchCollection, WeakContinuityCondition
from .discretization.fe_mesh import FEMesh
from .io.config import MapperConfig, load_config
from .mapping.mortar_mapper import IGAMortarMapper, MapperObserver
from .logging_config import setup_logging
