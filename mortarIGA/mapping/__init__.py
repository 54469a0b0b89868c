"""
Mortar mapping pipeline.

Stages, in build order:
- projection: FE nodes onto the patches
- clipping: parametric element polygons, clipped and triangulated
- assembly: quadrature of the basis products into Cnn and Cnr
- patch_coupling: penalty terms between patches
- coupling_matrices: conditioning and factorization of the operators
- mortar_mapper: the IGAMortarMapper facade
"""

from .projection import ProjectionResult, project_mesh_on_patches
from .assembly import CouplingMatrixBuilder, AssemblyDiagnostics
from .coupling_matrices import CouplingMatrices
from .mortar_mapper import IGAMortarMapper, MapperObserver
