"""
Integration of the mortar mass matrices over clipped fragments.

For an FE element e and a patch the mass entries are

    Cnn_ij = int N_i N_j dA,      Cnr_ij = int N_i M_j dA

where N are the master and M the slave basis functions: FE shape
functions and IGA basis functions, in either role depending on the
mapping direction. The area integral is computed fragment by fragment in
the parameter plane of the patch:

    dA = |G1 x G2| * J_canonical * w

with G1, G2 the covariant base vectors of the surface and J_canonical the
Jacobian from the reference triangle or quadrilateral to the fragment.
FE shape functions are evaluated at the canonical point, i.e. the local
coordinates of the Gauss point inside the unclipped projected element.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
import scipy.sparse as sp

from ..discretization.fe_mesh import FEMesh, local_coords, shape_function_derivatives, shape_functions
from ..geometry.multipatch import PatchCollection
from ..geometry.patch import PatchSurface
from ..io.config import MapperConfig
from ..quadrature.gauss import GaussQuadrature
from . import clipping
from .projection import ProjectionResult

logger = logging.getLogger(__name__)


class CouplingMatrixBuilder:
    """
    Triplet accumulator for Cnn and Cnr.

    Duplicate (row, col) entries are summed when converting to CSR.
    """

    def __init__(self, n_master: int, n_slave: int, record_gauss_points: bool = False):
        self.n_master = n_master
        self.n_slave = n_slave
        self.record_gauss_points = record_gauss_points
        self._cnn: List[Tuple[np.ndarray, np.ndarray, np.ndarray]] = []
        self._cnr: List[Tuple[np.ndarray, np.ndarray, np.ndarray]] = []
        self.gauss_point_data: List[dict] = []

    def add_cnn(self, dofs: np.ndarray, block: np.ndarray):
        """Add a square master block at (dofs, dofs)."""
        rows, cols = np.meshgrid(dofs, dofs, indexing='ij')
        self._cnn.append((rows.ravel(), cols.ravel(), np.asarray(block).ravel()))

    def add_cnr(self, master_dofs: np.ndarray, slave_dofs: np.ndarray, block: np.ndarray):
        """Add a master x slave block."""
        rows, cols = np.meshgrid(master_dofs, slave_dofs, indexing='ij')
        self._cnr.append((rows.ravel(), cols.ravel(), np.asarray(block).ravel()))

    def merge(self, other: 'CouplingMatrixBuilder'):
        """Append the triplets and Gauss point data of another builder."""
        if (other.n_master, other.n_slave) != (self.n_master, self.n_slave):
            raise ValueError("Cannot merge builders of different sizes")
        self._cnn.extend(other._cnn)
        self._cnr.extend(other._cnr)
        self.gauss_point_data.extend(other.gauss_point_data)

    @staticmethod
    def _assemble(triplets, shape) -> sp.csr_matrix:
        if not triplets:
            return sp.csr_matrix(shape)
        rows = np.concatenate([t[0] for t in triplets])
        cols = np.concatenate([t[1] for t in triplets])
        vals = np.concatenate([t[2] for t in triplets])
        return sp.coo_matrix((vals, (rows, cols)), shape=shape).tocsr()

    def to_csr(self) -> Tuple[sp.csr_matrix, sp.csr_matrix]:
        """(Cnn, Cnr) as CSR matrices."""
        cnn = self._assemble(self._cnn, (self.n_master, self.n_master))
        cnr = self._assemble(self._cnr, (self.n_master, self.n_slave))
        return cnn, cnr


@dataclass
class AssemblyDiagnostics:
    """
    Per-run bookkeeping of the element loop.

    Attributes:
        integrated_elements: FE elements with at least one integrated fragment
        projected_polygons: elem -> {patch: parametric element polygon}
        trimmed_polygons: patch -> polygons after patch and trimming clipping
        integrated_polygons: patch -> fragments passed to quadrature
    """
    integrated_elements: Set[int] = field(default_factory=set)
    projected_polygons: Dict[int, Dict[int, np.ndarray]] = field(default_factory=dict)
    trimmed_polygons: Dict[int, List[np.ndarray]] = field(default_factory=dict)
    integrated_polygons: Dict[int, List[np.ndarray]] = field(default_factory=dict)

    def merge(self, other: 'AssemblyDiagnostics'):
        self.integrated_elements |= other.integrated_elements
        for elem, polygons in other.projected_polygons.items():
            self.projected_polygons.setdefault(elem, {}).update(polygons)
        for target, source in ((self.trimmed_polygons, other.trimmed_polygons),
                               (self.integrated_polygons, other.integrated_polygons)):
            for patch_index, polygons in source.items():
                target.setdefault(patch_index, []).extend(polygons)


def canonical_polygon(element_uv: np.ndarray, fragment_uv: np.ndarray) -> np.ndarray:
    """
    Local coordinates of the fragment vertices in the projected element.

    Barycentric (a, b) for triangles, inverse bilinear (xi, eta) for quads.
    """
    return np.array([local_coords(element_uv, point) for point in fragment_uv])


def _canonical_jacobian(fragment: np.ndarray, xi: np.ndarray) -> float:
    """Jacobian of the map from the reference shape to the fragment."""
    if len(fragment) == 3:
        return 2.0 * abs(clipping.polygon_area(fragment))
    J = fragment.T @ shape_function_derivatives(4, xi)
    return abs(float(np.linalg.det(J)))


def integrate_fragment(builder: CouplingMatrixBuilder, patch: PatchSurface,
                       fragment: np.ndarray, spans: Tuple[int, int],
                       canonical: np.ndarray, elem_nodes: np.ndarray,
                       rule: GaussQuadrature, is_mapping_iga2fem: bool):
    """
    Integrate the basis products over one fragment and add them to builder.

    Parameters:
        builder: Triplet accumulator
        patch: Patch the fragment lies on
        fragment: (3|4, 2) fragment in the parameter plane, inside one knot span
        spans: Knot span pair of the fragment
        canonical: Fragment vertices in the reference element of the FE element
        elem_nodes: FE node indices of the element
        rule: Quadrature rule matching the fragment shape
        is_mapping_iga2fem: True when the FE side is the master side
    """
    n_fe = len(elem_nodes)
    n_vertices = len(fragment)
    cp_indices = patch.basis.basis_function_indices(*spans)
    iga_dofs = patch.dof_indices[cp_indices]
    cps = patch.control_points[cp_indices]
    n_iga = len(cp_indices)

    n_master, n_slave = (n_fe, n_iga) if is_mapping_iga2fem else (n_iga, n_fe)
    element_nn = np.zeros((n_master, n_master))
    element_nr = np.zeros((n_master, n_slave))

    for xi, w in rule:
        N = shape_functions(n_vertices, xi)
        u, v = N @ fragment
        fe_values = shape_functions(n_fe, N @ canonical)

        table = patch.basis.evaluate_with_derivatives(u, v, 1, spans)
        R = table[0, 0]
        G1 = table[1, 0] @ cps
        G2 = table[0, 1] @ cps
        jacobian = np.linalg.norm(np.cross(G1, G2)) * _canonical_jacobian(fragment, xi)
        measure = jacobian * w

        master, slave = (fe_values, R) if is_mapping_iga2fem else (R, fe_values)
        element_nn += np.outer(master, master) * measure
        element_nr += np.outer(master, slave) * measure

        if builder.record_gauss_points:
            builder.gauss_point_data.append({
                'weight': float(w), 'jacobian': float(jacobian),
                'fe_nodes': np.array(elem_nodes), 'fe_values': fe_values,
                'iga_dofs': np.array(iga_dofs), 'iga_values': R.copy(),
            })

    master_dofs, slave_dofs = (elem_nodes, iga_dofs) if is_mapping_iga2fem else (iga_dofs, elem_nodes)
    # upper triangle mirrored
    upper = np.triu(element_nn)
    builder.add_cnn(master_dofs, upper + np.triu(upper, 1).T)
    builder.add_cnr(master_dofs, slave_dofs, element_nr)


def integrate_element_on_patch(builder: CouplingMatrixBuilder, elem: int, elem_nodes: np.ndarray,
                               element_uv: np.ndarray, polygon: np.ndarray,
                               patch_index: int, patch: PatchSurface,
                               rules: Dict[int, GaussQuadrature],
                               is_mapping_iga2fem: bool,
                               diagnostics: AssemblyDiagnostics) -> bool:
    """
    Clip the parametric element polygon and integrate every fragment.

    Parameters:
        element_uv: Unclipped parametric element, one vertex per FE node
        polygon: Cleaned polygon to clip

    Returns:
        Whether at least one fragment of 3 or more vertices was integrated
    """
    if len(polygon) < 3:
        return False
    on_patch = clipping.clean_polygon(clipping.clip_by_patch(polygon, patch))
    if len(on_patch) < 3:
        return False

    trimmed = clipping.clip_by_trimming(on_patch, patch)
    diagnostics.trimmed_polygons.setdefault(patch_index, []).extend(trimmed)

    is_integrated = False
    for trimmed_polygon in trimmed:
        if len(trimmed_polygon) < 3:
            continue
        for fragment, spans in clipping.clip_by_knot_spans(trimmed_polygon, patch):
            if len(fragment) < 3:
                continue
            is_integrated = True
            for piece in clipping.triangulate_polygon(fragment):
                piece = clipping.clean_polygon(piece, clipping.TRIANGLE_CLEAN_TOLERANCE)
                if len(piece) < 3:
                    continue
                diagnostics.integrated_polygons.setdefault(patch_index, []).append(piece)
                canonical = canonical_polygon(element_uv, piece)
                integrate_fragment(builder, patch, piece, spans, canonical, elem_nodes,
                                   rules[len(piece)], is_mapping_iga2fem)
    return is_integrated


def make_rules(config: MapperConfig) -> Dict[int, GaussQuadrature]:
    """Quadrature rules keyed by fragment vertex count."""
    return {3: GaussQuadrature.triangle(config.integration.num_gp_triangle),
            4: GaussQuadrature.quad(config.integration.num_gp_quad)}


def assemble_elements(elements: Iterable[int], mesh: FEMesh, patches: PatchCollection,
                      projection: ProjectionResult, config: MapperConfig,
                      is_mapping_iga2fem: bool, builder: CouplingMatrixBuilder,
                      diagnostics: Optional[AssemblyDiagnostics] = None) -> AssemblyDiagnostics:
    """
    Element loop: polygon building, clipping and integration.

    Each call only touches its own builder and diagnostics, so disjoint
    element ranges can run in parallel.
    """
    if diagnostics is None:
        diagnostics = AssemblyDiagnostics()
    rules = make_rules(config)

    for elem in elements:
        nodes = mesh.element_nodes(elem)
        full, split = clipping.classify_element(nodes, projection, len(patches))
        logger.debug("Element %d: fully projected on %d patch(es), partly on %d",
                     elem, len(full), len(split))

        for patch_index in sorted(full | split):
            patch = patches[patch_index]
            if patch_index in full:
                element_uv = clipping.build_full_polygon(nodes, projection, patch_index)
            else:
                element_uv = clipping.build_boundary_polygon(elem, mesh, projection,
                                                             patch_index, patch, config)
                if element_uv is None:
                    continue
                if len(element_uv) < 3:
                    if clipping.overlaps_patch(nodes, mesh, projection, patch_index,
                                               patch, config):
                        logger.warning("Element %d on patch %d: boundary polygon degenerated "
                                       "to %d vertices, overlap not integrated", elem,
                                       patch_index, len(element_uv))
                    continue
                if len(element_uv) != len(nodes):
                    logger.warning("Element %d on patch %d: boundary polygon has %d vertices "
                                   "for %d nodes, skipped", elem, patch_index,
                                   len(element_uv), len(nodes))
                    continue
            polygon = clipping.clean_polygon(element_uv)
            if integrate_element_on_patch(builder, elem, nodes, element_uv, polygon,
                                          patch_index, patch, rules,
                                          is_mapping_iga2fem, diagnostics):
                diagnostics.integrated_elements.add(elem)
                diagnostics.projected_polygons.setdefault(elem, {})[patch_index] = polygon
    return diagnostics
