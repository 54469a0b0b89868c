"""
Mortar mapper between a trimmed multipatch surface and an FE mesh.

Usage:
    mapper = IGAMortarMapper(patches, mesh, is_mapping_iga2fem=True)
    mapper.build_coupling_matrices()
    fe_field = mapper.consistent_mapping(iga_field)
    iga_forces = mapper.conservative_mapping(fe_forces)

With is_mapping_iga2fem=True the FE mesh is the master side: consistent
mapping takes IGA control point values to FE nodal values and
conservative mapping takes FE nodal forces to IGA forces. With False the
roles are swapped.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence, Union

import numpy as np

from ..discretization.fe_mesh import FEMesh
from ..errors import ConfigurationError, ConsistencyError
from ..geometry.multipatch import PatchCollection
from ..geometry.patch import PatchSurface
from ..io.config import MapperConfig
from .assembly import AssemblyDiagnostics, CouplingMatrixBuilder, assemble_elements
from .coupling_matrices import CouplingMatrices
from .patch_coupling import assemble_patch_coupling
from .projection import ProjectionResult, project_mesh_on_patches

logger = logging.getLogger(__name__)

CONSISTENCY_TOLERANCE = 1e-6


class MapperObserver:
    """
    Hooks called while building the coupling matrices.

    Subclasses override what they need; every hook is a no-op here.
    """

    record_gauss_points = False

    def on_projection(self, mapper: 'IGAMortarMapper', result: ProjectionResult):
        pass

    def on_polygons(self, mapper: 'IGAMortarMapper', kind: str, polygons_by_patch: dict):
        pass

    def on_gauss_points(self, mapper: 'IGAMortarMapper', data: list):
        pass

    def on_matrices(self, mapper: 'IGAMortarMapper', cnn, cnr):
        pass


class IGAMortarMapper:
    """
    Builds and applies the mortar operators.

    Parameters:
        patches: PatchCollection or list of PatchSurface
        mesh: Counterpart FE mesh
        is_mapping_iga2fem: True when the FE mesh is the master (target) side
        config: Mapper configuration; defaults when None
        observer: Optional MapperObserver for diagnostics
        name: Label used in log messages and dump file names
    """

    def __init__(self, patches: Union[PatchCollection, Sequence[PatchSurface]],
                 mesh: FEMesh, is_mapping_iga2fem: bool,
                 config: Optional[MapperConfig] = None,
                 observer: Optional[MapperObserver] = None,
                 name: str = 'mortar'):
        if not isinstance(patches, PatchCollection):
            patches = PatchCollection(patches)
        self.patches = patches
        self.mesh = mesh
        self.is_mapping_iga2fem = bool(is_mapping_iga2fem)
        self.config = config if config is not None else MapperConfig()
        self.observer = observer if observer is not None else MapperObserver()
        self.name = name

        self.projection: Optional[ProjectionResult] = None
        self.diagnostics: Optional[AssemblyDiagnostics] = None
        self.matrices: Optional[CouplingMatrices] = None
        self.gauss_point_data: list = []

    @property
    def n_master(self) -> int:
        return self.mesh.n_nodes if self.is_mapping_iga2fem else self.patches.n_dofs

    @property
    def n_slave(self) -> int:
        return self.patches.n_dofs if self.is_mapping_iga2fem else self.mesh.n_nodes

    @property
    def is_built(self) -> bool:
        return self.matrices is not None and self.matrices.is_factorized

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_coupling_matrices(self):
        """
        Compute, condition and factorize Cnn and Cnr.

        Raises:
            ProjectionFailure, BoundaryProjectionNonConvergence,
            ConsistencyError: see mortarIGA.errors
        """
        logger.info("Building coupling matrices for (%s)...", self.name)
        logger.info("Number of IGA DOFs is %d, number of FE nodes is %d",
                    self.patches.n_dofs, self.mesh.n_nodes)
        logger.info("Size of matrices will be %dx%d and %dx%d",
                    self.n_master, self.n_master, self.n_master, self.n_slave)

        self.projection = project_mesh_on_patches(self.mesh, self.patches, self.config)
        self.observer.on_projection(self, self.projection)

        builder = self._assemble()
        self.observer.on_polygons(self, 'trimmed', self.diagnostics.trimmed_polygons)
        self.observer.on_polygons(self, 'integrated', self.diagnostics.integrated_polygons)
        if self.observer.record_gauss_points:
            self.observer.on_gauss_points(self, self.gauss_point_data)

        coupling = self.config.patch_coupling
        if coupling.is_active and self.patches.weak_continuity_conditions:
            if self.is_mapping_iga2fem:
                logger.info("Patch coupling penalties apply to the IGA master side only; "
                            "skipped for an IGA to FE mapper")
            else:
                logger.info("Compute penalty patch coupling")
                assemble_patch_coupling(builder, self.patches, coupling)
        else:
            logger.info("No penalty patch coupling")

        matrices = CouplingMatrices(self.n_master, self.n_slave)
        matrices.finalize(builder)

        is_dirichlet = self.config.dirichlet_bcs.is_dirichlet_bcs
        if is_dirichlet:
            if self.is_mapping_iga2fem:
                logger.info("Dirichlet conditions act on IGA master DOFs; skipped for an "
                            "IGA to FE mapper")
            else:
                matrices.apply_dirichlet(self.patches.clamped_dofs)
        else:
            logger.info("No Dirichlet boundary conditions")

        if not self.is_mapping_iga2fem:
            matrices.enforce_cnn()

        self.observer.on_matrices(self, matrices.cnn, matrices.cnr)
        matrices.factorize()
        logger.info("Factorize was successful")
        self.matrices = matrices

        if not is_dirichlet:
            self.check_consistency()

    def _assemble(self) -> CouplingMatrixBuilder:
        start = time.perf_counter()
        record = self.observer.record_gauss_points
        n_workers = min(self.config.num_workers, max(self.mesh.n_elements, 1))
        logger.info("Computing coupling matrices starting with %d worker(s)...", n_workers)

        if n_workers == 1:
            builder = CouplingMatrixBuilder(self.n_master, self.n_slave, record)
            diagnostics = assemble_elements(range(self.mesh.n_elements), self.mesh, self.patches,
                                            self.projection, self.config,
                                            self.is_mapping_iga2fem, builder)
        else:
            chunks = np.array_split(np.arange(self.mesh.n_elements), n_workers)
            builders = [CouplingMatrixBuilder(self.n_master, self.n_slave, record)
                        for _ in chunks]
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(assemble_elements, chunk.tolist(), self.mesh,
                                           self.patches, self.projection, self.config,
                                           self.is_mapping_iga2fem, b)
                           for chunk, b in zip(chunks, builders)]
                results = [f.result() for f in futures]
            builder, diagnostics = builders[0], results[0]
            for b, d in zip(builders[1:], results[1:]):
                builder.merge(b)
                diagnostics.merge(d)

        self.diagnostics = diagnostics
        self.gauss_point_data = builder.gauss_point_data
        logger.info("Computing coupling matrices done in %.3f s", time.perf_counter() - start)

        n_integrated = len(diagnostics.integrated_elements)
        if n_integrated != self.mesh.n_elements:
            missing = sorted(set(range(self.mesh.n_elements)) - diagnostics.integrated_elements)
            logger.warning("Number of FE elements integrated is %d over %d; missing elements: %s. "
                           "Coupling matrices invalid", n_integrated, self.mesh.n_elements, missing)
        return builder

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _require_built(self):
        if not self.is_built:
            raise RuntimeError("Coupling matrices not built; call build_coupling_matrices() first")

    @staticmethod
    def _check_field(field: np.ndarray, size: int, label: str) -> np.ndarray:
        field = np.asarray(field, dtype=np.float64)
        if field.ndim not in (1, 2) or field.shape[0] != size:
            raise ConfigurationError(f"{label} field has {field.shape[0] if field.ndim else 0} "
                                     f"entries, expected {size}")
        return field

    def consistent_mapping(self, source: np.ndarray) -> np.ndarray:
        """
        Map a field from the slave side to the master side: Cnn x = Cnr s.

        Parameters:
            source: Slave values, shape (n_slave,) or (n_slave, k)

        Returns:
            Master values, shape (n_master,) or (n_master, k)
        """
        self._require_built()
        source = self._check_field(source, self.n_slave, "Source")
        return self.matrices.solve(self.matrices.cnr @ source)

    def conservative_mapping(self, target: np.ndarray) -> np.ndarray:
        """
        Map a dual field (forces) from the master side to the slave side:
        f_slave = Cnr^T Cnn^-1 f_master.
        """
        self._require_built()
        target = self._check_field(target, self.n_master, "Target")
        return self.matrices.cnr.T @ self.matrices.solve(target)

    def check_consistency(self):
        """
        Check that a unit slave field maps to a unit master field.

        Rows whose result deviates from 1 (and is not 0) get their Cnn row
        replaced by the Cnr row sum on the diagonal; Cnn is then factorized
        again. The root mean square over the non-empty rows must be 1.

        Raises:
            ConsistencyError: if the deviation exceeds CONSISTENCY_TOLERANCE
        """
        self._require_built()
        logger.info("Check consistency")
        ones = np.ones(self.n_slave)
        output = self.consistent_mapping(ones)

        inconsistent = np.flatnonzero((np.abs(output - 1.0) > CONSISTENCY_TOLERANCE) & (output != 0.0))
        if len(inconsistent):
            logger.info("%d inconsistent DOFs corrected", len(inconsistent))
            row_sums = self.matrices.row_sums_cnr()
            self.matrices.replace_rows_by_diagonal(inconsistent, row_sums[inconsistent])
            self.matrices.factorize()
            output = self.consistent_mapping(ones)

        n_rows = self.n_master - len(self.matrices.empty_rows)
        norm = float(np.sqrt(np.sum(output ** 2) / max(n_rows, 1)))
        logger.debug("Norm of output field = %.12g", norm)
        if abs(norm - 1.0) > CONSISTENCY_TOLERANCE:
            raise ConsistencyError(norm, CONSISTENCY_TOLERANCE)
