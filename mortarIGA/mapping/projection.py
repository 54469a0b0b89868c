"""
Projection of the FE nodes on the patches.

Every FE node receives a record {patch index: (u, v)} of the patches it
projects on. A node usually lands on a single patch; nodes on a seam
between patches keep one entry per patch whose projection is equally good.

The projection runs in two passes:

1. Element by element and patch by patch, Newton-Raphson from a guess
   taken from an already projected node of the same element, or from a
   coarse grid search on the patch.
2. For the nodes left over: Newton-Raphson with a ten times larger
   tolerance from a fresh grid guess, then a forced projection on a fine
   grid without convergence requirement.

A node that lies in no bounding box or stays unresolved after both passes
is fatal.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..discretization.fe_mesh import FEMesh
from ..errors import ProjectionFailure
from ..geometry.multipatch import PatchCollection
from ..io.config import MapperConfig

logger = logging.getLogger(__name__)

FORCED_PROJECTION_SAMPLES = 200


@dataclass
class ProjectionResult:
    """
    Projected parametric coordinates of the FE nodes.

    Attributes:
        records: Per node, mapping patch index -> (u, v)
        min_distance: Per node, distance of the retained projection
        min_point: Per node, Cartesian point of the retained projection
        n_first_pass: Number of nodes resolved by the first pass
        n_forced: Number of nodes resolved by forced projection
    """
    records: List[Dict[int, Tuple[float, float]]]
    min_distance: np.ndarray
    min_point: List[Optional[np.ndarray]]
    n_first_pass: int = 0
    n_forced: int = 0
    multi_patch_nodes: List[int] = field(default_factory=list)

    @property
    def n_nodes(self) -> int:
        return len(self.records)

    def is_projected(self, node: int, patch: Optional[int] = None) -> bool:
        if patch is None:
            return bool(self.records[node])
        return patch in self.records[node]

    def uv(self, node: int, patch: int) -> Tuple[float, float]:
        return self.records[node][patch]


class _Projector:
    """State of one projection run (records and best distances per node)."""

    def __init__(self, mesh: FEMesh, patches: PatchCollection, config: MapperConfig):
        self.mesh = mesh
        self.patches = patches
        self.settings = config.projection
        self.newton = config.newton_raphson
        n = mesh.n_nodes
        self.records: List[Dict[int, Tuple[float, float]]] = [dict() for _ in range(n)]
        self.min_distance = np.full(n, 1e9)
        self.min_point: List[Optional[np.ndarray]] = [None] * n

    def candidate_patches(self) -> List[List[int]]:
        """Patches whose enlarged bounding box contains the node."""
        tol = self.settings.max_projection_distance
        candidates = []
        outside = []
        for i, node in enumerate(self.mesh.nodes):
            inside = [k for k, patch in enumerate(self.patches)
                      if patch.is_point_in_bounding_box(node, tol)]
            if not inside:
                outside.append(i)
            candidates.append(inside)
        if outside:
            raise ProjectionFailure(
                f"{len(outside)} FE node(s) not in any bounding box of the patches, "
                f"first is node [{outside[0]}] at {self.mesh.nodes[outside[0]]}; "
                f"increase max_projection_distance",
                node_indices=outside, coordinates=self.mesh.nodes[outside],
            )
        return candidates

    def initial_guess(self, patch_index: int, elem: int, node: int) -> Tuple[float, float]:
        """Projection of a sibling node in elem, else a grid search guess."""
        for sibling in self.mesh.element_nodes(elem):
            if patch_index in self.records[sibling]:
                return self.records[sibling][patch_index]
        n = self.settings.num_refinement_for_initial_guess
        return self.patches[patch_index].find_initial_guess(self.mesh.nodes[node], n, n)

    def _accept(self, node: int, patch_index: int, uv: Tuple[float, float],
                point: np.ndarray, distance: float, check_point: bool = True) -> bool:
        tol = self.settings.max_distance_for_multipatch_ambiguity
        min_distance = self.min_distance[node]
        best = self.min_point[node]

        if distance > min_distance + tol:
            logger.debug("Node %d: patch %d rejected, distance %.3e > best %.3e",
                         node, patch_index, distance, min_distance)
            return False
        far = best is not None and np.linalg.norm(point - best) > tol
        if check_point and far and distance > min_distance:
            logger.debug("Node %d: patch %d rejected, projected point away from best", node, patch_index)
            return False
        if distance < min_distance - tol or (check_point and far):
            if self.records[node]:
                logger.debug("Node %d: discarding projections on patches %s",
                             node, sorted(self.records[node]))
            self.records[node].clear()

        self.records[node][patch_index] = (float(uv[0]), float(uv[1]))
        self.min_distance[node] = distance
        self.min_point[node] = point
        logger.debug("Node %d: accepted on patch %d at (%.6g, %.6g), distance %.3e",
                     node, patch_index, uv[0], uv[1], distance)
        return True

    def project(self, patch_index: int, node: int, u0: float, v0: float,
                tolerance: float) -> bool:
        """Newton-Raphson projection followed by the acceptance test."""
        P = self.mesh.nodes[node]
        projection = self.patches[patch_index].project_point(
            P, u0, v0, self.newton.max_iterations, tolerance)
        if not projection.converged or projection.distance >= self.settings.max_projection_distance:
            return False
        return self._accept(node, patch_index, (projection.u, projection.v),
                            projection.point, projection.distance)

    def force_project(self, patch_index: int, node: int) -> bool:
        """Closest point of a fine parametric grid, no convergence requirement."""
        patch = self.patches[patch_index]
        P = self.mesh.nodes[node]
        u, v = patch.find_initial_guess(P, FORCED_PROJECTION_SAMPLES, FORCED_PROJECTION_SAMPLES)
        point = patch.eval_point(u, v)
        distance = float(np.linalg.norm(point - P))
        return self._accept(node, patch_index, (u, v), point, distance, check_point=False)


def project_mesh_on_patches(mesh: FEMesh, patches: PatchCollection,
                            config: MapperConfig) -> ProjectionResult:
    """
    Project all FE nodes on the patches.

    Parameters:
        mesh: Counterpart FE mesh
        patches: Patch collection
        config: Mapper configuration (projection and newton_raphson groups)

    Returns:
        ProjectionResult with a non-empty record for every node

    Raises:
        ProjectionFailure: a node is in no bounding box or could not be
            projected after the second pass
    """
    projector = _Projector(mesh, patches, config)

    start = time.perf_counter()
    candidates = projector.candidate_patches()
    logger.info("Bounding box preprocessing done in %.3f s", time.perf_counter() - start)

    start = time.perf_counter()
    tolerance = config.newton_raphson.tolerance
    is_projected = np.zeros(mesh.n_nodes, dtype=bool)
    for elem in range(mesh.n_elements):
        for patch_index in range(len(patches)):
            guess = None
            for node in mesh.element_nodes(elem):
                if patch_index in projector.records[node] or patch_index not in candidates[node]:
                    continue
                if guess is None:
                    guess = projector.initial_guess(patch_index, elem, node)
                if projector.project(patch_index, node, guess[0], guess[1], tolerance):
                    is_projected[node] = True
    n_first_pass = int(is_projected.sum())
    logger.info("First pass projection: %d of %d nodes projected in %.3f s",
                n_first_pass, mesh.n_nodes, time.perf_counter() - start)

    n_forced = 0
    missing = np.flatnonzero(~is_projected)
    if len(missing):
        for node in missing:
            logger.warning("Node not projected at first pass [%d] at %s", node, mesh.nodes[node])

        start = time.perf_counter()
        n = config.projection.num_refinement_for_initial_guess
        for node in missing:
            elems = mesh.node_to_elem_table[node]
            for patch_index in candidates[node]:
                if elems:
                    u0, v0 = projector.initial_guess(patch_index, elems[0], node)
                else:
                    u0, v0 = patches[patch_index].find_initial_guess(mesh.nodes[node], n, n)
                if projector.project(patch_index, node, u0, v0, 10.0 * tolerance):
                    is_projected[node] = True
            if not is_projected[node]:
                for patch_index in candidates[node]:
                    if projector.force_project(patch_index, node):
                        is_projected[node] = True
                if is_projected[node]:
                    n_forced += 1
        logger.info("Second pass projection done in %.3f s (%d forced)",
                    time.perf_counter() - start, n_forced)

        unresolved = np.flatnonzero(~is_projected).tolist()
        if unresolved:
            raise ProjectionFailure(
                f"{len(unresolved)} nodes over {mesh.n_nodes} could not be projected during "
                f"the second pass; relax the projection or Newton-Raphson settings",
                node_indices=unresolved, coordinates=mesh.nodes[unresolved],
            )

    multi = [i for i, record in enumerate(projector.records) if len(record) >= 3]
    for node in multi:
        logger.info("Node %d retained on %d patches: %s", node,
                    len(projector.records[node]), sorted(projector.records[node]))

    return ProjectionResult(records=projector.records,
                            min_distance=projector.min_distance,
                            min_point=projector.min_point,
                            n_first_pass=n_first_pass, n_forced=n_forced,
                            multi_patch_nodes=multi)
