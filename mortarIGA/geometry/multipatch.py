"""
Multipatch geometry: the set of patches seen by the mapper.

Patches are stored in one list and referred to by their index everywhere
downstream (projection records, polygons, assembly). The IGA degrees of
freedom are the union of the control point dof indices of all patches.

Weak continuity conditions describe interfaces between patches that do not
share control points: the same physical curve traced in the parameter
plane of a master and of a slave patch.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .patch import PatchSurface

logger = logging.getLogger(__name__)


@dataclass
class WeakContinuityCondition:
    """
    Interface curve shared by two patches.

    Attributes:
        master: Index of the master patch
        slave: Index of the slave patch
        master_curve: (m, 2) parametric polyline on the master patch
        slave_curve: (m, 2) parametric polyline on the slave patch; point k
                     maps to the same Cartesian point as master_curve[k]
        n_gauss: Gauss points per polyline segment
    """
    master: int
    slave: int
    master_curve: np.ndarray
    slave_curve: np.ndarray
    n_gauss: int = 4

    def __post_init__(self):
        self.master_curve = np.asarray(self.master_curve, dtype=np.float64)
        self.slave_curve = np.asarray(self.slave_curve, dtype=np.float64)
        if self.master_curve.shape != self.slave_curve.shape or self.master_curve.shape[0] < 2:
            raise ValueError(
                "Master and slave interface polylines need the same (m >= 2, 2) shape"
            )
        if self.master == self.slave:
            raise ValueError("A continuity condition needs two different patches")


class PatchCollection:
    """
    Patches plus inter-patch data.

    Parameters:
        patches: Patch surfaces; their index in this list is the patch id
        continuity_conditions: Weak continuity conditions between patches
        clamped_dofs: IGA DOF indices with Dirichlet conditions
    """

    def __init__(self, patches: Sequence[PatchSurface],
                 continuity_conditions: Sequence[WeakContinuityCondition] = (),
                 clamped_dofs: Sequence[int] = ()):
        if len(patches) == 0:
            raise ValueError("A patch collection needs at least one patch")
        self.patches: List[PatchSurface] = list(patches)
        self.weak_continuity_conditions = list(continuity_conditions)
        self.clamped_dofs = np.asarray(sorted(set(int(i) for i in clamped_dofs)), dtype=int)

        all_dofs = np.concatenate([p.dof_indices for p in self.patches])
        if np.any(all_dofs < 0):
            raise ValueError("Every control point needs a non-negative DOF index")
        self.n_dofs = int(all_dofs.max()) + 1
        n_unused = self.n_dofs - len(np.unique(all_dofs))
        if n_unused:
            logger.warning("%d IGA DOF indices are not used by any control point", n_unused)

        for cond in self.weak_continuity_conditions:
            for index in (cond.master, cond.slave):
                if not 0 <= index < len(self.patches):
                    raise ValueError(f"Continuity condition refers to unknown patch {index}")
        if len(self.clamped_dofs) and self.clamped_dofs[-1] >= self.n_dofs:
            raise ValueError("Clamped DOF index out of range")

    def __len__(self) -> int:
        return len(self.patches)

    def __iter__(self):
        return iter(self.patches)

    def __getitem__(self, index: int) -> PatchSurface:
        return self.patches[index]

    @property
    def n_patches(self) -> int:
        return len(self.patches)

    @property
    def is_trimmed(self) -> bool:
        return any(p.is_trimmed for p in self.patches)

    @classmethod
    def from_patches(cls, patches: Sequence[PatchSurface], **kwargs) -> 'PatchCollection':
        """
        Build a collection renumbering DOFs patch by patch.

        Useful for independently created patches whose control points all
        start at DOF 0. Returned patches are new objects sharing knot
        vectors and trimming with the inputs.
        """
        renumbered = []
        offset = 0
        for patch in patches:
            renumbered.append(PatchSurface(
                patch.kv_u, patch.kv_v, patch.control_points,
                weights=patch.weights, trimming=patch.trimming,
                dof_indices=np.arange(offset, offset + patch.n_control_points),
            ))
            offset += patch.n_control_points
        return cls(renumbered, **kwargs)
