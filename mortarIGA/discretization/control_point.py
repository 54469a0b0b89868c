"""
Control point abstraction.

A control point of a patch carries its Cartesian position, its NURBS
weight and the global degree-of-freedom index used when assembling the
coupling operators. Control points shared by two patches (conforming
multipatch) carry the same dof index.

Control points are frozen once the patch collection has been ingested:
the mapper only reads them.
"""

import numpy as np
from typing import List, Optional
from dataclasses import dataclass


@dataclass(frozen=True)
class ControlPoint:
    """
    Control point of a patch control net.

    Attributes:
        id: Identifier of the control point (as given by the geometry source)
        coordinates: Cartesian coordinates (x, y, z)
        weight: NURBS weight (1.0 for B-splines)
        dof_index: Global DOF index on the IGA side
    """
    id: int
    coordinates: np.ndarray
    weight: float = 1.0
    dof_index: int = -1

    def __post_init__(self):
        coordinates = np.zeros(3)
        given = np.asarray(self.coordinates, dtype=np.float64).ravel()
        if given.size not in (2, 3):
            raise ValueError(f"Control point needs 2 or 3 coordinates, got {given.size}")
        coordinates[:given.size] = given
        coordinates.setflags(write=False)
        # frozen dataclass: bypass __setattr__ for normalization
        object.__setattr__(self, 'coordinates', coordinates)
        if self.weight <= 0.0:
            raise ValueError(f"Control point {self.id} has non-positive weight {self.weight}")

    @property
    def x(self) -> float:
        return self.coordinates[0]

    @property
    def y(self) -> float:
        return self.coordinates[1]

    @property
    def z(self) -> float:
        return self.coordinates[2]

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, ControlPoint):
            return self.id == other.id
        return False

    def __repr__(self) -> str:
        return (f"ControlPoint(id={self.id}, coord={self.coordinates}, "
                f"w={self.weight}, dof={self.dof_index})")


def create_control_points_from_array(
    coordinates: np.ndarray,
    weights: Optional[np.ndarray] = None,
    dof_indices: Optional[np.ndarray] = None,
    first_id: int = 0
) -> List[ControlPoint]:
    """
    Create ControlPoint objects from coordinate array.

    Parameters:
        coordinates: Array of shape (n_points, 2) or (n_points, 3)
        weights: Optional array of shape (n_points,), defaults to 1.0
        dof_indices: Optional global DOF indices, defaults to first_id + i
        first_id: ID of the first control point

    Returns:
        List of ControlPoint in control net order
    """
    coordinates = np.atleast_2d(np.asarray(coordinates, dtype=np.float64))
    n_points = coordinates.shape[0]

    if weights is None:
        weights = np.ones(n_points)
    if dof_indices is None:
        dof_indices = np.arange(first_id, first_id + n_points)
    if len(weights) != n_points or len(dof_indices) != n_points:
        raise ValueError("weights and dof_indices must match the number of control points")

    return [
        ControlPoint(
            id=first_id + i,
            coordinates=coordinates[i],
            weight=float(weights[i]),
            dof_index=int(dof_indices[i]),
        )
        for i in range(n_points)
    ]
