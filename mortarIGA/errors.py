"""
Exception hierarchy for the mortar mapper.

Fatal conditions abort the build of the coupling operators and carry enough
context (node index, coordinates, element/patch pair) to diagnose the
geometry. Recoverable conditions are handled locally and only logged.
"""

from typing import Optional, Sequence

import numpy as np


class MortarMapperError(Exception):
    """Base class for all errors raised by mortarIGA."""


class ConfigurationError(MortarMapperError, ValueError):
    """Invalid input: mismatched field sizes, unknown node ids, bad settings."""


class KnotSpanError(MortarMapperError, ValueError):
    """Parameter value outside the knot vector domain beyond tolerance."""

    def __init__(self, xi: float, domain: Sequence[float]):
        self.xi = xi
        self.domain = tuple(domain)
        super().__init__(
            f"Parameter {xi} outside knot vector domain {self.domain}"
        )


class DegenerateDenominatorError(MortarMapperError, ArithmeticError):
    """NURBS weight function vanished; indicates corrupt weights."""


class ProjectionFailure(MortarMapperError, RuntimeError):
    """
    FE nodes could not be projected on any patch.

    Attributes:
        node_indices: Indices of the offending nodes in the FE mesh
        coordinates: Their Cartesian coordinates, shape (k, 3)
    """

    def __init__(self, message: str,
                 node_indices: Sequence[int] = (),
                 coordinates: Optional[np.ndarray] = None):
        self.node_indices = list(node_indices)
        self.coordinates = (np.zeros((0, 3)) if coordinates is None
                            else np.atleast_2d(coordinates))
        super().__init__(message)


class BoundaryProjectionNonConvergence(MortarMapperError, RuntimeError):
    """Edge of a split element could not be intersected with a patch boundary."""

    def __init__(self, element: int, patch: int, node: int, node_next: int):
        self.element = element
        self.patch = patch
        self.node = node
        self.node_next = node_next
        super().__init__(
            f"Cannot find point projection on boundary of patch [{patch}] "
            f"between node [{node}] and node [{node_next}] of element [{element}]"
        )


class ConsistencyError(MortarMapperError, RuntimeError):
    """Mapping a unit field does not reproduce unity after row correction."""

    def __init__(self, norm: float, tolerance: float):
        self.norm = norm
        self.deviation = abs(norm - 1.0)
        super().__init__(
            f"Coupling not consistent: unit field deviates from 1 by "
            f"{self.deviation:.3e} (tolerance {tolerance:.1e})"
        )
