"""
Weak continuity between patches by penalty terms.

Patches that meet along an interface without sharing control points are
tied by penalizing the jump of the field (and optionally of its conormal
derivative) along the interface curve C:

    alpha_prim * int_C (u_m - u_s)^2 ds
    alpha_sec  * int_C (du_m/dn_m + f du_s/dn_s)^2 ds

with n = surface normal x curve tangent the conormal on each side and
f = -1 when both conormals point the same way (+1 otherwise). The
penalty matrices are added to Cnn on the IGA DOFs, so this only applies
when the IGA side is the master side.

Automatic penalty factors scale with the shortest interface element:
alpha_prim = 1 / l_min, alpha_sec = 1 / sqrt(l_min).
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..geometry.multipatch import PatchCollection, WeakContinuityCondition
from ..geometry.patch import PatchSurface
from ..io.config import PatchCouplingSettings
from ..quadrature.gauss import gauss_legendre_1d
from .assembly import CouplingMatrixBuilder

logger = logging.getLogger(__name__)

ANGLE_TOLERANCE = 1e-1


@dataclass
class InterfaceGaussPoint:
    """
    Quadrature point on an interface curve.

    Attributes:
        uv_master, uv_slave: Parametric location on each patch
        weight: Gauss weight on the polyline segment [0, 1]
        jacobian: |dX/dt| of the segment on the master patch
        tangent_master, tangent_slave: Unit Cartesian curve tangents
    """
    uv_master: Tuple[float, float]
    uv_slave: Tuple[float, float]
    weight: float
    jacobian: float
    tangent_master: np.ndarray
    tangent_slave: np.ndarray

    @property
    def length(self) -> float:
        return self.jacobian * self.weight


def _curve_tangent(patch: PatchSurface, uv: np.ndarray, duv: np.ndarray) -> np.ndarray:
    _, G1, G2 = patch.base_vectors(uv[0], uv[1])
    return G1 * duv[0] + G2 * duv[1]


def interface_gauss_points(condition: WeakContinuityCondition,
                           patches: PatchCollection) -> List[InterfaceGaussPoint]:
    """Gauss points along both interface polylines, segment by segment."""
    master, slave = patches[condition.master], patches[condition.slave]
    points, weights = gauss_legendre_1d(condition.n_gauss)
    gps = []
    for k in range(len(condition.master_curve) - 1):
        a_m, b_m = condition.master_curve[k], condition.master_curve[k + 1]
        a_s, b_s = condition.slave_curve[k], condition.slave_curve[k + 1]
        for t, w in zip(points, weights):
            uv_m = a_m + t * (b_m - a_m)
            uv_s = a_s + t * (b_s - a_s)
            dX_m = _curve_tangent(master, uv_m, b_m - a_m)
            dX_s = _curve_tangent(slave, uv_s, b_s - a_s)
            jacobian = float(np.linalg.norm(dX_m))
            if jacobian == 0.0:
                continue
            gps.append(InterfaceGaussPoint(
                uv_master=tuple(master.clamp(*uv_m)), uv_slave=tuple(slave.clamp(*uv_s)),
                weight=float(w), jacobian=jacobian,
                tangent_master=dX_m / jacobian,
                tangent_slave=dX_s / max(np.linalg.norm(dX_s), 1e-300),
            ))
    return gps


def interface_element_lengths(patch: PatchSurface, uvs: List[Tuple[float, float]],
                              lengths: List[float]) -> List[float]:
    """Interface length falling in each knot span element of a patch (non-zero only)."""
    per_span = {}
    for (u, v), length in zip(uvs, lengths):
        key = patch.basis.find_span(u, v)
        per_span[key] = per_span.get(key, 0.0) + length
    return [length for length in per_span.values() if length > 0.0]


def compute_penalty_factors(condition: WeakContinuityCondition, patches: PatchCollection,
                            gps: List[InterfaceGaussPoint]) -> Tuple[float, float]:
    """
    Automatic penalty factors from the shortest interface element.

    Returns:
        (alpha_prim, alpha_sec) = (1 / l_min, 1 / sqrt(l_min))
    """
    lengths = [gp.length for gp in gps]
    all_lengths = (
        interface_element_lengths(patches[condition.master], [gp.uv_master for gp in gps], lengths)
        + interface_element_lengths(patches[condition.slave], [gp.uv_slave for gp in gps], lengths)
    )
    if not all_lengths:
        raise ValueError(
            f"Interface between patches {condition.master} and {condition.slave} has zero length"
        )
    l_min = min(all_lengths)
    return 1.0 / l_min, 1.0 / np.sqrt(l_min)


def _basis_and_conormal_derivative(patch: PatchSurface, uv: Tuple[float, float],
                                   tangent: np.ndarray):
    """Basis values, conormal derivatives, DOF indices and the conormal at uv."""
    table, cp_indices, dofs = patch.local_basis(uv[0], uv[1], n_ders=1)
    cps = patch.control_points[cp_indices]
    G1 = table[1, 0] @ cps
    G2 = table[0, 1] @ cps
    normal = np.cross(G1, G2)
    normal /= np.linalg.norm(normal)

    # contravariant base vectors from the inverse metric
    metric = np.array([[G1 @ G1, G1 @ G2], [G1 @ G2, G2 @ G2]])
    inverse = np.linalg.inv(metric)
    G1_con = inverse[0, 0] * G1 + inverse[0, 1] * G2
    G2_con = inverse[1, 0] * G1 + inverse[1, 1] * G2

    conormal = np.cross(normal, tangent)
    D = table[1, 0] * (G1_con @ conormal) + table[0, 1] * (G2_con @ conormal)
    return table[0, 0], D, dofs, conormal


def assemble_patch_coupling(builder: CouplingMatrixBuilder, patches: PatchCollection,
                            settings: PatchCouplingSettings) -> int:
    """
    Add the penalty matrices of every weak continuity condition to Cnn.

    Parameters:
        builder: Builder whose master side is the IGA side
        patches: Patch collection holding the conditions
        settings: Penalty factors or automatic mode

    Returns:
        Number of interface Gauss points processed
    """
    n_gps = 0
    for condition in patches.weak_continuity_conditions:
        gps = interface_gauss_points(condition, patches)
        if settings.is_automatic_penalty_factors:
            alpha_prim, alpha_sec = compute_penalty_factors(condition, patches, gps)
            logger.info("Automatic patch coupling penalties for patches %d-%d: "
                        "alpha_prim = %.6g, alpha_sec = %.6g",
                        condition.master, condition.slave, alpha_prim, alpha_sec)
        else:
            alpha_prim, alpha_sec = settings.disp_penalty, settings.rot_penalty

        master, slave = patches[condition.master], patches[condition.slave]
        for gp in gps:
            R_m, D_m, dofs_m, n_m = _basis_and_conormal_derivative(master, gp.uv_master, gp.tangent_master)
            R_s, D_s, dofs_s, n_s = _basis_and_conormal_derivative(slave, gp.uv_slave, gp.tangent_slave)
            dofs = np.concatenate((dofs_m, dofs_s))

            if abs(gp.tangent_master @ gp.tangent_slave) < ANGLE_TOLERANCE:
                logger.warning("Interface tangents of patches %d and %d are not parallel at %s",
                               condition.master, condition.slave, gp.uv_master)

            if alpha_prim > 0.0:
                B = np.concatenate((R_m, -R_s))
                builder.add_cnn(dofs, alpha_prim * np.outer(B, B) * gp.length)

            if alpha_sec > 0.0:
                factor = -1.0 if n_m @ n_s > ANGLE_TOLERANCE else 1.0
                D = np.concatenate((D_m, factor * D_s))
                builder.add_cnn(dofs, alpha_sec * np.outer(D, D) * gp.length)
        n_gps += len(gps)
        logger.debug("Weak continuity %d-%d: %d Gauss points",
                     condition.master, condition.slave, len(gps))
    return n_gps
