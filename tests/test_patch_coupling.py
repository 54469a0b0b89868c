"""
Unit tests for the penalty coupling between patches.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal

from mortarIGA.io.config import PatchCouplingSettings
from mortarIGA.mapping.assembly import CouplingMatrixBuilder
from mortarIGA.mapping.patch_coupling import (
    assemble_patch_coupling, compute_penalty_factors, interface_gauss_points
)


def assemble(patches, settings):
    builder = CouplingMatrixBuilder(patches.n_dofs, 1)
    n_gps = assemble_patch_coupling(builder, patches, settings)
    cnn, _ = builder.to_csr()
    return cnn.toarray(), n_gps


def control_point_x(patches):
    x = np.zeros(patches.n_dofs)
    for patch in patches:
        x[patch.dof_indices] = patch.control_points[:, 0]
    return x


class TestInterfaceGaussPoints:
    """Tests for the quadrature along the seam."""

    def test_seam_points(self, two_patches):
        """Test locations, lengths and tangents along the seam."""
        condition = two_patches.weak_continuity_conditions[0]
        gps = interface_gauss_points(condition, two_patches)

        assert len(gps) == 4
        assert sum(gp.length for gp in gps) == pytest.approx(1.0)
        for gp in gps:
            assert gp.uv_master[0] == pytest.approx(1.0)
            assert gp.uv_slave[0] == pytest.approx(0.0)
            assert gp.uv_master[1] == pytest.approx(gp.uv_slave[1])
            assert_array_almost_equal(gp.tangent_master, [0.0, 1.0, 0.0])
            assert_array_almost_equal(gp.tangent_slave, [0.0, 1.0, 0.0])

    def test_automatic_penalty_factors(self, two_patches):
        """Test the factors from the shortest interface element (0.5 here)."""
        condition = two_patches.weak_continuity_conditions[0]
        gps = interface_gauss_points(condition, two_patches)

        alpha_prim, alpha_sec = compute_penalty_factors(condition, two_patches, gps)

        assert_almost_equal(alpha_prim, 2.0)
        assert_almost_equal(alpha_sec, 1.0 / np.sqrt(0.5))


class TestPatchCoupling:
    """Tests for the penalty matrices added to Cnn."""

    def test_displacement_penalty(self, two_patches):
        """Test that the displacement penalty only sees the jump across the seam."""
        cnn, n_gps = assemble(two_patches, PatchCouplingSettings(disp_penalty=1.0))

        assert n_gps == 4
        assert_array_almost_equal(cnn, cnn.T)
        assert_array_almost_equal(cnn @ np.ones(two_patches.n_dofs), 0.0)
        assert_array_almost_equal(cnn @ control_point_x(two_patches), 0.0)

        # unit jump along a seam of length 1
        left = np.zeros(two_patches.n_dofs)
        left[two_patches[0].dof_indices] = 1.0
        assert left @ cnn @ left == pytest.approx(1.0)

    def test_rotation_penalty(self, two_patches):
        """Test that the rotation penalty vanishes for fields with continuous slope."""
        cnn, _ = assemble(two_patches, PatchCouplingSettings(rot_penalty=1.0))

        assert_array_almost_equal(cnn, cnn.T)
        assert_array_almost_equal(cnn @ np.ones(two_patches.n_dofs), 0.0)
        assert_array_almost_equal(cnn @ control_point_x(two_patches), 0.0)
        assert np.abs(cnn).max() > 0.0

    def test_positive_semidefinite(self, two_patches):
        """Test that the penalty matrix has no negative eigenvalue."""
        cnn, _ = assemble(two_patches, PatchCouplingSettings(disp_penalty=10.0, rot_penalty=1.0))
        eigenvalues = np.linalg.eigvalsh(cnn)
        assert eigenvalues.min() > -1e-10 * eigenvalues.max()

    def test_automatic_mode(self, two_patches):
        """Test that automatic factors replace the configured ones."""
        cnn, _ = assemble(two_patches, PatchCouplingSettings(
            disp_penalty=100.0, is_automatic_penalty_factors=True))
        left = np.zeros(two_patches.n_dofs)
        left[two_patches[0].dof_indices] = 1.0

        # the conormal derivative of a piecewise constant field is 0
        assert left @ cnn @ left == pytest.approx(2.0)

    def test_no_penalty(self, two_patches):
        cnn, n_gps = assemble(two_patches, PatchCouplingSettings())
        assert n_gps == 4
        assert not cnn.any()
