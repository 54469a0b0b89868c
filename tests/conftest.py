"""
Pytest configuration and shared fixtures for mortar mapper tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mortarIGA.geometry.primitives import (
    make_nurbs_unit_square, make_nurbs_rectangle, make_fe_quad_mesh
)
from mortarIGA.geometry.multipatch import PatchCollection, WeakContinuityCondition


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


@pytest.fixture
def unit_square_patch():
    """Quadratic unit square patch with 3 x 3 elements (identity map)."""
    return make_nurbs_unit_square(p=2, n_elem_xi=3, n_elem_eta=3)


@pytest.fixture
def quad_mesh():
    """4 x 4 bilinear quadrilaterals on the unit square, node ids from 1."""
    return make_fe_quad_mesh(nx=4, ny=4)


@pytest.fixture
def two_patches():
    """
    Unit square split at x = 0.5 into two patches with separate DOFs,
    coupled along the seam (u = 1 on patch 0, u = 0 on patch 1).
    """
    left = make_nurbs_rectangle((0.0, 0.5), (0.0, 1.0), p=2, n_elem_xi=2, n_elem_eta=2)
    right = make_nurbs_rectangle((0.5, 1.0), (0.0, 1.0), p=2, n_elem_xi=2, n_elem_eta=2)
    seam = WeakContinuityCondition(master=0, slave=1,
                                   master_curve=np.array([[1.0, 0.0], [1.0, 1.0]]),
                                   slave_curve=np.array([[0.0, 0.0], [0.0, 1.0]]))
    return PatchCollection.from_patches([left, right], continuity_conditions=[seam])
