"""
Unit tests for the triplet builder and the sparse mortar operators.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from mortarIGA.mapping.assembly import CouplingMatrixBuilder
from mortarIGA.mapping.coupling_matrices import CouplingMatrices


def make_builder():
    """3 master and 2 slave DOFs with two overlapping blocks."""
    builder = CouplingMatrixBuilder(3, 2)
    block = np.array([[2.0, 1.0], [1.0, 2.0]])
    builder.add_cnn(np.array([0, 1]), block)
    builder.add_cnn(np.array([1, 2]), block)
    builder.add_cnr(np.array([0, 1]), np.array([0]), np.array([[1.0], [2.0]]))
    builder.add_cnr(np.array([1, 2]), np.array([1]), np.array([[1.0], [1.0]]))
    return builder


def make_matrices():
    matrices = CouplingMatrices(3, 2)
    matrices.finalize(make_builder())
    return matrices


class TestCouplingMatrixBuilder:
    """Tests for triplet accumulation."""

    def test_duplicates_summed(self):
        """Test that overlapping blocks are summed."""
        cnn, cnr = make_builder().to_csr()

        assert_array_almost_equal(cnn.toarray(), [[2.0, 1.0, 0.0],
                                                  [1.0, 4.0, 1.0],
                                                  [0.0, 1.0, 2.0]])
        assert_array_almost_equal(cnr.toarray(), [[1.0, 0.0], [2.0, 1.0], [0.0, 1.0]])

    def test_empty_builder(self):
        cnn, cnr = CouplingMatrixBuilder(4, 2).to_csr()
        assert cnn.shape == (4, 4)
        assert cnr.shape == (4, 2)
        assert cnn.nnz == 0

    def test_merge(self):
        """Test that merging adds the triplets of the other builder."""
        builder = make_builder()
        builder.merge(make_builder())
        cnn, _ = builder.to_csr()

        assert cnn[1, 1] == pytest.approx(8.0)

    def test_merge_size_mismatch(self):
        """Test that builders of different sizes cannot be merged."""
        with pytest.raises(ValueError):
            make_builder().merge(CouplingMatrixBuilder(3, 3))


class TestCouplingMatrices:
    """Tests for conditioning and factorization of Cnn."""

    def test_finalize(self):
        matrices = make_matrices()

        assert matrices.cnn.shape == (3, 3)
        assert matrices.cnr.shape == (3, 2)
        assert matrices.is_symmetric()
        assert not matrices.is_factorized

    def test_finalize_size_mismatch(self):
        """Test that a builder of another size is rejected."""
        with pytest.raises(ValueError):
            CouplingMatrices(2, 2).finalize(make_builder())

    def test_solve_requires_factorization(self):
        with pytest.raises(RuntimeError):
            make_matrices().solve(np.ones(3))

    def test_factorize_and_solve(self):
        """Test that solve inverts Cnn."""
        matrices = make_matrices()
        matrices.factorize()
        x = np.array([1.0, 2.0, 3.0])

        assert matrices.is_factorized
        assert matrices.n_factorizations == 1
        assert_array_almost_equal(matrices.solve(matrices.cnn @ x), x)

    def test_solve_multiple_columns(self):
        """Test solving for several right-hand sides at once."""
        matrices = make_matrices()
        matrices.factorize()
        X = np.column_stack((np.ones(3), np.arange(3.0)))

        assert_array_almost_equal(matrices.solve(matrices.cnn @ X), X)

    def test_apply_dirichlet(self):
        """Test that clamped rows get a unit diagonal and zero coupling."""
        matrices = make_matrices()
        matrices.factorize()
        matrices.apply_dirichlet([0])
        cnn = matrices.cnn.toarray()

        assert_array_almost_equal(cnn[0], [1.0, 0.0, 0.0])
        assert_array_almost_equal(cnn[:, 0], [1.0, 0.0, 0.0])
        assert_array_almost_equal(cnn[1:, 1:], [[4.0, 1.0], [1.0, 2.0]])
        assert_array_almost_equal(matrices.cnr.toarray()[0], [0.0, 0.0])
        assert not matrices.is_factorized

        matrices.factorize()
        assert matrices.solve(matrices.cnr @ np.ones(2))[0] == pytest.approx(0.0, abs=1e-14)

    def test_apply_dirichlet_nothing_clamped(self):
        matrices = make_matrices()
        before = matrices.cnn.toarray()
        matrices.apply_dirichlet([])
        assert_array_almost_equal(matrices.cnn.toarray(), before)

    def test_enforce_cnn(self):
        """Test that rows without contribution get a unit diagonal."""
        builder = CouplingMatrixBuilder(4, 2)
        builder.add_cnn(np.array([0, 1]), np.array([[2.0, 1.0], [1.0, 2.0]]))
        builder.add_cnn(np.array([2]), np.array([[1.0]]))
        matrices = CouplingMatrices(4, 2)
        matrices.finalize(builder)

        matrices.enforce_cnn()

        assert matrices.empty_rows == [3]
        assert matrices.cnn[3, 3] == 1.0
        matrices.factorize()
        assert matrices.n_factorizations == 1

    def test_enforce_cnn_full_matrix(self):
        matrices = make_matrices()
        matrices.enforce_cnn()
        assert matrices.empty_rows == []

    def test_replace_rows_by_diagonal(self):
        """Test replacing a row of Cnn by a single diagonal entry."""
        matrices = make_matrices()
        matrices.replace_rows_by_diagonal([1], [5.0])
        cnn = matrices.cnn.toarray()

        assert_array_almost_equal(cnn[1], [0.0, 5.0, 0.0])
        assert cnn[0, 1] == 1.0
        assert not matrices.is_symmetric()

    def test_replace_row_by_diagonal(self):
        matrices = make_matrices()
        matrices.replace_row_by_diagonal(2, 3.0)
        assert_array_almost_equal(matrices.cnn.toarray()[2], [0.0, 0.0, 3.0])

    def test_row_sums_cnr(self):
        assert_array_almost_equal(make_matrices().row_sums_cnr(), [1.0, 3.0, 1.0])
