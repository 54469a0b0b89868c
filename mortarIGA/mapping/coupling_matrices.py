"""
Sparse mortar operators Cnn and Cnr.

Cnn (n_master x n_master) is the mass matrix of the master side and Cnr
(n_master x n_slave) the mixed mass matrix. Mapping solves

    Cnn x_master = Cnr x_slave

so Cnn is factorized once (scipy.sparse.linalg.splu) and the factor is
reused by every mapping call until rows are modified.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .assembly import CouplingMatrixBuilder

logger = logging.getLogger(__name__)


class CouplingMatrices:
    """
    Holder of the assembled operators and the factorization of Cnn.

    Attributes:
        cnn: CSR master mass matrix
        cnr: CSR mixed mass matrix
        empty_rows: Master DOFs without any contribution (regularized by enforce_cnn)
        n_factorizations: Number of LU factorizations performed
    """

    def __init__(self, n_master: int, n_slave: int):
        self.n_master = n_master
        self.n_slave = n_slave
        self.cnn: sp.csr_matrix = sp.csr_matrix((n_master, n_master))
        self.cnr: sp.csr_matrix = sp.csr_matrix((n_master, n_slave))
        self.empty_rows: List[int] = []
        self.n_factorizations = 0
        self._lu = None

    def finalize(self, builder: CouplingMatrixBuilder):
        """Convert the triplets of builder into CSR matrices."""
        if (builder.n_master, builder.n_slave) != (self.n_master, self.n_slave):
            raise ValueError("Builder size does not match the coupling matrices")
        self.cnn, self.cnr = builder.to_csr()
        self.cnn.eliminate_zeros()
        self.cnr.eliminate_zeros()
        self._lu = None
        logger.info("Coupling matrices finalized: Cnn %dx%d (%d nnz), Cnr %dx%d (%d nnz)",
                    self.n_master, self.n_master, self.cnn.nnz,
                    self.n_master, self.n_slave, self.cnr.nnz)

    def apply_dirichlet(self, clamped: Sequence[int]):
        """
        Eliminate clamped master DOFs.

        Rows and columns of Cnn are zeroed with a unit diagonal, rows of Cnr
        are zeroed, so the mapped value of a clamped DOF is 0.
        """
        clamped = np.asarray(clamped, dtype=int)
        if len(clamped) == 0:
            return
        keep = np.ones(self.n_master)
        keep[clamped] = 0.0
        K = sp.diags(keep)
        self.cnn = (K @ self.cnn @ K + sp.diags(1.0 - keep)).tocsr()
        self.cnr = (K @ self.cnr).tocsr()
        self.cnn.eliminate_zeros()
        self.cnr.eliminate_zeros()
        self._lu = None
        logger.info("Dirichlet conditions applied on %d DOFs", len(clamped))

    def enforce_cnn(self):
        """Put a unit diagonal on the empty rows of Cnn and remember them."""
        row_nnz = np.diff(self.cnn.indptr)
        empty = np.flatnonzero(row_nnz == 0)
        self.empty_rows = empty.tolist()
        if len(empty):
            diagonal = np.zeros(self.n_master)
            diagonal[empty] = 1.0
            self.cnn = (self.cnn + sp.diags(diagonal)).tocsr()
            self._lu = None
            logger.info("%d empty rows of Cnn regularized", len(empty))

    def factorize(self):
        """LU factorization of Cnn."""
        self._lu = spla.splu(self.cnn.tocsc())
        self.n_factorizations += 1
        logger.debug("Cnn factorized (%d factorization(s))", self.n_factorizations)

    @property
    def is_factorized(self) -> bool:
        return self._lu is not None

    def solve(self, rhs: np.ndarray) -> np.ndarray:
        """Solve Cnn x = rhs with the current factorization."""
        if self._lu is None:
            raise RuntimeError("Cnn is not factorized")
        return self._lu.solve(np.asarray(rhs, dtype=np.float64))

    def row_sums_cnr(self) -> np.ndarray:
        return np.asarray(self.cnr.sum(axis=1)).ravel()

    def replace_rows_by_diagonal(self, rows: Sequence[int], values: Sequence[float]):
        """Replace whole rows of Cnn by a single diagonal entry each."""
        rows = np.asarray(rows, dtype=int)
        if len(rows) == 0:
            return
        keep = np.ones(self.n_master)
        keep[rows] = 0.0
        diagonal = np.zeros(self.n_master)
        diagonal[rows] = values
        self.cnn = (sp.diags(keep) @ self.cnn + sp.diags(diagonal)).tocsr()
        self.cnn.eliminate_zeros()
        self._lu = None

    def replace_row_by_diagonal(self, row: int, value: float):
        self.replace_rows_by_diagonal([row], [value])

    def is_symmetric(self, tol: Optional[float] = 1e-12) -> bool:
        """Whether Cnn equals its transpose up to tol (relative to its largest entry)."""
        diff = abs(self.cnn - self.cnn.T)
        scale = max(abs(self.cnn).max(), 1.0) if self.cnn.nnz else 1.0
        return diff.nnz == 0 or diff.max() <= tol * scale
