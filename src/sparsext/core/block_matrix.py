"""Block sparse matrices and Dirichlet elimination helpers."""

import numpy as np
import scipy.sparse as sp
from typing import Iterable, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


def block_offsets(sizes: Sequence[int]) -> np.ndarray:
    """Cumulative offsets [0, s0, s0 + s1, ...] of a block partition."""
    return np.concatenate([[0], np.cumsum(np.asarray(sizes, dtype=np.int64))]).astype(np.int64)


class BlockMatrix:
    """
    Rectangular grid of sparse blocks.

    Block (i, j) has shape (row_sizes[i], col_sizes[j]). Unset blocks are
    treated as zero. The matrix owns its blocks and hands out CSR matrices.
    """

    def __init__(self, row_sizes: Sequence[int], col_sizes: Optional[Sequence[int]] = None):
        """
        Initialize an empty block matrix.

        Args:
            row_sizes: Number of rows of each block row
            col_sizes: Number of columns of each block column (defaults to row_sizes)
        """
        self.row_sizes = [int(s) for s in row_sizes]
        self.col_sizes = [int(s) for s in (col_sizes if col_sizes is not None else row_sizes)]
        if any(s < 0 for s in self.row_sizes + self.col_sizes):
            raise ValueError("Block sizes must be non-negative")
        self.row_offsets = block_offsets(self.row_sizes)
        self.col_offsets = block_offsets(self.col_sizes)
        self._blocks: List[List[Optional[sp.csr_matrix]]] = [
            [None] * len(self.col_sizes) for _ in self.row_sizes
        ]

    @property
    def n_block_rows(self) -> int:
        return len(self.row_sizes)

    @property
    def n_block_cols(self) -> int:
        return len(self.col_sizes)

    @property
    def shape(self):
        return int(self.row_offsets[-1]), int(self.col_offsets[-1])

    def block_shape(self, i: int, j: int):
        return self.row_sizes[i], self.col_sizes[j]

    def has_block(self, i: int, j: int) -> bool:
        return self._blocks[i][j] is not None

    def get_block(self, i: int, j: int) -> sp.csr_matrix:
        """Block (i, j); an explicit zero matrix if the block is unset."""
        block = self._blocks[i][j]
        if block is None:
            return sp.csr_matrix(self.block_shape(i, j))
        return block

    def set_block(self, i: int, j: int, matrix) -> None:
        matrix = sp.csr_matrix(matrix)
        if matrix.shape != self.block_shape(i, j):
            raise ValueError(
                f"Block ({i}, {j}) must have shape {self.block_shape(i, j)}, "
                f"got {matrix.shape}"
            )
        self._blocks[i][j] = matrix

    def add_to_block(self, i: int, j: int, matrix) -> None:
        if self._blocks[i][j] is None:
            self.set_block(i, j, matrix)
        else:
            self.set_block(i, j, self._blocks[i][j] + sp.csr_matrix(matrix))

    def transpose(self) -> 'BlockMatrix':
        result = BlockMatrix(self.col_sizes, self.row_sizes)
        for i in range(self.n_block_rows):
            for j in range(self.n_block_cols):
                if self._blocks[i][j] is not None:
                    result.set_block(j, i, self._blocks[i][j].T)
        return result

    def to_csr(self) -> sp.csr_matrix:
        """Monolithic CSR matrix."""
        grid = [[self.get_block(i, j) for j in range(self.n_block_cols)]
                for i in range(self.n_block_rows)]
        return sp.bmat(grid, format='csr')

    def dot(self, x: np.ndarray) -> np.ndarray:
        return self.to_csr() @ x

    def __str__(self) -> str:
        return f"BlockMatrix({self.n_block_rows}x{self.n_block_cols}, shape={self.shape})"

    def __repr__(self) -> str:
        return f"BlockMatrix(row_sizes={self.row_sizes}, col_sizes={self.col_sizes})"


def eliminate_rows_cols(matrix: sp.spmatrix, dofs: Iterable[int]) -> sp.csr_matrix:
    """
    Zero the rows and columns of the given DOFs and put 1 on their diagonal.

    Args:
        matrix: Square sparse matrix
        dofs: Indices of the eliminated (essential) DOFs

    Returns:
        New CSR matrix with the eliminated rows/columns replaced by identity
    """
    n = matrix.shape[0]
    if matrix.shape[1] != n:
        raise ValueError(f"Elimination needs a square matrix, got {matrix.shape}")
    keep = np.ones(n)
    keep[np.asarray(list(dofs), dtype=np.int64)] = 0.0
    D = sp.diags(keep)
    result = D @ sp.csr_matrix(matrix) @ D + sp.diags(1.0 - keep)
    result = sp.csr_matrix(result)
    result.eliminate_zeros()
    return result


def zero_entries(vector: np.ndarray, dofs: Iterable[int]) -> np.ndarray:
    """Copy of a vector with the given entries set to zero."""
    result = np.array(vector, dtype=np.float64)
    result[np.asarray(list(dofs), dtype=np.int64)] = 0.0
    return result


def upper_triangle(matrix: sp.spmatrix) -> sp.csr_matrix:
    """Upper triangle (including the diagonal) of a sparse matrix."""
    return sp.triu(matrix, format='csr')
