"""
Closed-form temporal matrices of the 1D hierarchical hat basis.

Level range [min_level, max_level] on [0, T]. Block 0 holds the nodal hat
functions on 2^min_level intervals; block m >= 1 holds the hats added by
level min_level + m, centred at the odd nodes of that level's grid. With
h_m = T / 2^(min_level + m), hat j of block m lives on [2 j h_m, (2 j + 2) h_m].

All entries follow from the binary subdivision: a fine hat lies inside the
support of exactly one hat of every coarser hierarchical block, and inside
one interval of the nodal block. No quadrature is involved.
"""

import numpy as np
import scipy.sparse as sp
from abc import ABC, abstractmethod
from typing import List, Tuple
import logging

from ..core.block_matrix import BlockMatrix, block_offsets
from ..core.layout import temporal_block_sizes
from ..core.quadrature import interval_rule

logger = logging.getLogger(__name__)


def _subdivision_position(i: int, factor: int) -> Tuple[int, int, bool, int]:
    """
    Position of fine hat i inside the support of its coarse ancestor.

    Returns:
        (ancestor index, offset in the ancestor, left half?, offset mirrored
        into the left half)
    """
    half = factor // 2
    ancestor, offset = divmod(i, factor)
    left = offset < half
    mirrored = offset if left else factor - offset - 1
    return ancestor, offset, left, mirrored


class TemporalBlockMatrixAssembler(ABC):
    """
    Base class of the temporal hierarchical block matrix assemblers.

    Subclasses provide the diagonal and lower blocks; upper blocks default
    to transposes of the lower ones.
    """

    def __init__(self, end_time: float, min_level: int, max_level: int):
        """
        Initialize assembler.

        Args:
            end_time: Final time T
            min_level: Temporal level of the nodal block
            max_level: Finest temporal level
        """
        if end_time <= 0:
            raise ValueError(f"End time must be positive, got {end_time}")
        self.end_time = float(end_time)
        self.min_level = min_level
        self.max_level = max_level
        self.block_sizes = temporal_block_sizes(min_level, max_level)
        self.block_offsets = block_offsets(self.block_sizes)
        self.n_levels = len(self.block_sizes)
        self.mesh_sizes = [self.end_time / 2 ** (min_level + m) for m in range(self.n_levels)]

    def assemble(self) -> BlockMatrix:
        matrix = BlockMatrix(self.block_sizes)
        for m in range(self.n_levels):
            matrix.set_block(m, m, self.assemble_diagonal_block(m))
            for n in range(m):
                matrix.set_block(m, n, self.assemble_lower_block(m, n))
                matrix.set_block(n, m, self.assemble_upper_block(n, m))
        logger.debug(f"{type(self).__name__}: assembled {self.n_levels}x{self.n_levels} "
                     f"blocks, sizes {self.block_sizes}")
        return matrix

    def _empty(self, m: int, n: int) -> sp.lil_matrix:
        return sp.lil_matrix((self.block_sizes[m], self.block_sizes[n]))

    def _nodal_tridiagonal(self, end: float, interior: float, off: float) -> sp.csr_matrix:
        size = self.block_sizes[0]
        diagonal = np.full(size, interior)
        diagonal[0] = diagonal[-1] = end
        offdiag = np.full(size - 1, off)
        return sp.diags([offdiag, diagonal, offdiag], [-1, 0, 1], format='csr')

    @abstractmethod
    def assemble_diagonal_block(self, m: int) -> sp.spmatrix:
        pass

    @abstractmethod
    def assemble_lower_block(self, m: int, n: int) -> sp.spmatrix:
        """Block (m, n) with m > n: rows fine hats, columns coarse functions."""
        pass

    def assemble_upper_block(self, m: int, n: int) -> sp.spmatrix:
        """Block (m, n) with m < n."""
        return sp.csr_matrix(self.assemble_lower_block(n, m).T)


class TemporalInitialMatrixAssembler(TemporalBlockMatrixAssembler):
    """u(0) v(0): only the first nodal hat is nonzero at t = 0."""

    def assemble_diagonal_block(self, m):
        block = self._empty(m, m)
        if m == 0:
            block[0, 0] = 1.0
        return block.tocsr()

    def assemble_lower_block(self, m, n):
        return self._empty(m, n).tocsr()


class TemporalMassMatrixAssembler(TemporalBlockMatrixAssembler):
    """Temporal mass matrix (theta_j, theta_i)."""

    def assemble_diagonal_block(self, m):
        h = self.mesh_sizes[m]
        if m == 0:
            return self._nodal_tridiagonal(h / 3.0, 2.0 * h / 3.0, h / 6.0)
        return sp.diags(np.full(self.block_sizes[m], 2.0 * h / 3.0), format='csr')

    def assemble_lower_block(self, m, n):
        factor = 2 ** (m - n)
        half = factor // 2
        scale = self.mesh_sizes[m] ** 2 / self.mesh_sizes[n]
        block = self._empty(m, n)
        for i in range(self.block_sizes[m]):
            ancestor, _, _, mirrored = _subdivision_position(i, factor)
            if n > 0:
                block[i, ancestor] = (2 * mirrored + 1) * scale
            else:
                # the two nodal hats of the coarse interval containing hat i
                interval, position = divmod(i, half)
                block[i, interval] = (factor - 2 * position - 1) * scale
                block[i, interval + 1] = (2 * position + 1) * scale
        return block.tocsr()


class TemporalStiffnessMatrixAssembler(TemporalBlockMatrixAssembler):
    """Temporal stiffness matrix (theta_j', theta_i'); levels are orthogonal."""

    def assemble_diagonal_block(self, m):
        h = self.mesh_sizes[m]
        if m == 0:
            return self._nodal_tridiagonal(1.0 / h, 2.0 / h, -1.0 / h)
        return sp.diags(np.full(self.block_sizes[m], 2.0 / h), format='csr')

    def assemble_lower_block(self, m, n):
        return self._empty(m, n).tocsr()

    def assemble_upper_block(self, m, n):
        return self._empty(m, n).tocsr()


class TemporalGradientMatrixAssembler(TemporalBlockMatrixAssembler):
    """Temporal gradient matrix G(i, j) = (theta_j', theta_i)."""

    def assemble_diagonal_block(self, m):
        if m > 0:
            return self._empty(m, m).tocsr()
        size = self.block_sizes[0]
        diagonal = np.zeros(size)
        diagonal[0], diagonal[-1] = -0.5, 0.5
        return sp.diags([np.full(size - 1, -0.5), diagonal, np.full(size - 1, 0.5)],
                        [-1, 0, 1], format='csr')

    def assemble_lower_block(self, m, n):
        factor = 2 ** (m - n)
        ratio = self.mesh_sizes[m] / self.mesh_sizes[n]
        block = self._empty(m, n)
        for i in range(self.block_sizes[m]):
            ancestor, _, left, _ = _subdivision_position(i, factor)
            sign = 1.0 if left else -1.0
            if n > 0:
                block[i, ancestor] = sign * ratio
            else:
                interval = i // (factor // 2)
                block[i, interval] = -ratio
                block[i, interval + 1] = ratio
        return block.tocsr()

    def assemble_upper_block(self, m, n):
        factor = 2 ** (n - m)
        ratio = self.mesh_sizes[n] / self.mesh_sizes[m]
        block = self._empty(m, n)
        for j in range(self.block_sizes[n]):
            ancestor, _, left, _ = _subdivision_position(j, factor)
            sign = -1.0 if left else 1.0
            if m > 0:
                block[ancestor, j] = sign * ratio
            else:
                interval = j // (factor // 2)
                block[interval, j] = ratio
                block[interval + 1, j] = -ratio
        return block.tocsr()


class HierarchicalTemporalBasis:
    """
    Pointwise evaluation of the hierarchical temporal basis.

    Used for right-hand sides and to cross-check the closed-form matrices.
    Derivatives at grid nodes are taken from the right.
    """

    def __init__(self, end_time: float, min_level: int, max_level: int):
        if end_time <= 0:
            raise ValueError(f"End time must be positive, got {end_time}")
        self.end_time = float(end_time)
        self.min_level = min_level
        self.max_level = max_level
        self.block_sizes = temporal_block_sizes(min_level, max_level)
        self.n_levels = len(self.block_sizes)
        self.mesh_sizes = [self.end_time / 2 ** (min_level + m) for m in range(self.n_levels)]

    def _local_coordinates(self, block: int, t: np.ndarray) -> np.ndarray:
        t = np.atleast_1d(np.asarray(t, dtype=np.float64))
        h = self.mesh_sizes[block]
        index = np.arange(self.block_sizes[block])
        centres = index if block == 0 else 2 * index + 1
        return t[:, None] / h - centres[None, :]

    def values(self, block: int, t: np.ndarray) -> np.ndarray:
        """Basis values of one block, shape (len(t), block size)."""
        s = self._local_coordinates(block, t)
        return np.maximum(0.0, 1.0 - np.abs(s))

    def derivatives(self, block: int, t: np.ndarray) -> np.ndarray:
        """Basis derivatives of one block, shape (len(t), block size)."""
        s = self._local_coordinates(block, t)
        h = self.mesh_sizes[block]
        rising = (s >= -1.0) & (s < 0.0)
        falling = (s >= 0.0) & (s < 1.0)
        return (rising.astype(float) - falling.astype(float)) / h

    def grid(self, block: int) -> np.ndarray:
        """Nodes of the grid on which the block is piecewise linear."""
        n_intervals = 2 ** (self.min_level + block)
        return np.linspace(0.0, self.end_time, n_intervals + 1)

    def quadrature(self, block: int, order: int = 5) -> Tuple[np.ndarray, np.ndarray]:
        """Composite Gauss rule on the grid of a block: (points, weights)."""
        return composite_gauss_rule(self.grid(block), order)


def composite_gauss_rule(nodes: np.ndarray, order: int) -> Tuple[np.ndarray, np.ndarray]:
    """Gauss-Legendre rule of the given order on every interval of a 1D grid."""
    rule = interval_rule(order)
    lengths = np.diff(nodes)
    points = (nodes[:-1, None] + lengths[:, None] * rule.points[:, 0][None, :]).ravel()
    weights = (lengths[:, None] * rule.weights[None, :]).ravel()
    return points, weights


TEMPORAL_ASSEMBLERS = {
    "initial": TemporalInitialMatrixAssembler,
    "mass": TemporalMassMatrixAssembler,
    "stiffness": TemporalStiffnessMatrixAssembler,
    "gradient": TemporalGradientMatrixAssembler,
}


def assemble_temporal_matrices(end_time: float, min_level: int,
                               max_level: int) -> List[BlockMatrix]:
    """Initial, mass, stiffness and gradient block matrices, in that order."""
    return [TEMPORAL_ASSEMBLERS[name](end_time, min_level, max_level).assemble()
            for name in ("initial", "mass", "stiffness", "gradient")]
