"""Assembly of block bilinear forms over nested FE-space hierarchies."""

import numpy as np
import scipy.sparse as sp
from typing import Dict, List, Tuple
import logging

from ..core.block_matrix import BlockMatrix
from ..hierarchy.nested import NestedFESpaceHierarchy
from .base import BlockBilinearFormIntegrator, BlockMixedBilinearFormIntegrator

logger = logging.getLogger(__name__)


class _Triplets:
    """COO accumulator for one block; duplicates are summed on conversion."""

    def __init__(self, shape: Tuple[int, int]):
        self.shape = shape
        self.rows: List[np.ndarray] = []
        self.cols: List[np.ndarray] = []
        self.vals: List[np.ndarray] = []

    def add(self, row_dofs: np.ndarray, col_dofs: np.ndarray, local: np.ndarray) -> None:
        rr, cc = np.meshgrid(row_dofs, col_dofs, indexing='ij')
        self.rows.append(rr.ravel())
        self.cols.append(cc.ravel())
        self.vals.append(np.asarray(local).ravel())

    def to_csr(self) -> sp.csr_matrix:
        if not self.vals:
            return sp.csr_matrix(self.shape)
        matrix = sp.coo_matrix(
            (np.concatenate(self.vals), (np.concatenate(self.rows), np.concatenate(self.cols))),
            shape=self.shape
        )
        return matrix.tocsr()


class BlockBilinearForm:
    """
    Symmetric bilinear form on a nested FE-space hierarchy.

    Block (m, n) couples test functions of level m with trial functions of
    level n. Diagonal blocks come from same-level element matrices; lower
    blocks (m > n) are integrated on the fine elements of level m against
    their ancestors on level n; upper blocks are the transposes.
    """

    def __init__(self, space_hierarchy: NestedFESpaceHierarchy):
        self.space_hierarchy = space_hierarchy
        self.integrators: List[BlockBilinearFormIntegrator] = []
        self.block_matrix: BlockMatrix = None

    def add_domain_integrator(self, integrator: BlockBilinearFormIntegrator) -> None:
        if not isinstance(integrator, BlockBilinearFormIntegrator):
            raise TypeError(
                f"Expected a BlockBilinearFormIntegrator, got {type(integrator).__name__}"
            )
        self.integrators.append(integrator)

    def assemble(self) -> BlockMatrix:
        """Assemble all blocks and return the block matrix."""
        hierarchy = self.space_hierarchy
        n_levels = hierarchy.n_levels
        sizes = hierarchy.num_dims
        blocks: Dict[Tuple[int, int], _Triplets] = {}

        for level in range(n_levels):
            space = hierarchy.get_space(level)
            acc = blocks.setdefault((level, level), _Triplets((sizes[level], sizes[level])))
            for element in range(space.mesh.n_elements):
                dofs = space.element_dofs(element)
                for integrator in self.integrators:
                    acc.add(dofs, dofs, integrator.assemble_same_level(space, element))

        for m in range(1, n_levels):
            fine_space = hierarchy.get_space(m)
            for n in range(m - 1, -1, -1):
                coarse_space = hierarchy.get_space(n)
                table = hierarchy.get_table(n, m)
                acc = blocks.setdefault((m, n), _Triplets((sizes[m], sizes[n])))
                for coarse_element, children in table:
                    coarse_dofs = coarse_space.element_dofs(coarse_element)
                    for fine_element in children:
                        fine_dofs = fine_space.element_dofs(fine_element)
                        for integrator in self.integrators:
                            local = integrator.assemble_cross_level(
                                fine_space, fine_element, coarse_space, coarse_element
                            )
                            acc.add(fine_dofs, coarse_dofs, local)

        result = BlockMatrix(sizes)
        for (m, n), acc in blocks.items():
            result.set_block(m, n, acc.to_csr())
            if m != n:
                result.set_block(n, m, result.get_block(m, n).T)

        self.block_matrix = result
        logger.debug(f"Assembled block form {[str(i) for i in self.integrators]} "
                     f"on {n_levels} levels, sizes {sizes}")
        return result


class BlockMixedBilinearForm:
    """
    Mixed bilinear form between a trial and a test space hierarchy.

    Block (m, n) has rows from test level m and columns from trial level n.
    Lower blocks (m > n) integrate fine test against coarse trial functions,
    upper blocks (m < n) coarse test against fine trial functions.
    """

    def __init__(self, trial_hierarchy: NestedFESpaceHierarchy,
                 test_hierarchy: NestedFESpaceHierarchy):
        assert trial_hierarchy.n_levels == test_hierarchy.n_levels, (
            f"Trial and test hierarchies need the same number of levels, "
            f"got {trial_hierarchy.n_levels} and {test_hierarchy.n_levels}"
        )
        self.trial_hierarchy = trial_hierarchy
        self.test_hierarchy = test_hierarchy
        self.integrators: List[BlockMixedBilinearFormIntegrator] = []
        self.block_matrix: BlockMatrix = None

    def add_domain_integrator(self, integrator: BlockMixedBilinearFormIntegrator) -> None:
        if not isinstance(integrator, BlockMixedBilinearFormIntegrator):
            raise TypeError(
                f"Expected a BlockMixedBilinearFormIntegrator, got {type(integrator).__name__}"
            )
        self.integrators.append(integrator)

    def assemble(self) -> BlockMatrix:
        trial_h = self.trial_hierarchy
        test_h = self.test_hierarchy
        n_levels = trial_h.n_levels
        trial_sizes = trial_h.num_dims
        test_sizes = test_h.num_dims
        blocks: Dict[Tuple[int, int], _Triplets] = {}

        for level in range(n_levels):
            trial_space = trial_h.get_space(level)
            test_space = test_h.get_space(level)
            acc = blocks.setdefault(
                (level, level), _Triplets((test_sizes[level], trial_sizes[level]))
            )
            for element in range(test_space.mesh.n_elements):
                test_dofs = test_space.element_dofs(element)
                trial_dofs = trial_space.element_dofs(element)
                for integrator in self.integrators:
                    acc.add(test_dofs, trial_dofs,
                            integrator.assemble_same_level(trial_space, test_space, element))

        for m in range(1, n_levels):
            for n in range(m - 1, -1, -1):
                table = test_h.get_table(n, m)
                lower = blocks.setdefault((m, n), _Triplets((test_sizes[m], trial_sizes[n])))
                upper = blocks.setdefault((n, m), _Triplets((test_sizes[n], trial_sizes[m])))
                fine_test, coarse_trial = test_h.get_space(m), trial_h.get_space(n)
                coarse_test, fine_trial = test_h.get_space(n), trial_h.get_space(m)
                for coarse_element, children in table:
                    coarse_trial_dofs = coarse_trial.element_dofs(coarse_element)
                    coarse_test_dofs = coarse_test.element_dofs(coarse_element)
                    for fine_element in children:
                        fine_test_dofs = fine_test.element_dofs(fine_element)
                        fine_trial_dofs = fine_trial.element_dofs(fine_element)
                        for integrator in self.integrators:
                            lower.add(fine_test_dofs, coarse_trial_dofs,
                                      integrator.assemble_cross_level(
                                          fine_test, fine_element, coarse_trial, coarse_element))
                            upper.add(coarse_test_dofs, fine_trial_dofs,
                                      integrator.assemble_cross_level_upper(
                                          coarse_test, coarse_element, fine_trial, fine_element))

        result = BlockMatrix(test_sizes, trial_sizes)
        for (m, n), acc in blocks.items():
            result.set_block(m, n, acc.to_csr())

        self.block_matrix = result
        logger.debug(f"Assembled mixed block form {[str(i) for i in self.integrators]} "
                     f"on {n_levels} levels")
        return result
