"""
Sparse space-time least-squares discretisation of the heat equation.

Minimises ||u_t + div q - f||^2 + ||q + M grad u||^2 + ||u(0) - u0||^2 over
the sparse tensor basis that pairs temporal block i with spatial level
L - 1 - i. The unknown vector is [temperature blocks | flux blocks]; inside
space-time block i the DOF of temporal function t and spatial function x
has index t * n_x + x.
"""

import numpy as np
import scipy.sparse as sp
from enum import Enum
from typing import Dict, List, Optional
import logging

from ..config.settings import DiscretisationConfig
from ..core.block_matrix import (
    BlockMatrix, block_offsets, eliminate_rows_cols, zero_entries, upper_triangle
)
from ..core.fe_spaces import H1Space, make_flux_space, FLUX_SPACE_TYPES
from ..core.layout import temporal_block_sizes, space_time_block_sizes
from ..hierarchy.nested import NestedMeshHierarchy, NestedFESpaceHierarchy
from ..operators.block_forms import BlockBilinearForm, BlockMixedBilinearForm
from ..operators.integrators import (
    SpatialMassIntegrator, SpatialStiffnessIntegrator, FluxMassIntegrator,
    FluxDivDivIntegrator, SpatialGradientIntegrator, SpatialDivergenceIntegrator
)
from ..operators.linear_forms import LoadAssembler
from ..operators.temporal import (
    TemporalInitialMatrixAssembler, TemporalMassMatrixAssembler,
    TemporalStiffnessMatrixAssembler, TemporalGradientMatrixAssembler,
    HierarchicalTemporalBasis
)
from .test_cases import HeatTestCase

logger = logging.getLogger(__name__)

TEMPORAL_QUADRATURE_ORDER = 5


class AssemblyState(Enum):
    """Which system sub-matrices are current."""
    UNINITIALIZED = "uninitialized"
    GEOMETRY_ONLY = "geometry_only"
    FULLY_ASSEMBLED = "fully_assembled"


def check_discretisation(config: DiscretisationConfig) -> None:
    """Reject configurations the discretisations cannot handle."""
    if config.deg != 1:
        raise ValueError(f"Only polynomial degree 1 is supported, got {config.deg}")
    if config.discretisation_type not in FLUX_SPACE_TYPES:
        raise ValueError(
            f"Unknown discretisation type: {config.discretisation_type}. "
            f"Available: {list(FLUX_SPACE_TYPES.keys())}"
        )


def kron_blocks(temporal: BlockMatrix, spatial: BlockMatrix, row_sizes: List[int],
                col_sizes: List[int], transpose_temporal: bool = False,
                transpose_spatial: bool = False) -> BlockMatrix:
    """
    Block-wise Kronecker product of a temporal and a spatial block matrix.

    Space-time block (i, j) is temporal(i, j) x spatial(L-1-i, L-1-j). The
    transpose flags take temporal(j, i)^T and spatial(L-1-j, L-1-i)^T instead.
    """
    n_levels = temporal.n_block_rows
    result = BlockMatrix(row_sizes, col_sizes)
    for i in range(n_levels):
        for j in range(n_levels):
            ii, jj = n_levels - 1 - i, n_levels - 1 - j
            t_block = temporal.get_block(j, i).T if transpose_temporal else temporal.get_block(i, j)
            x_block = spatial.get_block(jj, ii).T if transpose_spatial else spatial.get_block(ii, jj)
            if t_block.nnz == 0 or x_block.nnz == 0:
                continue
            result.set_block(i, j, sp.kron(t_block, x_block, format='csr'))
    return result


def _add_block_matrices(a: BlockMatrix, b: BlockMatrix) -> BlockMatrix:
    result = BlockMatrix(a.row_sizes, a.col_sizes)
    for i in range(a.n_block_rows):
        for j in range(a.n_block_cols):
            if a.has_block(i, j) or b.has_block(i, j):
                result.set_block(i, j, a.get_block(i, j) + b.get_block(i, j))
    return result


class SparseSpaceTimeHeatFEM:
    """
    Sparse space-time FEM for the heat equation.

    Usage: construct, set the hierarchies (done by the constructor when a
    mesh hierarchy is given), assemble the sub-matrices, then build the
    system matrix and the right-hand side.
    """

    def __init__(self, config: DiscretisationConfig, test_case: HeatTestCase,
                 mesh_hierarchy: Optional[NestedMeshHierarchy] = None):
        """
        Initialize the discretisation.

        Args:
            config: Discretisation configuration
            test_case: Problem data (medium, source, initial temperature)
            mesh_hierarchy: Finalized nested mesh hierarchy with config.num_levels levels

        Raises:
            ValueError: For unsupported degree or discretisation type
        """
        check_discretisation(config)
        self.config = config
        self.test_case = test_case
        self.num_levels = config.num_levels
        self.end_time = config.end_time
        self.min_temporal_level = config.min_temporal_level
        self.max_temporal_level = config.max_temporal_level

        self.temporal_sizes = temporal_block_sizes(self.min_temporal_level,
                                                   self.max_temporal_level)
        self.temporal_basis = HierarchicalTemporalBasis(
            self.end_time, self.min_temporal_level, self.max_temporal_level
        )
        self.state = AssemblyState.UNINITIALIZED
        self._medium_independent_ready = False
        self.system_matrix: Optional[sp.csr_matrix] = None
        self.rhs: Optional[np.ndarray] = None

        if mesh_hierarchy is not None:
            self.set_nested_fe_hierarchies_and_boundary_dofs(mesh_hierarchy)

        logger.info(f"Initialized SparseSpaceTimeHeatFEM: {config.discretisation_type}, "
                    f"{self.num_levels} levels, temporal levels "
                    f"[{self.min_temporal_level}, {self.max_temporal_level}]")

    def set_nested_fe_hierarchies_and_boundary_dofs(self, mesh_hierarchy: NestedMeshHierarchy) -> None:
        """Build temperature and flux space hierarchies and the essential DOFs."""
        assert mesh_hierarchy.n_levels == self.num_levels, (
            f"Mesh hierarchy has {mesh_hierarchy.n_levels} levels, "
            f"discretisation expects {self.num_levels}"
        )
        if not mesh_hierarchy.is_finalized:
            mesh_hierarchy.finalize()
        self.mesh_hierarchy = mesh_hierarchy
        flux_type = self.config.discretisation_type

        self.temperature_hierarchy = NestedFESpaceHierarchy.from_factory(
            mesh_hierarchy, lambda mesh: H1Space(mesh, self.config.deg)
        )
        self.flux_hierarchy = NestedFESpaceHierarchy.from_factory(
            mesh_hierarchy, lambda mesh: make_flux_space(mesh, flux_type, self.config.deg)
        )

        self.spatial_temperature_sizes = self.temperature_hierarchy.num_dims
        self.spatial_flux_sizes = self.flux_hierarchy.num_dims
        self.temperature_block_sizes = space_time_block_sizes(
            self.temporal_sizes, self.spatial_temperature_sizes
        )
        self.flux_block_sizes = space_time_block_sizes(
            self.temporal_sizes, self.spatial_flux_sizes
        )
        self.block_offsets = block_offsets(self.temperature_block_sizes + self.flux_block_sizes)
        self.n_temperature_dofs = sum(self.temperature_block_sizes)
        self.n_flux_dofs = sum(self.flux_block_sizes)

        self.spatial_boundary_dofs = [space.boundary_dofs()
                                      for space in self.temperature_hierarchy.spaces]
        self.essential_dofs = self._collect_essential_dofs()

        self.state = AssemblyState.GEOMETRY_ONLY
        self._medium_independent_ready = False
        self.system_matrix = None
        logger.info(f"Space-time system size: {self.n_temperature_dofs} temperature + "
                    f"{self.n_flux_dofs} flux dofs, {len(self.essential_dofs)} essential")

    def _collect_essential_dofs(self) -> np.ndarray:
        """Boundary temperature DOFs of every temporal function in every block."""
        dofs = []
        for i in range(self.num_levels):
            ii = self.num_levels - 1 - i
            n_x = self.spatial_temperature_sizes[ii]
            boundary = self.spatial_boundary_dofs[ii]
            t_index = np.arange(self.temporal_sizes[i])
            dofs.append(self.block_offsets[i] + (t_index[:, None] * n_x + boundary[None, :]).ravel())
        return np.sort(np.concatenate(dofs)).astype(np.int64)

    def set_test_case(self, test_case: HeatTestCase) -> None:
        """
        Switch the problem data.

        Medium-dependent matrices become stale; medium-independent ones may be
        reused by the next assembly if requested.
        """
        self.test_case = test_case
        if self.state == AssemblyState.FULLY_ASSEMBLED:
            self.state = AssemblyState.GEOMETRY_ONLY
        self.system_matrix = None
        self.rhs = None

    def _require(self, state: AssemblyState, operation: str) -> None:
        order = [AssemblyState.UNINITIALIZED, AssemblyState.GEOMETRY_ONLY,
                 AssemblyState.FULLY_ASSEMBLED]
        if order.index(self.state) < order.index(state):
            raise RuntimeError(
                f"Cannot {operation} in state {self.state.value}; "
                f"requires {state.value}"
            )

    def assemble_system_sub_matrices(self, reuse_medium_independent: bool = False) -> AssemblyState:
        """
        Assemble the temporal and spatial block matrices.

        Args:
            reuse_medium_independent: Keep the temporal matrices and the spatial
                mass, div-div and divergence matrices from a previous assembly
                and only rebuild the matrices that depend on the medium

        Returns:
            The new assembly state
        """
        self._require(AssemblyState.GEOMETRY_ONLY, "assemble sub-matrices")
        reuse = reuse_medium_independent and self._medium_independent_ready

        if not reuse:
            self._assemble_temporal_matrices()
            self._assemble_medium_independent_spatial_matrices()
            self._medium_independent_ready = True
        else:
            logger.debug("Reusing medium-independent sub-matrices")
        self._assemble_medium_dependent_spatial_matrices()

        self.state = AssemblyState.FULLY_ASSEMBLED
        return self.state

    def _assemble_temporal_matrices(self) -> None:
        args = (self.end_time, self.min_temporal_level, self.max_temporal_level)
        self.temporal_initial = TemporalInitialMatrixAssembler(*args).assemble()
        self.temporal_mass = TemporalMassMatrixAssembler(*args).assemble()
        self.temporal_stiffness = TemporalStiffnessMatrixAssembler(*args).assemble()
        self.temporal_gradient = TemporalGradientMatrixAssembler(*args).assemble()

    def _assemble_medium_independent_spatial_matrices(self) -> None:
        form = BlockBilinearForm(self.temperature_hierarchy)
        form.add_domain_integrator(SpatialMassIntegrator())
        self.spatial_mass1 = form.assemble()

        form = BlockBilinearForm(self.flux_hierarchy)
        form.add_domain_integrator(FluxMassIntegrator())
        self.spatial_mass2 = form.assemble()

        form = BlockBilinearForm(self.flux_hierarchy)
        form.add_domain_integrator(FluxDivDivIntegrator())
        self.spatial_stiffness2 = form.assemble()

        form = BlockMixedBilinearForm(self.flux_hierarchy, self.temperature_hierarchy)
        form.add_domain_integrator(SpatialDivergenceIntegrator())
        self.spatial_divergence = form.assemble()

    def _assemble_medium_dependent_spatial_matrices(self) -> None:
        medium = self.test_case.medium_tensor

        form = BlockBilinearForm(self.temperature_hierarchy)
        form.add_domain_integrator(SpatialStiffnessIntegrator(medium))
        self.spatial_stiffness1 = form.assemble()

        form = BlockMixedBilinearForm(self.temperature_hierarchy, self.flux_hierarchy)
        form.add_domain_integrator(SpatialGradientIntegrator(medium))
        self.spatial_gradient = form.assemble()

    def build_system_blocks(self) -> Dict[str, BlockMatrix]:
        """
        Space-time blocks of the least-squares system (before boundary conditions).

        Returns:
            Dict with block matrices "11", "12", "21" and "22"
        """
        self._require(AssemblyState.FULLY_ASSEMBLED, "build system blocks")
        u_sizes, q_sizes = self.temperature_block_sizes, self.flux_block_sizes

        initial_plus_stiffness = _add_block_matrices(self.temporal_initial,
                                                     self.temporal_stiffness)
        flux_spatial = _add_block_matrices(self.spatial_mass2, self.spatial_stiffness2)

        block11 = _add_block_matrices(
            kron_blocks(self.temporal_mass, self.spatial_stiffness1, u_sizes, u_sizes),
            kron_blocks(initial_plus_stiffness, self.spatial_mass1, u_sizes, u_sizes),
        )
        block22 = kron_blocks(self.temporal_mass, flux_spatial, q_sizes, q_sizes)
        block12 = _add_block_matrices(
            kron_blocks(self.temporal_gradient, self.spatial_divergence, u_sizes, q_sizes,
                        transpose_temporal=True),
            kron_blocks(self.temporal_mass, self.spatial_gradient, u_sizes, q_sizes,
                        transpose_spatial=True),
        )
        block21 = block12.transpose()

        self.blocks = {"11": block11, "12": block12, "21": block21, "22": block22}
        return self.blocks

    def build_system_matrix(self) -> sp.csr_matrix:
        """Monolithic system matrix with essential temperature DOFs eliminated."""
        blocks = self.build_system_blocks()
        matrix = sp.bmat([[blocks["11"].to_csr(), blocks["12"].to_csr()],
                          [blocks["21"].to_csr(), blocks["22"].to_csr()]], format='csr')
        self.system_matrix = eliminate_rows_cols(matrix, self.essential_dofs)
        logger.info(f"System matrix: {self.system_matrix.shape[0]} unknowns, "
                    f"{self.system_matrix.nnz} nonzeros")
        return self.system_matrix

    def build_upper_triangle_of_system_matrix(self) -> sp.csr_matrix:
        """Upper triangle of the (symmetric) system matrix."""
        if self.system_matrix is None:
            self.build_system_matrix()
        return upper_triangle(self.system_matrix)

    def assemble_rhs(self) -> np.ndarray:
        """
        Right-hand side of the least-squares system.

        Temperature rows: (u0, v(0)) + (f, v_t); flux rows: (f, div r).
        Entries of essential DOFs are zero.
        """
        self._require(AssemblyState.GEOMETRY_ONLY, "assemble the right-hand side")
        source = self.test_case.source
        temperature_blocks, flux_blocks = [], []

        for i in range(self.num_levels):
            ii = self.num_levels - 1 - i
            temperature_load = LoadAssembler(self.temperature_hierarchy.get_space(ii), "value")
            flux_load = LoadAssembler(self.flux_hierarchy.get_space(ii), "divergence")

            u_block = np.zeros((self.temporal_sizes[i], temperature_load.space.n_dofs))
            q_block = np.zeros((self.temporal_sizes[i], flux_load.space.n_dofs))
            times, weights = self.temporal_basis.quadrature(i, TEMPORAL_QUADRATURE_ORDER)
            values = self.temporal_basis.values(i, times)
            derivatives = self.temporal_basis.derivatives(i, times)
            for q, (t, w) in enumerate(zip(times, weights)):
                source_at_t = lambda x, t=t: source(x, t)
                u_block += w * np.outer(derivatives[q], temperature_load.assemble(source_at_t))
                q_block += w * np.outer(values[q], flux_load.assemble(source_at_t))

            if i == 0:
                u_block[0] += temperature_load.assemble(self.test_case.initial_temperature)

            temperature_blocks.append(u_block.ravel())
            flux_blocks.append(q_block.ravel())

        rhs = np.concatenate(temperature_blocks + flux_blocks)
        self.rhs = zero_entries(rhs, self.essential_dofs)
        return self.rhs

    @property
    def n_dofs(self) -> int:
        return self.n_temperature_dofs + self.n_flux_dofs

    def __repr__(self) -> str:
        return (f"SparseSpaceTimeHeatFEM(type={self.config.discretisation_type}, "
                f"levels={self.num_levels}, state={self.state.value})")
