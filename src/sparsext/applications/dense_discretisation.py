"""
Full tensor-product space-time least-squares discretisation (reference).

Continuous piecewise linears on 2^max_temporal_level uniform time intervals
combined with one spatial FE space on a single mesh. The temporal matrices
are assembled element by element with Gauss quadrature. With a single
spatial level this coincides with the sparse discretisation and serves as
its oracle.
"""

import numpy as np
import scipy.sparse as sp
from typing import Optional, Tuple
import logging

from ..config.settings import DiscretisationConfig
from ..core.block_matrix import eliminate_rows_cols, zero_entries, upper_triangle
from ..core.fe_spaces import H1Space, make_flux_space
from ..core.mesh import SimplexMesh
from ..core.quadrature import interval_rule
from ..hierarchy.nested import NestedMeshHierarchy, NestedFESpaceHierarchy
from ..operators.block_forms import BlockBilinearForm, BlockMixedBilinearForm
from ..operators.integrators import (
    SpatialMassIntegrator, SpatialStiffnessIntegrator, FluxMassIntegrator,
    FluxDivDivIntegrator, SpatialGradientIntegrator, SpatialDivergenceIntegrator
)
from ..operators.linear_forms import LoadAssembler
from ..operators.temporal import HierarchicalTemporalBasis
from .sparse_discretisation import AssemblyState, check_discretisation, TEMPORAL_QUADRATURE_ORDER
from .test_cases import HeatTestCase

logger = logging.getLogger(__name__)


class UniformTemporalMesh:
    """Uniform partition of [0, T] with continuous piecewise linear hats."""

    def __init__(self, end_time: float, n_intervals: int):
        if end_time <= 0 or n_intervals < 1:
            raise ValueError(f"Invalid temporal mesh: T={end_time}, intervals={n_intervals}")
        self.end_time = float(end_time)
        self.n_intervals = n_intervals
        self.nodes = np.linspace(0.0, end_time, n_intervals + 1)
        self.h = self.end_time / n_intervals

    @property
    def n_dofs(self) -> int:
        return self.n_intervals + 1

    def element_quadrature(self, element: int, order: int) -> Tuple[np.ndarray, np.ndarray,
                                                                     np.ndarray, np.ndarray]:
        """Points, weights, local hat values (n, 2) and local derivatives (2,)."""
        rule = interval_rule(order)
        s = rule.points[:, 0]
        times = self.nodes[element] + self.h * s
        values = np.column_stack([1.0 - s, s])
        derivatives = np.array([-1.0, 1.0]) / self.h
        return times, self.h * rule.weights, values, derivatives

    def assemble_matrices(self):
        """Initial, mass, stiffness and gradient matrices (gradient G(i, j) = (phi_j', phi_i))."""
        n = self.n_dofs
        mass = sp.lil_matrix((n, n))
        stiffness = sp.lil_matrix((n, n))
        gradient = sp.lil_matrix((n, n))
        for k in range(self.n_intervals):
            _, weights, values, derivatives = self.element_quadrature(k, 2)
            local_mass = np.einsum('q,qi,qj->ij', weights, values, values)
            local_stiffness = weights.sum() * np.outer(derivatives, derivatives)
            local_gradient = np.einsum('q,qi,j->ij', weights, values, derivatives)
            for a in range(2):
                for b in range(2):
                    mass[k + a, k + b] += local_mass[a, b]
                    stiffness[k + a, k + b] += local_stiffness[a, b]
                    gradient[k + a, k + b] += local_gradient[a, b]
        initial = sp.lil_matrix((n, n))
        initial[0, 0] = 1.0
        return initial.tocsr(), mass.tocsr(), stiffness.tocsr(), gradient.tocsr()


class DenseSpaceTimeHeatFEM:
    """Tensor-product space-time FEM for the heat equation on one spatial mesh."""

    def __init__(self, config: DiscretisationConfig, test_case: HeatTestCase,
                 mesh: Optional[SimplexMesh] = None):
        """
        Initialize the discretisation.

        Args:
            config: Discretisation configuration (time grid from max_temporal_level)
            test_case: Problem data
            mesh: Spatial mesh
        """
        check_discretisation(config)
        self.config = config
        self.test_case = test_case
        self.temporal_mesh = UniformTemporalMesh(config.end_time, 2 ** config.max_temporal_level)
        # single nodal block, used for space-time error evaluation
        self.temporal_basis = HierarchicalTemporalBasis(
            config.end_time, config.max_temporal_level, config.max_temporal_level
        )
        self.state = AssemblyState.UNINITIALIZED
        self.system_matrix: Optional[sp.csr_matrix] = None
        self.rhs: Optional[np.ndarray] = None
        if mesh is not None:
            self.set_spaces_and_boundary_dofs(mesh)

    def set_spaces_and_boundary_dofs(self, mesh: SimplexMesh) -> None:
        hierarchy = NestedMeshHierarchy([mesh])
        self.mesh = mesh
        self.temperature_hierarchy = NestedFESpaceHierarchy.from_factory(
            hierarchy, lambda m: H1Space(m, self.config.deg)
        )
        self.flux_hierarchy = NestedFESpaceHierarchy.from_factory(
            hierarchy, lambda m: make_flux_space(m, self.config.discretisation_type, self.config.deg)
        )
        self.temperature_space = self.temperature_hierarchy.get_space(0)
        self.flux_space = self.flux_hierarchy.get_space(0)

        n_t = self.temporal_mesh.n_dofs
        self.n_temperature_dofs = n_t * self.temperature_space.n_dofs
        self.n_flux_dofs = n_t * self.flux_space.n_dofs

        boundary = self.temperature_space.boundary_dofs()
        n_x = self.temperature_space.n_dofs
        self.essential_dofs = np.sort(
            (np.arange(n_t)[:, None] * n_x + boundary[None, :]).ravel()
        ).astype(np.int64)
        self.state = AssemblyState.GEOMETRY_ONLY
        logger.info(f"Dense space-time system size: {self.n_temperature_dofs} temperature + "
                    f"{self.n_flux_dofs} flux dofs")

    def assemble_system_sub_matrices(self) -> AssemblyState:
        if self.state == AssemblyState.UNINITIALIZED:
            raise RuntimeError("Spaces must be set before assembling sub-matrices")
        (self.temporal_initial, self.temporal_mass, self.temporal_stiffness,
         self.temporal_gradient) = self.temporal_mesh.assemble_matrices()

        medium = self.test_case.medium_tensor
        self.spatial_mass1 = self._assemble_single(self.temperature_hierarchy, SpatialMassIntegrator())
        self.spatial_stiffness1 = self._assemble_single(self.temperature_hierarchy,
                                                        SpatialStiffnessIntegrator(medium))
        self.spatial_mass2 = self._assemble_single(self.flux_hierarchy, FluxMassIntegrator())
        self.spatial_stiffness2 = self._assemble_single(self.flux_hierarchy, FluxDivDivIntegrator())

        form = BlockMixedBilinearForm(self.flux_hierarchy, self.temperature_hierarchy)
        form.add_domain_integrator(SpatialDivergenceIntegrator())
        self.spatial_divergence = form.assemble().get_block(0, 0)

        form = BlockMixedBilinearForm(self.temperature_hierarchy, self.flux_hierarchy)
        form.add_domain_integrator(SpatialGradientIntegrator(medium))
        self.spatial_gradient = form.assemble().get_block(0, 0)

        self.state = AssemblyState.FULLY_ASSEMBLED
        return self.state

    @staticmethod
    def _assemble_single(hierarchy: NestedFESpaceHierarchy, integrator) -> sp.csr_matrix:
        form = BlockBilinearForm(hierarchy)
        form.add_domain_integrator(integrator)
        return form.assemble().get_block(0, 0)

    def build_system_blocks(self):
        if self.state != AssemblyState.FULLY_ASSEMBLED:
            raise RuntimeError("Sub-matrices must be assembled before building the system")
        block11 = (sp.kron(self.temporal_mass, self.spatial_stiffness1)
                   + sp.kron(self.temporal_initial + self.temporal_stiffness, self.spatial_mass1))
        block22 = sp.kron(self.temporal_mass, self.spatial_mass2 + self.spatial_stiffness2)
        block12 = (sp.kron(self.temporal_gradient.T, self.spatial_divergence)
                   + sp.kron(self.temporal_mass, self.spatial_gradient.T))
        self.blocks = {
            "11": sp.csr_matrix(block11),
            "12": sp.csr_matrix(block12),
            "21": sp.csr_matrix(block12.T),
            "22": sp.csr_matrix(block22),
        }
        return self.blocks

    def build_system_matrix(self) -> sp.csr_matrix:
        blocks = self.build_system_blocks()
        matrix = sp.bmat([[blocks["11"], blocks["12"]], [blocks["21"], blocks["22"]]], format='csr')
        self.system_matrix = eliminate_rows_cols(matrix, self.essential_dofs)
        return self.system_matrix

    def build_upper_triangle_of_system_matrix(self) -> sp.csr_matrix:
        if self.system_matrix is None:
            self.build_system_matrix()
        return upper_triangle(self.system_matrix)

    def assemble_rhs(self) -> np.ndarray:
        if self.state == AssemblyState.UNINITIALIZED:
            raise RuntimeError("Spaces must be set before assembling the right-hand side")
        source = self.test_case.source
        temperature_load = LoadAssembler(self.temperature_space, "value")
        flux_load = LoadAssembler(self.flux_space, "divergence")

        n_t = self.temporal_mesh.n_dofs
        u_rhs = np.zeros((n_t, self.temperature_space.n_dofs))
        q_rhs = np.zeros((n_t, self.flux_space.n_dofs))
        for k in range(self.temporal_mesh.n_intervals):
            times, weights, values, derivatives = self.temporal_mesh.element_quadrature(
                k, TEMPORAL_QUADRATURE_ORDER
            )
            for t, w, phi in zip(times, weights, values):
                source_at_t = lambda x, t=t: source(x, t)
                u_rhs[k:k + 2] += w * np.outer(derivatives, temperature_load.assemble(source_at_t))
                q_rhs[k:k + 2] += w * np.outer(phi, flux_load.assemble(source_at_t))

        u_rhs[0] += temperature_load.assemble(self.test_case.initial_temperature)
        rhs = np.concatenate([u_rhs.ravel(), q_rhs.ravel()])
        self.rhs = zero_entries(rhs, self.essential_dofs)
        return self.rhs

    @property
    def n_dofs(self) -> int:
        return self.n_temperature_dofs + self.n_flux_dofs

    def __repr__(self) -> str:
        return (f"DenseSpaceTimeHeatFEM(type={self.config.discretisation_type}, "
                f"temporal_intervals={self.temporal_mesh.n_intervals}, state={self.state.value})")
