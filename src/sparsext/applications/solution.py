"""Solution vectors of the space-time system and their error evaluation."""

import numpy as np
import scipy.sparse as sp
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from ..core.block_matrix import block_offsets
from ..core.fe_spaces import FiniteElementSpace
from ..core.mesh import SimplexMesh
from ..core.quadrature import QuadratureRule, get_quadrature
from ..operators.temporal import HierarchicalTemporalBasis, composite_gauss_rule

logger = logging.getLogger(__name__)

ERROR_TYPES = ["natural", "lsq"]


class SolutionHandler:
    """
    View of a space-time solution vector [temperature blocks | flux blocks].

    Block i has temporal_sizes[i] * spatial_sizes[i] entries laid out as
    t * n_x + x. Block 0 carries the nodal temporal functions on the finest
    spatial level, so the initial and end time slices live in block 0 only:
    every hierarchical hat vanishes at t = 0 and t = T.
    """

    def __init__(self, solution: np.ndarray, temporal_sizes: Sequence[int],
                 temperature_spatial_sizes: Sequence[int], flux_spatial_sizes: Sequence[int]):
        """
        Initialize handler.

        Args:
            solution: Full solution vector
            temporal_sizes: Temporal basis size per block
            temperature_spatial_sizes: Spatial temperature size per block
            flux_spatial_sizes: Spatial flux size per block
        """
        self.temporal_sizes = list(temporal_sizes)
        self.temperature_spatial_sizes = list(temperature_spatial_sizes)
        self.flux_spatial_sizes = list(flux_spatial_sizes)
        temperature_sizes = [t * x for t, x in zip(self.temporal_sizes, self.temperature_spatial_sizes)]
        flux_sizes = [t * x for t, x in zip(self.temporal_sizes, self.flux_spatial_sizes)]
        self.offsets = block_offsets(temperature_sizes + flux_sizes)
        self.n_levels = len(self.temporal_sizes)

        solution = np.asarray(solution, dtype=np.float64)
        if len(solution) != self.offsets[-1]:
            raise ValueError(f"Solution has {len(solution)} entries, layout expects {self.offsets[-1]}")
        self.solution = solution

    @classmethod
    def from_discretisation(cls, discretisation, solution: np.ndarray) -> 'SolutionHandler':
        """Handler for a sparse or dense discretisation object."""
        if hasattr(discretisation, "temporal_sizes"):
            n_levels = discretisation.num_levels
            temperature = [discretisation.spatial_temperature_sizes[n_levels - 1 - i]
                           for i in range(n_levels)]
            flux = [discretisation.spatial_flux_sizes[n_levels - 1 - i] for i in range(n_levels)]
            return cls(solution, discretisation.temporal_sizes, temperature, flux)
        return cls(solution, [discretisation.temporal_mesh.n_dofs],
                   [discretisation.temperature_space.n_dofs], [discretisation.flux_space.n_dofs])

    def temperature_block(self, i: int) -> np.ndarray:
        """Coefficients of temperature block i, shape (n_t, n_x)."""
        data = self.solution[self.offsets[i]:self.offsets[i + 1]]
        return data.reshape(self.temporal_sizes[i], self.temperature_spatial_sizes[i])

    def flux_block(self, i: int) -> np.ndarray:
        """Coefficients of flux block i, shape (n_t, n_q)."""
        k = self.n_levels + i
        data = self.solution[self.offsets[k]:self.offsets[k + 1]]
        return data.reshape(self.temporal_sizes[i], self.flux_spatial_sizes[i])

    @property
    def temperature(self) -> np.ndarray:
        return self.solution[:self.offsets[self.n_levels]]

    @property
    def heat_flux(self) -> np.ndarray:
        return self.solution[self.offsets[self.n_levels]:]

    def temperature_at_initial_time(self) -> np.ndarray:
        """Finest-level spatial coefficients of the temperature at t = 0."""
        return self.temperature_block(0)[0].copy()

    def temperature_at_end_time(self) -> np.ndarray:
        """Finest-level spatial coefficients of the temperature at t = T."""
        return self.temperature_block(0)[-1].copy()

    def heat_flux_at_initial_time(self) -> np.ndarray:
        return self.flux_block(0)[0].copy()

    def heat_flux_at_end_time(self) -> np.ndarray:
        return self.flux_block(0)[-1].copy()

    def __repr__(self) -> str:
        return f"SolutionHandler(levels={self.n_levels}, size={len(self.solution)})"


def evaluation_matrices(space: FiniteElementSpace, fine_mesh: SimplexMesh, rule: QuadratureRule,
                        parents: Optional[np.ndarray] = None) -> Tuple[List[sp.csr_matrix],
                                                                       List[sp.csr_matrix]]:
    """
    Sparse maps from the coefficients of a space to values at the quadrature
    points of a nested finer mesh, ordered element by element.

    Args:
        space: Scalar or vector space on a mesh of the hierarchy
        fine_mesh: Mesh carrying the quadrature points
        rule: Reference quadrature rule
        parents: Element of space.mesh containing each fine element
            (None when fine_mesh is space.mesh)

    Returns:
        (values, derivatives): for a scalar space [value] and one gradient
        matrix per direction, for a vector space one value matrix per
        direction and [divergence]
    """
    mesh = space.mesh
    n_points = len(rule.weights)
    rows, cols, value_data, derivative_data = [], [], [], []
    for element in range(fine_mesh.n_elements):
        parent = element if parents is None else int(parents[element])
        reference = mesh.map_to_reference(parent, fine_mesh.map_to_physical(element, rule.points))
        dofs = space.element_dofs(parent)
        if space.value_type == "scalar":
            values = space.shape(parent, reference)[..., None]
            derivatives = space.gradient(parent, reference)
        else:
            values = space.vector_shape(parent, reference)
            derivatives = space.divergence(parent, reference)[..., None]
        rows.append(np.repeat(element * n_points + np.arange(n_points), len(dofs)))
        cols.append(np.tile(dofs, n_points))
        value_data.append(np.reshape(values, (n_points * len(dofs), -1)))
        derivative_data.append(np.reshape(derivatives, (n_points * len(dofs), -1)))

    rows = np.concatenate(rows)
    cols = np.concatenate(cols)
    shape = (fine_mesh.n_elements * n_points, space.n_dofs)

    def split(data):
        return [sp.csr_matrix((data[:, c], (rows, cols)), shape=shape) for c in range(data.shape[1])]

    return split(np.vstack(value_data)), split(np.vstack(derivative_data))


def _ratio(error_sq: float, norm_sq: float) -> float:
    if norm_sq > 0:
        return float(np.sqrt(error_sq / norm_sq))
    return float(np.sqrt(error_sq))


class ErrorEvaluator:
    """
    Errors of finite element functions against exact solutions.

    Spatial errors use a simplex rule of quadrature_order on every element.
    Space-time errors add a Gauss rule of temporal_quadrature_order on every
    interval of the finest temporal grid.
    """

    def __init__(self, quadrature_order: int = 5, temporal_quadrature_order: int = 3):
        self.quadrature_order = quadrature_order
        self.temporal_quadrature_order = temporal_quadrature_order

    def l2_error(self, space: FiniteElementSpace, coefficients: np.ndarray,
                 exact: Callable[[np.ndarray], np.ndarray]) -> float:
        """
        ||u_h - u||_L2 over the mesh of the space.

        Args:
            space: Space of the discrete function (scalar or vector)
            coefficients: DOF vector
            exact: Function of position returning (n,) or (n, dim) values

        Returns:
            L2 norm of the error
        """
        error_sq = 0.0
        mesh = space.mesh
        rule = get_quadrature(mesh.dim, self.quadrature_order)
        for element in range(mesh.n_elements):
            discrete = space.evaluate(coefficients, element, rule.points)
            reference = np.asarray(exact(mesh.map_to_physical(element, rule.points)))
            diff = (discrete - reference).reshape(len(rule.weights), -1)
            error_sq += mesh.determinants[element] * np.sum(rule.weights * np.sum(diff ** 2, axis=1))
        return float(np.sqrt(error_sq))

    def l2_norm(self, space: FiniteElementSpace,
                exact: Callable[[np.ndarray], np.ndarray]) -> float:
        return self.l2_error(space, np.zeros(space.n_dofs), exact)

    def evaluate_at_end_time(self, temperature_space: FiniteElementSpace,
                             flux_space: FiniteElementSpace, handler: SolutionHandler,
                             test_case, end_time: float) -> Dict[str, float]:
        """
        Temperature and heat flux errors at t = T on the finest spatial level.

        Returns:
            Dict with absolute and relative L2 errors
        """
        return self._errors(temperature_space, flux_space, test_case, end_time,
                            handler.temperature_at_end_time(), handler.heat_flux_at_end_time())

    def evaluate_at_initial_time(self, temperature_space: FiniteElementSpace,
                                 flux_space: FiniteElementSpace, handler: SolutionHandler,
                                 test_case) -> Dict[str, float]:
        return self._errors(temperature_space, flux_space, test_case, 0.0,
                            handler.temperature_at_initial_time(),
                            handler.heat_flux_at_initial_time())

    def _errors(self, temperature_space, flux_space, test_case, t, u_h, q_h) -> Dict[str, float]:
        u_exact = lambda x: test_case.temperature(x, t)
        q_exact = lambda x: test_case.heat_flux(x, t)
        errors = {
            "temperature_l2": self.l2_error(temperature_space, u_h, u_exact),
            "heat_flux_l2": self.l2_error(flux_space, q_h, q_exact),
        }
        for key, norm in (("temperature", self.l2_norm(temperature_space, u_exact)),
                          ("heat_flux", self.l2_norm(flux_space, q_exact))):
            absolute = errors[f"{key}_l2"]
            errors[f"{key}_relative"] = absolute / norm if norm > 0 else absolute
        logger.debug(f"Errors at t={t}: {errors}")
        return errors

    def evaluate_space_time(self, temperature_hierarchy, flux_hierarchy,
                            temporal_basis: HierarchicalTemporalBasis, handler: SolutionHandler,
                            test_case, error_type: str = "natural") -> Dict[str, float]:
        """
        Errors over the whole space-time cylinder.

        Block i of the solution lives on spatial level L-1-i of the
        hierarchies and on temporal block i of the basis. All blocks are
        summed at the quadrature points of the finest spatial mesh and of
        the finest temporal grid.

        Args:
            temperature_hierarchy: Temperature spaces, coarsest first
            flux_hierarchy: Heat flux spaces on the same meshes
            temporal_basis: Temporal basis with one block per level
            handler: Solution vector view
            test_case: Exact solution and problem data
            error_type: "natural" or "lsq"

        Returns:
            natural: relative errors of the temperature in L2(H1)
            ("temperature_l2h1"), of the flux in L2(L2) ("heat_flux_l2l2") and
            of u_t + div q against the source in L2(L2) ("divergence_l2l2").
            lsq: the L2(L2) norms of the PDE and flux residuals, the L2 error
            of the initial temperature and the square root of the least
            squares functional built from the three ("functional").

        Raises:
            ValueError: For an unknown error type
        """
        if error_type not in ERROR_TYPES:
            raise ValueError(f"Unknown error type: {error_type}")
        n_blocks = handler.n_levels
        assert temperature_hierarchy.n_levels == n_blocks == temporal_basis.n_levels, (
            f"Solution has {n_blocks} blocks, hierarchy {temperature_hierarchy.n_levels} "
            f"levels, temporal basis {temporal_basis.n_levels} blocks"
        )

        finest = n_blocks - 1
        mesh_hierarchy = temperature_hierarchy.mesh_hierarchy
        fine_mesh = mesh_hierarchy.get_mesh(finest)
        rule = get_quadrature(fine_mesh.dim, self.quadrature_order)
        points = np.vstack([fine_mesh.map_to_physical(k, rule.points)
                            for k in range(fine_mesh.n_elements)])
        weights = (fine_mesh.determinants[:, None] * rule.weights[None, :]).ravel()

        temperature_maps, flux_maps = [], []
        for i in range(n_blocks):
            level = finest - i
            parents = None
            if level < finest:
                table = mesh_hierarchy.get_table(level, finest)
                parents = np.array([table.parent(k) for k in range(fine_mesh.n_elements)])
            temperature_maps.append(evaluation_matrices(
                temperature_hierarchy.get_space(level), fine_mesh, rule, parents))
            flux_maps.append(evaluation_matrices(
                flux_hierarchy.get_space(level), fine_mesh, rule, parents))

        times, time_weights = composite_gauss_rule(temporal_basis.grid(finest),
                                                   self.temporal_quadrature_order)
        medium = test_case.medium_tensor(points) if error_type == "lsq" else None
        sums = np.zeros(6)
        for t, time_weight in zip(times, time_weights):
            u, grad_u, dudt, q, div_q = self._space_time_values(
                temperature_maps, flux_maps, temporal_basis, handler, t
            )
            w = time_weight * weights
            source = test_case.source(points, t)
            residual = dudt + div_q - source

            if error_type == "natural":
                u_exact = test_case.temperature(points, t)
                grad_exact = test_case.temperature_gradient(points, t)
                q_exact = test_case.heat_flux(points, t)
                sums += [
                    w @ ((u_exact - u) ** 2 + np.sum((grad_exact - grad_u) ** 2, axis=1)),
                    w @ (u_exact ** 2 + np.sum(grad_exact ** 2, axis=1)),
                    w @ np.sum((q_exact - q) ** 2, axis=1),
                    w @ np.sum(q_exact ** 2, axis=1),
                    w @ residual ** 2,
                    w @ source ** 2,
                ]
            else:
                flux_residual = q + np.einsum('nab,nb->na', medium, grad_u)
                sums[0] += w @ residual ** 2
                sums[1] += w @ np.sum(flux_residual ** 2, axis=1)

        if error_type == "natural":
            errors = {
                "temperature_l2h1": _ratio(sums[0], sums[1]),
                "heat_flux_l2l2": _ratio(sums[2], sums[3]),
                "divergence_l2l2": _ratio(sums[4], sums[5]),
            }
        else:
            initial = self.l2_error(temperature_hierarchy.get_space(finest),
                                    handler.temperature_at_initial_time(),
                                    test_case.initial_temperature)
            errors = {
                "pde_residual": float(np.sqrt(sums[0])),
                "flux_residual": float(np.sqrt(sums[1])),
                "initial_temperature": initial,
                "functional": float(np.sqrt(sums[0] + sums[1] + initial ** 2)),
            }
        logger.debug(f"Space-time {error_type} errors: {errors}")
        return errors

    @staticmethod
    def _space_time_values(temperature_maps, flux_maps, temporal_basis, handler, t):
        """Sum of all blocks at time t: u, grad u, u_t, q and div q at the points."""
        (values,), gradients = temperature_maps[0]
        n_points, dim = values.shape[0], len(gradients)
        u, dudt, div_q = np.zeros(n_points), np.zeros(n_points), np.zeros(n_points)
        grad_u, q = np.zeros((n_points, dim)), np.zeros((n_points, dim))
        for i, (((values,), gradients), (flux_values, (divergence,))) in enumerate(
                zip(temperature_maps, flux_maps)):
            phi = temporal_basis.values(i, t)[0]
            temperature = handler.temperature_block(i)
            flux = phi @ handler.flux_block(i)
            coefficients = phi @ temperature
            u += values @ coefficients
            dudt += values @ (temporal_basis.derivatives(i, t)[0] @ temperature)
            div_q += divergence @ flux
            for d in range(dim):
                grad_u[:, d] += gradients[d] @ coefficients
                q[:, d] += flux_values[d] @ flux
        return u, grad_u, dudt, q, div_q
