"""Driver for space-time heat solves: meshes, assembly, linear solve, errors."""

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..config.settings import SparseHeatConfig
from ..core.mesh import SimplexMesh, unit_interval_mesh, unit_square_mesh, build_uniform_hierarchy
from ..hierarchy.nested import NestedMeshHierarchy
from ..applications.test_cases import HeatTestCase, make_test_case
from ..applications.sparse_discretisation import SparseSpaceTimeHeatFEM
from ..applications.dense_discretisation import DenseSpaceTimeHeatFEM
from ..applications.solution import SolutionHandler, ErrorEvaluator
from ..utils.performance import PerformanceProfiler
from ..utils.logging_utils import log_function_call

logger = logging.getLogger(__name__)


@log_function_call
def build_meshes(config: SparseHeatConfig) -> List[SimplexMesh]:
    """Nested meshes for the configured number of levels, coarsest first."""
    mesh_config = config.mesh
    if mesh_config.mesh_type == "unit_square":
        base = unit_square_mesh(mesh_config.base_divisions)
    elif mesh_config.mesh_type == "unit_interval":
        base = unit_interval_mesh(mesh_config.base_divisions)
    else:
        raise ValueError(f"Unknown mesh type: {mesh_config.mesh_type}")
    return build_uniform_hierarchy(base, config.discretisation.num_levels,
                                   initial_refinements=mesh_config.min_spatial_level)


def solve_linear_system(matrix: sp.spmatrix, rhs: np.ndarray, method: str = "spsolve",
                        tolerance: float = 1e-10, max_iterations: int = 5000) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Solve the symmetric positive definite space-time system.

    Args:
        matrix: System matrix (CSR)
        rhs: Right-hand side
        method: "spsolve" (sparse direct) or "cg"
        tolerance: Relative residual tolerance for CG
        max_iterations: Iteration limit for CG

    Returns:
        (solution, info dict with residual norm and iteration count)
    """
    info: Dict[str, Any] = {"method": method}
    if method == "spsolve":
        solution = spla.spsolve(sp.csc_matrix(matrix), rhs)
        info["iterations"] = 1
    elif method == "cg":
        iterations = [0]

        def count(_):
            iterations[0] += 1

        diagonal = matrix.diagonal()
        preconditioner = sp.diags(1.0 / np.where(diagonal != 0, diagonal, 1.0))
        solution, exit_code = spla.cg(matrix, rhs, rtol=tolerance, maxiter=max_iterations,
                                      M=preconditioner, callback=count)
        if exit_code > 0:
            logger.warning(f"CG did not converge in {exit_code} iterations")
        elif exit_code < 0:
            raise RuntimeError(f"CG failed with illegal input (code {exit_code})")
        info["iterations"] = iterations[0]
    else:
        raise ValueError(f"Unknown linear solver: {method}")

    residual = np.linalg.norm(matrix @ solution - rhs)
    info["residual_norm"] = float(residual)
    logger.debug(f"Linear solve ({method}): residual {residual:.3e}")
    return solution, info


class HeatSolver:
    """
    Space-time heat solver configured from a SparseHeatConfig.

    Builds the nested meshes, the sparse (or dense) discretisation, solves
    the least-squares system and evaluates the errors at the end time.
    """

    def __init__(self, config: SparseHeatConfig, test_case: Optional[HeatTestCase] = None):
        """
        Initialize solver.

        Args:
            config: Complete solver configuration
            test_case: Problem data; created from config.problem if omitted
        """
        config.validate()
        self.config = config
        self.test_case = test_case or make_test_case(config.problem.problem_type,
                                                     config.problem.medium_perturbation)
        self.profiler = PerformanceProfiler()
        self.discretisation = None
        self.mesh_hierarchy: Optional[NestedMeshHierarchy] = None
        self.solution: Optional[np.ndarray] = None
        self.solution_handler: Optional[SolutionHandler] = None
        logger.info(f"Initialized HeatSolver: {config}")

    def setup(self) -> None:
        """Build meshes, hierarchy and discretisation."""
        with self.profiler.time_operation("setup"):
            meshes = build_meshes(self.config)
            disc_config = self.config.discretisation
            if disc_config.space_time_basis == "sparse":
                self.mesh_hierarchy = NestedMeshHierarchy(meshes)
                self.discretisation = SparseSpaceTimeHeatFEM(disc_config, self.test_case,
                                                             self.mesh_hierarchy)
            else:
                self.discretisation = DenseSpaceTimeHeatFEM(disc_config, self.test_case, meshes[-1])

    def assemble(self, reuse_medium_independent: Optional[bool] = None) -> Tuple[sp.csr_matrix, np.ndarray]:
        """Assemble system matrix and right-hand side."""
        if self.discretisation is None:
            self.setup()
        if reuse_medium_independent is None:
            reuse_medium_independent = self.config.solver.reuse_medium_independent

        with self.profiler.time_operation("assemble_sub_matrices"):
            if isinstance(self.discretisation, SparseSpaceTimeHeatFEM):
                self.discretisation.assemble_system_sub_matrices(reuse_medium_independent)
            else:
                self.discretisation.assemble_system_sub_matrices()
        with self.profiler.time_operation("build_system_matrix"):
            matrix = self.discretisation.build_system_matrix()
        with self.profiler.time_operation("assemble_rhs"):
            rhs = self.discretisation.assemble_rhs()
        self.profiler.record_count("unknowns", matrix.shape[0])
        self.profiler.record_count("matrix_nonzeros", matrix.nnz)
        self.profiler.record_count("essential_dofs", len(self.discretisation.essential_dofs))
        return matrix, rhs

    def solve(self) -> np.ndarray:
        matrix, rhs = self.assemble()
        solver_config = self.config.solver
        with self.profiler.time_operation("linear_solve"):
            self.solution, self.solve_info = solve_linear_system(
                matrix, rhs, solver_config.linear_solver,
                solver_config.tolerance, solver_config.max_iterations
            )
        self.solution_handler = SolutionHandler.from_discretisation(self.discretisation, self.solution)
        return self.solution

    def update_test_case(self, test_case: HeatTestCase) -> np.ndarray:
        """Solve again with new problem data (e.g. a perturbed medium)."""
        self.test_case = test_case
        if self.discretisation is None:
            self.setup()
        elif isinstance(self.discretisation, SparseSpaceTimeHeatFEM):
            self.discretisation.set_test_case(test_case)
        else:
            self.discretisation.test_case = test_case
        return self.solve()

    def finest_spaces(self):
        disc = self.discretisation
        if isinstance(disc, SparseSpaceTimeHeatFEM):
            finest = disc.num_levels - 1
            return (disc.temperature_hierarchy.get_space(finest),
                    disc.flux_hierarchy.get_space(finest))
        return disc.temperature_space, disc.flux_space

    def compute_errors(self) -> Dict[str, float]:
        """L2 errors of temperature and heat flux at the end time."""
        if self.solution_handler is None:
            raise RuntimeError("Solve before computing errors")
        temperature_space, flux_space = self.finest_spaces()
        with self.profiler.time_operation("error_evaluation"):
            return ErrorEvaluator().evaluate_at_end_time(
                temperature_space, flux_space, self.solution_handler,
                self.test_case, self.config.discretisation.end_time
            )

    def compute_space_time_errors(self, error_type: Optional[str] = None) -> Dict[str, float]:
        """Errors over [0, T] x domain in the natural or least-squares norm."""
        if self.solution_handler is None:
            raise RuntimeError("Solve before computing errors")
        disc = self.discretisation
        with self.profiler.time_operation("space_time_error_evaluation"):
            return ErrorEvaluator().evaluate_space_time(
                disc.temperature_hierarchy, disc.flux_hierarchy, disc.temporal_basis,
                self.solution_handler, self.test_case, error_type or self.config.solver.error_type
            )

    def run(self) -> Dict[str, Any]:
        """
        Full solve.

        Returns:
            Dict with problem sizes, end time and space-time errors, solver info and timings
        """
        self.setup()
        self.solve()
        errors = self.compute_errors()
        space_time_errors = self.compute_space_time_errors()
        temperature_space, _ = self.finest_spaces()
        results = {
            "n_dofs": int(self.discretisation.n_dofs),
            "n_temperature_dofs": int(self.discretisation.n_temperature_dofs),
            "n_flux_dofs": int(self.discretisation.n_flux_dofs),
            "mesh_size": float(temperature_space.mesh.mesh_size),
            "errors": errors,
            "error_type": self.config.solver.error_type,
            "space_time_errors": space_time_errors,
            "solver": self.solve_info,
            "timings": {name: stats.get('total', 0.0)
                        for name, stats in self.profiler.get_timing_summary().items()},
            "counters": dict(self.profiler.counters),
        }
        logger.info(f"Solve finished: {results['n_dofs']} dofs, "
                    f"temperature L2 error {errors['temperature_l2']:.4e}, "
                    f"flux L2 error {errors['heat_flux_l2']:.4e}")
        self.profiler.log_summary()
        return results


def run_convergence_study(config: SparseHeatConfig, levels: List[int]) -> List[Dict[str, Any]]:
    """Run the solver for several numbers of levels and collect the results."""
    results = []
    for num_levels in levels:
        config.discretisation.num_levels = num_levels
        result = HeatSolver(config).run()
        result["num_levels"] = num_levels
        results.append(result)
    return results
