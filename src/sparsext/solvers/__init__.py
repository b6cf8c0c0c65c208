"""Space-time heat solver driver."""

from .heat_solver import HeatSolver, build_meshes, solve_linear_system, run_convergence_study

__all__ = ["HeatSolver", "build_meshes", "solve_linear_system", "run_convergence_study"]
