"""
Basic example: sparse space-time least-squares solve of the heat equation.

Problem: u_t - div(M grad u) = f in [0,1]^2 x (0,1]
         u = 0 on the spatial boundary, u(0) = u0

Exact solution: u(x,y,t) = sin(pi x) sin(pi y) cos(pi t)
"""

import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sparsext.config.settings import create_convergence_config
from sparsext.solvers.heat_solver import HeatSolver, run_convergence_study
from sparsext.visualization.solution_plots import SolutionVisualizer


def main():
    """Solve once, then run a short convergence study."""

    print("=" * 60)
    print("Sparse Space-Time FEM - Heat Equation Example")
    print("=" * 60)

    config = create_convergence_config(num_levels=4, problem_type="unit_square_test2")
    config.mesh.min_spatial_level = 1
    config.logging.level = "INFO"
    config.setup_logging()

    solver = HeatSolver(config)
    results = solver.run()

    disc = solver.discretisation
    print(f"\nSpace-time levels: {disc.num_levels}")
    for level in range(disc.num_levels):
        mesh = disc.mesh_hierarchy.get_mesh(level)
        print(f"  Level {level}: {mesh.n_elements} elements (h={mesh.mesh_size:.4f}), "
              f"{disc.temporal_sizes[disc.num_levels - 1 - level]} temporal functions")

    print("\n" + "=" * 40)
    print("SOLUTION RESULTS")
    print("=" * 40)
    print(f"Unknowns: {results['n_dofs']} ({results['n_temperature_dofs']} temperature, "
          f"{results['n_flux_dofs']} flux)")
    print(f"Residual norm: {results['solver']['residual_norm']:.2e}")
    errors = results["errors"]
    print(f"Temperature L2 error at T: {errors['temperature_l2']:.3e} "
          f"(relative {errors['temperature_relative']:.3e})")
    print(f"Heat flux L2 error at T:   {errors['heat_flux_l2']:.3e} "
          f"(relative {errors['heat_flux_relative']:.3e})")
    for name, seconds in results["timings"].items():
        print(f"  {name}: {seconds:.3f}s")

    visualizer = SolutionVisualizer(output_dir="plots")
    mesh = solver.finest_spaces()[0].mesh
    visualizer.plot_temperature(
        mesh, solver.solution_handler.temperature_at_end_time(),
        title="Temperature at t = 1",
        exact=solver.test_case.temperature(mesh.vertices, 1.0),
        filename="heat_end_time.png"
    )
    visualizer.plot_mesh_hierarchy(disc.mesh_hierarchy, filename="mesh_hierarchy.png")

    print("\nConvergence study:")
    config.logging.level = "WARNING"
    config.setup_logging()
    study = run_convergence_study(config, [2, 3, 4, 5])
    for result in study:
        print(f"  L={result['num_levels']}: dofs={result['n_dofs']:7d}  "
              f"|u-u_h|={result['errors']['temperature_l2']:.3e}  "
              f"|q-q_h|={result['errors']['heat_flux_l2']:.3e}")
    visualizer.plot_convergence(study, filename="heat_convergence.png")
    print("Plots saved to plots/")

    return results


if __name__ == "__main__":
    main()
