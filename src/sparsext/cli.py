"""Command line entry point: sparsext-solve."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ._version import __version__
from .config.settings import SparseHeatConfig, load_default_config
from .solvers.heat_solver import HeatSolver, run_convergence_study
from .utils.performance import Timer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Sparse space-time least-squares FEM for the heat equation'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--config', type=Path, default=None,
                        help='YAML or JSON configuration file (default: packaged config)')
    parser.add_argument('--num-levels', type=int, default=None,
                        help='Override the number of space-time levels')
    parser.add_argument('--discretisation-type', choices=['H1Hdiv', 'H1H1'], default=None,
                        help='Override the flux discretisation')
    parser.add_argument('--dense', action='store_true',
                        help='Use the full tensor-product space-time basis')
    parser.add_argument('--error-type', choices=['natural', 'lsq'], default=None,
                        help='Norm of the space-time errors')
    parser.add_argument('--convergence', type=int, nargs='+', default=None, metavar='LEVELS',
                        help='Run a convergence study over these numbers of levels')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Override the logging level')
    parser.add_argument('--output', type=Path, default=None,
                        help='Write results as JSON to this file')
    parser.add_argument('--plot-dir', default=None,
                        help='Save temperature (or convergence) plots to this directory')
    return parser


def load_config(args: argparse.Namespace) -> SparseHeatConfig:
    if args.config is None:
        config = load_default_config()
    elif args.config.suffix.lower() == '.json':
        config = SparseHeatConfig.from_json(args.config)
    else:
        config = SparseHeatConfig.from_yaml(args.config)

    if args.num_levels is not None:
        config.discretisation.num_levels = args.num_levels
    if args.discretisation_type is not None:
        config.discretisation.discretisation_type = args.discretisation_type
    if args.dense:
        config.discretisation.space_time_basis = "dense"
    if args.error_type is not None:
        config.solver.error_type = args.error_type
    if args.log_level is not None:
        config.logging.level = args.log_level
    config.validate()
    return config


def save_plots(plot_dir: str, solver: Optional[HeatSolver], results, config: SparseHeatConfig) -> None:
    # matplotlib is only needed for plotting
    from .visualization.solution_plots import SolutionVisualizer

    visualizer = SolutionVisualizer(output_dir=plot_dir)
    if solver is None:
        visualizer.plot_convergence(results, filename="convergence.png")
        return
    temperature_space, _ = solver.finest_spaces()
    mesh = temperature_space.mesh
    end_time = config.discretisation.end_time
    visualizer.plot_temperature(
        mesh, solver.solution_handler.temperature_at_end_time(),
        title=f"Temperature at t = {end_time:g}",
        exact=solver.test_case.temperature(mesh.vertices, end_time),
        filename="temperature_end_time.png"
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run a solve (or convergence study) and report the errors."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    config.setup_logging()

    try:
        with Timer("total") as timer:
            if args.convergence:
                results = run_convergence_study(config, args.convergence)
            else:
                solver = HeatSolver(config)
                results = solver.run()
    except (RuntimeError, ValueError) as e:
        logger.error(f"Solve failed: {e}")
        return 1

    logger.info(f"Finished in {timer.elapsed_time:.2f}s")
    for result in (results if isinstance(results, list) else [results]):
        errors = result["errors"]
        print(f"dofs={result['n_dofs']:8d}  h={result['mesh_size']:.4f}  "
              f"|u-u_h|={errors['temperature_l2']:.4e}  |q-q_h|={errors['heat_flux_l2']:.4e}")
        print("  " + "  ".join(f"{name}={value:.4e}"
                               for name, value in result["space_time_errors"].items()))

    if args.plot_dir is not None:
        save_plots(args.plot_dir, solver if not args.convergence else None, results, config)

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, 'w') as f:
            json.dump(results, f, indent=2)
        logger.info(f"Results saved to {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
