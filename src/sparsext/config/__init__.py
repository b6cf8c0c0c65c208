"""Solver configuration."""

from .settings import (
    DiscretisationConfig, MeshConfig, ProblemConfig, SolverConfig, LoggingConfig,
    SparseHeatConfig, create_default_config, load_default_config, create_convergence_config
)

__all__ = [
    "DiscretisationConfig",
    "MeshConfig",
    "ProblemConfig",
    "SolverConfig",
    "LoggingConfig",
    "SparseHeatConfig",
    "create_default_config",
    "load_default_config",
    "create_convergence_config",
]
