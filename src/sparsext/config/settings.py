"""Configuration classes for the space-time heat solver."""

import json
import yaml
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Union
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

DISCRETISATION_TYPES = ["H1Hdiv", "H1H1"]
SPACE_TIME_BASES = ["sparse", "dense"]
MESH_TYPES = ["unit_square", "unit_interval"]
PROBLEM_TYPES = ["unit_square_test1", "unit_square_test2", "unit_square_test3",
                 "unit_interval_test1"]
LINEAR_SOLVERS = ["spsolve", "cg"]
ERROR_TYPES = ["natural", "lsq"]


@dataclass
class DiscretisationConfig:
    """Configuration of the space-time discretisation."""
    deg: int = 1
    discretisation_type: str = "H1Hdiv"
    space_time_basis: str = "sparse"
    end_time: float = 1.0
    min_temporal_level: int = 1
    num_levels: int = 1

    @property
    def max_temporal_level(self) -> int:
        return self.min_temporal_level + self.num_levels - 1

    def validate(self) -> None:
        """Validate discretisation configuration."""
        if self.deg != 1:
            raise ValueError(f"Only polynomial degree 1 is supported, got {self.deg}")

        if self.discretisation_type not in DISCRETISATION_TYPES:
            raise ValueError(f"Invalid discretisation type: {self.discretisation_type}")

        if self.space_time_basis not in SPACE_TIME_BASES:
            raise ValueError(f"Invalid space-time basis: {self.space_time_basis}")

        if self.end_time <= 0:
            raise ValueError("End time must be positive")

        if self.min_temporal_level < 0:
            raise ValueError("Minimum temporal level must be non-negative")

        if self.num_levels < 1:
            raise ValueError("Must have at least 1 level")


@dataclass
class MeshConfig:
    """Configuration of the spatial mesh hierarchy."""
    mesh_type: str = "unit_square"
    base_divisions: int = 1
    min_spatial_level: int = 0

    def validate(self) -> None:
        """Validate mesh configuration."""
        if self.mesh_type not in MESH_TYPES:
            raise ValueError(f"Invalid mesh type: {self.mesh_type}")

        if self.base_divisions < 1:
            raise ValueError("Base mesh needs at least one division")

        if self.min_spatial_level < 0:
            raise ValueError("Minimum spatial level must be non-negative")


@dataclass
class ProblemConfig:
    """Configuration of the heat equation test case."""
    problem_type: str = "unit_square_test2"
    medium_perturbation: float = 0.0

    def validate(self) -> None:
        """Validate problem configuration."""
        if self.problem_type not in PROBLEM_TYPES:
            raise ValueError(f"Invalid problem type: {self.problem_type}")


@dataclass
class SolverConfig:
    """Configuration of the linear solve and the error evaluation."""
    linear_solver: str = "spsolve"
    tolerance: float = 1e-10
    max_iterations: int = 5000
    reuse_medium_independent: bool = False
    error_type: str = "natural"

    def validate(self) -> None:
        """Validate solver configuration."""
        if self.linear_solver not in LINEAR_SOLVERS:
            raise ValueError(f"Invalid linear solver: {self.linear_solver}")

        if self.tolerance <= 0:
            raise ValueError("Tolerance must be positive")

        if self.max_iterations <= 0:
            raise ValueError("Max iterations must be positive")

        if self.error_type not in ERROR_TYPES:
            raise ValueError(f"Invalid error type: {self.error_type}")


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_output: Optional[str] = None
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level not in valid_levels:
            raise ValueError(f"Invalid logging level: {self.level}")


@dataclass
class SparseHeatConfig:
    """Complete configuration of a space-time heat solve."""
    discretisation: DiscretisationConfig = None
    mesh: MeshConfig = None
    problem: ProblemConfig = None
    solver: SolverConfig = None
    logging: LoggingConfig = None

    def __post_init__(self):
        """Initialize default configurations if not provided."""
        if self.discretisation is None:
            self.discretisation = DiscretisationConfig()
        if self.mesh is None:
            self.mesh = MeshConfig()
        if self.problem is None:
            self.problem = ProblemConfig()
        if self.solver is None:
            self.solver = SolverConfig()
        if self.logging is None:
            self.logging = LoggingConfig()

    def validate(self) -> None:
        """Validate all configuration sections."""
        self.discretisation.validate()
        self.mesh.validate()
        self.problem.validate()
        self.solver.validate()
        self.logging.validate()

        # Cross-validation
        interval_problem = self.problem.problem_type.startswith("unit_interval")
        interval_mesh = self.mesh.mesh_type == "unit_interval"
        if interval_problem != interval_mesh:
            raise ValueError(f"Problem {self.problem.problem_type} does not match "
                             f"mesh type {self.mesh.mesh_type}")

        if self.discretisation.space_time_basis == "dense":
            logger.info(f"Dense space-time basis: finest mesh level with "
                        f"2^{self.discretisation.max_temporal_level} time intervals")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'SparseHeatConfig':
        """Create configuration from dictionary."""
        config = cls()

        if 'discretisation' in config_dict:
            config.discretisation = DiscretisationConfig(**config_dict['discretisation'])

        if 'mesh' in config_dict:
            config.mesh = MeshConfig(**config_dict['mesh'])

        if 'problem' in config_dict:
            config.problem = ProblemConfig(**config_dict['problem'])

        if 'solver' in config_dict:
            config.solver = SolverConfig(**config_dict['solver'])

        if 'logging' in config_dict:
            config.logging = LoggingConfig(**config_dict['logging'])

        return config

    @classmethod
    def from_json(cls, json_path: Union[str, Path]) -> 'SparseHeatConfig':
        """Load configuration from JSON file."""
        json_path = Path(json_path)

        if not json_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {json_path}")

        with open(json_path, 'r') as f:
            config_dict = json.load(f)

        config = cls.from_dict(config_dict)
        config.validate()

        logger.info(f"Loaded configuration from {json_path}")
        return config

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'SparseHeatConfig':
        """Load configuration from YAML file."""
        yaml_path = Path(yaml_path)

        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls.from_dict(config_dict)
        config.validate()

        logger.info(f"Loaded configuration from {yaml_path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'discretisation': asdict(self.discretisation),
            'mesh': asdict(self.mesh),
            'problem': asdict(self.problem),
            'solver': asdict(self.solver),
            'logging': asdict(self.logging)
        }

    def to_json(self, json_path: Union[str, Path], indent: int = 2) -> None:
        """Save configuration to JSON file."""
        json_path = Path(json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)

        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

        logger.info(f"Saved configuration to {json_path}")

    def to_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        yaml_path = Path(yaml_path)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)

        with open(yaml_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

        logger.info(f"Saved configuration to {yaml_path}")

    def setup_logging(self) -> None:
        """Setup logging based on configuration."""
        from ..utils.logging_utils import setup_logging

        numeric_level = getattr(logging, self.logging.level.upper(), None)
        if not isinstance(numeric_level, int):
            raise ValueError(f'Invalid log level: {self.logging.level}')

        setup_logging(
            level=numeric_level,
            format_string=self.logging.format,
            log_file=self.logging.file_output,
            console_output=self.logging.console_output,
            colored_console=False
        )

    def __str__(self) -> str:
        """String representation of configuration."""
        d = self.discretisation
        return (f"SparseHeatConfig({d.space_time_basis} {d.discretisation_type}, "
                f"levels={d.num_levels}, temporal=[{d.min_temporal_level}, "
                f"{d.max_temporal_level}], problem={self.problem.problem_type})")

    def __repr__(self) -> str:
        """Detailed representation of configuration."""
        return (f"SparseHeatConfig(discretisation={self.discretisation}, mesh={self.mesh}, "
                f"problem={self.problem}, solver={self.solver}, logging={self.logging})")


DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


def create_default_config() -> SparseHeatConfig:
    """Create default configuration."""
    return SparseHeatConfig()


def load_default_config() -> SparseHeatConfig:
    """Load the configuration shipped with the package."""
    return SparseHeatConfig.from_yaml(DEFAULT_CONFIG_PATH)


def create_convergence_config(num_levels: int, problem_type: str = "unit_square_test2") -> SparseHeatConfig:
    """Configuration for refinement studies on the unit square."""
    config = SparseHeatConfig()
    config.discretisation.num_levels = num_levels
    config.problem.problem_type = problem_type
    config.logging.level = "WARNING"
    return config
