"""Unit tests for solver configuration and logging setup."""

import logging
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from sparsext.config.settings import (
    DiscretisationConfig, SparseHeatConfig, load_default_config, create_convergence_config
)
from sparsext.utils.logging_utils import setup_logging, get_logger, LoggingContext
from sparsext.utils.performance import Timer, PerformanceProfiler


class TestDiscretisationConfig:
    """Test cases for DiscretisationConfig."""

    def test_defaults(self):
        """Test default discretisation settings."""
        config = DiscretisationConfig()
        config.validate()

        assert config.deg == 1
        assert config.discretisation_type == "H1Hdiv"
        assert config.max_temporal_level == config.min_temporal_level

    def test_max_temporal_level(self):
        """Test the derived maximum temporal level."""
        config = DiscretisationConfig(min_temporal_level=2, num_levels=4)
        assert config.max_temporal_level == 5

    @pytest.mark.parametrize("field,value", [
        ("deg", 2),
        ("discretisation_type", "L2L2"),
        ("space_time_basis", "full"),
        ("end_time", 0.0),
        ("min_temporal_level", -1),
        ("num_levels", 0),
    ])
    def test_invalid(self, field, value):
        """Test validation of invalid discretisation settings."""
        config = DiscretisationConfig(**{field: value})
        with pytest.raises(ValueError):
            config.validate()


class TestSparseHeatConfig:
    """Test cases for the complete configuration."""

    def test_default_file(self):
        """Test loading the packaged default configuration."""
        config = load_default_config()

        assert config.discretisation.num_levels == 3
        assert config.problem.problem_type == "unit_square_test2"

    def test_yaml_roundtrip(self, tmp_path):
        """Test saving and loading a YAML configuration."""
        config = create_convergence_config(2, "unit_square_test3")
        config.solver.linear_solver = "cg"
        path = tmp_path / "config.yaml"
        config.to_yaml(path)

        loaded = SparseHeatConfig.from_yaml(path)

        assert loaded.to_dict() == config.to_dict()

    def test_json_roundtrip(self, tmp_path):
        """Test saving and loading a JSON configuration."""
        config = SparseHeatConfig()
        config.discretisation.discretisation_type = "H1H1"
        path = tmp_path / "nested" / "config.json"
        config.to_json(path)

        assert SparseHeatConfig.from_json(path).discretisation.discretisation_type == "H1H1"

    def test_partial_dict(self):
        """Test that missing sections keep their defaults."""
        config = SparseHeatConfig.from_dict({"problem": {"medium_perturbation": 0.5}})

        assert config.problem.medium_perturbation == 0.5
        assert config.problem.problem_type == "unit_square_test2"
        assert config.mesh.mesh_type == "unit_square"

    def test_missing_file(self, tmp_path):
        """Test loading a configuration file that does not exist."""
        with pytest.raises(FileNotFoundError):
            SparseHeatConfig.from_yaml(tmp_path / "missing.yaml")

    def test_problem_mesh_mismatch(self):
        """Test cross-validation of problem and mesh type."""
        config = SparseHeatConfig()
        config.problem.problem_type = "unit_interval_test1"
        with pytest.raises(ValueError, match="does not match"):
            config.validate()

        config.mesh.mesh_type = "unit_interval"
        config.validate()

    def test_invalid_solver(self):
        """Test rejection of an unknown linear solver."""
        config = SparseHeatConfig.from_dict({"solver": {"linear_solver": "gmres"}})
        with pytest.raises(ValueError, match="linear solver"):
            config.validate()

    def test_error_type(self):
        """Test the default and validation of the space-time error type."""
        assert load_default_config().solver.error_type == "natural"

        config = SparseHeatConfig.from_dict({"solver": {"error_type": "H1"}})
        with pytest.raises(ValueError, match="error type"):
            config.validate()

    def test_str(self):
        """Test the string representation."""
        assert "levels=1" in str(SparseHeatConfig())


class TestLoggingAndTiming:
    """Test cases for the logging and timing utilities."""

    def test_setup_logging_to_file(self, tmp_path):
        """Test logging to a file."""
        log_file = tmp_path / "solver.log"
        setup_logging(level="DEBUG", log_file=str(log_file), console_output=False)
        get_logger("sparsext.test").info("assembled")

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "assembled" in log_file.read_text()
        setup_logging(level="WARNING", console_output=False)

    def test_plotting_libraries_are_quiet(self):
        """Test that plotting library loggers are raised to WARNING."""
        setup_logging(level="DEBUG", console_output=False)

        assert logging.getLogger("matplotlib").level == logging.WARNING
        setup_logging(level="WARNING", console_output=False)

    def test_logging_context(self):
        """Test temporary log level changes."""
        logger = get_logger("sparsext.context_test", level="WARNING")
        with LoggingContext(logging.DEBUG, "sparsext.context_test"):
            assert logger.level == logging.DEBUG
        assert logger.level == logging.WARNING

    def test_timer(self):
        """Test the timing context manager."""
        with Timer("sleep") as timer:
            sum(range(1000))
        assert timer.elapsed_time >= 0.0

        with pytest.raises(RuntimeError):
            Timer().stop()

    def test_profiler(self):
        """Test profiler timings and counters."""
        profiler = PerformanceProfiler()
        for _ in range(3):
            with profiler.time_operation("assemble"):
                pass

        profiler.record_count("unknowns", 42.0)

        summary = profiler.get_timing_summary()
        assert summary["assemble"]["count"] == 3
        assert profiler.counters == {"unknowns": 42}
        with pytest.raises(ValueError):
            profiler.end_timing("solve")
