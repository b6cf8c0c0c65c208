"""
Heat equation test cases with known solutions.

Heat equation: du/dt + div q = f,  q = -M grad u  in (0,1)^d x (0, T)
with homogeneous Dirichlet data. All functions take points of shape
(n, dim) and a scalar time, and return arrays over the points.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Type
import logging

logger = logging.getLogger(__name__)


class HeatTestCase(ABC):
    """Problem data and exact solution of one heat equation test case."""

    name: str = "HeatTestCase"
    dim: int = 2

    def __init__(self, medium_perturbation: float = 0.0):
        """
        Initialize test case.

        Args:
            medium_perturbation: Log-perturbation of a scalar medium coefficient
        """
        self.medium_perturbation = float(medium_perturbation)

    @property
    def conductivity(self) -> float:
        """Scalar medium coefficient exp(perturbation)."""
        return float(np.exp(self.medium_perturbation))

    def medium_tensor(self, x: np.ndarray) -> np.ndarray:
        """Medium tensor M(x), shape (n, dim, dim)."""
        x = np.atleast_2d(x)
        return np.broadcast_to(self.conductivity * np.eye(self.dim),
                               (len(x), self.dim, self.dim))

    @abstractmethod
    def temperature(self, x: np.ndarray, t: float) -> np.ndarray:
        pass

    @abstractmethod
    def temperature_gradient(self, x: np.ndarray, t: float) -> np.ndarray:
        """Spatial gradient of the temperature, shape (n, dim)."""
        pass

    @abstractmethod
    def temperature_time_gradient(self, x: np.ndarray, t: float) -> np.ndarray:
        pass

    @abstractmethod
    def source(self, x: np.ndarray, t: float) -> np.ndarray:
        pass

    def heat_flux(self, x: np.ndarray, t: float) -> np.ndarray:
        """q = -M grad u, shape (n, dim)."""
        return -np.einsum('nab,nb->na', self.medium_tensor(x), self.temperature_gradient(x, t))

    def initial_temperature(self, x: np.ndarray) -> np.ndarray:
        return self.temperature(x, 0.0)

    def dirichlet_boundary(self, x: np.ndarray, t: float) -> np.ndarray:
        return np.zeros(len(np.atleast_2d(x)))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(medium_perturbation={self.medium_perturbation})"


class _UnitSquareCase(HeatTestCase):
    """Cases with spatial profile sin(pi x) sin(pi y)."""

    dim = 2

    @staticmethod
    def _profile(x: np.ndarray) -> np.ndarray:
        x = np.atleast_2d(x)
        return np.sin(np.pi * x[:, 0]) * np.sin(np.pi * x[:, 1])

    @staticmethod
    def _profile_gradient(x: np.ndarray) -> np.ndarray:
        x = np.atleast_2d(x)
        sx, sy = np.sin(np.pi * x[:, 0]), np.sin(np.pi * x[:, 1])
        cx, cy = np.cos(np.pi * x[:, 0]), np.cos(np.pi * x[:, 1])
        return np.pi * np.column_stack([cx * sy, sx * cy])

    @abstractmethod
    def _time_factor(self, t: float) -> float:
        pass

    @abstractmethod
    def _time_factor_derivative(self, t: float) -> float:
        pass

    def temperature(self, x, t):
        return self._profile(x) * self._time_factor(t)

    def temperature_gradient(self, x, t):
        return self._profile_gradient(x) * self._time_factor(t)

    def temperature_time_gradient(self, x, t):
        return self._profile(x) * self._time_factor_derivative(t)

    def source(self, x, t):
        # -div(M grad u) = 2 pi^2 kappa u for the sine profile
        laplacian_term = 2.0 * np.pi ** 2 * self.conductivity * self.temperature(x, t)
        return self.temperature_time_gradient(x, t) + laplacian_term


class UnitSquareTest1(_UnitSquareCase):
    """Decaying mode u = sin(pi x) sin(pi y) exp(-2 pi^2 kappa t) with f = 0."""

    name = "unit_square_test1"

    def _time_factor(self, t):
        return np.exp(-2.0 * np.pi ** 2 * self.conductivity * t)

    def _time_factor_derivative(self, t):
        return -2.0 * np.pi ** 2 * self.conductivity * self._time_factor(t)

    def source(self, x, t):
        return np.zeros(len(np.atleast_2d(x)))


class UnitSquareTest2(_UnitSquareCase):
    """u = sin(pi x) sin(pi y) cos(pi t), f = pi S (2 pi cos(pi t) - sin(pi t))."""

    name = "unit_square_test2"

    def _time_factor(self, t):
        return np.cos(np.pi * t)

    def _time_factor_derivative(self, t):
        return -np.pi * np.sin(np.pi * t)


class UnitSquareTest3(_UnitSquareCase):
    """u = sin(pi x) sin(pi y) sin(pi t); zero initial temperature."""

    name = "unit_square_test3"

    def _time_factor(self, t):
        return np.sin(np.pi * t)

    def _time_factor_derivative(self, t):
        return np.pi * np.cos(np.pi * t)


class UnitIntervalTest1(HeatTestCase):
    """u = sin(pi x) exp(-pi^2 kappa t) on the unit interval with f = 0."""

    name = "unit_interval_test1"
    dim = 1

    def temperature(self, x, t):
        x = np.atleast_2d(x)
        return np.sin(np.pi * x[:, 0]) * np.exp(-np.pi ** 2 * self.conductivity * t)

    def temperature_gradient(self, x, t):
        x = np.atleast_2d(x)
        decay = np.exp(-np.pi ** 2 * self.conductivity * t)
        return (np.pi * np.cos(np.pi * x[:, 0]) * decay)[:, None]

    def temperature_time_gradient(self, x, t):
        return -np.pi ** 2 * self.conductivity * self.temperature(x, t)

    def source(self, x, t):
        return np.zeros(len(np.atleast_2d(x)))


TEST_CASES: Dict[str, Type[HeatTestCase]] = {
    cls.name: cls for cls in (UnitSquareTest1, UnitSquareTest2, UnitSquareTest3, UnitIntervalTest1)
}


def make_test_case(name: str, medium_perturbation: float = 0.0) -> HeatTestCase:
    """
    Create a test case by name.

    Raises:
        ValueError: For unknown test case names
    """
    try:
        case_class = TEST_CASES[name]
    except KeyError:
        raise ValueError(
            f"Unknown test case: {name}. Available: {list(TEST_CASES.keys())}"
        ) from None
    case = case_class(medium_perturbation)
    logger.info(f"Created test case {case.name} (kappa={case.conductivity:.4g})")
    return case
