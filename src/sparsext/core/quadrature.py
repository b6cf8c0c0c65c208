"""Quadrature rules on the reference interval [0, 1] and reference triangle."""

import numpy as np
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Tuple


@dataclass(frozen=True)
class QuadratureRule:
    """Points (n, dim) and weights on a reference simplex."""
    points: np.ndarray
    weights: np.ndarray
    order: int

    @property
    def n_points(self) -> int:
        return len(self.weights)


def _permutations(a: float, b: float) -> np.ndarray:
    """Barycentric orbit (a, b, b) mapped to (xi, eta) coordinates."""
    bary = np.array([[a, b, b], [b, a, b], [b, b, a]])
    return bary[:, 1:]


def _triangle_table() -> Dict[int, Tuple[np.ndarray, np.ndarray]]:
    # weights below are normalised to sum 1 and scaled by the reference area
    table = {}
    table[1] = (np.array([[1.0 / 3.0, 1.0 / 3.0]]), np.array([1.0]))
    table[2] = (
        np.array([[1.0 / 6.0, 1.0 / 6.0], [2.0 / 3.0, 1.0 / 6.0], [1.0 / 6.0, 2.0 / 3.0]]),
        np.full(3, 1.0 / 3.0),
    )
    a1, w1 = 0.445948490915965, 0.223381589678011
    a2, w2 = 0.091576213509771, 0.109951743655322
    table[4] = (
        np.vstack([_permutations(1.0 - 2.0 * a1, a1), _permutations(1.0 - 2.0 * a2, a2)]),
        np.concatenate([np.full(3, w1), np.full(3, w2)]),
    )
    table[5] = (
        np.vstack([
            [[1.0 / 3.0, 1.0 / 3.0]],
            _permutations(0.059715871789770, 0.470142064105115),
            _permutations(0.797426985353087, 0.101286507323456),
        ]),
        np.concatenate([[0.225], np.full(3, 0.132394152788506), np.full(3, 0.125939180544827)]),
    )
    return table


_TRIANGLE_RULES = _triangle_table()


@lru_cache(maxsize=None)
def interval_rule(order: int) -> QuadratureRule:
    """Gauss-Legendre rule on [0, 1] exact for polynomials of the given order."""
    if order < 0:
        raise ValueError(f"Quadrature order must be non-negative, got {order}")
    n = order // 2 + 1
    x, w = np.polynomial.legendre.leggauss(n)
    return QuadratureRule(points=(0.5 * (x + 1.0)).reshape(-1, 1), weights=0.5 * w, order=order)


@lru_cache(maxsize=None)
def triangle_rule(order: int) -> QuadratureRule:
    """Symmetric rule on the reference triangle (area 1/2)."""
    available = sorted(_TRIANGLE_RULES)
    for candidate in available:
        if candidate >= max(order, 1):
            points, weights = _TRIANGLE_RULES[candidate]
            return QuadratureRule(points=points, weights=0.5 * weights, order=candidate)
    raise ValueError(f"No triangle quadrature of order {order} (max {available[-1]})")


def get_quadrature(dim: int, order: int) -> QuadratureRule:
    """Quadrature rule on the reference simplex of the given dimension."""
    if dim == 1:
        return interval_rule(order)
    if dim == 2:
        return triangle_rule(order)
    raise ValueError(f"Unsupported dimension for quadrature: {dim}")
