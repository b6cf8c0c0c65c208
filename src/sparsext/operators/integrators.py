"""Element integrators for the spatial heat-equation forms."""

import numpy as np
from abc import abstractmethod
from typing import Callable, Optional, TYPE_CHECKING
import logging

from .base import (
    BlockBilinearFormIntegrator, BlockMixedBilinearFormIntegrator,
    element_quadrature, cross_level_quadrature
)

if TYPE_CHECKING:
    from ..core.fe_spaces import FiniteElementSpace

logger = logging.getLogger(__name__)

MediumFunction = Callable[[np.ndarray], np.ndarray]


def _weighted_products(weights: np.ndarray, test: np.ndarray, trial: np.ndarray) -> np.ndarray:
    """sum_q w_q test[q, i, :] . trial[q, j, :]"""
    return np.einsum('q,qik,qjk->ij', weights, test, trial)


def _apply_medium(medium: Optional[MediumFunction], space: 'FiniteElementSpace',
                  element: int, reference_points: np.ndarray) -> np.ndarray:
    """Physical gradients of scalar basis functions multiplied by the medium tensor."""
    grads = space.gradient(element, reference_points)
    if medium is None:
        return np.asarray(grads)
    x = space.mesh.map_to_physical(element, reference_points)
    tensor = np.asarray(medium(x), dtype=np.float64)
    return np.einsum('qab,qib->qia', tensor, grads)


class SymmetricBlockIntegrator(BlockBilinearFormIntegrator):
    """Forms of the type (A u, A v) with the same operator on trial and test."""

    @abstractmethod
    def values(self, space: 'FiniteElementSpace', element: int,
               reference_points: np.ndarray) -> np.ndarray:
        """Operator applied to the local basis, shape (n_points, n_local, n_components)."""
        pass

    def assemble_same_level(self, space, element):
        points, weights = element_quadrature(space, element, self.quadrature_order)
        values = self.values(space, element, points)
        return _weighted_products(weights, values, values)

    def assemble_cross_level(self, fine_space, fine_element, coarse_space, coarse_element):
        fine_points, coarse_points, weights = cross_level_quadrature(
            fine_space, fine_element, coarse_space, coarse_element, self.quadrature_order
        )
        test = self.values(fine_space, fine_element, fine_points)
        trial = self.values(coarse_space, coarse_element, coarse_points)
        return _weighted_products(weights, test, trial)


class SpatialMassIntegrator(SymmetricBlockIntegrator):
    """(u, v) for scalar spaces."""

    def __init__(self):
        super().__init__(name="SpatialMass", quadrature_order=2)

    def values(self, space, element, reference_points):
        return space.shape(element, reference_points)[:, :, None]


class SpatialStiffnessIntegrator(SymmetricBlockIntegrator):
    """(M grad u, M grad v) for scalar spaces and a medium tensor M."""

    def __init__(self, medium: Optional[MediumFunction] = None):
        super().__init__(name="SpatialStiffness", quadrature_order=4)
        self.medium = medium

    def values(self, space, element, reference_points):
        return _apply_medium(self.medium, space, element, reference_points)


class FluxMassIntegrator(SymmetricBlockIntegrator):
    """(q, r) for vector spaces (Raviart-Thomas or vector H1)."""

    def __init__(self):
        super().__init__(name="FluxMass", quadrature_order=2)

    def values(self, space, element, reference_points):
        return space.vector_shape(element, reference_points)


class FluxDivDivIntegrator(SymmetricBlockIntegrator):
    """(div q, div r) for vector spaces."""

    def __init__(self):
        super().__init__(name="FluxDivDiv", quadrature_order=2)

    def values(self, space, element, reference_points):
        return np.asarray(space.divergence(element, reference_points))[:, :, None]


class MixedBlockIntegrator(BlockMixedBilinearFormIntegrator):
    """Mixed forms (B u, C v) with separate trial and test operators."""

    @abstractmethod
    def trial_values(self, space: 'FiniteElementSpace', element: int,
                     reference_points: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def test_values(self, space: 'FiniteElementSpace', element: int,
                    reference_points: np.ndarray) -> np.ndarray:
        pass

    def assemble_same_level(self, trial_space, test_space, element):
        points, weights = element_quadrature(test_space, element, self.quadrature_order)
        return _weighted_products(
            weights,
            self.test_values(test_space, element, points),
            self.trial_values(trial_space, element, points),
        )

    def assemble_cross_level(self, fine_test_space, fine_element,
                             coarse_trial_space, coarse_element):
        fine_points, coarse_points, weights = cross_level_quadrature(
            fine_test_space, fine_element, coarse_trial_space, coarse_element,
            self.quadrature_order
        )
        return _weighted_products(
            weights,
            self.test_values(fine_test_space, fine_element, fine_points),
            self.trial_values(coarse_trial_space, coarse_element, coarse_points),
        )

    def assemble_cross_level_upper(self, coarse_test_space, coarse_element,
                                   fine_trial_space, fine_element):
        fine_points, coarse_points, weights = cross_level_quadrature(
            fine_trial_space, fine_element, coarse_test_space, coarse_element,
            self.quadrature_order
        )
        return _weighted_products(
            weights,
            self.test_values(coarse_test_space, coarse_element, coarse_points),
            self.trial_values(fine_trial_space, fine_element, fine_points),
        )


class SpatialGradientIntegrator(MixedBlockIntegrator):
    """(M grad u, r): trial temperature u, test flux r."""

    def __init__(self, medium: Optional[MediumFunction] = None):
        super().__init__(name="SpatialGradient", quadrature_order=3)
        self.medium = medium

    def trial_values(self, space, element, reference_points):
        return _apply_medium(self.medium, space, element, reference_points)

    def test_values(self, space, element, reference_points):
        return space.vector_shape(element, reference_points)


class SpatialDivergenceIntegrator(MixedBlockIntegrator):
    """(div q, v): trial flux q, test temperature v."""

    def __init__(self):
        super().__init__(name="SpatialDivergence", quadrature_order=2)

    def trial_values(self, space, element, reference_points):
        return np.asarray(space.divergence(element, reference_points))[:, :, None]

    def test_values(self, space, element, reference_points):
        return space.shape(element, reference_points)[:, :, None]
