"""Base classes for same-level and cross-level element integrators."""

from abc import ABC, abstractmethod
import numpy as np
from typing import TYPE_CHECKING, Tuple

from ..core.quadrature import get_quadrature

if TYPE_CHECKING:
    from ..core.fe_spaces import FiniteElementSpace


def element_quadrature(space: 'FiniteElementSpace', element: int,
                       order: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Quadrature on one element.

    Returns:
        (reference points, weights scaled by the Jacobian determinant)
    """
    rule = get_quadrature(space.mesh.dim, order)
    return rule.points, rule.weights * space.mesh.determinants[element]


def cross_level_quadrature(fine_space: 'FiniteElementSpace', fine_element: int,
                           coarse_space: 'FiniteElementSpace', coarse_element: int,
                           order: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Quadrature on a fine element, with its points mapped into a coarse ancestor.

    Weights and Jacobian come from the fine element only.

    Returns:
        (fine reference points, coarse reference points, scaled weights)
    """
    fine_points, weights = element_quadrature(fine_space, fine_element, order)
    physical = fine_space.mesh.map_to_physical(fine_element, fine_points)
    coarse_points = coarse_space.mesh.map_to_reference(coarse_element, physical)
    return fine_points, coarse_points, weights


class BlockBilinearFormIntegrator(ABC):
    """
    Integrator of a symmetric bilinear form over a space hierarchy.

    Subclasses provide the element matrix on one level and the element
    matrix between a fine element (test functions) and a coarse ancestor
    element (trial functions).
    """

    def __init__(self, name: str = "BlockBilinearFormIntegrator", quadrature_order: int = 2):
        """
        Initialize integrator.

        Args:
            name: Human-readable name
            quadrature_order: Polynomial order integrated exactly
        """
        self.name = name
        self.quadrature_order = quadrature_order

    @abstractmethod
    def assemble_same_level(self, space: 'FiniteElementSpace', element: int) -> np.ndarray:
        """
        Element matrix of one element.

        Args:
            space: Space of test and trial functions
            element: Element index

        Returns:
            Matrix of shape (n_local, n_local)
        """
        pass

    @abstractmethod
    def assemble_cross_level(self, fine_space: 'FiniteElementSpace', fine_element: int,
                             coarse_space: 'FiniteElementSpace', coarse_element: int) -> np.ndarray:
        """
        Element matrix between fine test and coarse trial functions.

        Args:
            fine_space: Space of the fine level (test)
            fine_element: Fine element, a descendant of coarse_element
            coarse_space: Space of the coarse level (trial)
            coarse_element: Coarse ancestor element

        Returns:
            Matrix of shape (n_local_fine, n_local_coarse)
        """
        pass

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class BlockMixedBilinearFormIntegrator(ABC):
    """
    Integrator of a mixed form between a trial and a test space hierarchy.

    Besides the same-level element matrix two cross-level variants are
    needed: fine test with coarse trial (lower blocks) and coarse test with
    fine trial (upper blocks).
    """

    def __init__(self, name: str = "BlockMixedBilinearFormIntegrator", quadrature_order: int = 2):
        self.name = name
        self.quadrature_order = quadrature_order

    @abstractmethod
    def assemble_same_level(self, trial_space: 'FiniteElementSpace',
                            test_space: 'FiniteElementSpace', element: int) -> np.ndarray:
        """Element matrix of shape (n_local_test, n_local_trial)."""
        pass

    @abstractmethod
    def assemble_cross_level(self, fine_test_space: 'FiniteElementSpace', fine_element: int,
                             coarse_trial_space: 'FiniteElementSpace',
                             coarse_element: int) -> np.ndarray:
        """Element matrix between fine test and coarse trial functions."""
        pass

    @abstractmethod
    def assemble_cross_level_upper(self, coarse_test_space: 'FiniteElementSpace',
                                   coarse_element: int,
                                   fine_trial_space: 'FiniteElementSpace',
                                   fine_element: int) -> np.ndarray:
        """Element matrix between coarse test and fine trial functions."""
        pass

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
