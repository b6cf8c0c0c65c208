"""Lowest-order finite element spaces on simplicial meshes."""

import numpy as np
from abc import ABC, abstractmethod
from typing import Callable
import logging

from .mesh import SimplexMesh

logger = logging.getLogger(__name__)


def _barycentric(reference_points: np.ndarray) -> np.ndarray:
    """Barycentric coordinates (n, dim + 1) of reference points (n, dim)."""
    reference_points = np.atleast_2d(reference_points)
    return np.column_stack([1.0 - reference_points.sum(axis=1), reference_points])


def _reference_gradients(dim: int) -> np.ndarray:
    """Gradients of the barycentric coordinates, shape (dim + 1, dim)."""
    return np.vstack([-np.ones((1, dim)), np.eye(dim)])


class FiniteElementSpace(ABC):
    """
    Base class for finite element spaces on a SimplexMesh.

    Every space maps each element to a fixed number of local degrees of
    freedom and evaluates its local basis at reference points of that
    element. Scalar spaces provide values and physical gradients; vector
    (flux) spaces provide vector values and divergences.
    """

    #: "scalar" or "vector"
    value_type: str = "scalar"

    def __init__(self, mesh: SimplexMesh, degree: int = 1):
        if degree != 1:
            raise ValueError(f"Only polynomial degree 1 is supported, got {degree}")
        self.mesh = mesh
        self.degree = degree

    @property
    @abstractmethod
    def n_dofs(self) -> int:
        """Number of true degrees of freedom."""
        pass

    @abstractmethod
    def element_dofs(self, element: int) -> np.ndarray:
        """Global indices of the local degrees of freedom of an element."""
        pass

    @abstractmethod
    def boundary_dofs(self) -> np.ndarray:
        """Degrees of freedom located on the domain boundary."""
        pass

    def shape(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        """Scalar basis values, shape (n_points, n_local)."""
        raise TypeError(f"{type(self).__name__} has no scalar shape functions")

    def gradient(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        """Physical gradients of scalar basis functions, shape (n_points, n_local, dim)."""
        raise TypeError(f"{type(self).__name__} has no scalar shape functions")

    def vector_shape(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        """Vector basis values, shape (n_points, n_local, dim)."""
        raise TypeError(f"{type(self).__name__} has no vector shape functions")

    def divergence(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        """Divergence of vector basis functions, shape (n_points, n_local)."""
        raise TypeError(f"{type(self).__name__} has no vector shape functions")

    def evaluate(self, coefficients: np.ndarray, element: int,
                 reference_points: np.ndarray) -> np.ndarray:
        """Evaluate a finite element function at reference points of an element."""
        local = np.asarray(coefficients)[self.element_dofs(element)]
        if self.value_type == "scalar":
            return self.shape(element, reference_points) @ local
        return np.einsum('qid,i->qd', self.vector_shape(element, reference_points), local)

    @property
    def true_vsize(self) -> int:
        return self.n_dofs

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_dofs={self.n_dofs}, mesh={self.mesh!r})"


class H1Space(FiniteElementSpace):
    """Continuous piecewise linear scalar functions; one DOF per vertex."""

    value_type = "scalar"

    @property
    def n_dofs(self) -> int:
        return self.mesh.n_vertices

    def element_dofs(self, element: int) -> np.ndarray:
        return self.mesh.elements[element]

    def boundary_dofs(self) -> np.ndarray:
        return self.mesh.boundary_vertices()

    def shape(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        return _barycentric(reference_points)

    def gradient(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        n_points = len(np.atleast_2d(reference_points))
        grads = _reference_gradients(self.mesh.dim) @ self.mesh.inverse_jacobians[element]
        return np.broadcast_to(grads, (n_points,) + grads.shape)

    def interpolate(self, function: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        """Nodal interpolant of a function of position."""
        return np.asarray(function(self.mesh.vertices), dtype=np.float64)


class VectorH1Space(FiniteElementSpace):
    """
    Continuous piecewise linear vector fields.

    DOFs are ordered by component: dof = component * n_vertices + vertex.
    """

    value_type = "vector"

    @property
    def n_dofs(self) -> int:
        return self.mesh.dim * self.mesh.n_vertices

    def element_dofs(self, element: int) -> np.ndarray:
        verts = self.mesh.elements[element]
        nv = self.mesh.n_vertices
        return np.concatenate([c * nv + verts for c in range(self.mesh.dim)])

    def boundary_dofs(self) -> np.ndarray:
        verts = self.mesh.boundary_vertices()
        nv = self.mesh.n_vertices
        return np.concatenate([c * nv + verts for c in range(self.mesh.dim)])

    def vector_shape(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        dim = self.mesh.dim
        lam = _barycentric(reference_points)
        n_points, n_vert = lam.shape
        values = np.zeros((n_points, dim * n_vert, dim))
        for c in range(dim):
            values[:, c * n_vert:(c + 1) * n_vert, c] = lam
        return values

    def divergence(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        n_points = len(np.atleast_2d(reference_points))
        grads = _reference_gradients(self.mesh.dim) @ self.mesh.inverse_jacobians[element]
        div = np.concatenate([grads[:, c] for c in range(self.mesh.dim)])
        return np.broadcast_to(div, (n_points, len(div)))


class RTSpace(FiniteElementSpace):
    """
    Lowest-order Raviart-Thomas space.

    On triangles the DOFs are the normal components on the edges. Local
    basis function k belongs to the edge opposite vertex k:

        phi_k(x) = s_k |e_k| / (2 |T|) (x - v_k),   div phi_k = s_k |e_k| / |T|

    where s_k = +1 if the counter-clockwise traversal of the edge runs from
    the lower to the higher global vertex index. In 1D H(div) coincides with
    H1 and the space reduces to continuous piecewise linears.
    """

    value_type = "vector"

    def __init__(self, mesh: SimplexMesh, degree: int = 1):
        super().__init__(mesh, degree)
        if mesh.dim == 2:
            self._signs, self._scales = self._edge_orientation()

    def _edge_orientation(self):
        elements = self.mesh.elements
        verts = self.mesh.vertices
        starts = elements[:, [1, 2, 0]]
        ends = elements[:, [2, 0, 1]]
        signs = np.where(starts < ends, 1.0, -1.0)
        lengths = np.linalg.norm(verts[ends] - verts[starts], axis=2)
        areas = self.mesh.volumes
        return signs, lengths / areas[:, None]

    @property
    def n_dofs(self) -> int:
        if self.mesh.dim == 1:
            return self.mesh.n_vertices
        return self.mesh.n_edges

    def element_dofs(self, element: int) -> np.ndarray:
        if self.mesh.dim == 1:
            return self.mesh.elements[element]
        return self.mesh.element_edges[element]

    def boundary_dofs(self) -> np.ndarray:
        if self.mesh.dim == 1:
            return self.mesh.boundary_vertices()
        return self.mesh.boundary_edges()

    def vector_shape(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        if self.mesh.dim == 1:
            return _barycentric(reference_points)[:, :, None]
        x = self.mesh.map_to_physical(element, reference_points)
        corners = self.mesh.element_vertices(element)
        coeff = 0.5 * self._signs[element] * self._scales[element]
        return coeff[None, :, None] * (x[:, None, :] - corners[None, :, :])

    def divergence(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        n_points = len(np.atleast_2d(reference_points))
        if self.mesh.dim == 1:
            div = (_reference_gradients(1) @ self.mesh.inverse_jacobians[element])[:, 0]
        else:
            div = self._signs[element] * self._scales[element]
        return np.broadcast_to(div, (n_points, len(div)))


FLUX_SPACE_TYPES = {
    "H1Hdiv": RTSpace,
    "H1H1": VectorH1Space,
}


def make_flux_space(mesh: SimplexMesh, discretisation_type: str,
                    degree: int = 1) -> FiniteElementSpace:
    """Flux space for a discretisation type ("H1Hdiv" or "H1H1")."""
    try:
        space_class = FLUX_SPACE_TYPES[discretisation_type]
    except KeyError:
        raise ValueError(
            f"Unknown discretisation type: {discretisation_type}. "
            f"Available: {list(FLUX_SPACE_TYPES.keys())}"
        ) from None
    return space_class(mesh, degree)
