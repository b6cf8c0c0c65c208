"""Load vectors of source terms on a single FE space."""

import numpy as np
import scipy.sparse as sp
from typing import Callable, TYPE_CHECKING

from .base import element_quadrature

if TYPE_CHECKING:
    from ..core.fe_spaces import FiniteElementSpace

SpatialFunction = Callable[[np.ndarray], np.ndarray]

LOAD_QUADRATURE_ORDER = 4


class LoadAssembler:
    """
    Load vectors (f, v) or (f, div r) of one space for many source functions.

    Quadrature points of all elements and the weighted basis values are set
    up once, so a load vector costs one vectorized evaluation of f plus a
    sparse matrix-vector product. Time-dependent sources reuse the same
    assembler at every temporal quadrature point.
    """

    def __init__(self, space: 'FiniteElementSpace', kind: str = "value",
                 order: int = LOAD_QUADRATURE_ORDER):
        """
        Initialize assembler.

        Args:
            space: Finite element space of the test functions
            kind: "value" for scalar spaces, "divergence" for vector spaces
            order: Quadrature order
        """
        if kind not in ("value", "divergence"):
            raise ValueError(f"Unknown load kind: {kind}")
        self.space = space
        self.kind = kind

        mesh = space.mesh
        points, rows, cols, vals = [], [], [], []
        for element in range(mesh.n_elements):
            reference, weights = element_quadrature(space, element, order)
            if kind == "value":
                basis = space.shape(element, reference)
            else:
                basis = space.divergence(element, reference)
            offset = element * len(weights)
            dofs = space.element_dofs(element)
            rr, cc = np.meshgrid(dofs, offset + np.arange(len(weights)), indexing='ij')
            rows.append(rr.ravel())
            cols.append(cc.ravel())
            vals.append((weights[None, :] * np.asarray(basis).T).ravel())
            points.append(mesh.map_to_physical(element, reference))

        self.points = np.vstack(points)
        self._operator = sp.csr_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(space.n_dofs, len(self.points))
        )

    def assemble(self, function: SpatialFunction) -> np.ndarray:
        """Load vector of a function of position."""
        return self._operator @ np.asarray(function(self.points), dtype=np.float64)


def assemble_domain_load(space: 'FiniteElementSpace', function: SpatialFunction,
                         order: int = LOAD_QUADRATURE_ORDER) -> np.ndarray:
    """(f, v) for all scalar basis functions v of the space."""
    return LoadAssembler(space, "value", order).assemble(function)


def assemble_divergence_load(space: 'FiniteElementSpace', function: SpatialFunction,
                             order: int = LOAD_QUADRATURE_ORDER) -> np.ndarray:
    """(f, div r) for all vector basis functions r of the space."""
    return LoadAssembler(space, "divergence", order).assemble(function)
