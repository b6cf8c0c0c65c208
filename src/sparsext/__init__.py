"""
Sparse space-time finite elements for the heat equation

Least-squares space-time discretisation on a sparse (hierarchical) basis:
nested spatial meshes paired with dyadic temporal levels, so that the number
of unknowns grows like the sum of the per-level sizes instead of their
product.
"""

from ._version import __version__

from .core import (
    SimplexMesh, unit_interval_mesh, unit_square_mesh, refine_uniformly,
    H1Space, VectorH1Space, RTSpace, PointLocator, BlockMatrix
)
from .hierarchy import (
    ParentChildrenTable, NestedMeshHierarchy, NestedFESpaceHierarchy,
    compose_two_level, compose_multi_level
)
from .operators import (
    BlockBilinearForm, BlockMixedBilinearForm,
    TemporalInitialMatrixAssembler, TemporalMassMatrixAssembler,
    TemporalStiffnessMatrixAssembler, TemporalGradientMatrixAssembler
)
from .applications import (
    SparseSpaceTimeHeatFEM, DenseSpaceTimeHeatFEM, AssemblyState,
    SolutionHandler, make_test_case
)
from .solvers import HeatSolver
from .config import SparseHeatConfig

__all__ = [
    "SimplexMesh",
    "unit_interval_mesh",
    "unit_square_mesh",
    "refine_uniformly",
    "H1Space",
    "VectorH1Space",
    "RTSpace",
    "PointLocator",
    "BlockMatrix",
    "ParentChildrenTable",
    "NestedMeshHierarchy",
    "NestedFESpaceHierarchy",
    "compose_two_level",
    "compose_multi_level",
    "BlockBilinearForm",
    "BlockMixedBilinearForm",
    "TemporalInitialMatrixAssembler",
    "TemporalMassMatrixAssembler",
    "TemporalStiffnessMatrixAssembler",
    "TemporalGradientMatrixAssembler",
    "SparseSpaceTimeHeatFEM",
    "DenseSpaceTimeHeatFEM",
    "AssemblyState",
    "SolutionHandler",
    "make_test_case",
    "HeatSolver",
    "SparseHeatConfig",
]
