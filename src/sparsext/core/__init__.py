"""Meshes, quadrature, finite element spaces and block matrices."""

from .mesh import SimplexMesh, unit_interval_mesh, unit_square_mesh, refine_uniformly, build_uniform_hierarchy
from .quadrature import QuadratureRule, get_quadrature
from .fe_spaces import FiniteElementSpace, H1Space, VectorH1Space, RTSpace, make_flux_space
from .locator import PointLocator, SharedVertexTable
from .block_matrix import BlockMatrix, block_offsets, eliminate_rows_cols, zero_entries, upper_triangle
from .layout import temporal_block_sizes, space_time_block_sizes

__all__ = [
    "SimplexMesh",
    "unit_interval_mesh",
    "unit_square_mesh",
    "refine_uniformly",
    "build_uniform_hierarchy",
    "QuadratureRule",
    "get_quadrature",
    "FiniteElementSpace",
    "H1Space",
    "VectorH1Space",
    "RTSpace",
    "make_flux_space",
    "PointLocator",
    "SharedVertexTable",
    "BlockMatrix",
    "block_offsets",
    "eliminate_rows_cols",
    "zero_entries",
    "upper_triangle",
    "temporal_block_sizes",
    "space_time_block_sizes",
]
