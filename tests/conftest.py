"""Shared fixtures."""

import pytest

from . import SQUARE_TABLES, generate_square_meshes, generate_uniform_square_hierarchy


@pytest.fixture
def square_meshes():
    return generate_square_meshes()


@pytest.fixture
def square_hierarchy(square_meshes):
    from sparsext.hierarchy.nested import NestedMeshHierarchy
    return NestedMeshHierarchy(square_meshes)


@pytest.fixture
def square_tables():
    return SQUARE_TABLES


@pytest.fixture
def uniform_hierarchy():
    """Three uniformly refined levels of the unit square (2, 8, 32 triangles)."""
    return generate_uniform_square_hierarchy(num_levels=3)
