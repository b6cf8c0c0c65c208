"""Unit tests for point location, parent-children tables and nested hierarchies."""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from sparsext.core.mesh import SimplexMesh, unit_square_mesh, unit_interval_mesh, build_uniform_hierarchy
from sparsext.core.fe_spaces import H1Space
from sparsext.core.locator import PointLocator, SharedVertexTable
from sparsext.hierarchy.tables import ParentChildrenTable, compose_two_level, compose_multi_level
from sparsext.hierarchy.nested import NestedMeshHierarchy, NestedFESpaceHierarchy


class TestPointLocator:
    """Test cases for neighbour-walk point location."""

    def test_locate_from_far_guess(self):
        """Test locating a point starting from a distant element."""
        mesh = unit_square_mesh(4)
        locator = PointLocator(mesh)
        point = np.array([0.9, 0.85])

        element, xi = locator.locate(point, initial_guess=0)

        np.testing.assert_allclose(mesh.map_to_physical(element, xi[None, :])[0], point)
        assert locator.is_inside(element, point)[0]

    def test_locate_vertex_and_edge_points(self):
        """Test points on vertices and edges."""
        mesh = unit_square_mesh(2)
        locator = PointLocator(mesh)

        for point in ([0.5, 0.5], [0.25, 0.25], [1.0, 1.0], [0.0, 0.5]):
            element, xi = locator.locate(point)
            assert xi.min() >= -1e-12 and xi.sum() <= 1 + 1e-12

    def test_locate_batch(self):
        """Test batch location of fine centroids."""
        coarse, fine = build_uniform_hierarchy(unit_square_mesh(2), 2)
        elements, reference = PointLocator(coarse).locate_batch(fine.centroids)

        np.testing.assert_array_equal(elements, np.arange(fine.n_elements) // 4)
        assert reference.shape == (fine.n_elements, 2)

    def test_point_outside(self):
        """Test that a point outside the mesh raises."""
        locator = PointLocator(unit_square_mesh(2))
        with pytest.raises(RuntimeError, match="not found"):
            locator.locate([1.5, 0.5])

    def test_interval(self):
        """Test location on an interval mesh."""
        mesh = unit_interval_mesh(5)
        element, xi = PointLocator(mesh).locate([0.73], initial_guess=0)

        assert element == 3
        np.testing.assert_allclose(xi, [(0.73 - 0.6) / 0.2])

    def test_shared_vertices(self):
        """Test walking through coincident vertices."""
        # two triangles with duplicated vertices along their common edge
        vertices = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0],
                             [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        mesh = SimplexMesh(vertices, [[0, 1, 2], [3, 4, 5]])

        assert len(SharedVertexTable(mesh)) == 4
        assert len(PointLocator(mesh).neighbours(0)) == 0
        np.testing.assert_array_equal(PointLocator(mesh, use_shared_vertices=True).neighbours(0), [1])

        element, _ = PointLocator(mesh, use_shared_vertices=True).locate([0.9, 0.8], initial_guess=0)
        assert element == 1


class TestParentChildrenTable:
    """Test cases for parent-children tables and their composition."""

    def test_add_and_query(self):
        """Test adding children and querying parents."""
        table = ParentChildrenTable(2)
        table.add(0, 3)
        table.add(1, 4)
        table.add(0, 5)

        assert table[0] == {3, 5}
        assert table.children(1) == {4}
        assert table.parent(5) == 0
        assert table.n_parents == 2
        assert table.n_children == 3

    def test_child_with_two_parents(self):
        """Test that a child cannot have two parents."""
        table = ParentChildrenTable.from_lists([[0, 1], [2]])
        with pytest.raises(ValueError, match="already has parent"):
            table.add(1, 0)

    def test_two_level_composition(self, square_tables):
        """Test composing two single-step tables."""
        t01 = ParentChildrenTable.from_lists(square_tables[(0, 1)])
        t12 = ParentChildrenTable.from_lists(square_tables[(1, 2)])

        composed = compose_two_level(t01, t12)

        assert composed.to_lists() == square_tables[(0, 2)]

    def test_multi_level_composition(self):
        """Test composing a chain of tables."""
        t01 = ParentChildrenTable.from_lists([[0, 1]])
        t12 = ParentChildrenTable.from_lists([[0, 3], [1, 2]])
        t23 = ParentChildrenTable.from_lists([[0], [1, 2], [3], [4, 5]])

        composed = compose_multi_level([t01, t12, t23])

        assert composed.to_lists() == [[0, 1, 2, 3, 4, 5]]
        assert composed == compose_two_level(compose_two_level(t01, t12), t23)
        assert compose_multi_level([t12]) is t12

    def test_composition_needs_tables(self):
        """Test composing an empty chain."""
        with pytest.raises(AssertionError):
            compose_multi_level([])

    def test_composition_with_missing_intermediate(self):
        """Test that an intermediate element without a table entry fails."""
        t01 = ParentChildrenTable.from_lists([[0, 1]])
        t12 = ParentChildrenTable.from_lists([[0, 1]])

        with pytest.raises(AssertionError, match="Intermediate element 1"):
            compose_two_level(t01, t12)


class TestNestedMeshHierarchy:
    """Test cases for nested mesh hierarchies."""

    def test_hand_built_tables(self, square_hierarchy, square_tables):
        """Test located tables against hand-built ones."""
        for (n, m), expected in square_tables.items():
            assert square_hierarchy.get_table(n, m).to_lists() == expected

    def test_composed_table_matches_uncached(self, square_hierarchy):
        """Test caching of composed tables."""
        cached = square_hierarchy.get_table(0, 2)

        assert square_hierarchy.get_table(0, 2) is cached
        assert square_hierarchy.compose_tables(0, 2) == cached

    def test_composed_table_matches_direct_location(self, square_meshes, square_hierarchy):
        """Test composed tables against locating level 2 directly in level 0."""
        direct = NestedMeshHierarchy([square_meshes[0], square_meshes[2]]).get_table(0, 1)
        tables = square_hierarchy.parent_children_tables

        assert square_hierarchy.get_table(0, 2) == direct
        assert compose_two_level(tables[0], tables[1]) == direct
        assert compose_multi_level(tables) == direct

    def test_uniform_composed_table_matches_direct_location(self, uniform_hierarchy):
        """Test the composed uniform table against direct location."""
        meshes = uniform_hierarchy.meshes
        direct = NestedMeshHierarchy([meshes[0], meshes[2]]).get_table(0, 1)

        assert uniform_hierarchy.get_table(0, 2) == direct
        assert direct.n_children == meshes[2].n_elements

    def test_every_fine_element_has_one_parent(self, uniform_hierarchy):
        """Test that every table covers all fine elements once."""
        for n in range(uniform_hierarchy.n_levels):
            for m in range(n + 1, uniform_hierarchy.n_levels):
                table = uniform_hierarchy.get_table(n, m)
                children = sorted(c for _, kids in table for c in kids)
                assert children == list(range(uniform_hierarchy.get_mesh(m).n_elements))

    def test_uniform_children(self, uniform_hierarchy):
        """Test children of uniformly refined elements."""
        table = uniform_hierarchy.get_table(0, 2)

        assert table.to_lists() == [list(range(16)), list(range(16, 32))]

    def test_shared_vertex_locator_gives_same_tables(self, square_meshes, square_hierarchy):
        """Test that the shared-vertex walk finds the same tables."""
        shared = NestedMeshHierarchy(square_meshes, use_shared_vertices=True)

        assert shared.get_table(0, 2) == square_hierarchy.get_table(0, 2)

    def test_incremental_build(self, square_meshes):
        """Test adding meshes one by one before finalizing."""
        hierarchy = NestedMeshHierarchy()
        for mesh in square_meshes:
            hierarchy.add_mesh(mesh)

        assert not hierarchy.is_finalized
        with pytest.raises(AssertionError):
            hierarchy.get_table(0, 1)

        hierarchy.finalize()
        assert hierarchy.n_levels == 3
        assert len(hierarchy.parent_children_tables) == 2

    def test_coarsening_rejected(self, square_meshes):
        """Test that a coarser mesh cannot follow a finer one."""
        hierarchy = NestedMeshHierarchy()
        hierarchy.add_mesh(square_meshes[1])
        with pytest.raises(AssertionError):
            hierarchy.add_mesh(square_meshes[0])

    def test_invalid_level_pair(self, square_hierarchy):
        """Test rejection of a reversed level pair."""
        with pytest.raises(AssertionError):
            square_hierarchy.get_table(2, 1)


class TestNestedFESpaceHierarchy:
    """Test cases for FE-space hierarchies."""

    def test_from_factory(self, uniform_hierarchy):
        """Test building spaces for every level from a factory."""
        spaces = NestedFESpaceHierarchy.from_factory(uniform_hierarchy, H1Space)

        assert spaces.n_levels == 3
        assert spaces.num_dims == [4, 9, 25]
        assert spaces.get_table(0, 1) is uniform_hierarchy.get_table(0, 1)

    def test_space_on_wrong_mesh(self, uniform_hierarchy):
        """Test that a space on the wrong level mesh is rejected."""
        spaces = NestedFESpaceHierarchy(uniform_hierarchy)
        with pytest.raises(AssertionError):
            spaces.add_space(H1Space(uniform_hierarchy.get_mesh(1)))
