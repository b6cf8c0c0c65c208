"""Unit tests for simplicial meshes and uniform refinement."""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from sparsext.core.mesh import (
    SimplexMesh, unit_interval_mesh, unit_square_mesh, refine_uniformly, build_uniform_hierarchy
)


class TestSimplexMesh:
    """Test cases for SimplexMesh."""

    def test_unit_square_counts(self):
        """Test vertex and element counts of the unit square mesh."""
        mesh = unit_square_mesh(2)

        assert mesh.dim == 2
        assert mesh.n_vertices == 9
        assert mesh.n_elements == 8
        assert mesh.n_edges == 16
        np.testing.assert_allclose(mesh.volumes.sum(), 1.0)

    def test_unit_interval_counts(self):
        """Test vertex and element counts of the unit interval mesh."""
        mesh = unit_interval_mesh(4)

        assert mesh.dim == 1
        assert mesh.n_vertices == 5
        assert mesh.n_elements == 4
        np.testing.assert_allclose(mesh.volumes, 0.25)
        np.testing.assert_array_equal(mesh.boundary_vertices(), [0, 4])

    def test_orientation_is_fixed(self):
        """Test that clockwise elements are reoriented."""
        vertices = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        mesh = SimplexMesh(vertices, [[0, 2, 1]])

        assert mesh.determinants[0] > 0
        np.testing.assert_allclose(mesh.volumes, [0.5])

    def test_invalid_elements(self):
        """Test rejection of elements with the wrong vertex count."""
        vertices = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(ValueError, match="need 3 vertices"):
            SimplexMesh(vertices, [[0, 1]])

        with pytest.raises(ValueError, match="out of range"):
            SimplexMesh(vertices, [[0, 1, 3]])

    def test_degenerate_element(self):
        """Test rejection of zero-area elements."""
        vertices = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        with pytest.raises(ValueError, match="degenerate"):
            SimplexMesh(vertices, [[0, 1, 2]])

    def test_reference_map_roundtrip(self):
        """Test mapping to physical and back to reference coordinates."""
        mesh = unit_square_mesh(2)
        reference = np.array([[0.2, 0.3], [0.0, 0.0], [0.5, 0.5]])

        for element in range(mesh.n_elements):
            physical = mesh.map_to_physical(element, reference)
            np.testing.assert_allclose(mesh.map_to_reference(element, physical), reference,
                                       atol=1e-14)

        # reference vertex 0 maps to the first element vertex
        np.testing.assert_allclose(mesh.map_to_physical(3, [[0.0, 0.0]])[0],
                                   mesh.element_vertices(3)[0])

    def test_boundary_of_square(self):
        """Test boundary vertices of the unit square."""
        mesh = unit_square_mesh(2)

        boundary = mesh.boundary_vertices()
        assert len(boundary) == 8
        assert 4 not in boundary  # centre vertex
        assert len(mesh.boundary_edges()) == 8

    def test_element_edges_are_opposite_vertices(self):
        """Test that local edge k is opposite local vertex k."""
        mesh = unit_square_mesh(1)

        for element in range(mesh.n_elements):
            verts = mesh.elements[element]
            for k, edge in enumerate(mesh.element_edges[element]):
                assert verts[k] not in mesh.edges[edge]

    def test_neighbours(self):
        """Test element neighbours on an interval."""
        mesh = unit_interval_mesh(3)

        np.testing.assert_array_equal(mesh.element_neighbours(1), [0, 2])
        np.testing.assert_array_equal(mesh.element_neighbours(0), [1])

    def test_interval_has_no_edges(self):
        """Test that edges are only defined in 2D."""
        with pytest.raises(ValueError, match="2D"):
            unit_interval_mesh(2).edges

    def test_mesh_size(self):
        """Test the largest element diameter."""
        np.testing.assert_allclose(unit_square_mesh(2).mesh_size, np.sqrt(2) / 2)
        np.testing.assert_allclose(unit_interval_mesh(8).mesh_size, 0.125)


class TestRefinement:
    """Test cases for uniform refinement."""

    def test_triangle_refinement(self):
        """Test red refinement of triangles."""
        mesh = unit_square_mesh(1)
        fine = refine_uniformly(mesh)

        assert fine.n_elements == 4 * mesh.n_elements
        assert fine.n_vertices == mesh.n_vertices + mesh.n_edges
        np.testing.assert_allclose(fine.volumes, mesh.volumes[0] / 4)

    def test_children_lie_in_parent(self):
        """Test that refined elements lie inside their parent."""
        mesh = unit_square_mesh(2)
        fine = refine_uniformly(mesh)

        for child in range(fine.n_elements):
            parent = child // 4
            xi = mesh.map_to_reference(parent, fine.centroid(child)[None, :])[0]
            assert xi.min() > 0 and xi.sum() < 1

    def test_interval_refinement(self):
        """Test bisection of interval elements."""
        fine = refine_uniformly(unit_interval_mesh(2))

        assert fine.n_elements == 4
        np.testing.assert_allclose(np.sort(fine.centroids[:, 0]), [0.125, 0.375, 0.625, 0.875])
        np.testing.assert_allclose(fine.centroids[[0, 1], 0], [0.125, 0.375])

    def test_uniform_hierarchy(self):
        """Test element counts of a uniform hierarchy."""
        meshes = build_uniform_hierarchy(unit_square_mesh(1), 3, initial_refinements=1)

        assert [m.n_elements for m in meshes] == [8, 32, 128]

        with pytest.raises(ValueError):
            build_uniform_hierarchy(unit_square_mesh(1), 0)
