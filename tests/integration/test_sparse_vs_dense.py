"""
Integration tests: sparse space-time assembly against the full tensor-product assembly.

With one level the two discretisations coincide. With several levels the
sparse basis is a subset of the full basis on the finest temporal grid and
the finest mesh, so the sparse system blocks equal E^T A E, where E
expresses every sparse basis function in the full basis.
"""

import numpy as np
import scipy.sparse as sp
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from sparsext.config.settings import DiscretisationConfig
from sparsext.core.mesh import unit_square_mesh, unit_interval_mesh, build_uniform_hierarchy
from sparsext.core.locator import PointLocator
from sparsext.hierarchy.nested import NestedMeshHierarchy
from sparsext.applications.test_cases import make_test_case
from sparsext.applications.sparse_discretisation import SparseSpaceTimeHeatFEM
from sparsext.applications.dense_discretisation import DenseSpaceTimeHeatFEM


def nodal_prolongation(coarse_mesh, fine_mesh):
    """Values of the coarse P1 hat functions at the fine vertices."""
    locator = PointLocator(coarse_mesh)
    P = sp.lil_matrix((fine_mesh.n_vertices, coarse_mesh.n_vertices))
    guess = 0
    for v, point in enumerate(fine_mesh.vertices):
        guess, xi = locator.locate(point, guess)
        bary = np.concatenate([[1.0 - xi.sum()], xi])
        for vertex, value in zip(coarse_mesh.elements[guess], bary):
            if abs(value) > 1e-14:
                P[v, vertex] = value
    return P.tocsr()


def embedding(sparse, components):
    """Matrix mapping sparse coefficients to full space-time coefficients."""
    n_levels = sparse.num_levels
    finest = sparse.mesh_hierarchy.get_mesh(n_levels - 1)
    fine_times = np.linspace(0.0, sparse.end_time, 2 ** sparse.max_temporal_level + 1)
    columns = []
    for i in range(n_levels):
        temporal = sparse.temporal_basis.values(i, fine_times)
        P = nodal_prolongation(sparse.mesh_hierarchy.get_mesh(n_levels - 1 - i), finest)
        spatial = sp.block_diag([P] * components) if components > 1 else P
        columns.append(sp.kron(temporal, spatial))
    return sp.csr_matrix(sp.hstack(columns))


def build_pair(meshes, problem, discretisation_type, min_temporal_level=1, perturbation=0.2):
    case = make_test_case(problem, perturbation)
    sparse_config = DiscretisationConfig(discretisation_type=discretisation_type,
                                         min_temporal_level=min_temporal_level,
                                         num_levels=len(meshes))
    sparse = SparseSpaceTimeHeatFEM(sparse_config, case, NestedMeshHierarchy(meshes))
    sparse.assemble_system_sub_matrices()

    dense_config = DiscretisationConfig(discretisation_type=discretisation_type,
                                        min_temporal_level=sparse_config.max_temporal_level,
                                        space_time_basis="dense")
    dense = DenseSpaceTimeHeatFEM(dense_config, case, meshes[-1])
    dense.assemble_system_sub_matrices()
    return sparse, dense


class TestSingleLevel:
    """With one level the sparse and dense discretisations are identical."""

    @pytest.mark.parametrize("discretisation_type", ["H1Hdiv", "H1H1"])
    def test_unit_square(self, discretisation_type):
        """Test identical blocks, matrix and RHS on the unit square."""
        sparse, dense = build_pair([unit_square_mesh(2)], "unit_square_test2", discretisation_type,
                                   min_temporal_level=2)

        sparse_blocks = sparse.build_system_blocks()
        dense_blocks = dense.build_system_blocks()
        for key in ("11", "12", "21", "22"):
            difference = sparse_blocks[key].to_csr() - dense_blocks[key]
            assert difference.nnz == 0 or abs(difference).max() < 1e-8, key

        matrix_difference = sparse.build_system_matrix() - dense.build_system_matrix()
        assert matrix_difference.nnz == 0 or abs(matrix_difference).max() < 1e-8
        np.testing.assert_allclose(sparse.assemble_rhs(), dense.assemble_rhs(), atol=1e-8)
        np.testing.assert_array_equal(sparse.essential_dofs, dense.essential_dofs)

    def test_unit_interval(self):
        """Test identical matrix and RHS on the unit interval."""
        sparse, dense = build_pair([unit_interval_mesh(4)], "unit_interval_test1", "H1Hdiv",
                                   min_temporal_level=3)

        difference = sparse.build_system_matrix() - dense.build_system_matrix()
        assert difference.nnz == 0 or abs(difference).max() < 1e-8
        np.testing.assert_allclose(sparse.assemble_rhs(), dense.assemble_rhs(), atol=1e-8)


class TestSparseSubspace:
    """Multi-level sparse blocks are Galerkin restrictions of the full system."""

    @pytest.mark.parametrize("mesh_factory,problem,components", [
        (lambda: build_uniform_hierarchy(unit_square_mesh(1), 3), "unit_square_test2", 2),
        (lambda: build_uniform_hierarchy(unit_interval_mesh(2), 4), "unit_interval_test1", 1),
    ])
    def test_restriction(self, mesh_factory, problem, components):
        """Test sparse blocks against E^T A E of the dense system."""
        meshes = mesh_factory()
        discretisation_type = "H1H1" if components > 1 else "H1Hdiv"
        sparse, dense = build_pair(meshes, problem, discretisation_type)

        E_u = embedding(sparse, 1)
        E_q = embedding(sparse, components)
        assert E_u.shape == (dense.n_temperature_dofs, sparse.n_temperature_dofs)
        assert E_q.shape == (dense.n_flux_dofs, sparse.n_flux_dofs)

        sparse_blocks = sparse.build_system_blocks()
        dense_blocks = dense.build_system_blocks()
        expected = {
            "11": E_u.T @ dense_blocks["11"] @ E_u,
            "12": E_u.T @ dense_blocks["12"] @ E_q,
            "22": E_q.T @ dense_blocks["22"] @ E_q,
        }
        for key, matrix in expected.items():
            np.testing.assert_allclose(sparse_blocks[key].to_csr().toarray(), matrix.toarray(),
                                       atol=1e-10, err_msg=f"block {key}")

    def test_system_matrix_properties(self):
        """Test symmetry, eliminated rows and the upper triangle."""
        sparse, _ = build_pair(build_uniform_hierarchy(unit_square_mesh(1), 3),
                               "unit_square_test2", "H1Hdiv")
        matrix = sparse.build_system_matrix()
        rhs = sparse.assemble_rhs()

        assert matrix.shape == (sparse.n_dofs, sparse.n_dofs)
        assert abs(matrix - matrix.T).max() < 1e-12

        essential = sparse.essential_dofs
        np.testing.assert_allclose(matrix[essential][:, essential].toarray(), np.eye(len(essential)))
        assert abs(matrix[essential]).sum() == pytest.approx(len(essential))
        np.testing.assert_allclose(rhs[essential], 0.0)

        upper = sparse.build_upper_triangle_of_system_matrix()
        assert abs(upper - sp.triu(matrix)).max() == 0.0
