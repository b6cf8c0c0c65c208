"""
Test Suite for sparse space-time finite elements for the heat equation

Test Categories:
    - Unit tests: meshes, spaces, hierarchies, temporal and spatial operators
    - Integration tests: sparse vs. dense assembly, end-to-end solves, CLI
"""

import numpy as np
import sys
from pathlib import Path

# Add src directory to path for imports
test_dir = Path(__file__).parent
src_dir = test_dir.parent / 'src'
sys.path.insert(0, str(src_dir))

# Test configuration
TEST_CONFIG = {
    'tolerance': {
        'exact': 1e-12,
        'assembly': 1e-10,
        'sparse_vs_dense': 1e-8,
    },
    'end_time': 1.0,
}

# Vertices shared by the three hand-built square meshes
SQUARE_VERTICES = np.array([
    [0.0, 0.0],    # 0 A
    [1.0, 0.0],    # 1 B
    [1.0, 1.0],    # 2 C
    [0.0, 1.0],    # 3 D
    [0.5, 0.5],    # 4 M
    [0.5, 1.0],    # 5 P
    [0.0, 0.5],    # 6 Q
    [0.5, 0.0],    # 7 R
    [0.75, 0.25],  # 8 S
    [1.0, 0.5],    # 9 U
])
A, B, C, D, M, P, Q, R, S, U = range(10)

SQUARE_ELEMENTS = [
    # 2 elements
    [(A, B, C), (A, C, D)],
    # 6 elements
    [(A, B, M), (A, M, Q), (M, C, P), (B, C, M), (Q, P, D), (M, P, Q)],
    # 9 elements
    [(A, R, M), (R, B, S), (R, S, M), (B, U, M), (U, C, M),
     (A, M, Q), (M, C, P), (Q, P, D), (M, P, Q)],
]

# Children of each coarse element for the level pairs (0, 1), (1, 2), (0, 2)
SQUARE_TABLES = {
    (0, 1): [[0, 3], [1, 2, 4, 5]],
    (1, 2): [[0, 1, 2], [5], [6], [3, 4], [7], [8]],
    (0, 2): [[0, 1, 2, 3, 4], [5, 6, 7, 8]],
}


def generate_square_meshes():
    """The 2/6/9-element nested meshes of the unit square."""
    from sparsext.core.mesh import SimplexMesh

    meshes = []
    for level, elements in enumerate(SQUARE_ELEMENTS):
        used = sorted({v for element in elements for v in element})
        renumber = {v: k for k, v in enumerate(used)}
        local = [[renumber[v] for v in element] for element in elements]
        meshes.append(SimplexMesh(SQUARE_VERTICES[used], local, name=f"square level {level}"))
    return meshes


def generate_uniform_square_hierarchy(num_levels=2, base_divisions=1):
    """Uniformly refined unit square meshes wrapped in a finalized hierarchy."""
    from sparsext.core.mesh import unit_square_mesh, build_uniform_hierarchy
    from sparsext.hierarchy.nested import NestedMeshHierarchy

    meshes = build_uniform_hierarchy(unit_square_mesh(base_divisions), num_levels)
    return NestedMeshHierarchy(meshes)
