"""Simplicial meshes (intervals and triangles) and uniform refinement."""

import numpy as np
from typing import List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class SimplexMesh:
    """
    Conforming simplicial mesh in one or two space dimensions.

    Elements are stored as vertex index tuples. In 1D an element is an
    interval (left, right); in 2D a triangle with counter-clockwise
    orientation. Each element carries an affine map from the reference
    simplex, x = v0 + B xi, where the columns of B are the edge vectors
    v_k - v0.
    """

    def __init__(
        self,
        vertices: np.ndarray,
        elements: np.ndarray,
        name: Optional[str] = None
    ):
        """
        Initialize a simplicial mesh.

        Args:
            vertices: Vertex coordinates, shape (n_vertices, dim)
            elements: Element vertex indices, shape (n_elements, dim + 1)
            name: Optional label used in log messages
        """
        vertices = np.asarray(vertices, dtype=np.float64)
        if vertices.ndim == 1:
            vertices = vertices.reshape(-1, 1)
        elements = np.array(elements, dtype=np.int64)

        dim = vertices.shape[1]
        if dim not in (1, 2):
            raise ValueError(f"Unsupported mesh dimension: {dim}")
        if elements.ndim != 2 or elements.shape[1] != dim + 1:
            raise ValueError(
                f"Elements of a {dim}D mesh need {dim + 1} vertices, "
                f"got array of shape {elements.shape}"
            )
        if elements.size and (elements.min() < 0 or elements.max() >= len(vertices)):
            raise ValueError("Element vertex index out of range")

        self.dim = dim
        self.name = name or f"{dim}D mesh"
        self.vertices = vertices
        self.elements = elements

        self._orient_elements()
        self._compute_geometry()

        self._vertex_to_elements: Optional[List[np.ndarray]] = None
        self._edges: Optional[np.ndarray] = None
        self._element_edges: Optional[np.ndarray] = None
        self._edge_element_count: Optional[np.ndarray] = None

        logger.debug(f"Created {self.name}: {self.n_vertices} vertices, "
                     f"{self.n_elements} elements")

    def _orient_elements(self) -> None:
        """Reorder element vertices so every element has positive measure."""
        v = self.vertices[self.elements]
        if self.dim == 1:
            flipped = v[:, 1, 0] < v[:, 0, 0]
            self.elements[flipped] = self.elements[flipped][:, ::-1]
        else:
            e1 = v[:, 1] - v[:, 0]
            e2 = v[:, 2] - v[:, 0]
            det = e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]
            flipped = det < 0
            self.elements[flipped] = self.elements[flipped][:, [0, 2, 1]]

    def _compute_geometry(self) -> None:
        v = self.vertices[self.elements]
        # columns of B are v_k - v_0
        self.jacobians = np.transpose(v[:, 1:, :] - v[:, :1, :], (0, 2, 1))
        self.determinants = np.linalg.det(self.jacobians)
        if np.any(self.determinants <= 0):
            raise ValueError(f"{self.name} contains degenerate elements")
        self.inverse_jacobians = np.linalg.inv(self.jacobians)
        self.centroids = v.mean(axis=1)

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_elements(self) -> int:
        return len(self.elements)

    @property
    def volumes(self) -> np.ndarray:
        """Element measures (lengths in 1D, areas in 2D)."""
        return self.determinants / (1.0 if self.dim == 1 else 2.0)

    @property
    def mesh_size(self) -> float:
        """Largest element diameter."""
        v = self.vertices[self.elements]
        diam = 0.0
        for a in range(self.dim + 1):
            for b in range(a + 1, self.dim + 1):
                diam = max(diam, float(np.max(np.linalg.norm(v[:, a] - v[:, b], axis=1))))
        return diam

    def element_vertices(self, element: int) -> np.ndarray:
        """Coordinates of the vertices of an element, shape (dim + 1, dim)."""
        return self.vertices[self.elements[element]]

    def centroid(self, element: int) -> np.ndarray:
        return self.centroids[element]

    def map_to_physical(self, element: int, reference_points: np.ndarray) -> np.ndarray:
        """Map reference coordinates (n, dim) of an element to physical points."""
        reference_points = np.atleast_2d(reference_points)
        v0 = self.vertices[self.elements[element, 0]]
        return v0 + reference_points @ self.jacobians[element].T

    def map_to_reference(self, element: int, points: np.ndarray) -> np.ndarray:
        """Inverse affine map of physical points (n, dim) into an element."""
        points = np.atleast_2d(points)
        v0 = self.vertices[self.elements[element, 0]]
        return (points - v0) @ self.inverse_jacobians[element].T

    @property
    def vertex_to_elements(self) -> List[np.ndarray]:
        """For every vertex, the sorted indices of the elements touching it."""
        if self._vertex_to_elements is None:
            buckets: List[List[int]] = [[] for _ in range(self.n_vertices)]
            for e, verts in enumerate(self.elements):
                for v in verts:
                    buckets[v].append(e)
            self._vertex_to_elements = [np.array(b, dtype=np.int64) for b in buckets]
        return self._vertex_to_elements

    def element_neighbours(self, element: int) -> np.ndarray:
        """Elements sharing at least one vertex with the given element."""
        v2e = self.vertex_to_elements
        candidates = np.unique(np.concatenate([v2e[v] for v in self.elements[element]]))
        return candidates[candidates != element]

    def _build_edges(self) -> None:
        # local edge k is opposite local vertex k
        local = [(1, 2), (2, 0), (0, 1)]
        pairs = np.concatenate([self.elements[:, list(p)] for p in local], axis=0)
        pairs = np.sort(pairs, axis=1)
        edges, inverse, counts = np.unique(
            pairs, axis=0, return_inverse=True, return_counts=True
        )
        self._edges = edges
        self._element_edges = inverse.reshape(3, self.n_elements).T.copy()
        self._edge_element_count = counts

    @property
    def edges(self) -> np.ndarray:
        """Global edges (n_edges, 2) with the lower vertex index first."""
        if self.dim != 2:
            raise ValueError("Edges are only defined for 2D meshes")
        if self._edges is None:
            self._build_edges()
        return self._edges

    @property
    def element_edges(self) -> np.ndarray:
        """Global edge index of local edge k (opposite vertex k), shape (n_elements, 3)."""
        if self._element_edges is None:
            self._build_edges()
        return self._element_edges

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    def boundary_edges(self) -> np.ndarray:
        """Indices of edges that belong to exactly one element."""
        if self._edge_element_count is None:
            self._build_edges()
        return np.flatnonzero(self._edge_element_count == 1)

    def boundary_vertices(self) -> np.ndarray:
        """Indices of the vertices on the domain boundary."""
        if self.dim == 1:
            counts = np.bincount(self.elements.ravel(), minlength=self.n_vertices)
            return np.flatnonzero(counts == 1)
        return np.unique(self.edges[self.boundary_edges()].ravel())

    def __str__(self) -> str:
        return f"SimplexMesh({self.name}, vertices={self.n_vertices}, elements={self.n_elements})"

    def __repr__(self) -> str:
        return f"SimplexMesh(dim={self.dim}, n_vertices={self.n_vertices}, n_elements={self.n_elements})"


def unit_interval_mesh(n: int) -> SimplexMesh:
    """Uniform mesh of [0, 1] with n elements."""
    if n < 1:
        raise ValueError("Interval mesh needs at least one element")
    vertices = np.linspace(0.0, 1.0, n + 1).reshape(-1, 1)
    elements = np.column_stack([np.arange(n), np.arange(1, n + 1)])
    return SimplexMesh(vertices, elements, name=f"unit interval ({n})")


def unit_square_mesh(n: int) -> SimplexMesh:
    """
    Uniform triangulation of [0, 1]^2.

    The square is split into n x n cells, and each cell into two triangles
    along its diagonal from the lower-left to the upper-right corner.

    Args:
        n: Number of cells per direction

    Returns:
        Mesh with (n + 1)^2 vertices and 2 n^2 triangles
    """
    if n < 1:
        raise ValueError("Square mesh needs at least one cell per direction")
    x = np.linspace(0.0, 1.0, n + 1)
    xx, yy = np.meshgrid(x, x, indexing='xy')
    vertices = np.column_stack([xx.ravel(), yy.ravel()])

    elements = []
    for j in range(n):
        for i in range(n):
            v00 = j * (n + 1) + i
            v10 = v00 + 1
            v01 = v00 + n + 1
            v11 = v01 + 1
            elements.append((v00, v10, v11))
            elements.append((v00, v11, v01))
    return SimplexMesh(vertices, np.array(elements), name=f"unit square ({n}x{n})")


def refine_uniformly(mesh: SimplexMesh) -> SimplexMesh:
    """
    Refine every element of a mesh once.

    Intervals are bisected; the children of element e are 2e and 2e + 1.
    Triangles are split into four by connecting edge midpoints; the children
    of element e are 4e..4e+3, the last one being the interior triangle.
    """
    if mesh.dim == 1:
        nv = mesh.n_vertices
        midpoints = mesh.centroids
        vertices = np.vstack([mesh.vertices, midpoints])
        mids = nv + np.arange(mesh.n_elements)
        left = np.column_stack([mesh.elements[:, 0], mids])
        right = np.column_stack([mids, mesh.elements[:, 1]])
        elements = np.stack([left, right], axis=1).reshape(-1, 2)
    else:
        nv = mesh.n_vertices
        edges = mesh.edges
        vertices = np.vstack([mesh.vertices, 0.5 * (mesh.vertices[edges[:, 0]] +
                                                    mesh.vertices[edges[:, 1]])])
        # midpoint of local edge k (opposite vertex k)
        m12 = nv + mesh.element_edges[:, 0]
        m20 = nv + mesh.element_edges[:, 1]
        m01 = nv + mesh.element_edges[:, 2]
        v0, v1, v2 = mesh.elements.T
        children = np.stack([
            np.column_stack([v0, m01, m20]),
            np.column_stack([m01, v1, m12]),
            np.column_stack([m20, m12, v2]),
            np.column_stack([m01, m12, m20]),
        ], axis=1)
        elements = children.reshape(-1, 3)

    refined = SimplexMesh(vertices, elements, name=f"{mesh.name} refined")
    logger.debug(f"Refined {mesh.n_elements} -> {refined.n_elements} elements")
    return refined


def build_uniform_hierarchy(base_mesh: SimplexMesh, n_levels: int,
                            initial_refinements: int = 0) -> List[SimplexMesh]:
    """
    Sequence of uniformly refined meshes, coarsest first.

    Args:
        base_mesh: Starting mesh
        n_levels: Number of meshes to return
        initial_refinements: Refinements applied before the first level

    Returns:
        List of n_levels nested meshes
    """
    if n_levels < 1:
        raise ValueError("Mesh hierarchy needs at least one level")
    mesh = base_mesh
    for _ in range(initial_refinements):
        mesh = refine_uniformly(mesh)
    meshes = [mesh]
    for _ in range(n_levels - 1):
        meshes.append(refine_uniformly(meshes[-1]))
    logger.info(f"Built {n_levels} uniform mesh levels: "
                f"{[m.n_elements for m in meshes]} elements")
    return meshes
