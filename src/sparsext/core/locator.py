"""Point location in simplicial meshes by neighbour walking."""

import numpy as np
from scipy.spatial import cKDTree
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from .mesh import SimplexMesh

logger = logging.getLogger(__name__)

INSIDE_TOLERANCE = 1e-12
SHARED_VERTEX_TOLERANCE = 1e-12


class SharedVertexTable:
    """
    Groups of distinct vertices that sit at the same position.

    Meshes glued from patches can duplicate vertices along interfaces; the
    locator treats such duplicates as one vertex when collecting neighbours.
    """

    def __init__(self, mesh: SimplexMesh, tolerance: float = SHARED_VERTEX_TOLERANCE):
        self.tolerance = tolerance
        self._equivalent: Dict[int, List[int]] = {}
        tree = cKDTree(mesh.vertices)
        for a, b in tree.query_pairs(r=tolerance):
            self._equivalent.setdefault(a, []).append(b)
            self._equivalent.setdefault(b, []).append(a)

    def equivalents(self, vertex: int) -> List[int]:
        return self._equivalent.get(vertex, [])

    def __len__(self) -> int:
        return len(self._equivalent)


class PointLocator:
    """
    Locate physical points in a mesh starting from a guessed element.

    The search first tests the guess, then walks greedily towards the point
    through vertex-adjacent neighbours (moving only while the neighbour
    centroid is strictly closer), and finally tests all neighbours of the
    element where the walk stopped.
    """

    def __init__(self, mesh: SimplexMesh, use_shared_vertices: bool = False,
                 tolerance: float = INSIDE_TOLERANCE):
        """
        Initialize the locator.

        Args:
            mesh: Mesh to search
            use_shared_vertices: Also walk through coincident duplicate vertices
            tolerance: Tolerance of the inside test in reference coordinates
        """
        self.mesh = mesh
        self.tolerance = tolerance
        self.shared_vertices = SharedVertexTable(mesh) if use_shared_vertices else None

    def is_inside(self, element: int, point: np.ndarray) -> Tuple[bool, np.ndarray]:
        """Inside test of a point; also returns its reference coordinates."""
        xi = self.mesh.map_to_reference(element, point)[0]
        inside = xi.min() >= -self.tolerance and xi.sum() <= 1.0 + self.tolerance
        return bool(inside), xi

    def neighbours(self, element: int) -> np.ndarray:
        if self.shared_vertices is None:
            return self.mesh.element_neighbours(element)
        v2e = self.mesh.vertex_to_elements
        collected = []
        for v in self.mesh.elements[element]:
            collected.append(v2e[v])
            for w in self.shared_vertices.equivalents(v):
                collected.append(v2e[w])
        candidates = np.unique(np.concatenate(collected))
        return candidates[candidates != element]

    def locate(self, point: Sequence[float], initial_guess: int = 0) -> Tuple[int, np.ndarray]:
        """
        Find the element containing a point.

        Args:
            point: Physical coordinates
            initial_guess: Element where the search starts

        Returns:
            (element index, reference coordinates of the point)

        Raises:
            RuntimeError: If no element around the end of the walk contains the point
        """
        point = np.atleast_1d(np.asarray(point, dtype=np.float64))
        if not 0 <= initial_guess < self.mesh.n_elements:
            initial_guess = 0

        current = initial_guess
        inside, xi = self.is_inside(current, point)
        if inside:
            return current, xi

        distance = np.linalg.norm(self.mesh.centroids[current] - point)
        while True:
            candidates = self.neighbours(current)
            if len(candidates) == 0:
                break
            distances = np.linalg.norm(self.mesh.centroids[candidates] - point, axis=1)
            best = int(np.argmin(distances))
            if distances[best] >= distance:
                break
            current = int(candidates[best])
            distance = distances[best]
            inside, xi = self.is_inside(current, point)
            if inside:
                return current, xi

        for candidate in self.neighbours(current):
            inside, xi = self.is_inside(int(candidate), point)
            if inside:
                return int(candidate), xi

        raise RuntimeError(
            f"Point {point.tolist()} not found in {self.mesh.name} "
            f"(walk started at element {initial_guess}, stopped at {current})"
        )

    def locate_batch(self, points: np.ndarray,
                     initial_guess: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Locate a sequence of points, each result seeding the next search.

        Returns:
            (element indices (n,), reference coordinates (n, dim))
        """
        points = np.atleast_2d(points)
        elements = np.empty(len(points), dtype=np.int64)
        reference = np.empty_like(points, dtype=np.float64)
        guess = initial_guess
        for k, point in enumerate(points):
            guess, reference[k] = self.locate(point, guess)
            elements[k] = guess
        return elements, reference

    def __repr__(self) -> str:
        return f"PointLocator(mesh={self.mesh!r}, shared_vertices={self.shared_vertices is not None})"
