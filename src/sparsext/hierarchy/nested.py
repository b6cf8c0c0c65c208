"""Hierarchies of nested meshes and finite element spaces."""

from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from ..core.mesh import SimplexMesh
from ..core.fe_spaces import FiniteElementSpace
from ..core.locator import PointLocator
from .tables import ParentChildrenTable, compose_multi_level, compose_two_level

logger = logging.getLogger(__name__)


class NestedMeshHierarchy:
    """
    Ordered list of nested meshes, coarsest first.

    After finalize() the hierarchy holds one parent-children table per pair
    of consecutive levels, found by locating every fine element centroid in
    the coarse mesh. Tables between non-adjacent levels are composed on
    demand and cached per (coarse, fine) pair.
    """

    def __init__(self, meshes: Optional[Sequence[SimplexMesh]] = None,
                 use_shared_vertices: bool = False):
        """
        Initialize the hierarchy.

        Args:
            meshes: Optional meshes to add; the hierarchy is finalized if given
            use_shared_vertices: Let the locator walk through coincident vertices
        """
        self.use_shared_vertices = use_shared_vertices
        self._meshes: List[SimplexMesh] = []
        self._tables: List[ParentChildrenTable] = []
        self._composed: Dict[Tuple[int, int], ParentChildrenTable] = {}
        self._finalized = False

        if meshes is not None:
            for mesh in meshes:
                self.add_mesh(mesh)
            self.finalize()

    def add_mesh(self, mesh: SimplexMesh) -> None:
        """Append a mesh at the next finer level."""
        if self._meshes:
            coarse = self._meshes[-1]
            assert coarse.n_elements <= mesh.n_elements, (
                f"Mesh levels must not coarsen: level {len(self._meshes)} has "
                f"{mesh.n_elements} elements, previous has {coarse.n_elements}"
            )
            assert coarse.dim == mesh.dim, "All levels must have the same dimension"
        self._meshes.append(mesh)
        self._finalized = False

    def finalize(self) -> None:
        """Build the parent-children tables of consecutive levels."""
        assert self._meshes, "Cannot finalize an empty mesh hierarchy"
        self._tables = [
            self._locate_children(self._meshes[level], self._meshes[level + 1])
            for level in range(len(self._meshes) - 1)
        ]
        self._composed = {(level, level + 1): table for level, table in enumerate(self._tables)}
        self._finalized = True
        logger.info(f"Mesh hierarchy finalized: {self.n_levels} levels, "
                    f"elements per level {[m.n_elements for m in self._meshes]}")

    build = finalize

    def _locate_children(self, coarse: SimplexMesh, fine: SimplexMesh) -> ParentChildrenTable:
        locator = PointLocator(coarse, use_shared_vertices=self.use_shared_vertices)
        parents, _ = locator.locate_batch(fine.centroids)
        table = ParentChildrenTable(coarse.n_elements)
        for child, parent in enumerate(parents):
            table.add(int(parent), child)
        logger.debug(f"Located {fine.n_elements} fine elements in {coarse.n_elements} parents")
        return table

    @property
    def n_levels(self) -> int:
        return len(self._meshes)

    @property
    def meshes(self) -> List[SimplexMesh]:
        return list(self._meshes)

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def get_mesh(self, level: int) -> SimplexMesh:
        return self._meshes[level]

    @property
    def parent_children_tables(self) -> List[ParentChildrenTable]:
        """Tables (l, l + 1) for every pair of consecutive levels."""
        assert self._finalized, "Mesh hierarchy has not been finalized"
        return list(self._tables)

    def get_table(self, coarse_level: int, fine_level: int) -> ParentChildrenTable:
        """
        Parent-children table from coarse_level to fine_level.

        The table is composed from the single-step tables once and cached.
        """
        assert self._finalized, "Mesh hierarchy has not been finalized"
        assert 0 <= coarse_level < fine_level < self.n_levels, (
            f"Invalid level pair ({coarse_level}, {fine_level}) for {self.n_levels} levels"
        )
        key = (coarse_level, fine_level)
        if key not in self._composed:
            inner = self.get_table(coarse_level + 1, fine_level)
            self._composed[key] = compose_two_level(self._tables[coarse_level], inner)
            logger.debug(f"Composed parent-children table {key}")
        return self._composed[key]

    def compose_tables(self, coarse_level: int, fine_level: int) -> ParentChildrenTable:
        """Uncached composition of the single-step tables between two levels."""
        assert self._finalized, "Mesh hierarchy has not been finalized"
        return compose_multi_level(self._tables[coarse_level:fine_level])

    def __repr__(self) -> str:
        return f"NestedMeshHierarchy(levels={self.n_levels}, finalized={self._finalized})"


class NestedFESpaceHierarchy:
    """One finite element space per level of a nested mesh hierarchy."""

    def __init__(self, mesh_hierarchy: NestedMeshHierarchy):
        self.mesh_hierarchy = mesh_hierarchy
        self._spaces: List[FiniteElementSpace] = []

    @classmethod
    def from_factory(cls, mesh_hierarchy: NestedMeshHierarchy,
                     factory: Callable[[SimplexMesh], FiniteElementSpace]) -> 'NestedFESpaceHierarchy':
        """Build a space on every level with factory(mesh)."""
        hierarchy = cls(mesh_hierarchy)
        for mesh in mesh_hierarchy.meshes:
            hierarchy.add_space(factory(mesh))
        return hierarchy

    def add_space(self, space: FiniteElementSpace) -> None:
        level = len(self._spaces)
        assert level < self.mesh_hierarchy.n_levels, "More spaces than mesh levels"
        assert space.mesh is self.mesh_hierarchy.get_mesh(level), (
            f"Space for level {level} is not built on that level's mesh"
        )
        self._spaces.append(space)

    @property
    def n_levels(self) -> int:
        return len(self._spaces)

    @property
    def num_dims(self) -> List[int]:
        """True DOF count per level."""
        return [space.n_dofs for space in self._spaces]

    def get_space(self, level: int) -> FiniteElementSpace:
        return self._spaces[level]

    @property
    def spaces(self) -> List[FiniteElementSpace]:
        return list(self._spaces)

    def get_table(self, coarse_level: int, fine_level: int) -> ParentChildrenTable:
        return self.mesh_hierarchy.get_table(coarse_level, fine_level)

    def __repr__(self) -> str:
        return f"NestedFESpaceHierarchy(levels={self.n_levels}, dofs={self.num_dims})"
