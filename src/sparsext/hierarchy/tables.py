"""Parent-children tables between nested meshes and their composition."""

from typing import Dict, Iterator, List, Sequence, Set, Tuple


class ParentChildrenTable:
    """
    Map from coarse element index to the set of fine elements it contains.

    Every fine element appears under exactly one coarse parent.
    """

    def __init__(self, n_parents: int = 0):
        self._children: List[Set[int]] = [set() for _ in range(n_parents)]
        self._parent_of: Dict[int, int] = {}

    @classmethod
    def from_lists(cls, children: Sequence[Sequence[int]]) -> 'ParentChildrenTable':
        table = cls(len(children))
        for parent, kids in enumerate(children):
            for child in kids:
                table.add(parent, child)
        return table

    def add(self, parent: int, child: int) -> None:
        """Record that a fine element lies inside a coarse element."""
        if parent < 0 or child < 0:
            raise ValueError(f"Negative element index in ({parent}, {child})")
        if child in self._parent_of and self._parent_of[child] != parent:
            raise ValueError(
                f"Element {child} already has parent {self._parent_of[child]}, "
                f"cannot add it under {parent}"
            )
        while len(self._children) <= parent:
            self._children.append(set())
        self._children[parent].add(child)
        self._parent_of[child] = parent

    def children(self, parent: int) -> Set[int]:
        return self._children[parent]

    def __getitem__(self, parent: int) -> Set[int]:
        return self._children[parent]

    def parent(self, child: int) -> int:
        return self._parent_of[child]

    @property
    def n_parents(self) -> int:
        return len(self._children)

    @property
    def n_children(self) -> int:
        return len(self._parent_of)

    def __len__(self) -> int:
        return self.n_parents

    def __iter__(self) -> Iterator[Tuple[int, Set[int]]]:
        return iter(enumerate(self._children))

    def to_lists(self) -> List[List[int]]:
        return [sorted(kids) for kids in self._children]

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParentChildrenTable):
            return NotImplemented
        return self._children == other._children

    def __repr__(self) -> str:
        return f"ParentChildrenTable(parents={self.n_parents}, children={self.n_children})"


def compose_two_level(coarse_to_mid: ParentChildrenTable,
                      mid_to_fine: ParentChildrenTable) -> ParentChildrenTable:
    """
    Compose tables (0, m) and (m, n) into (0, n).

    The children of a coarse element are the union of the children of its
    intermediate-level children.
    """
    result = ParentChildrenTable(coarse_to_mid.n_parents)
    for parent, mids in coarse_to_mid:
        for mid in mids:
            assert mid < mid_to_fine.n_parents, (
                f"Intermediate element {mid} of parent {parent} has no entry in a table "
                f"with {mid_to_fine.n_parents} parents"
            )
            for child in mid_to_fine[mid]:
                result.add(parent, child)
    return result


def compose_multi_level(tables: Sequence[ParentChildrenTable]) -> ParentChildrenTable:
    """
    Compose consecutive single-step tables (0,1), (1,2), ..., (k-1,k) into (0,k).

    A single table is returned unchanged.
    """
    assert len(tables) >= 1, "Need at least one parent-children table"
    if len(tables) == 1:
        return tables[0]
    return compose_two_level(tables[0], compose_multi_level(tables[1:]))
