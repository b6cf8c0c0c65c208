"""Nested mesh and finite element space hierarchies."""

from .tables import ParentChildrenTable, compose_two_level, compose_multi_level
from .nested import NestedMeshHierarchy, NestedFESpaceHierarchy

__all__ = [
    "ParentChildrenTable",
    "compose_two_level",
    "compose_multi_level",
    "NestedMeshHierarchy",
    "NestedFESpaceHierarchy",
]
