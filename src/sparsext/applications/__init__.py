"""Heat equation test cases and space-time discretisations."""

from .test_cases import (
    HeatTestCase, UnitSquareTest1, UnitSquareTest2, UnitSquareTest3, UnitIntervalTest1,
    make_test_case
)
from .sparse_discretisation import AssemblyState, SparseSpaceTimeHeatFEM
from .dense_discretisation import DenseSpaceTimeHeatFEM, UniformTemporalMesh
from .solution import SolutionHandler, ErrorEvaluator

__all__ = [
    "HeatTestCase",
    "UnitSquareTest1",
    "UnitSquareTest2",
    "UnitSquareTest3",
    "UnitIntervalTest1",
    "make_test_case",
    "AssemblyState",
    "SparseSpaceTimeHeatFEM",
    "DenseSpaceTimeHeatFEM",
    "UniformTemporalMesh",
    "SolutionHandler",
    "ErrorEvaluator",
]
