"""Plotting of meshes and solutions."""

from .solution_plots import SolutionVisualizer

__all__ = ["SolutionVisualizer"]
