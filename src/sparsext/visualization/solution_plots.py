"""Plots of mesh hierarchies, temperature fields and convergence histories."""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.tri as mtri
from typing import Any, Dict, List, Optional
import logging
import os

from ..core.mesh import SimplexMesh
from ..hierarchy.nested import NestedMeshHierarchy

logger = logging.getLogger(__name__)


class SolutionVisualizer:
    """
    Figures for space-time heat solutions.

    Every plot method returns the matplotlib figure and saves it to the
    output directory when a file name is given.
    """

    def __init__(self, output_dir: str = "plots", colormap: str = "RdBu_r"):
        """
        Initialize visualizer.

        Args:
            output_dir: Directory to save plots
            colormap: Colormap of scalar fields
        """
        self.output_dir = output_dir
        self.colormap = colormap
        os.makedirs(output_dir, exist_ok=True)
        logger.info(f"Solution visualizer writing to {output_dir}")

    def _finish(self, fig, filename: Optional[str]):
        if filename:
            path = os.path.join(self.output_dir, filename)
            fig.savefig(path, dpi=150, bbox_inches='tight')
            logger.info(f"Saved figure {path}")
        return fig

    @staticmethod
    def draw_mesh(ax, mesh: SimplexMesh, **kwargs) -> None:
        """Draw the elements of a mesh on an axis."""
        if mesh.dim == 1:
            x = mesh.vertices[:, 0]
            ax.plot(x, np.zeros_like(x), '|-', **kwargs)
            ax.set_yticks([])
        else:
            triangulation = mtri.Triangulation(mesh.vertices[:, 0], mesh.vertices[:, 1],
                                               mesh.elements)
            ax.triplot(triangulation, linewidth=0.8, **kwargs)
            ax.set_aspect('equal')

    def plot_mesh_hierarchy(self, hierarchy: NestedMeshHierarchy,
                            filename: Optional[str] = None):
        """One panel per mesh level."""
        n_levels = hierarchy.n_levels
        fig, axes = plt.subplots(1, n_levels, figsize=(4 * n_levels, 4), squeeze=False)
        for level, ax in enumerate(axes[0]):
            mesh = hierarchy.get_mesh(level)
            self.draw_mesh(ax, mesh, color='k')
            ax.set_title(f"Level {level}: {mesh.n_elements} elements")
        fig.tight_layout()
        return self._finish(fig, filename)

    def plot_temperature(self, mesh: SimplexMesh, values: np.ndarray,
                         title: str = "Temperature", exact: Optional[np.ndarray] = None,
                         filename: Optional[str] = None):
        """
        Nodal temperature field on a mesh, optionally next to the exact field.

        Args:
            mesh: Mesh whose vertices carry the values
            values: Nodal values (n_vertices,)
            title: Figure title
            exact: Optional exact nodal values
            filename: Save under this name in the output directory
        """
        n_panels = 1 if exact is None else 3
        fig, axes = plt.subplots(1, n_panels, figsize=(5 * n_panels, 4), squeeze=False)
        fields = [(values, title)]
        if exact is not None:
            fields += [(exact, "Exact"), (values - exact, "Error")]

        for ax, (field, label) in zip(axes[0], fields):
            if mesh.dim == 1:
                order = np.argsort(mesh.vertices[:, 0])
                ax.plot(mesh.vertices[order, 0], field[order], marker='o')
                ax.set_xlabel('x')
            else:
                triangulation = mtri.Triangulation(mesh.vertices[:, 0], mesh.vertices[:, 1],
                                                   mesh.elements)
                image = ax.tripcolor(triangulation, field, shading='gouraud', cmap=self.colormap)
                fig.colorbar(image, ax=ax)
                ax.set_aspect('equal')
            ax.set_title(label)
        fig.tight_layout()
        return self._finish(fig, filename)

    def plot_convergence(self, results: List[Dict[str, Any]],
                         filename: Optional[str] = None):
        """L2 errors at the end time against the number of degrees of freedom."""
        n_dofs = [r["n_dofs"] for r in results]
        fig, ax = plt.subplots(figsize=(6, 4.5))
        for key, label in (("temperature_l2", "temperature"), ("heat_flux_l2", "heat flux")):
            ax.loglog(n_dofs, [r["errors"][key] for r in results], 'o-', label=label)
        ax.set_xlabel('degrees of freedom')
        ax.set_ylabel('L2 error at end time')
        ax.grid(True, which='both', alpha=0.3)
        ax.legend()
        fig.tight_layout()
        return self._finish(fig, filename)
