"""Spatial and temporal operators of the space-time heat discretisation."""

from .base import BlockBilinearFormIntegrator, BlockMixedBilinearFormIntegrator
from .integrators import (
    SpatialMassIntegrator, SpatialStiffnessIntegrator, FluxMassIntegrator,
    FluxDivDivIntegrator, SpatialGradientIntegrator, SpatialDivergenceIntegrator
)
from .block_forms import BlockBilinearForm, BlockMixedBilinearForm
from .linear_forms import assemble_domain_load, assemble_divergence_load
from .temporal import (
    TemporalBlockMatrixAssembler, TemporalInitialMatrixAssembler,
    TemporalMassMatrixAssembler, TemporalStiffnessMatrixAssembler,
    TemporalGradientMatrixAssembler, HierarchicalTemporalBasis
)

__all__ = [
    "BlockBilinearFormIntegrator",
    "BlockMixedBilinearFormIntegrator",
    "SpatialMassIntegrator",
    "SpatialStiffnessIntegrator",
    "FluxMassIntegrator",
    "FluxDivDivIntegrator",
    "SpatialGradientIntegrator",
    "SpatialDivergenceIntegrator",
    "BlockBilinearForm",
    "BlockMixedBilinearForm",
    "assemble_domain_load",
    "assemble_divergence_load",
    "TemporalBlockMatrixAssembler",
    "TemporalInitialMatrixAssembler",
    "TemporalMassMatrixAssembler",
    "TemporalStiffnessMatrixAssembler",
    "TemporalGradientMatrixAssembler",
    "HierarchicalTemporalBasis",
]
