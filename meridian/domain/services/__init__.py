"""
Domain Services Package

Architectural Intent:
- Pure domain logic: declaration checks, graph building, attribute resolution,
  topology synthesis and output projection
- Nothing here performs I/O or talks to a provider
"""

from meridian.domain.services.resource_model import ResourceModel
from meridian.domain.services.dependency_graph import (
    DependencyGraph,
    GraphNode,
    build_graph,
)
from meridian.domain.services.attribute_resolver import resolve, resolve_inputs
from meridian.domain.services.topology_synthesizer import synthesize, topology_changed
from meridian.domain.services.output_projector import (
    OutputDefinition,
    OutputProjector,
    OutputSet,
    OutputShape,
    DEFAULT_OUTPUTS,
)

__all__ = [
    "ResourceModel",
    "DependencyGraph",
    "GraphNode",
    "build_graph",
    "resolve",
    "resolve_inputs",
    "synthesize",
    "topology_changed",
    "OutputDefinition",
    "OutputProjector",
    "OutputSet",
    "OutputShape",
    "DEFAULT_OUTPUTS",
]
