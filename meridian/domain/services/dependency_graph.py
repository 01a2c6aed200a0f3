"""
Dependency Graph Builder

Architectural Intent:
- Turns resource declarations into an explicit DAG of resource instances
- Edges are derived from References found anywhere in a spec's inputs
- A reference to an InstanceSet without a key fans out to every member

Domain Logic:
- Edge A -> B means "A must wait for B"
- Every member of an InstanceSet inherits its spec's edges
- Cycles are reported with the full node sequence, found by depth-first
  search with white/grey/black marking
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Optional, Union

from meridian.domain.entities.resource_spec import ResourceSpec, member_id
from meridian.domain.errors import CycleError, SpecError
from meridian.domain.services.resource_model import ResourceModel
from meridian.domain.value_objects.reference import Reference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphNode:
    id: str
    spec: ResourceSpec
    key: Optional[str] = None


class _Mark(Enum):
    WHITE = auto()
    GREY = auto()
    BLACK = auto()


class DependencyGraph:
    def __init__(
        self,
        nodes: dict[str, GraphNode],
        dependencies: dict[str, tuple[str, ...]],
    ) -> None:
        self._nodes = dict(nodes)
        self._dependencies = {n: tuple(dependencies.get(n, ())) for n in self._nodes}
        self._dependents: dict[str, list[str]] = {n: [] for n in self._nodes}
        for node_id, deps in self._dependencies.items():
            for dep in deps:
                self._dependents[dep].append(node_id)

    @property
    def nodes(self) -> list[str]:
        return list(self._nodes)

    def node(self, node_id: str) -> GraphNode:
        return self._nodes[node_id]

    def spec_for(self, node_id: str) -> ResourceSpec:
        return self._nodes[node_id].spec

    def members(self, spec_id: str) -> list[str]:
        """Instance ids that belong to a spec, in expansion order."""
        return [n.id for n in self._nodes.values() if n.spec.id == spec_id]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def dependencies(self, node_id: str) -> tuple[str, ...]:
        return self._dependencies[node_id]

    def dependents(self, node_id: str) -> tuple[str, ...]:
        return tuple(self._dependents[node_id])

    def transitive_dependents(self, node_id: str) -> list[str]:
        seen: dict[str, None] = {}
        stack = list(reversed(self._dependents[node_id]))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen[current] = None
            stack.extend(reversed(self._dependents[current]))
        return list(seen)

    def in_degrees(self) -> dict[str, int]:
        return {n: len(deps) for n, deps in self._dependencies.items()}

    def topological_order(self) -> list[str]:
        """Kahn's algorithm; ties broken by declaration order."""
        degrees = self.in_degrees()
        ready = [n for n in self._nodes if degrees[n] == 0]
        order: list[str] = []
        while ready:
            current = ready.pop(0)
            order.append(current)
            for dependent in self._dependents[current]:
                degrees[dependent] -= 1
                if degrees[dependent] == 0:
                    ready.append(dependent)
        return order

    def __repr__(self) -> str:
        edges = sum(len(d) for d in self._dependencies.values())
        return f"DependencyGraph(nodes={len(self._nodes)}, edges={edges})"


def _reference_targets(ref: Reference, model: ResourceModel) -> list[str]:
    target = model.get(ref.target_id)
    if ref.key is not None:
        return [member_id(target.id, ref.key)]
    return [instance_id for instance_id, _ in target.expand()]


def _find_cycle(
    nodes: Iterable[str], dependencies: dict[str, tuple[str, ...]]
) -> Optional[list[str]]:
    marks = {n: _Mark.WHITE for n in nodes}
    path: list[str] = []

    def visit(node_id: str) -> Optional[list[str]]:
        marks[node_id] = _Mark.GREY
        path.append(node_id)
        for dep in dependencies[node_id]:
            if marks[dep] is _Mark.GREY:
                return path[path.index(dep):] + [dep]
            if marks[dep] is _Mark.WHITE:
                cycle = visit(dep)
                if cycle:
                    return cycle
        path.pop()
        marks[node_id] = _Mark.BLACK
        return None

    for node_id in marks:
        if marks[node_id] is _Mark.WHITE:
            cycle = visit(node_id)
            if cycle:
                return cycle
    return None


def build_graph(specs: Union[ResourceModel, Iterable[ResourceSpec]]) -> DependencyGraph:
    """Build and validate the dependency DAG for a set of declarations.

    Raises:
        SpecError: a reference names an undeclared resource or key.
        CycleError: the declarations depend on each other in a loop.
    """
    model = specs if isinstance(specs, ResourceModel) else ResourceModel(specs)
    model.validate()

    nodes: dict[str, GraphNode] = {}
    dependencies: dict[str, tuple[str, ...]] = {}

    for spec in model:
        targets: dict[str, None] = {}
        for ref in spec.references():
            for target_id in _reference_targets(ref, model):
                targets.setdefault(target_id, None)
        for instance_id, key in spec.expand():
            if instance_id in nodes:
                raise SpecError(f"Instance id {instance_id!r} is produced twice")
            nodes[instance_id] = GraphNode(id=instance_id, spec=spec, key=key)
            dependencies[instance_id] = tuple(targets)

    cycle = _find_cycle(nodes, dependencies)
    if cycle:
        raise CycleError(cycle)

    graph = DependencyGraph(nodes, dependencies)
    logger.debug("Built %r", graph)
    return graph
