"""
Apply Infrastructure Use Case

Architectural Intent:
- End-to-end apply: declarations -> graph -> scheduled provisioning ->
  gateway topology -> output projection
- Declaration and graph errors (SpecError, CycleError) surface before the
  provider sees a single call
- READY instances are handed to the boot collaborator through the event bus,
  never before they are READY
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Union

from meridian.application.orchestration.provisioning_scheduler import (
    ApplyOutcome,
    ApplyResult,
    ProvisioningScheduler,
)
from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind, ResourceSpec
from meridian.domain.entities.topology_config import HealthCheckPolicy, TopologyConfig
from meridian.domain.events.event_base import DomainEvent
from meridian.domain.events.resource_events import ResourceReadyEvent
from meridian.domain.ports.boot_port import BootCollaboratorPort
from meridian.domain.ports.event_bus_port import EventBusPort
from meridian.domain.services.dependency_graph import DependencyGraph, build_graph
from meridian.domain.services.output_projector import OutputProjector, OutputSet
from meridian.domain.services.resource_model import ResourceModel
from meridian.domain.services.topology_synthesizer import synthesize, topology_changed

logger = logging.getLogger(__name__)

_BOOTABLE_KINDS = {ResourceKind.INSTANCE.value, ResourceKind.INSTANCE_SET.value}


@dataclass(frozen=True)
class GatewaySettings:
    """Which pool feeds the gateway and how its service is exposed."""
    pool: str = "apps"
    service_name: str = "apps"
    route_paths: tuple[str, ...] = ("/",)
    port: int = 8080
    default_weight: int = 100
    weights: dict[str, int] = field(default_factory=dict)


@dataclass
class ApplyReport:
    result: ApplyResult
    outputs: OutputSet
    topology: Optional[TopologyConfig] = None
    topology_changed: bool = False

    @property
    def outcome(self) -> ApplyOutcome:
        return self.result.outcome

    @property
    def succeeded(self) -> bool:
        return self.result.succeeded

    @property
    def instances(self) -> dict[str, ResourceInstance]:
        return self.result.instances


class ApplyInfrastructure:
    def __init__(
        self,
        scheduler: ProvisioningScheduler,
        projector: Optional[OutputProjector] = None,
        gateway: Optional[GatewaySettings] = None,
        health_policy: Optional[HealthCheckPolicy] = None,
        event_bus: Optional[EventBusPort] = None,
        boot: Optional[BootCollaboratorPort] = None,
    ):
        self.scheduler = scheduler
        self.projector = projector or OutputProjector()
        self.gateway = gateway or GatewaySettings()
        self.health_policy = health_policy or HealthCheckPolicy()
        self.boot = boot
        if boot is not None:
            if event_bus is None:
                raise ValueError("A boot collaborator needs an event_bus to receive READY instances")
            event_bus.subscribe(ResourceReadyEvent, self._hand_off)

    async def _hand_off(self, event: DomainEvent) -> None:
        if not isinstance(event, ResourceReadyEvent) or event.kind not in _BOOTABLE_KINDS:
            return
        logger.debug("Handing %s to boot collaborator", event.aggregate_id)
        await self.boot.on_ready(event.aggregate_id, dict(event.attributes))

    def synthesize_topology(
        self, graph: DependencyGraph, instances: Mapping[str, ResourceInstance]
    ) -> Optional[TopologyConfig]:
        members = [instances[m] for m in graph.members(self.gateway.pool)]
        if not members:
            logger.debug("No pool %r declared; skipping topology", self.gateway.pool)
            return None
        not_ready = [m.id for m in members if not m.is_ready]
        if not_ready:
            logger.warning(
                "Pool %r not fully ready (%s); topology not synthesized",
                self.gateway.pool,
                ", ".join(not_ready),
            )
            return None
        return synthesize(
            members,
            self.health_policy,
            service_name=self.gateway.service_name,
            route_paths=self.gateway.route_paths,
            port=self.gateway.port,
            weights=self.gateway.weights,
            default_weight=self.gateway.default_weight,
        )

    async def execute(
        self,
        specs: Union[ResourceModel, Iterable[ResourceSpec]],
        prior: Optional[Mapping[str, ResourceInstance]] = None,
        previous_topology: Optional[TopologyConfig] = None,
    ) -> ApplyReport:
        graph = build_graph(specs)
        result = await self.scheduler.apply(graph, prior)

        topology = self.synthesize_topology(graph, result.instances)
        changed = topology is not None and topology_changed(previous_topology, topology)
        if changed:
            logger.info(
                "Gateway topology for %s: %d target(s)",
                topology.service_name,
                len(topology.upstream_targets),
            )

        for failure in result.failures:
            if failure.cascaded:
                logger.warning("  %s skipped (root cause: %s)", failure.node_id, failure.root_id)
            else:
                logger.error("  %s failed: %s", failure.node_id, failure.cause)

        return ApplyReport(
            result=result,
            outputs=self.projector.project(result.instances),
            topology=topology,
            topology_changed=changed,
        )
