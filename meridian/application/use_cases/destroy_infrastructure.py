"""
Destroy Infrastructure Use Case

Architectural Intent:
- Tears down provisioned resources in reverse dependency order
- A resource is destroyed only after everything that depends on it is gone;
  if a dependent cannot be destroyed, its dependencies are left in place
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Union

from meridian.application.orchestration.provisioning_scheduler import (
    NodeFailure,
    SchedulerSettings,
    call_with_retry,
)
from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.entities.resource_spec import ResourceSpec
from meridian.domain.errors import ProviderError
from meridian.domain.events.resource_events import ResourceDestroyedEvent
from meridian.domain.ports.cloud_provider_port import CloudProviderPort
from meridian.domain.ports.event_bus_port import EventBusPort
from meridian.domain.services.dependency_graph import build_graph
from meridian.domain.services.resource_model import ResourceModel

logger = logging.getLogger(__name__)


@dataclass
class DestroyResult:
    destroyed: list[str] = field(default_factory=list)
    failures: list[NodeFailure] = field(default_factory=list)
    remaining: dict[str, ResourceInstance] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failures


class DestroyInfrastructure:
    def __init__(
        self,
        provider: CloudProviderPort,
        settings: Optional[SchedulerSettings] = None,
        event_bus: Optional[EventBusPort] = None,
    ):
        self.provider = provider
        self.settings = settings or SchedulerSettings()
        self.event_bus = event_bus

    async def execute(
        self,
        specs: Union[ResourceModel, Iterable[ResourceSpec]],
        instances: Mapping[str, ResourceInstance],
    ) -> DestroyResult:
        graph = build_graph(specs)
        result = DestroyResult(remaining=dict(instances))
        blocked: set[str] = set()

        for node_id in reversed(graph.topological_order()):
            instance = instances.get(node_id)
            if instance is None or not instance.provider_id:
                result.remaining.pop(node_id, None)
                continue
            if node_id in blocked:
                logger.warning("Keeping %s: a dependent could not be destroyed", node_id)
                continue
            try:
                await call_with_retry(self.settings, self.provider.destroy, instance.provider_id)
            except ProviderError as e:
                logger.error("Failed to destroy %s: %s", node_id, e)
                result.failures.append(NodeFailure(node_id, str(e), node_id))
                blocked.update(self._all_dependencies(graph, node_id))
                continue

            logger.info("Destroyed %s (%s)", node_id, instance.provider_id)
            result.destroyed.append(node_id)
            result.remaining.pop(node_id, None)
            if self.event_bus is not None:
                await self.event_bus.publish(
                    [ResourceDestroyedEvent(aggregate_id=node_id, provider_id=instance.provider_id)]
                )
        return result

    @staticmethod
    def _all_dependencies(graph, node_id: str) -> set[str]:
        seen: set[str] = set()
        stack = list(graph.dependencies(node_id))
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(graph.dependencies(current))
        return seen
