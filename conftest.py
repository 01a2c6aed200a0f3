"""Global test configuration.

Provides an instrumented in-memory provider used across the test suite. It
records every create/destroy call, the peak number of concurrent creations,
and any creation that started before one of its dependencies had finished.
"""

import asyncio
from typing import Any, Optional

import pytest

from meridian.domain.entities.resource_instance import InstanceStatus, ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind, ResourceSpec
from meridian.domain.errors import ProviderError
from meridian.domain.value_objects.reference import Reference


class RecordingProvider:
    def __init__(
        self,
        attributes: Optional[dict[str, dict[str, Any]]] = None,
        failures: Optional[dict[str, str]] = None,
        transient_failures: Optional[dict[str, int]] = None,
        delays: Optional[dict[str, float]] = None,
        destroy_failures: Optional[set[str]] = None,
    ) -> None:
        self.attributes = attributes or {}
        self.failures = failures or {}
        self.transient_failures = dict(transient_failures or {})
        self.delays = delays or {}
        self.destroy_failures = destroy_failures or set()
        self.dependencies: dict[str, tuple[str, ...]] = {}

        self.create_calls: list[str] = []
        self.create_inputs: dict[str, dict[str, Any]] = {}
        self.destroy_calls: list[str] = []
        self.completed: list[str] = []
        self.violations: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def watch(self, graph) -> None:
        """Check dispatch ordering against this graph's edges."""
        self.dependencies = {n: graph.dependencies(n) for n in graph.nodes}

    async def create(self, name: str, kind: ResourceKind, inputs: dict[str, Any]) -> ResourceInstance:
        self.create_calls.append(name)
        self.create_inputs[name] = inputs
        for dep in self.dependencies.get(name, ()):
            if dep not in self.completed:
                self.violations.append((name, dep))

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(name, 0))
            if self.transient_failures.get(name, 0) > 0:
                self.transient_failures[name] -= 1
                raise ProviderError(f"RequestLimitExceeded for {name}", transient=True)
            if name in self.failures:
                raise ProviderError(self.failures[name])
            attributes = {
                "id": f"id-{name}",
                "private_ip": f"ip-{name}",
                "public_ip": f"pub-{name}",
            }
            attributes.update(self.attributes.get(name, {}))
            self.completed.append(name)
            return ResourceInstance(
                id=name,
                kind=kind,
                status=InstanceStatus.READY,
                attributes=attributes,
                inputs=inputs,
            )
        finally:
            self.in_flight -= 1

    async def describe(self, provider_id: str) -> ResourceInstance:
        raise ProviderError(f"describe not supported for {provider_id}")

    async def destroy(self, provider_id: str) -> None:
        self.destroy_calls.append(provider_id)
        if provider_id in self.destroy_failures:
            raise ProviderError(f"DependencyViolation: {provider_id}")


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def make_provider():
    return RecordingProvider


@pytest.fixture
def kong_stack():
    """db <- apps{a,b,c} <- kong, with a security group shared by all."""
    return [
        ResourceSpec("sg", ResourceKind.SECURITY_GROUP, {"ingress": [22, 8080]}),
        ResourceSpec(
            "db",
            ResourceKind.INSTANCE,
            {"security_groups": [Reference("sg", "id")]},
        ),
        ResourceSpec(
            "apps",
            ResourceKind.INSTANCE_SET,
            {
                "db_host": Reference("db", "private_ip"),
                "security_groups": [Reference("sg", "id")],
                "port": 8080,
            },
            count_key=("a", "b", "c"),
        ),
        ResourceSpec(
            "kong",
            ResourceKind.INSTANCE,
            {"upstreams": Reference("apps", "private_ip")},
        ),
    ]
