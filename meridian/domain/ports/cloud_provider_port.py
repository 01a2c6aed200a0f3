"""
Cloud Provider Port

Architectural Intent:
- Port interface for creating, describing and destroying typed resources
- Implemented by the simulated AWS adapter and by test stubs
- The core depends only on these three calls plus the attribute naming
  convention: 'id' for every resource, 'private_ip' / 'public_ip' for
  instances, 'name' for security groups

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Failures are reported as ProviderError; transient=True marks retryable ones
"""

from typing import Protocol, runtime_checkable, Any

from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind


@runtime_checkable
class CloudProviderPort(Protocol):
    """Port for cloud resource lifecycle operations."""

    async def create(
        self, name: str, kind: ResourceKind, inputs: dict[str, Any]
    ) -> ResourceInstance:
        """Create a resource and return it READY with its attributes populated."""
        ...

    async def describe(self, provider_id: str) -> ResourceInstance:
        """Return the current state of a previously created resource."""
        ...

    async def destroy(self, provider_id: str) -> None:
        """Destroy a previously created resource."""
        ...
