"""
Topology Config Synthesizer

Architectural Intent:
- Renders the gateway definition from the resolved addresses of the app pool
- Deterministic: same ordered pool and policy give an identical TopologyConfig
- Read-only over the pool; re-run whenever membership or an address changes

Domain Logic:
- One upstream target per pool member, in pool order
- Equal weight for every member unless overridden by instance id or set key
"""

from __future__ import annotations
from typing import Iterable, Mapping, Optional, Sequence

from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.entities.topology_config import (
    HealthCheckPolicy,
    TopologyConfig,
    UpstreamTarget,
)
from meridian.domain.errors import NotReadyError, UnknownAttributeError

DEFAULT_WEIGHT = 100


def _weight_for(
    member: ResourceInstance, weights: Mapping[str, int], default_weight: int
) -> int:
    if member.id in weights:
        return weights[member.id]
    if member.key is not None and member.key in weights:
        return weights[member.key]
    return default_weight


def synthesize(
    app_pool: Sequence[ResourceInstance],
    policy: Optional[HealthCheckPolicy] = None,
    *,
    service_name: str = "apps",
    route_paths: Iterable[str] = ("/",),
    port: int = 8080,
    weights: Optional[Mapping[str, int]] = None,
    default_weight: int = DEFAULT_WEIGHT,
    address_attribute: str = "private_ip",
) -> TopologyConfig:
    """Build the TopologyConfig for a pool of READY application instances.

    Raises:
        NotReadyError: a pool member has not reached READY.
        UnknownAttributeError: a pool member has no address attribute.
    """
    weights = weights or {}
    targets: list[UpstreamTarget] = []
    for member in app_pool:
        if not member.is_ready:
            raise NotReadyError(member.id, f"status is {member.status.name}")
        attributes = member.attributes
        if address_attribute not in attributes:
            raise UnknownAttributeError(member.id, address_attribute)
        member_port = int(attributes.get("port", port))
        targets.append(
            UpstreamTarget(
                host=str(attributes[address_attribute]),
                port=member_port,
                weight=_weight_for(member, weights, default_weight),
            )
        )

    return TopologyConfig(
        service_name=service_name,
        route_paths=tuple(route_paths),
        upstream_targets=tuple(targets),
        health_check=policy or HealthCheckPolicy(),
    )


def topology_changed(old: Optional[TopologyConfig], new: TopologyConfig) -> bool:
    return old is None or old.render() != new.render()
