"""
Attribute Resolver

Architectural Intent:
- Pure lookup of post-creation attributes through explicit References
- Never triggers creation and never mutates the instance map
- Resolving before the target is READY is an ordering bug in the caller and
  raises NotReadyError rather than waiting
"""

from __future__ import annotations
from typing import Any, Mapping

from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.entities.resource_spec import member_id
from meridian.domain.errors import NotReadyError, UnknownAttributeError
from meridian.domain.value_objects.reference import Reference


def _attribute_of(instance: ResourceInstance, attribute: str) -> Any:
    if not instance.is_ready:
        raise NotReadyError(instance.id, f"status is {instance.status.name}")
    attributes = instance.attributes
    if attribute not in attributes:
        raise UnknownAttributeError(instance.id, attribute)
    return attributes[attribute]


def set_members(
    spec_id: str, instances: Mapping[str, ResourceInstance]
) -> list[ResourceInstance]:
    """InstanceSet members of spec_id, in the map's order."""
    return [
        inst
        for inst in instances.values()
        if inst.spec_id == spec_id and inst.key is not None
    ]


def resolve(ref: Reference, instances: Mapping[str, ResourceInstance]) -> Any:
    """Return the referenced attribute value.

    A keyed reference or a reference to a single resource yields one value.
    An un-keyed reference to an InstanceSet yields the ordered list of every
    member's value and requires all of them to be READY.
    """
    if ref.key is not None:
        target_id = member_id(ref.target_id, ref.key)
        if target_id not in instances:
            raise NotReadyError(target_id, "no such instance")
        return _attribute_of(instances[target_id], ref.attribute)

    if ref.target_id in instances:
        return _attribute_of(instances[ref.target_id], ref.attribute)

    members = set_members(ref.target_id, instances)
    if not members:
        raise NotReadyError(ref.target_id, "no such instance")
    return [_attribute_of(member, ref.attribute) for member in members]


def resolve_inputs(inputs: Any, instances: Mapping[str, ResourceInstance]) -> Any:
    """Substitute every Reference nested inside inputs with its value."""
    if isinstance(inputs, Reference):
        return resolve(inputs, instances)
    if isinstance(inputs, dict):
        return {k: resolve_inputs(v, instances) for k, v in inputs.items()}
    if isinstance(inputs, list):
        return [resolve_inputs(v, instances) for v in inputs]
    if isinstance(inputs, tuple):
        return tuple(resolve_inputs(v, instances) for v in inputs)
    return inputs
