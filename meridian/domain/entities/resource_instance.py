"""
Resource Instance Module

Architectural Intent:
- ResourceInstance is the materialized, provider-assigned state of one spec
  (or one InstanceSet member)
- Lifecycle managed through state transitions enforced by domain methods
- All state changes produce new instances to ensure auditability
- Domain events are appended on every transition and published by the scheduler

Lifecycle:
    PENDING -> CREATING -> READY
    PENDING | CREATING -> FAILED   (FAILED is terminal)
"""

from __future__ import annotations
from enum import Enum, auto
from typing import Any, Optional

from meridian.domain.entities.resource_spec import ResourceKind
from meridian.domain.events.resource_events import (
    ResourceDispatchedEvent,
    ResourceReadyEvent,
    ResourceFailedEvent,
)


class InstanceStatus(Enum):
    PENDING = auto()
    CREATING = auto()
    READY = auto()
    FAILED = auto()


class ResourceInstance:
    __slots__ = (
        "_id",
        "_kind",
        "_spec_id",
        "_key",
        "_status",
        "_attributes",
        "_inputs",
        "_error",
        "_domain_events",
    )

    def __init__(
        self,
        id: str,
        kind: ResourceKind,
        status: InstanceStatus = InstanceStatus.PENDING,
        attributes: Optional[dict[str, Any]] = None,
        inputs: Optional[dict[str, Any]] = None,
        spec_id: Optional[str] = None,
        key: Optional[str] = None,
        error: Optional[str] = None,
        domain_events: tuple = (),
    ):
        self._id = id
        self._kind = kind
        self._spec_id = spec_id or id
        self._key = key
        self._status = status
        self._attributes = dict(attributes or {})
        self._inputs = dict(inputs or {})
        self._error = error
        self._domain_events = domain_events

    @property
    def id(self) -> str:
        return self._id

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def spec_id(self) -> str:
        return self._spec_id

    @property
    def key(self) -> Optional[str]:
        return self._key

    @property
    def status(self) -> InstanceStatus:
        return self._status

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    @property
    def inputs(self) -> dict[str, Any]:
        return dict(self._inputs)

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def domain_events(self) -> tuple:
        return self._domain_events

    @property
    def is_ready(self) -> bool:
        return self._status == InstanceStatus.READY

    @property
    def provider_id(self) -> Optional[str]:
        return self._attributes.get("id")

    def _evolve(self, **changes: Any) -> "ResourceInstance":
        fields = {
            "id": self._id,
            "kind": self._kind,
            "status": self._status,
            "attributes": self._attributes,
            "inputs": self._inputs,
            "spec_id": self._spec_id,
            "key": self._key,
            "error": self._error,
            "domain_events": self._domain_events,
        }
        fields.update(changes)
        return ResourceInstance(**fields)

    def start_creating(self) -> "ResourceInstance":
        if self._status != InstanceStatus.PENDING:
            raise ValueError(f"Resource {self._id} can only be dispatched from PENDING")
        return self._evolve(
            status=InstanceStatus.CREATING,
            domain_events=self._domain_events
            + (ResourceDispatchedEvent(aggregate_id=self._id, kind=self._kind.value),),
        )

    def mark_ready(
        self, attributes: dict[str, Any], inputs: Optional[dict[str, Any]] = None
    ) -> "ResourceInstance":
        if self._status != InstanceStatus.CREATING:
            raise ValueError(f"Resource {self._id} must be CREATING to become READY")
        return self._evolve(
            status=InstanceStatus.READY,
            attributes=attributes,
            inputs=self._inputs if inputs is None else inputs,
            domain_events=self._domain_events
            + (
                ResourceReadyEvent(
                    aggregate_id=self._id,
                    kind=self._kind.value,
                    attributes=dict(attributes),
                ),
            ),
        )

    def mark_failed(self, message: str, root_id: Optional[str] = None) -> "ResourceInstance":
        if self._status in (InstanceStatus.READY, InstanceStatus.FAILED):
            raise ValueError(f"Resource {self._id} cannot fail from {self._status.name}")
        return self._evolve(
            status=InstanceStatus.FAILED,
            error=message,
            domain_events=self._domain_events
            + (
                ResourceFailedEvent(
                    aggregate_id=self._id,
                    error_message=message,
                    root_id=root_id or self._id,
                ),
            ),
        )

    def clear_events(self) -> "ResourceInstance":
        return self._evolve(domain_events=())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceInstance):
            return NotImplemented
        return (
            self._id == other._id
            and self._kind == other._kind
            and self._status == other._status
            and self._attributes == other._attributes
            and self._inputs == other._inputs
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"ResourceInstance(id={self._id}, kind={self._kind.value}, "
            f"status={self._status.name}, attributes={self._attributes}, "
            f"error={self._error})"
        )
