"""
Resource Lifecycle Events

Published by the provisioning scheduler after each coordinator transition:
- ResourceDispatchedEvent: the provider create call was issued
- ResourceReadyEvent: the provider confirmed and attributes are known
- ResourceFailedEvent: creation failed, or a dependency failed (cascaded)
- ResourceDestroyedEvent: a prior resource was torn down
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from meridian.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class ResourceDispatchedEvent(DomainEvent):
    kind: str = ""


@dataclass(frozen=True)
class ResourceReadyEvent(DomainEvent):
    kind: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attributes"] = dict(self.attributes)
        return data


@dataclass(frozen=True)
class ResourceFailedEvent(DomainEvent):
    error_message: str = ""
    root_id: Optional[str] = None

    @property
    def cascaded(self) -> bool:
        return self.root_id is not None and self.root_id != self.aggregate_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["error_message"] = self.error_message
        data["root_id"] = self.root_id
        return data


@dataclass(frozen=True)
class ResourceDestroyedEvent(DomainEvent):
    provider_id: str = ""
