"""
Domain Events Package

Architectural Intent:
- Contains domain events raised by resource lifecycle transitions
- Events are the primary mechanism for cross-boundary communication
"""

from meridian.domain.events.event_base import DomainEvent
from meridian.domain.events.resource_events import (
    ResourceDispatchedEvent,
    ResourceReadyEvent,
    ResourceFailedEvent,
    ResourceDestroyedEvent,
)

__all__ = [
    "DomainEvent",
    "ResourceDispatchedEvent",
    "ResourceReadyEvent",
    "ResourceFailedEvent",
    "ResourceDestroyedEvent",
]
