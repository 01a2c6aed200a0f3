"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from meridian.domain.ports.cloud_provider_port import CloudProviderPort
from meridian.domain.ports.boot_port import BootCollaboratorPort
from meridian.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "CloudProviderPort",
    "BootCollaboratorPort",
    "EventBusPort",
]
