"""
Boot Collaborator Port

Architectural Intent:
- Hand-off point for post-boot setup (packages, peer addresses, database host)
- Receives only READY instances; what it does with them is its own business
"""

from typing import Protocol, runtime_checkable, Any


@runtime_checkable
class BootCollaboratorPort(Protocol):
    async def on_ready(self, instance_id: str, attributes: dict[str, Any]) -> None: ...
