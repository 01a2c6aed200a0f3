"""
Event Bus Port

Architectural Intent:
- Where the scheduler publishes resource lifecycle events
- Lets telemetry, boot hand-off and CLI progress listen without the
  scheduler knowing about them
"""

from typing import Protocol, Callable, Awaitable, Sequence, runtime_checkable
from meridian.domain.events.event_base import DomainEvent


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: Sequence[DomainEvent]) -> None: ...

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None: ...
