"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus for resource lifecycle events
- Supports async subscription handlers
- Handlers subscribed to a base class receive every subclass event, so
  subscribing to DomainEvent observes the whole apply
- A failing handler is logged and counted; it never aborts the publisher or
  keeps the remaining handlers from seeing the event
"""

import logging
from typing import Callable, Awaitable, Sequence
from meridian.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[DomainEvent], Awaitable[None]]]] = {}
        self.published_count = 0
        self.handler_errors = 0

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            self.published_count += 1
            logger.debug("Publishing %s for %s", event.event_type, event.aggregate_id)
            for event_type in type(event).__mro__:
                for handler in self._handlers.get(event_type, ()):
                    try:
                        await handler(event)
                    except Exception:
                        self.handler_errors += 1
                        logger.exception(
                            "Handler %s failed on %s for %s",
                            getattr(handler, "__qualname__", repr(handler)),
                            event.event_type,
                            event.aggregate_id,
                        )

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
