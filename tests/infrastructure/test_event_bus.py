"""Tests for the in-memory event bus."""

import pytest

from meridian.domain.events.event_base import DomainEvent
from meridian.domain.events.resource_events import ResourceFailedEvent, ResourceReadyEvent
from meridian.domain.ports.event_bus_port import EventBusPort
from meridian.infrastructure.event_bus import EventBus


class TestEventBus:
    def test_implements_port(self):
        assert isinstance(EventBus(), EventBusPort)

    @pytest.mark.asyncio
    async def test_publish_to_subscriber(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(ResourceReadyEvent, handler)
        event = ResourceReadyEvent(aggregate_id="db", kind="Instance")
        await bus.publish([event])

        assert received == [event]
        assert bus.published_count == 1

    @pytest.mark.asyncio
    async def test_other_event_types_not_delivered(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(ResourceReadyEvent, handler)
        await bus.publish([ResourceFailedEvent(aggregate_id="db", error_message="boom")])

        assert received == []

    @pytest.mark.asyncio
    async def test_base_class_subscription_sees_everything(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event.event_type)

        bus.subscribe(DomainEvent, handler)
        await bus.publish(
            [
                ResourceReadyEvent(aggregate_id="db"),
                ResourceFailedEvent(aggregate_id="kong", root_id="apps.b"),
            ]
        )

        assert received == ["ResourceReadyEvent", "ResourceFailedEvent"]

    @pytest.mark.asyncio
    async def test_multiple_handlers_in_subscription_order(self):
        bus = EventBus()
        order = []

        async def first(event):
            order.append("first")

        async def second(event):
            order.append("second")

        bus.subscribe(ResourceReadyEvent, first)
        bus.subscribe(ResourceReadyEvent, second)
        await bus.publish([ResourceReadyEvent(aggregate_id="db")])

        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("subscriber down")

        async def healthy(event):
            received.append(event.aggregate_id)

        bus.subscribe(ResourceReadyEvent, broken)
        bus.subscribe(ResourceReadyEvent, healthy)
        await bus.publish([ResourceReadyEvent(aggregate_id="db"), ResourceReadyEvent(aggregate_id="kong")])

        assert received == ["db", "kong"]
        assert bus.handler_errors == 2
        assert bus.published_count == 2
