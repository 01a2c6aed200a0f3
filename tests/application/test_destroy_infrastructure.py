"""Tests for reverse-order teardown."""

import pytest

from meridian.application.orchestration.provisioning_scheduler import (
    ProvisioningScheduler,
    SchedulerSettings,
)
from meridian.application.use_cases.destroy_infrastructure import DestroyInfrastructure
from meridian.domain.events.resource_events import ResourceDestroyedEvent
from meridian.domain.services.dependency_graph import build_graph
from meridian.infrastructure.event_bus import EventBus


async def _provisioned(provider, specs):
    result = await ProvisioningScheduler(provider, SchedulerSettings()).apply(build_graph(specs))
    assert result.succeeded
    return result.instances


class TestDestroyInfrastructure:
    @pytest.mark.asyncio
    async def test_reverse_dependency_order(self, provider, kong_stack):
        instances = await _provisioned(provider, kong_stack)

        result = await DestroyInfrastructure(provider).execute(kong_stack, instances)

        assert result.succeeded
        assert provider.destroy_calls == [
            "id-kong",
            "id-apps.c",
            "id-apps.b",
            "id-apps.a",
            "id-db",
            "id-sg",
        ]
        assert result.remaining == {}

    @pytest.mark.asyncio
    async def test_failure_keeps_dependencies(self, make_provider, kong_stack):
        provider = make_provider(destroy_failures={"id-apps.b"})
        instances = await _provisioned(provider, kong_stack)

        result = await DestroyInfrastructure(provider).execute(kong_stack, instances)

        assert not result.succeeded
        assert result.destroyed == ["kong", "apps.c", "apps.a"]
        assert sorted(result.remaining) == ["apps.b", "db", "sg"]
        assert "id-db" not in provider.destroy_calls

    @pytest.mark.asyncio
    async def test_never_created_resources_skipped(self, make_provider, kong_stack):
        provider = make_provider(failures={"kong": "boom"})
        result = await ProvisioningScheduler(provider, SchedulerSettings()).apply(build_graph(kong_stack))

        destroyed = await DestroyInfrastructure(provider).execute(kong_stack, result.instances)

        assert "kong" not in destroyed.destroyed
        assert len(provider.destroy_calls) == 5

    @pytest.mark.asyncio
    async def test_destroy_events_published(self, provider, kong_stack):
        instances = await _provisioned(provider, kong_stack)
        bus = EventBus()
        seen = []

        async def record(event):
            seen.append(event.provider_id)

        bus.subscribe(ResourceDestroyedEvent, record)
        await DestroyInfrastructure(provider, event_bus=bus).execute(kong_stack, instances)

        assert seen[0] == "id-kong"
        assert len(seen) == 6
