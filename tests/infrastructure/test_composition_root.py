"""Tests for dependency wiring."""

import pytest

from meridian.application.orchestration.provisioning_scheduler import ProvisioningScheduler
from meridian.composition_root import (
    MeridianContainer,
    create_container,
    gateway_settings,
    health_policy,
    scheduler_settings,
)
from meridian.infrastructure.adapters.aws_adapter import AWSAdapter
from meridian.infrastructure.config import (
    GatewayConfig,
    HealthConfig,
    MeridianConfig,
    NetworkConfig,
    SchedulerConfig,
)
from meridian.infrastructure.stack_loader import parse_stack


class TestCreateContainer:
    def test_default_wiring(self):
        container = create_container()
        assert isinstance(container, MeridianContainer)
        assert isinstance(container.provider, AWSAdapter)
        assert isinstance(container.scheduler, ProvisioningScheduler)
        assert container.scheduler.event_bus is container.event_bus
        assert container.apply.scheduler is container.scheduler

    def test_provider_override(self, provider):
        container = create_container(provider=provider)
        assert container.provider is provider
        assert container.scheduler.provider is provider
        assert container.destroy.provider is provider

    def test_network_config_reaches_provider(self):
        config = MeridianConfig(network=NetworkConfig(ingress_cidrs=("10.0.0.0/8",)))
        container = create_container(config)
        assert container.provider.default_ingress_cidrs == ("10.0.0.0/8",)

    def test_stack_outputs_and_gateway(self):
        stack = parse_stack(
            {
                "resources": [{"id": "db", "kind": "Instance"}],
                "outputs": {"db_ip": "${db.private_ip}"},
                "gateway": {"service_name": "web"},
            }
        )
        container = create_container(stack=stack)
        assert container.apply.projector.names == ["db_ip"]
        assert container.apply.gateway.service_name == "web"


class TestSettingsTranslation:
    def test_scheduler_settings(self):
        config = MeridianConfig(scheduler=SchedulerConfig(max_concurrency=3, max_retries=1))
        settings = scheduler_settings(config)
        assert settings.max_concurrency == 3
        assert settings.max_retries == 1

    def test_health_policy(self):
        policy = health_policy(MeridianConfig(health=HealthConfig(path="/ready", timeout=1)))
        assert policy.path == "/ready"
        assert policy.timeout == 1

    def test_invalid_health_config_rejected(self):
        with pytest.raises(ValueError):
            health_policy(MeridianConfig(health=HealthConfig(interval=0)))

    def test_gateway_overrides(self):
        config = MeridianConfig(gateway=GatewayConfig(upstream_port=8080))
        gateway = gateway_settings(
            config,
            {"port": 9000, "route_paths": ["/api"], "weights": {"a": "5"}, "ignored": 1},
        )
        assert gateway.port == 9000
        assert gateway.route_paths == ("/api",)
        assert gateway.weights == {"a": 5}
        assert gateway.pool == "apps"
