"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the Meridian application
- Single place where the provider, scheduler, event bus, telemetry and use
  cases are wired together
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Stack-level gateway settings override the config file's gateway section
"""

from dataclasses import dataclass
from typing import Any, Optional

from meridian.application.orchestration.provisioning_scheduler import (
    ProvisioningScheduler,
    SchedulerSettings,
)
from meridian.application.use_cases.apply_infrastructure import (
    ApplyInfrastructure,
    GatewaySettings,
)
from meridian.application.use_cases.destroy_infrastructure import DestroyInfrastructure
from meridian.domain.entities.topology_config import HealthCheckPolicy
from meridian.domain.ports.boot_port import BootCollaboratorPort
from meridian.domain.ports.cloud_provider_port import CloudProviderPort
from meridian.domain.services.output_projector import OutputProjector
from meridian.infrastructure.adapters.aws_adapter import AWSAdapter
from meridian.infrastructure.config import MeridianConfig
from meridian.infrastructure.event_bus import EventBus
from meridian.infrastructure.stack_loader import Stack
from meridian.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class MeridianContainer:
    """DI container holding all wired dependencies."""

    config: MeridianConfig
    provider: CloudProviderPort
    event_bus: EventBus
    telemetry: OTELExporter
    scheduler: ProvisioningScheduler
    apply: ApplyInfrastructure
    destroy: DestroyInfrastructure


def scheduler_settings(config: MeridianConfig) -> SchedulerSettings:
    s = config.scheduler
    return SchedulerSettings(
        max_concurrency=s.max_concurrency,
        call_timeout_seconds=s.call_timeout_seconds,
        max_retries=s.max_retries,
        backoff_initial=s.backoff_initial,
        backoff_max=s.backoff_max,
    )


def health_policy(config: MeridianConfig) -> HealthCheckPolicy:
    h = config.health
    return HealthCheckPolicy(
        path=h.path,
        interval=h.interval,
        timeout=h.timeout,
        success_threshold=h.success_threshold,
        failure_threshold=h.failure_threshold,
    )


def gateway_settings(
    config: MeridianConfig, overrides: Optional[dict[str, Any]] = None
) -> GatewaySettings:
    g = config.gateway
    values: dict[str, Any] = {
        "pool": g.pool,
        "service_name": g.service_name,
        "route_paths": g.route_paths,
        "port": g.upstream_port,
        "default_weight": g.default_weight,
        "weights": {},
    }
    for key, value in (overrides or {}).items():
        if key in values:
            values[key] = value
    values["route_paths"] = tuple(values["route_paths"])
    values["weights"] = {str(k): int(v) for k, v in values["weights"].items()}
    return GatewaySettings(**values)


def create_container(
    config: Optional[MeridianConfig] = None,
    stack: Optional[Stack] = None,
    provider: Optional[CloudProviderPort] = None,
    boot: Optional[BootCollaboratorPort] = None,
) -> MeridianContainer:
    """Create and wire all dependencies."""
    config = config or MeridianConfig()
    if provider is None:
        provider = AWSAdapter(
            region=config.provider.region,
            default_ami=config.provider.default_ami,
            default_instance_type=config.provider.instance_type,
            vpc_cidr=config.provider.vpc_cidr,
            default_ingress_cidrs=config.network.ingress_cidrs,
        )
    event_bus = EventBus()

    telemetry = OTELExporter(
        OTELConfig(endpoint=config.telemetry.endpoint, insecure=config.telemetry.insecure)
    )
    telemetry.initialize()
    telemetry.attach(event_bus)

    settings = scheduler_settings(config)
    scheduler = ProvisioningScheduler(provider, settings, event_bus)
    projector = OutputProjector(stack.outputs if stack is not None else None)

    apply = ApplyInfrastructure(
        scheduler,
        projector=projector,
        gateway=gateway_settings(config, stack.gateway if stack is not None else None),
        health_policy=health_policy(config),
        event_bus=event_bus,
        boot=boot,
    )
    destroy = DestroyInfrastructure(provider, settings, event_bus)

    return MeridianContainer(
        config=config,
        provider=provider,
        event_bus=event_bus,
        telemetry=telemetry,
        scheduler=scheduler,
        apply=apply,
        destroy=destroy,
    )
