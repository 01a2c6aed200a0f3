"""
OpenTelemetry Exporter for Meridian

Architectural Intent:
- Exports provisioning telemetry to OTLP-compatible backends
- Listens to resource lifecycle events on the event bus, so the scheduler
  never calls telemetry directly
- One span per resource creation, from dispatch to READY / FAILED

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
import time
from datetime import datetime, UTC

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from meridian.domain.events.event_base import DomainEvent
from meridian.domain.events.resource_events import (
    ResourceDispatchedEvent,
    ResourceReadyEvent,
    ResourceFailedEvent,
)
from meridian.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "meridian"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for provisioning runs.

    Metrics are always buffered locally (handy for tests and the CLI summary);
    they are forwarded to the OTLP endpoint only once initialize() succeeded.
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._instruments: dict[str, Any] = {}
        self._started: dict[str, float] = {}
        self._spans: dict[str, Any] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        resource = Resource(
            attributes={
                SERVICE_NAME: self.config.service_name,
                "environment": self.config.environment,
            }
        )

        if self.config.enable_traces:
            provider = TracerProvider(resource=resource)
            provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=self.config.endpoint, insecure=self.config.insecure
                    )
                )
            )
            trace.set_tracer_provider(provider)

        if self.config.enable_metrics:
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(
                    endpoint=self.config.endpoint, insecure=self.config.insecure
                )
            )
            metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=[reader])
            )
            self._meter = metrics.get_meter(__name__)

        self._initialized = True
        logger.info("OTEL export enabled to %s", self.config.endpoint)

    def attach(self, event_bus: EventBusPort) -> None:
        event_bus.subscribe(ResourceDispatchedEvent, self._on_dispatched)
        event_bus.subscribe(ResourceReadyEvent, self._on_ready)
        event_bus.subscribe(ResourceFailedEvent, self._on_failed)

    def _histogram(self, name: str, unit: str) -> Any:
        if name not in self._instruments and self._meter:
            self._instruments[name] = self._meter.create_histogram(name, unit=unit)
        return self._instruments.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        if self._initialized:
            instrument = self._histogram(name, unit)
            if instrument:
                instrument.record(value, attributes=attributes or {})

    def metrics_named(self, name: str) -> list[dict[str, Any]]:
        return [m for m in self._metrics_buffer if m["name"] == name]

    async def _on_dispatched(self, event: DomainEvent) -> None:
        self._started[event.aggregate_id] = time.monotonic()
        if self._initialized:
            tracer = trace.get_tracer(__name__)
            self._spans[event.aggregate_id] = tracer.start_span(
                "meridian.create",
                attributes={"resource.id": event.aggregate_id, "resource.kind": event.kind},
            )

    async def _on_ready(self, event: DomainEvent) -> None:
        started = self._started.pop(event.aggregate_id, None)
        if started is not None:
            self.record_metric(
                "meridian.resource.create_duration_ms",
                (time.monotonic() - started) * 1000.0,
                unit="ms",
                attributes={"resource.id": event.aggregate_id, "resource.kind": event.kind},
            )
        span = self._spans.pop(event.aggregate_id, None)
        if span is not None:
            span.end()

    async def _on_failed(self, event: DomainEvent) -> None:
        self._started.pop(event.aggregate_id, None)
        self.record_metric(
            "meridian.resource.failed",
            1.0,
            attributes={
                "resource.id": event.aggregate_id,
                "cascaded": str(event.cascaded).lower(),
            },
        )
        span = self._spans.pop(event.aggregate_id, None)
        if span is not None:
            span.set_status(Status(StatusCode.ERROR, event.error_message))
            span.end()

    def shutdown(self) -> None:
        """End any span still open and flush providers."""
        for span in self._spans.values():
            span.end()
        self._spans.clear()
        if not self._initialized:
            return
        tracer_provider = trace.get_tracer_provider()
        if hasattr(tracer_provider, "shutdown"):
            tracer_provider.shutdown()
        meter_provider = metrics.get_meter_provider()
        if hasattr(meter_provider, "shutdown"):
            meter_provider.shutdown()


def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "meridian",
    insecure: bool = False,
) -> OTELExporter:
    """Factory function to create OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    exporter.initialize()
    return exporter
