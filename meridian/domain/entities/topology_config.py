"""
Topology Config Module

Architectural Intent:
- Gateway definition synthesized purely from resolved application addresses
- Immutable value objects so repeated synthesis yields byte-identical output
- Rendering targets Kong's declarative configuration format

Design Decisions:
- Health checks are active HTTP probes with asymmetric thresholds: a few
  successes to mark a target healthy, a single failure to mark it unhealthy
- render() uses a fixed key order and separators so output is stable
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any

KONG_FORMAT_VERSION = "3.0"


@dataclass(frozen=True)
class HealthCheckPolicy:
    path: str = "/health"
    interval: int = 5
    timeout: int = 2
    success_threshold: int = 2
    failure_threshold: int = 1

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ValueError(f"Health check path must start with '/', got {self.path!r}")
        if self.interval <= 0:
            raise ValueError(f"Health check interval must be positive, got {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"Health check timeout must be positive, got {self.timeout}")
        if self.success_threshold < 1 or self.failure_threshold < 1:
            raise ValueError("Health check thresholds must be at least 1")


@dataclass(frozen=True)
class UpstreamTarget:
    host: str
    port: int
    weight: int = 100

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("Upstream target host cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        # Kong accepts weights 0-65535; 0 drains the target.
        if not (0 <= self.weight <= 65535):
            raise ValueError(f"Weight must be 0-65535, got {self.weight}")

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.address} (weight {self.weight})"


@dataclass(frozen=True)
class TopologyConfig:
    service_name: str
    route_paths: tuple[str, ...]
    upstream_targets: tuple[UpstreamTarget, ...]
    health_check: HealthCheckPolicy = field(default_factory=HealthCheckPolicy)
    protocol: str = "http"

    def __post_init__(self) -> None:
        if not self.service_name:
            raise ValueError("service_name cannot be empty")
        object.__setattr__(self, "route_paths", tuple(self.route_paths))
        object.__setattr__(self, "upstream_targets", tuple(self.upstream_targets))

    @property
    def upstream_name(self) -> str:
        return f"{self.service_name}-upstream"

    @property
    def upstream_port(self) -> int:
        if self.upstream_targets:
            return self.upstream_targets[0].port
        return 80

    def to_kong(self) -> dict[str, Any]:
        """Return the Kong declarative configuration for this topology."""
        policy = self.health_check
        return {
            "_format_version": KONG_FORMAT_VERSION,
            "services": [
                {
                    "name": self.service_name,
                    "host": self.upstream_name,
                    "port": self.upstream_port,
                    "protocol": self.protocol,
                    "routes": [
                        {
                            "name": f"{self.service_name}-route",
                            "paths": list(self.route_paths),
                        }
                    ],
                }
            ],
            "upstreams": [
                {
                    "name": self.upstream_name,
                    "targets": [
                        {"target": t.address, "weight": t.weight}
                        for t in self.upstream_targets
                    ],
                    "healthchecks": {
                        "active": {
                            "type": self.protocol,
                            "http_path": policy.path,
                            "timeout": policy.timeout,
                            "healthy": {
                                "interval": policy.interval,
                                "successes": policy.success_threshold,
                            },
                            "unhealthy": {
                                "interval": policy.interval,
                                "http_failures": policy.failure_threshold,
                                "tcp_failures": policy.failure_threshold,
                                "timeouts": policy.failure_threshold,
                            },
                        }
                    },
                }
            ],
        }

    def render(self) -> str:
        return json.dumps(self.to_kong(), indent=2, separators=(",", ": ")) + "\n"
