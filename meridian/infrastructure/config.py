"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all Meridian settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Network exposure is configuration input, never a hard-coded constant
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerConfig:
    """Provisioning scheduler limits."""
    max_concurrency: int = 8
    call_timeout_seconds: float = 300.0
    max_retries: int = 3
    backoff_initial: float = 0.5
    backoff_max: float = 10.0


@dataclass(frozen=True)
class GatewayConfig:
    """Which instance set feeds the gateway and how it is routed."""
    pool: str = "apps"
    service_name: str = "apps"
    route_paths: tuple[str, ...] = ("/",)
    upstream_port: int = 8080
    default_weight: int = 100


@dataclass(frozen=True)
class HealthConfig:
    """Active health-check policy for upstream targets."""
    path: str = "/health"
    interval: int = 5
    timeout: int = 2
    success_threshold: int = 2
    failure_threshold: int = 1


@dataclass(frozen=True)
class NetworkConfig:
    """Default ingress exposure applied to security groups without explicit CIDRs."""
    ingress_cidrs: tuple[str, ...] = ("0.0.0.0/0",)


@dataclass(frozen=True)
class ProviderConfig:
    """Simulated AWS provider defaults."""
    region: str = "us-east-1"
    default_ami: str = "ami-0abcdef1234567890"
    instance_type: str = "t3.micro"
    vpc_cidr: str = "10.0.0.0/16"


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class MeridianConfig:
    """Root configuration for the Meridian application."""
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"


def _env_override(data: dict, prefix: str = "MERIDIAN") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern MERIDIAN_SECTION_KEY.
    For example: MERIDIAN_SCHEDULER_MAX_CONCURRENCY=4,
    MERIDIAN_NETWORK_INGRESS_CIDRS=10.0.0.0/8,192.168.0.0/16
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        parts = key[len(prefix) + 1:].lower().split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        else:
            data[key[len(prefix) + 1:].lower()] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must hold a JSON object", path)
        return {}
    return data


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    for f in dataclasses.fields(cls):
        if f.name not in filtered:
            continue
        val = filtered[f.name]

        # Comma-separated strings and lists become tuples
        if f.type == "tuple[str, ...]":
            if isinstance(val, str):
                filtered[f.name] = tuple(v.strip() for v in val.split(",") if v.strip())
            elif isinstance(val, list):
                filtered[f.name] = tuple(val)

        elif isinstance(val, str):
            if f.type == "int":
                filtered[f.name] = int(val)
            elif f.type == "float":
                filtered[f.name] = float(val)
            elif f.type == "bool":
                filtered[f.name] = val.lower() in ("true", "1", "yes")

    return cls(**filtered)


_SECTIONS = {
    "scheduler": SchedulerConfig,
    "gateway": GatewayConfig,
    "health": HealthConfig,
    "network": NetworkConfig,
    "provider": ProviderConfig,
    "telemetry": TelemetryConfig,
}


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "MERIDIAN",
) -> MeridianConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (MERIDIAN_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to meridian.json in CWD.
        env_prefix: Environment variable prefix. Defaults to MERIDIAN.
    """
    config_path = Path(path) if path else Path("meridian.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return MeridianConfig(**sections, log_level=data.get("log_level", "WARNING"))
