"""
Output Projector

Architectural Intent:
- Stable, read-only view of final resource attributes for external consumers
- Values are resolved when read, so querying an output whose resource is not
  READY raises NotReadyError instead of returning a stale or empty value
"""

from __future__ import annotations
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Optional

from meridian.domain.entities.resource_instance import ResourceInstance
from meridian.domain.errors import NotReadyError, UnknownAttributeError
from meridian.domain.services.attribute_resolver import resolve, set_members
from meridian.domain.value_objects.reference import Reference

logger = logging.getLogger(__name__)


class OutputShape(Enum):
    SINGLE = "single"
    PER_KEY = "per_key"


@dataclass(frozen=True)
class OutputDefinition:
    name: str
    target_id: str
    attribute: str
    shape: OutputShape = OutputShape.SINGLE
    key: Optional[str] = None

    def resolve(self, instances: Mapping[str, ResourceInstance]) -> Any:
        if self.shape is OutputShape.SINGLE:
            return resolve(Reference(self.target_id, self.attribute, self.key), instances)
        members = set_members(self.target_id, instances)
        if not members:
            raise NotReadyError(self.target_id, "no such instance set")
        return {
            member.key: resolve(
                Reference(self.target_id, self.attribute, member.key), instances
            )
            for member in members
        }


DEFAULT_OUTPUTS: tuple[OutputDefinition, ...] = (
    OutputDefinition("kong_public_ip", "kong", "public_ip"),
    OutputDefinition("apps_public_ips", "apps", "public_ip", OutputShape.PER_KEY),
    OutputDefinition("apps_private_ips", "apps", "private_ip", OutputShape.PER_KEY),
    OutputDefinition("database_private_ip", "db", "private_ip"),
)


class OutputSet(Mapping):
    """Read-only mapping of output name to resolved value."""

    def __init__(
        self,
        definitions: Mapping[str, OutputDefinition],
        instances: Mapping[str, ResourceInstance],
    ) -> None:
        self._definitions = MappingProxyType(dict(definitions))
        self._instances = MappingProxyType(dict(instances))

    def __getitem__(self, name: str) -> Any:
        return self._definitions[name].resolve(self._instances)

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def available(self) -> dict[str, Any]:
        """Resolve every output that can be read now, skipping the rest."""
        values: dict[str, Any] = {}
        for name in self._definitions:
            try:
                values[name] = self[name]
            except NotReadyError:
                continue
            except UnknownAttributeError as e:
                logger.warning("Output %s skipped: %s", name, e)
        return values

    def to_dict(self) -> dict[str, Any]:
        return {name: self[name] for name in self._definitions}


class OutputProjector:
    def __init__(self, definitions: Optional[Iterable[OutputDefinition]] = None) -> None:
        defs = DEFAULT_OUTPUTS if definitions is None else tuple(definitions)
        self._definitions = {d.name: d for d in defs}

    @property
    def names(self) -> list[str]:
        return list(self._definitions)

    def project(self, instances: Mapping[str, ResourceInstance]) -> OutputSet:
        return OutputSet(self._definitions, instances)
