"""
Resource Model Service

Architectural Intent:
- Collects resource declarations in order and validates them as they arrive
- Forward references are allowed at declaration time; validate() checks that
  every reference names a declared resource once all declarations are in

Domain Logic:
- Duplicate ids, unknown kinds and empty count_key are rejected by declare()
- A keyed reference must target an InstanceSet and name one of its keys
"""

from __future__ import annotations
import logging
from typing import Iterable, Iterator, Optional

from meridian.domain.entities.resource_spec import ResourceSpec
from meridian.domain.errors import SpecError

logger = logging.getLogger(__name__)


class ResourceModel:
    def __init__(self, specs: Optional[Iterable[ResourceSpec]] = None) -> None:
        self._specs: dict[str, ResourceSpec] = {}
        for spec in specs or ():
            self.declare(spec)

    def declare(self, spec: ResourceSpec) -> None:
        if not isinstance(spec, ResourceSpec):
            raise SpecError(f"Expected a ResourceSpec, got {type(spec).__name__}")
        if spec.id in self._specs:
            raise SpecError(f"Duplicate resource id: {spec.id!r}")
        self._specs[spec.id] = spec
        logger.debug("Declared %s %s", spec.kind.value, spec.id)

    def get(self, spec_id: str) -> ResourceSpec:
        try:
            return self._specs[spec_id]
        except KeyError:
            raise SpecError(f"Unknown resource id: {spec_id!r}") from None

    def __contains__(self, spec_id: object) -> bool:
        return spec_id in self._specs

    def __iter__(self) -> Iterator[ResourceSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def specs(self) -> list[ResourceSpec]:
        return list(self._specs.values())

    def validate(self) -> None:
        """Check every reference against the full set of declarations."""
        for spec in self._specs.values():
            for ref in spec.references():
                target = self._specs.get(ref.target_id)
                if target is None:
                    raise SpecError(
                        f"Resource {spec.id!r} references undeclared resource "
                        f"{ref.target_id!r} ({ref})"
                    )
                if ref.key is None:
                    continue
                if not target.is_set:
                    raise SpecError(
                        f"Resource {spec.id!r} uses key {ref.key!r} on "
                        f"{target.kind.value} {target.id!r}, which is not an InstanceSet"
                    )
                if ref.key not in target.count_key:
                    raise SpecError(
                        f"Resource {spec.id!r} references unknown key {ref.key!r} "
                        f"of {target.id!r} (keys: {', '.join(target.count_key)})"
                    )
