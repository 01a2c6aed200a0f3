"""
Stack File Loader

Architectural Intent:
- Reads resource declarations, output names and gateway settings from JSON
- Turns "$ref" objects and "${target.attribute}" strings into Reference values
- Every malformed declaration becomes a SpecError before anything is built

Format:
    {
      "resources": [
        {"id": "db", "kind": "Instance", "inputs": {...}},
        {"id": "apps", "kind": "InstanceSet", "count_key": ["a", "b"],
         "inputs": {"db_host": {"$ref": "db", "attribute": "private_ip"}}}
      ],
      "outputs": {
        "database_private_ip": "${db.private_ip}",
        "apps_private_ips": {"$ref": "apps", "attribute": "private_ip", "per_key": true}
      },
      "gateway": {"pool": "apps", "service_name": "apps", "port": 8080}
    }
"""

from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from meridian.domain.entities.resource_spec import ResourceKind, ResourceSpec
from meridian.domain.errors import SpecError
from meridian.domain.services.output_projector import OutputDefinition, OutputShape
from meridian.domain.services.resource_model import ResourceModel
from meridian.domain.value_objects.reference import Reference

logger = logging.getLogger(__name__)

_INTERPOLATION_RE = re.compile(r"^\$\{([^}]+)\}$")


@dataclass(frozen=True)
class Stack:
    model: ResourceModel
    outputs: Optional[tuple[OutputDefinition, ...]] = None
    gateway: Optional[dict[str, Any]] = None


def decode_value(value: Any) -> Any:
    """Recursively replace reference encodings with Reference values."""
    if isinstance(value, dict):
        if "$ref" in value:
            try:
                return Reference(
                    target_id=value["$ref"],
                    attribute=value["attribute"],
                    key=value.get("key"),
                )
            except (KeyError, ValueError) as e:
                raise SpecError(f"Invalid reference {value!r}: {e}") from None
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if isinstance(value, str):
        match = _INTERPOLATION_RE.match(value)
        if match:
            try:
                return Reference.parse(match.group(1))
            except ValueError as e:
                raise SpecError(str(e)) from None
    return value


def _parse_resource(raw: Any, index: int) -> ResourceSpec:
    if not isinstance(raw, dict):
        raise SpecError(f"resources[{index}] must be an object")
    if "id" not in raw or "kind" not in raw:
        raise SpecError(f"resources[{index}] needs both 'id' and 'kind'")
    inputs = raw.get("inputs", {})
    if not isinstance(inputs, dict):
        raise SpecError(f"resources[{index}].inputs must be an object")
    count_key = raw.get("count_key")
    return ResourceSpec(
        id=raw["id"],
        kind=ResourceKind.parse(raw["kind"]),
        inputs=decode_value(inputs),
        count_key=tuple(count_key) if isinstance(count_key, list) else count_key,
    )


def _parse_output(name: str, raw: Any) -> OutputDefinition:
    per_key = isinstance(raw, dict) and bool(raw.get("per_key"))
    ref = decode_value(raw)
    if not isinstance(ref, Reference):
        raise SpecError(f"Output {name!r} must be a reference, got {raw!r}")
    return OutputDefinition(
        name=name,
        target_id=ref.target_id,
        attribute=ref.attribute,
        shape=OutputShape.PER_KEY if per_key else OutputShape.SINGLE,
        key=ref.key,
    )


def _check_output(output: OutputDefinition, model: ResourceModel) -> None:
    if output.target_id not in model:
        raise SpecError(
            f"Output {output.name!r} references undeclared resource {output.target_id!r}"
        )
    target = model.get(output.target_id)
    if output.shape is OutputShape.PER_KEY and not target.is_set:
        raise SpecError(f"Output {output.name!r} is per_key but {target.id!r} is not an InstanceSet")
    if output.key is not None and (not target.is_set or output.key not in target.count_key):
        raise SpecError(f"Output {output.name!r} uses unknown key {output.key!r} of {target.id!r}")


def parse_stack(data: Any) -> Stack:
    if not isinstance(data, dict):
        raise SpecError("Stack must be a JSON object")
    resources = data.get("resources")
    if not isinstance(resources, list):
        raise SpecError("Stack needs a 'resources' list")

    model = ResourceModel()
    for index, raw in enumerate(resources):
        model.declare(_parse_resource(raw, index))

    outputs = None
    if "outputs" in data:
        if not isinstance(data["outputs"], dict):
            raise SpecError("'outputs' must be an object")
        outputs = tuple(_parse_output(n, r) for n, r in data["outputs"].items())
        for output in outputs:
            _check_output(output, model)

    gateway = data.get("gateway")
    if gateway is not None and not isinstance(gateway, dict):
        raise SpecError("'gateway' must be an object")

    logger.debug("Parsed stack with %d resource(s)", len(model))
    return Stack(model=model, outputs=outputs, gateway=gateway)


def load_stack(path: str) -> Stack:
    """Load a stack file. Raises FileNotFoundError or SpecError."""
    with open(Path(path)) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SpecError(f"Invalid stack file {path}: {e}") from None
    return parse_stack(data)
