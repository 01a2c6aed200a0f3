"""
Reference Value Object

Architectural Intent:
- Explicit placeholder for an attribute that is only known after creation
- Replaces implicit string interpolation with a value the graph builder can scan
- A keyed reference points at one InstanceSet member; an un-keyed reference to
  an InstanceSet fans out to every member
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterator, Optional


@dataclass(frozen=True)
class Reference:
    target_id: str
    attribute: str
    key: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.target_id:
            raise ValueError("Reference target_id cannot be empty")
        if not self.attribute:
            raise ValueError("Reference attribute cannot be empty")

    def __str__(self) -> str:
        if self.key is None:
            return f"{self.target_id}.{self.attribute}"
        return f"{self.target_id}[{self.key}].{self.attribute}"

    @staticmethod
    def parse(expression: str) -> "Reference":
        """
        Parses 'db.private_ip' or 'apps[a].private_ip' into a Reference.
        """
        target, sep, attribute = expression.strip().rpartition(".")
        if not sep or not target or not attribute:
            raise ValueError(f"Invalid reference expression: {expression!r}")
        key = None
        if target.endswith("]"):
            bracket = target.find("[")
            if bracket <= 0:
                raise ValueError(f"Invalid reference expression: {expression!r}")
            key = target[bracket + 1:-1]
            target = target[:bracket]
        return Reference(target_id=target, attribute=attribute, key=key)


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested anywhere inside an input value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)
