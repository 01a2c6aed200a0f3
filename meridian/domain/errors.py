"""
Domain Errors

Architectural Intent:
- Single taxonomy for everything that can go wrong between declaration and apply
- SpecError and CycleError are raised before any provider call is issued
- ProviderError carries a transient flag so the scheduler can decide on retries
- NotReadyError / UnknownAttributeError signal ordering bugs, not user mistakes
"""

from __future__ import annotations
from typing import Optional


class MeridianError(Exception):
    pass


class SpecError(MeridianError):
    """Invalid resource declaration."""


class CycleError(MeridianError):
    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class ProviderError(MeridianError):
    def __init__(self, message: str, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class NotReadyError(MeridianError):
    def __init__(self, target_id: str, detail: Optional[str] = None) -> None:
        self.target_id = target_id
        message = f"Resource {target_id!r} is not ready"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownAttributeError(MeridianError):
    def __init__(self, target_id: str, attribute: str) -> None:
        self.target_id = target_id
        self.attribute = attribute
        super().__init__(f"Resource {target_id!r} has no attribute {attribute!r}")
