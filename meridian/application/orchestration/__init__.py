"""
Application Orchestration Package

Architectural Intent:
- Contains the provisioning scheduler
- DAG-based, dependency-ordered, maximally parallel apply
"""

from meridian.application.orchestration.provisioning_scheduler import (
    ApplyOutcome,
    ApplyResult,
    NodeAction,
    NodeFailure,
    ProvisioningScheduler,
    SchedulerSettings,
    call_with_retry,
)

__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "NodeAction",
    "NodeFailure",
    "ProvisioningScheduler",
    "SchedulerSettings",
    "call_with_retry",
]
