"""
Provisioning Scheduler

Architectural Intent:
- Walks the dependency DAG and creates resources in dependency order
- Automatically parallelizes independent branches
- Enforces that a node is dispatched only once all its dependencies are READY
- Failure of a node cascades to its transitive dependents only; unrelated
  branches keep going so partial results stay usable

Concurrency Strategy:
- One coordinator coroutine owns the instance map, the in-degree table and
  the ready-set; nothing else mutates them
- Worker tasks make the provider calls and report completions on an
  asyncio.Queue; the coordinator applies the resulting transition
- Dispatch is bounded by max_concurrency in-flight provider calls
- Each provider call has its own timeout; transient ProviderErrors are
  retried with exponential backoff (tenacity), everything else fails the node

Re-application:
- A prior READY instance whose kind and resolved inputs are unchanged is kept
  as-is without calling the provider
- Changed inputs destroy the prior resource and create it again; every
  transitive dependent of a replaced node is replaced as well
- Prior instances that no longer appear in the graph are destroyed at the end
- Unchanged instances become READY without lifecycle events

Interruption:
- If apply is cancelled or the coordinator raises, creations already in
  flight are awaited and their outcomes recorded in last_result (CANCELLED)
  before the exception propagates, so no created resource goes untracked
"""

from __future__ import annotations
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Mapping, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from meridian.domain.entities.resource_instance import InstanceStatus, ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind
from meridian.domain.errors import ProviderError
from meridian.domain.events.resource_events import ResourceDestroyedEvent
from meridian.domain.ports.cloud_provider_port import CloudProviderPort
from meridian.domain.ports.event_bus_port import EventBusPort
from meridian.domain.services.attribute_resolver import resolve_inputs
from meridian.domain.services.dependency_graph import DependencyGraph

logger = logging.getLogger(__name__)


class ApplyOutcome(Enum):
    SUCCESS = auto()
    PARTIAL_FAILURE = auto()
    CANCELLED = auto()


class NodeAction(Enum):
    CREATED = auto()
    UNCHANGED = auto()
    REPLACED = auto()
    DESTROYED = auto()


@dataclass(frozen=True)
class NodeFailure:
    node_id: str
    cause: str
    root_id: str

    @property
    def cascaded(self) -> bool:
        return self.node_id != self.root_id


@dataclass(frozen=True)
class SchedulerSettings:
    max_concurrency: int = 8
    call_timeout_seconds: float = 300.0
    max_retries: int = 3
    backoff_initial: float = 0.5
    backoff_max: float = 10.0
    backoff_jitter: float = 1.0

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.call_timeout_seconds <= 0:
            raise ValueError("call_timeout_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")


@dataclass
class ApplyResult:
    outcome: ApplyOutcome
    instances: dict[str, ResourceInstance]
    failures: list[NodeFailure] = field(default_factory=list)
    actions: dict[str, NodeAction] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.outcome is ApplyOutcome.SUCCESS

    @property
    def failed_ids(self) -> list[str]:
        return [f.node_id for f in self.failures]

    @property
    def root_causes(self) -> dict[str, str]:
        return {f.node_id: f.cause for f in self.failures if not f.cascaded}

    def count(self, action: NodeAction) -> int:
        return sum(1 for a in self.actions.values() if a is action)


@dataclass(frozen=True)
class _Completion:
    node_id: str
    attributes: Optional[dict[str, Any]] = None
    error: Optional[str] = None


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.transient


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transient provider error (attempt %d): %s",
        retry_state.attempt_number,
        exc,
    )


async def call_with_retry(
    settings: SchedulerSettings, fn: Callable[..., Awaitable[Any]], *args: Any
) -> Any:
    """Run one provider call with a per-call timeout and transient retries.

    A timeout is not retried: it surfaces as a non-transient ProviderError.
    """
    timeout = settings.call_timeout_seconds
    result: Any = None
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.max_retries + 1),
        wait=wait_exponential_jitter(
            initial=settings.backoff_initial,
            max=settings.backoff_max,
            jitter=settings.backoff_jitter,
        ),
        retry=retry_if_exception(_is_transient),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            try:
                result = await asyncio.wait_for(fn(*args), timeout=timeout)
            except asyncio.TimeoutError:
                raise ProviderError(f"provider call timed out after {timeout:g}s") from None
    return result


class ProvisioningScheduler:
    def __init__(
        self,
        provider: CloudProviderPort,
        settings: Optional[SchedulerSettings] = None,
        event_bus: Optional[EventBusPort] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or SchedulerSettings()
        self.event_bus = event_bus
        self._cancelled = False
        # Set by every apply, including one that was interrupted.
        self.last_result: Optional[ApplyResult] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop dispatching; creations already in flight are allowed to finish."""
        if not self._cancelled:
            logger.warning("Apply cancelled; waiting for in-flight creations")
        self._cancelled = True

    async def _call(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        return await call_with_retry(self.settings, fn, *args)

    async def _provision(
        self,
        node_id: str,
        kind: ResourceKind,
        inputs: dict[str, Any],
        previous: Optional[ResourceInstance],
        results: asyncio.Queue,
    ) -> None:
        try:
            if previous is not None and previous.provider_id:
                logger.info("Destroying %s (%s) before re-creation", node_id, previous.provider_id)
                await self._call(self.provider.destroy, previous.provider_id)
            created = await self._call(self.provider.create, node_id, kind, inputs)
            if not created.is_ready:
                raise ProviderError(
                    created.error or f"provider returned {created.status.name} for {node_id}"
                )
            completion = _Completion(node_id, attributes=created.attributes)
        except ProviderError as e:
            completion = _Completion(node_id, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error while creating %s", node_id)
            completion = _Completion(node_id, error=f"{type(e).__name__}: {e}")
        await results.put(completion)

    # ------------------------------------------------------------------
    # Coordinator
    # ------------------------------------------------------------------

    async def _publish(self, instance: ResourceInstance) -> ResourceInstance:
        if self.event_bus is not None and instance.domain_events:
            await self.event_bus.publish(list(instance.domain_events))
        return instance.clear_events()

    async def apply(
        self,
        graph: DependencyGraph,
        prior: Optional[Mapping[str, ResourceInstance]] = None,
    ) -> ApplyResult:
        prior = dict(prior or {})
        self._cancelled = False

        instances: dict[str, ResourceInstance] = {}
        for node_id in graph.nodes:
            node = graph.node(node_id)
            instances[node_id] = ResourceInstance(
                id=node_id, kind=node.spec.kind, spec_id=node.spec.id, key=node.key
            )

        degrees = graph.in_degrees()
        ready: deque[str] = deque(n for n in graph.nodes if degrees[n] == 0)
        resolved: dict[str, dict[str, Any]] = {}
        must_replace: set[str] = set()
        failures: list[NodeFailure] = []
        actions: dict[str, NodeAction] = {}
        results: asyncio.Queue = asyncio.Queue()
        tasks: set[asyncio.Task] = set()
        in_flight = 0

        logger.info("Applying %d resource(s)", len(graph))

        async def mark_ready(node_id: str, instance: ResourceInstance) -> None:
            instances[node_id] = instance
            instances[node_id] = await self._publish(instance)
            for dependent in graph.dependents(node_id):
                degrees[dependent] -= 1
                if degrees[dependent] == 0 and instances[dependent].status == InstanceStatus.PENDING:
                    ready.append(dependent)

        async def mark_failed(node_id: str, cause: str, cascade: bool = True) -> None:
            logger.error("Resource %s failed: %s", node_id, cause)
            instances[node_id] = instances[node_id].mark_failed(cause)
            failures.append(NodeFailure(node_id, cause, node_id))
            instances[node_id] = await self._publish(instances[node_id])
            if not cascade:
                return
            for dependent in graph.transitive_dependents(node_id):
                if instances[dependent].status != InstanceStatus.PENDING:
                    continue
                logger.warning("Skipping %s: dependency %s failed", dependent, node_id)
                instances[dependent] = instances[dependent].mark_failed(
                    f"dependency {node_id} failed: {cause}", root_id=node_id
                )
                failures.append(NodeFailure(dependent, cause, node_id))
                instances[dependent] = await self._publish(instances[dependent])

        async def dispatch(node_id: str) -> bool:
            """Start node_id; returns True when a provider call was issued."""
            spec = graph.spec_for(node_id)
            inputs = resolve_inputs(spec.inputs, instances)
            resolved[node_id] = inputs
            previous = prior.get(node_id)
            reusable = (
                previous is not None
                and previous.is_ready
                and previous.kind == spec.kind
            )

            if reusable and node_id not in must_replace and previous.inputs == inputs:
                logger.debug("%s unchanged, keeping %s", node_id, previous.provider_id)
                actions[node_id] = NodeAction.UNCHANGED
                # Nothing was created, so no lifecycle events are raised.
                await mark_ready(
                    node_id,
                    instances[node_id]
                    .start_creating()
                    .mark_ready(previous.attributes, inputs)
                    .clear_events(),
                )
                return False

            replacing = previous is not None and previous.is_ready
            if replacing:
                actions[node_id] = NodeAction.REPLACED
                must_replace.update(graph.transitive_dependents(node_id))
            else:
                actions[node_id] = NodeAction.CREATED

            instances[node_id] = await self._publish(instances[node_id].start_creating())
            logger.info("Dispatching %s (%s)", node_id, spec.kind.value)
            task = asyncio.create_task(
                self._provision(
                    node_id,
                    spec.kind,
                    inputs,
                    previous if replacing else None,
                    results,
                )
            )
            tasks.add(task)
            task.add_done_callback(tasks.discard)
            return True

        async def apply_completion(completion: _Completion, cascade: bool = True) -> None:
            node_id = completion.node_id
            if completion.error is not None:
                await mark_failed(node_id, completion.error, cascade)
            else:
                logger.info("Resource %s ready", node_id)
                await mark_ready(
                    node_id,
                    instances[node_id].mark_ready(completion.attributes, resolved[node_id]),
                )

        async def settle_in_flight() -> None:
            """Wait for running creations and record what they produced."""
            if tasks:
                logger.warning("Apply interrupted; letting %d creation(s) finish", len(tasks))
                await asyncio.gather(*tasks, return_exceptions=True)
            while not results.empty():
                await apply_completion(results.get_nowait(), cascade=False)

        try:
            while True:
                while ready and not self._cancelled and in_flight < self.settings.max_concurrency:
                    if await dispatch(ready.popleft()):
                        in_flight += 1
                if in_flight == 0:
                    break

                completion: _Completion = await results.get()
                in_flight -= 1
                await apply_completion(completion)
        except (asyncio.CancelledError, Exception) as e:
            self._cancelled = True
            if not isinstance(e, asyncio.CancelledError):
                logger.exception("Apply aborted")
            try:
                await settle_in_flight()
            finally:
                self.last_result = ApplyResult(
                    ApplyOutcome.CANCELLED, instances, failures, actions
                )
            raise

        if not self._cancelled:
            await self._destroy_orphans(graph, prior, actions, failures)

        if self._cancelled:
            outcome = ApplyOutcome.CANCELLED
        elif failures or any(not i.is_ready for i in instances.values()):
            outcome = ApplyOutcome.PARTIAL_FAILURE
        else:
            outcome = ApplyOutcome.SUCCESS

        logger.info(
            "Apply finished: %s (%d ready, %d failed)",
            outcome.name,
            sum(1 for i in instances.values() if i.is_ready),
            len(failures),
        )
        self.last_result = ApplyResult(outcome, instances, failures, actions)
        return self.last_result

    async def _destroy_orphans(
        self,
        graph: DependencyGraph,
        prior: Mapping[str, ResourceInstance],
        actions: dict[str, NodeAction],
        failures: list[NodeFailure],
    ) -> None:
        orphans = [i for i in prior.values() if i.id not in graph and i.provider_id]
        for orphan in reversed(orphans):
            logger.info("Destroying %s (%s): no longer declared", orphan.id, orphan.provider_id)
            try:
                await self._call(self.provider.destroy, orphan.provider_id)
            except ProviderError as e:
                logger.error("Failed to destroy %s: %s", orphan.id, e)
                failures.append(NodeFailure(orphan.id, str(e), orphan.id))
                continue
            actions[orphan.id] = NodeAction.DESTROYED
            if self.event_bus is not None:
                await self.event_bus.publish(
                    [ResourceDestroyedEvent(aggregate_id=orphan.id, provider_id=orphan.provider_id)]
                )
