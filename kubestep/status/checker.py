"""Resource status check state machine.

A session moves ``NotStarted -> Polling <-> Stabilizing`` and ends in one of
``Successful``, ``Failed`` or ``TimedOut``:

* Polling      -- at least one tracked resource is Pending or InProgress.
* Stabilizing  -- every tracked resource is terminal and at least one has
                  Failed. A failure that persists for the stabilization
                  timeout ends the session as Failed; recovery of every
                  failed resource goes back to Polling or straight to
                  Successful.
* TimedOut     -- the deployment timeout elapsed first, whatever the
                  individual resources reported.

Aggregation only looks at the tracked (top-level) identifiers; owned
objects such as ReplicaSets and Pods are reported but never vote.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field

from kubestep.errors import CommandError, KubectlError
from kubestep.models.resources import CheckState, ResourceIdentifier, ResourceState, ResourceStatus
from kubestep.observability.logging import get_logger
from kubestep.observability.metrics import resource_retrieval_errors_total, status_checks_total
from kubestep.status.reporter import ResourceUpdateReporter
from kubestep.status.retriever import ResourceRetriever

_log = get_logger("status.checker")

START_BANNER = "Performing resource status checks on the following resources:"
SUCCESS_SUMMARY = "Resource status check completed successfully because all resources are deployed successfully"
FAILURE_SUMMARY = "Resource status check terminated because one or more resources failed to deploy"
TIMEOUT_SUMMARY = (
    "Resource status check terminated because the timeout has been reached but some resources are still in progress"
)

_DEFAULT_POLL_INTERVAL_SECONDS = 2.0
_DEFAULT_RETRIEVAL_TIMEOUT_SECONDS = 30.0


def aggregate(statuses: Iterable[ResourceStatus]) -> CheckState:
    """Overall state implied by the latest status of each tracked resource."""
    values = list(statuses)
    if all(status == ResourceStatus.SUCCESSFUL for status in values):
        return CheckState.SUCCESSFUL
    if any(not status.is_terminal for status in values):
        return CheckState.POLLING
    return CheckState.STABILIZING


@dataclass
class StatusCheckSession:
    """Mutable state of one status check, owned by a single polling coroutine."""

    identifiers: tuple[ResourceIdentifier, ...]
    deployment_timeout: float
    stabilization_timeout: float
    started_at: float
    state: CheckState = CheckState.NOT_STARTED
    check_count: int = 0
    stabilizing_since: float | None = None
    states: dict[ResourceIdentifier, ResourceState] = field(default_factory=dict)
    children: dict[ResourceIdentifier, dict[ResourceIdentifier, ResourceState]] = field(default_factory=dict)
    absent: set[ResourceIdentifier] = field(default_factory=set)
    published: set[ResourceIdentifier] = field(default_factory=set)

    def latest(self, identifier: ResourceIdentifier) -> ResourceState:
        return self.states.get(identifier) or ResourceState.missing(identifier)

    def elapsed(self, now: float) -> float:
        return now - self.started_at


@dataclass(frozen=True)
class StatusCheckResult:
    """Terminal verdict of a status check session."""

    state: CheckState
    check_count: int
    states: tuple[ResourceState, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state == CheckState.SUCCESSFUL


class ResourceStatusChecker:
    """Polls tracked resources until they stabilize or the deployment times out.

    ``clock`` and ``sleep`` default to the monotonic clock and
    ``asyncio.sleep``; tests substitute a fake clock whose ``sleep`` advances
    time instantly.
    """

    def __init__(
        self,
        retriever: ResourceRetriever,
        reporter: ResourceUpdateReporter,
        poll_interval: float = _DEFAULT_POLL_INTERVAL_SECONDS,
        retrieval_timeout: float = _DEFAULT_RETRIEVAL_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._retriever = retriever
        self._reporter = reporter
        self._poll_interval = poll_interval
        self._retrieval_timeout = retrieval_timeout
        self._clock = clock
        self._sleep = sleep

    async def check(
        self,
        identifiers: Sequence[ResourceIdentifier],
        deployment_timeout: float,
        stabilization_timeout: float,
    ) -> StatusCheckResult:
        """Run one session to a terminal state and log its single summary line."""
        session = StatusCheckSession(
            identifiers=tuple(dict.fromkeys(identifiers)),
            deployment_timeout=deployment_timeout,
            stabilization_timeout=stabilization_timeout,
            started_at=self._clock(),
        )
        _log.info(START_BANNER)
        for identifier in session.identifiers:
            _log.info(f" - {identifier} in namespace {identifier.namespace}")

        session.state = CheckState.POLLING
        while not session.state.is_terminal:
            remaining = deployment_timeout - session.elapsed(self._clock())
            if remaining <= 0:
                session.state = CheckState.TIMED_OUT
                break

            session.check_count += 1
            await self._poll(session, remaining)
            session.state = self._evaluate(session, self._clock())
            if session.state.is_terminal:
                break

            remaining = deployment_timeout - session.elapsed(self._clock())
            if remaining <= 0:
                session.state = CheckState.TIMED_OUT
                break
            await self._sleep(min(self._poll_interval, remaining))

        self._summarise(session)
        return StatusCheckResult(
            state=session.state,
            check_count=session.check_count,
            states=tuple(session.latest(i) for i in session.identifiers),
        )

    async def _poll(self, session: StatusCheckSession, remaining: float) -> None:
        budget = min(self._retrieval_timeout, remaining)
        results = await asyncio.gather(
            *(self._retrieve(identifier, budget) for identifier in session.identifiers),
            return_exceptions=True,
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome
        for identifier, states in zip(session.identifiers, results, strict=True):
            if isinstance(states, list):
                self._apply(session, identifier, states)

    async def _retrieve(self, identifier: ResourceIdentifier, budget: float) -> list[ResourceState] | None:
        try:
            return await asyncio.wait_for(self._retriever.retrieve(identifier, timeout=budget), timeout=budget)
        except (KubectlError, CommandError, TimeoutError) as exc:
            resource_retrieval_errors_total.labels(kind=identifier.kind).inc()
            _log.warning(
                "resource_retrieval_failed",
                resource=str(identifier),
                namespace=identifier.namespace,
                error=str(exc) or type(exc).__name__,
            )
            return None

    def _apply(self, session: StatusCheckSession, identifier: ResourceIdentifier, states: list[ResourceState]) -> None:
        root, descendants = states[0], states[1:]
        previous = session.states.get(identifier)
        count = session.check_count

        if root.found:
            self._reporter.report(previous, root, count)
            session.states[identifier] = root
            session.absent.discard(identifier)
            if identifier not in session.published:
                self._reporter.publish(root)
                session.published.add(identifier)
        elif previous is not None and previous.found:
            removed = previous.as_removed()
            self._reporter.report(previous, removed, count)
            session.states[identifier] = removed
        elif previous is None:
            session.states[identifier] = root

        known = session.children.setdefault(identifier, {})
        current = {state.identifier: state for state in descendants}
        for child_id, state in current.items():
            self._reporter.report(known.get(child_id), state, count)
        for child_id, state in known.items():
            if child_id not in current:
                self._reporter.report(state, state.as_removed(state.status), count)
        session.children[identifier] = current

    def _evaluate(self, session: StatusCheckSession, now: float) -> CheckState:
        for identifier in session.identifiers:
            state = session.latest(identifier)
            if (
                not state.found
                and not state.removed
                and identifier not in session.absent
                and session.elapsed(now) >= session.stabilization_timeout
            ):
                _log.warning(
                    f"{identifier} in namespace {identifier.namespace} was not found "
                    "within the stabilization timeout"
                )
                session.absent.add(identifier)
                session.states[identifier] = state.as_absent()

        verdict = aggregate(session.latest(i).status for i in session.identifiers)
        if verdict != CheckState.STABILIZING:
            session.stabilizing_since = None
            return verdict
        if session.stabilizing_since is None:
            session.stabilizing_since = now
        if now - session.stabilizing_since >= session.stabilization_timeout:
            return CheckState.FAILED
        return CheckState.STABILIZING

    def _summarise(self, session: StatusCheckSession) -> None:
        status_checks_total.labels(verdict=str(session.state)).inc()
        if session.state == CheckState.SUCCESSFUL:
            _log.info(SUCCESS_SUMMARY, checks=session.check_count)
        elif session.state == CheckState.TIMED_OUT:
            _log.error(TIMEOUT_SUMMARY, checks=session.check_count)
        else:
            _log.error(FAILURE_SUMMARY, checks=session.check_count)
