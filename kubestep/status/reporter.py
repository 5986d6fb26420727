"""Change detection and status events for tracked resources."""

from __future__ import annotations

import json
from enum import StrEnum

from kubestep.models.messages import ServiceMessage, ServiceMessageNames, format_bool
from kubestep.models.resources import ResourceState
from kubestep.observability.logging import get_logger
from kubestep.observability.metrics import resource_status_updates_total
from kubestep.servicemessages.sink import EventSink
from kubestep.status.scrubber import scrub

_log = get_logger("status.reporter")


class ResourceChange(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


def detect_change(previous: ResourceState | None, current: ResourceState) -> ResourceChange | None:
    """Classify the difference between two snapshots of one resource.

    Snapshots without a document (not yet found) are never reportable.
    Resources with kind-specific ``details`` compare on status and details;
    the rest compare on their scrubbed documents.
    """
    if current.removed:
        if previous is not None and previous.found:
            return ResourceChange.REMOVED
        return None
    if not current.found:
        return None
    if previous is None or not previous.found:
        return ResourceChange.CREATED
    if previous.status != current.status:
        return ResourceChange.UPDATED
    if current.details or previous.details:
        return ResourceChange.UPDATED if previous.details != current.details else None
    return ResourceChange.UPDATED if scrub(previous.raw) != scrub(current.raw) else None


class ResourceUpdateReporter:
    """Emits one status event and one log line per reportable change."""

    def __init__(
        self,
        sink: EventSink,
        action_id: str = "",
        step_name: str = "",
        task_id: str = "",
    ) -> None:
        self._sink = sink
        self._action_id = action_id
        self._step_name = step_name
        self._task_id = task_id

    def report(self, previous: ResourceState | None, current: ResourceState, check_count: int) -> bool:
        """Report *current* if it differs meaningfully from *previous*.

        Returns True when an event was emitted.
        """
        change = detect_change(previous, current)
        if change is None:
            return False

        identifier = current.identifier
        self._sink.emit(
            ServiceMessage.create(
                ServiceMessageNames.RESOURCE_STATUS,
                {
                    "actionId": self._action_id,
                    "stepName": self._step_name,
                    "taskId": self._task_id,
                    "uuid": current.uid,
                    "kind": identifier.kind,
                    "name": identifier.name,
                    "namespace": identifier.namespace,
                    "status": str(current.status),
                    "data": json.dumps(current.raw) if current.raw is not None else "{}",
                    "removed": format_bool(current.removed),
                    "checkCount": str(check_count),
                },
            )
        )
        resource_status_updates_total.labels(kind=identifier.kind, status=str(current.status)).inc()
        _log.info(f"{identifier} {change}", status=str(current.status), namespace=identifier.namespace)
        return True

    def publish(self, state: ResourceState) -> None:
        """Expose the live document of a tracked resource as an output variable."""
        if state.raw is None:
            return
        name = f"CustomResources({state.identifier.name})"
        self._sink.emit(
            ServiceMessage.create(
                ServiceMessageNames.SET_VARIABLE,
                {"name": name, "value": json.dumps(state.raw)},
            )
        )
        _log.debug("resource_published", variable=name)
