"""Kubernetes resource identity and status snapshots."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ResourceStatus(StrEnum):
    """Status of a single tracked resource."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ResourceStatus.SUCCESSFUL, ResourceStatus.FAILED)


class CheckState(StrEnum):
    """Lifecycle of a resource status check session."""

    NOT_STARTED = "NotStarted"
    POLLING = "Polling"
    STABILIZING = "Stabilizing"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    @property
    def is_terminal(self) -> bool:
        return self in (CheckState.SUCCESSFUL, CheckState.FAILED, CheckState.TIMED_OUT)


@dataclass(frozen=True)
class ResourceIdentifier:
    """Uniquely identifies a trackable object for one status check session.

    An empty namespace denotes a cluster-scoped resource.
    """

    kind: str
    name: str
    namespace: str = ""

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class ResourceState:
    """Snapshot of a resource at one poll.

    Produced fresh on every poll and superseded, never mutated. ``raw`` is
    None when the cluster reported the resource as not found. ``details`` is
    the kind-specific progress projection (replica counts, phase, ...) that
    the update reporter compares between polls.
    """

    identifier: ResourceIdentifier
    status: ResourceStatus
    raw: Mapping[str, Any] | None = None
    uid: str = ""
    details: tuple[tuple[str, str], ...] = ()
    removed: bool = False
    parent: ResourceIdentifier | None = None

    @property
    def found(self) -> bool:
        return self.raw is not None

    @classmethod
    def missing(cls, identifier: ResourceIdentifier, parent: ResourceIdentifier | None = None) -> ResourceState:
        return cls(identifier=identifier, status=ResourceStatus.PENDING, parent=parent)

    def as_removed(self, status: ResourceStatus = ResourceStatus.FAILED) -> ResourceState:
        """Snapshot for a resource that existed earlier and has been deleted."""
        return dataclasses.replace(self, status=status, raw=None, removed=True)

    def as_absent(self) -> ResourceState:
        """Snapshot for a resource never found within the stabilization timeout."""
        return dataclasses.replace(self, status=ResourceStatus.FAILED)
