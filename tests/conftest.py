"""Shared fixtures for the KubeStep test suite."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from typing import Any

import pytest
import structlog

from kubestep.models.resources import ResourceIdentifier


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo any logging configuration a test (or the CLI under test) installed."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def _owner(kind: str, name: str, uid: str) -> list[dict[str, Any]]:
    return [{"apiVersion": "apps/v1", "kind": kind, "name": name, "uid": uid, "controller": True}]


class FakeCluster:
    """In-memory stand-in for Kubectl, keyed by (kind, namespace, name).

    ``failures`` maps a resource identifier to an exception raised by the
    next ``get`` of that resource.
    """

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.failures: dict[ResourceIdentifier, Exception] = {}
        self.gets: list[ResourceIdentifier] = []
        self.lists: list[tuple[str, str]] = []

    def put(self, document: dict[str, Any]) -> dict[str, Any]:
        metadata = document["metadata"]
        self.documents[(document["kind"], metadata.get("namespace", ""), metadata["name"])] = document
        return document

    def delete(self, kind: str, name: str, namespace: str = "") -> None:
        self.documents.pop((kind, namespace, name), None)

    async def get(self, identifier: ResourceIdentifier, timeout: float | None = None) -> dict[str, Any] | None:
        self.gets.append(identifier)
        failure = self.failures.pop(identifier, None)
        if failure is not None:
            raise failure
        document = self.documents.get((identifier.kind, identifier.namespace, identifier.name))
        return copy.deepcopy(document) if document is not None else None

    async def list(self, kind: str, namespace: str = "", timeout: float | None = None) -> list[dict[str, Any]]:
        self.lists.append((kind, namespace))
        return [
            copy.deepcopy(document)
            for (item_kind, item_namespace, _), document in sorted(self.documents.items())
            if item_kind == kind and item_namespace == namespace
        ]

    def deployment(self, name: str, namespace: str, replicas: int = 3, ready: int | None = None) -> None:
        """Add a Deployment with its ReplicaSet and Pods; ``ready`` of the pods are ready."""
        ready = replicas if ready is None else ready
        deployment_uid = f"{name}-uid"
        replica_set_name = f"{name}-5d59d67564"
        replica_set_uid = f"{replica_set_name}-uid"
        counts = {"replicas": replicas, "updatedReplicas": replicas, "readyReplicas": ready, "availableReplicas": ready}
        self.put(
            {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": {"name": name, "namespace": namespace, "uid": deployment_uid, "generation": 1},
                "spec": {"replicas": replicas},
                "status": {"observedGeneration": 1, **counts},
            }
        )
        self.put(
            {
                "apiVersion": "apps/v1",
                "kind": "ReplicaSet",
                "metadata": {
                    "name": replica_set_name,
                    "namespace": namespace,
                    "uid": replica_set_uid,
                    "ownerReferences": _owner("Deployment", name, deployment_uid),
                },
                "spec": {"replicas": replicas},
                "status": counts,
            }
        )
        for index in range(replicas):
            pod_name = f"{replica_set_name}-pod{index}"
            is_ready = index < ready
            self.put(
                {
                    "apiVersion": "v1",
                    "kind": "Pod",
                    "metadata": {
                        "name": pod_name,
                        "namespace": namespace,
                        "uid": f"{pod_name}-uid",
                        "ownerReferences": _owner("ReplicaSet", replica_set_name, replica_set_uid),
                    },
                    "status": {
                        "phase": "Running",
                        "containerStatuses": [{"name": "nginx", "ready": is_ready, "state": {"running": {}}}],
                    },
                }
            )


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()
