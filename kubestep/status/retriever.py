"""Retrieve the live state of a tracked resource and the objects it owns."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubestep.models.resources import ResourceIdentifier, ResourceState
from kubestep.status.kubectl import Kubectl
from kubestep.status.status_rules import compute_status

# Kinds whose progress is only visible through the objects they own.
CHILD_KINDS: dict[str, tuple[str, ...]] = {
    "Deployment": ("ReplicaSet",),
    "ReplicaSet": ("Pod",),
    "StatefulSet": ("Pod",),
    "DaemonSet": ("Pod",),
    "Job": ("Pod",),
    "CronJob": ("Job",),
}


def _metadata(document: Mapping[str, Any]) -> Mapping[str, Any]:
    value = document.get("metadata")
    return value if isinstance(value, Mapping) else {}


def _owned_by(document: Mapping[str, Any], owner_uid: str) -> bool:
    for reference in _metadata(document).get("ownerReferences") or []:
        if isinstance(reference, Mapping) and reference.get("uid") == owner_uid:
            return True
    return False


def to_state(
    identifier: ResourceIdentifier,
    document: Mapping[str, Any],
    parent: ResourceIdentifier | None = None,
) -> ResourceState:
    """Build a snapshot for a resource the cluster returned."""
    status, details = compute_status(identifier.kind, document)
    return ResourceState(
        identifier=identifier,
        status=status,
        raw=document,
        uid=str(_metadata(document).get("uid") or ""),
        details=details,
        parent=parent,
    )


class ResourceRetriever:
    """Queries kubectl for one tracked identifier per call.

    ``retrieve`` returns the root snapshot first, followed by every owned
    descendant in a stable order. A root the cluster does not know is
    returned as a single Pending snapshot with no document. Command failures
    propagate so the caller can tell them apart from "not found".
    """

    def __init__(self, kubectl: Kubectl, expand_children: bool = True) -> None:
        self._kubectl = kubectl
        self._expand_children = expand_children

    async def retrieve(self, identifier: ResourceIdentifier, timeout: float | None = None) -> list[ResourceState]:
        document = await self._kubectl.get(identifier, timeout=timeout)
        if document is None:
            return [ResourceState.missing(identifier)]

        root = to_state(identifier, document)
        states = [root]
        if self._expand_children:
            listings: dict[str, list[dict[str, Any]]] = {}
            await self._expand(root, states, listings, timeout)
        return states

    async def _expand(
        self,
        parent: ResourceState,
        states: list[ResourceState],
        listings: dict[str, list[dict[str, Any]]],
        timeout: float | None,
    ) -> None:
        if not parent.uid:
            return
        namespace = parent.identifier.namespace
        for child_kind in CHILD_KINDS.get(parent.identifier.kind, ()):
            if child_kind not in listings:
                listings[child_kind] = await self._kubectl.list(child_kind, namespace, timeout=timeout)
            owned = [item for item in listings[child_kind] if _owned_by(item, parent.uid)]
            owned.sort(key=lambda item: str(_metadata(item).get("name") or ""))
            for item in owned:
                child_id = ResourceIdentifier(
                    kind=child_kind,
                    name=str(_metadata(item).get("name") or ""),
                    namespace=str(_metadata(item).get("namespace") or namespace),
                )
                child = to_state(child_id, item, parent=parent.identifier)
                states.append(child)
                await self._expand(child, states, listings, timeout)
