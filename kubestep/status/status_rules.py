"""Per-kind status computation for tracked Kubernetes resources.

Each rule maps a live resource document to a ResourceStatus plus a small
``details`` projection (replica counts, phase, ...). The reporter compares
``details`` between polls, so it must contain only fields that change when
the resource makes progress and never volatile bookkeeping such as
timestamps or resource versions.

Kinds without a rule are Successful as soon as they exist.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from kubestep.models.resources import ResourceStatus

Details = tuple[tuple[str, str], ...]
StatusRule = Callable[[Mapping[str, Any]], tuple[ResourceStatus, Details]]

# Container waiting reasons that never resolve without user intervention.
_FAILED_WAITING_REASONS = frozenset(
    {
        "CrashLoopBackOff",
        "ImagePullBackOff",
        "ErrImagePull",
        "InvalidImageName",
        "CreateContainerConfigError",
        "CreateContainerError",
        "RunContainerError",
    }
)


def _section(document: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = document.get(name)
    return value if isinstance(value, Mapping) else {}


def _int(value: Any, default: int = 0) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else default


def _condition(status: Mapping[str, Any], condition_type: str) -> Mapping[str, Any] | None:
    for condition in status.get("conditions") or []:
        if isinstance(condition, Mapping) and condition.get("type") == condition_type:
            return condition
    return None


def _generation_observed(document: Mapping[str, Any]) -> bool:
    """False until the controller has reported on the latest spec generation."""
    generation = _section(document, "metadata").get("generation")
    if not isinstance(generation, int):
        return True
    observed = _section(document, "status").get("observedGeneration")
    return isinstance(observed, int) and observed >= generation


def _ratio(current: int, desired: int) -> str:
    return f"{current}/{desired}"


def deployment_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    spec = _section(document, "spec")
    status = _section(document, "status")
    desired = _int(spec.get("replicas"), 1)
    replicas = _int(status.get("replicas"))
    updated = _int(status.get("updatedReplicas"))
    ready = _int(status.get("readyReplicas"))
    available = _int(status.get("availableReplicas"))
    details: Details = (
        ("ready", _ratio(ready, desired)),
        ("updated", _ratio(updated, desired)),
        ("available", _ratio(available, desired)),
    )

    progressing = _condition(status, "Progressing")
    if progressing and progressing.get("status") == "False" and progressing.get("reason") == "ProgressDeadlineExceeded":
        return ResourceStatus.FAILED, details
    if not _generation_observed(document):
        return ResourceStatus.IN_PROGRESS, details
    if updated == desired and ready == desired and available == desired and replicas == desired:
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def replica_set_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    desired = _int(_section(document, "spec").get("replicas"), 1)
    status = _section(document, "status")
    ready = _int(status.get("readyReplicas"))
    available = _int(status.get("availableReplicas"))
    details: Details = (("ready", _ratio(ready, desired)), ("available", _ratio(available, desired)))
    if ready >= desired and available >= desired:
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def stateful_set_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    desired = _int(_section(document, "spec").get("replicas"), 1)
    status = _section(document, "status")
    ready = _int(status.get("readyReplicas"))
    updated = _int(status.get("updatedReplicas"))
    details: Details = (("ready", _ratio(ready, desired)), ("updated", _ratio(updated, desired)))
    if not _generation_observed(document):
        return ResourceStatus.IN_PROGRESS, details
    if ready == desired and updated == desired:
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def daemon_set_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    status = _section(document, "status")
    desired = _int(status.get("desiredNumberScheduled"))
    ready = _int(status.get("numberReady"))
    updated = _int(status.get("updatedNumberScheduled"))
    available = _int(status.get("numberAvailable"))
    details: Details = (
        ("ready", _ratio(ready, desired)),
        ("updated", _ratio(updated, desired)),
        ("available", _ratio(available, desired)),
    )
    if not _generation_observed(document):
        return ResourceStatus.IN_PROGRESS, details
    if ready == desired and updated == desired and available == desired:
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def pod_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    status = _section(document, "status")
    phase = str(status.get("phase") or "Pending")
    containers = [c for c in status.get("containerStatuses") or [] if isinstance(c, Mapping)]
    ready = sum(1 for c in containers if c.get("ready") is True)
    waiting = sorted(
        {
            str(_section(_section(c, "state"), "waiting").get("reason"))
            for c in containers
            if _section(_section(c, "state"), "waiting").get("reason")
        }
    )
    details: Details = (("phase", phase), ("ready", _ratio(ready, len(containers))))
    if waiting:
        details += (("waiting", ",".join(waiting)),)

    if phase == "Failed" or _FAILED_WAITING_REASONS.intersection(waiting):
        return ResourceStatus.FAILED, details
    if phase == "Succeeded":
        return ResourceStatus.SUCCESSFUL, details
    if phase == "Running" and containers and ready == len(containers):
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def job_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    completions = _int(_section(document, "spec").get("completions"), 1)
    status = _section(document, "status")
    succeeded = _int(status.get("succeeded"))
    failed = _int(status.get("failed"))
    details: Details = (("succeeded", _ratio(succeeded, completions)), ("failed", str(failed)))

    failed_condition = _condition(status, "Failed")
    if failed_condition and failed_condition.get("status") == "True":
        return ResourceStatus.FAILED, details
    complete = _condition(status, "Complete")
    if (complete and complete.get("status") == "True") or succeeded >= completions:
        return ResourceStatus.SUCCESSFUL, details
    return ResourceStatus.IN_PROGRESS, details


def cron_job_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    active = _section(document, "status").get("active") or []
    suspended = _section(document, "spec").get("suspend") is True
    return ResourceStatus.SUCCESSFUL, (("active", str(len(active))), ("suspended", str(suspended)))


def _load_balancer_addresses(status: Mapping[str, Any]) -> list[str]:
    ingress = _section(status, "loadBalancer").get("ingress") or []
    return [
        str(entry.get("ip") or entry.get("hostname") or "")
        for entry in ingress
        if isinstance(entry, Mapping)
    ]


def service_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    service_type = str(_section(document, "spec").get("type") or "ClusterIP")
    addresses = _load_balancer_addresses(_section(document, "status"))
    details: Details = (("type", service_type), ("addresses", ",".join(addresses)))
    if service_type == "LoadBalancer" and not addresses:
        return ResourceStatus.IN_PROGRESS, details
    return ResourceStatus.SUCCESSFUL, details


def ingress_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    addresses = _load_balancer_addresses(_section(document, "status"))
    hosts = sorted(
        str(rule.get("host"))
        for rule in _section(document, "spec").get("rules") or []
        if isinstance(rule, Mapping) and rule.get("host")
    )
    return ResourceStatus.SUCCESSFUL, (("hosts", ",".join(hosts)), ("addresses", ",".join(addresses)))


def persistent_volume_claim_status(document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    phase = str(_section(document, "status").get("phase") or "Pending")
    details: Details = (("phase", phase),)
    if phase == "Bound":
        return ResourceStatus.SUCCESSFUL, details
    if phase == "Lost":
        return ResourceStatus.FAILED, details
    return ResourceStatus.IN_PROGRESS, details


STATUS_RULES: dict[str, StatusRule] = {
    "Deployment": deployment_status,
    "ReplicaSet": replica_set_status,
    "StatefulSet": stateful_set_status,
    "DaemonSet": daemon_set_status,
    "Pod": pod_status,
    "Job": job_status,
    "CronJob": cron_job_status,
    "Service": service_status,
    "Ingress": ingress_status,
    "PersistentVolumeClaim": persistent_volume_claim_status,
}


def compute_status(kind: str, document: Mapping[str, Any]) -> tuple[ResourceStatus, Details]:
    """Status and progress details for a resource that exists."""
    rule = STATUS_RULES.get(kind)
    if rule is None:
        return ResourceStatus.SUCCESSFUL, ()
    return rule(document)
