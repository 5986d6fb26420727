"""Prometheus metrics for KubeStep.

Counters are process-global; a single deployment run increments them and the
hosting worker may expose them through its own registry endpoint.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

status_checks_total = Counter(
    "kubestep_status_checks_total",
    "Resource status check sessions by terminal verdict",
    ["verdict"],
)

resource_status_updates_total = Counter(
    "kubestep_resource_status_updates_total",
    "Resource status events emitted",
    ["kind", "status"],
)

resource_retrieval_errors_total = Counter(
    "kubestep_resource_retrieval_errors_total",
    "Transient failures while retrieving resource state",
    ["kind"],
)

credential_resolution_failures_total = Counter(
    "kubestep_credential_resolution_failures_total",
    "Credential resolutions that produced no usable identity",
    ["credentials_type"],
)

discovered_targets_total = Counter(
    "kubestep_discovered_targets_total",
    "Kubernetes clusters announced by target discovery",
    ["region"],
)

stage_duration_seconds = Histogram(
    "kubestep_stage_duration_seconds",
    "Wall-clock time spent inside each wrapper stage, inner stages included",
    ["stage"],
)
