"""Resource status tracking.

Exports:
    Kubectl                -- Async kubectl wrapper returning parsed JSON.
    ResourceRetriever      -- Fetches a tracked resource and the objects it owns.
    ResourceUpdateReporter -- Emits a status event per reportable change.
    ResourceStatusChecker  -- Polling state machine with deployment and
                              stabilization timeouts.
    discover_resources     -- Identifiers of the resources a deployment applied.
"""

from kubestep.status.checker import ResourceStatusChecker, StatusCheckResult, StatusCheckSession, aggregate
from kubestep.status.kubectl import Kubectl
from kubestep.status.manifests import discover_resources
from kubestep.status.reporter import ResourceUpdateReporter
from kubestep.status.retriever import ResourceRetriever

__all__ = [
    "Kubectl",
    "ResourceRetriever",
    "ResourceStatusChecker",
    "ResourceUpdateReporter",
    "StatusCheckResult",
    "StatusCheckSession",
    "aggregate",
    "discover_resources",
]
