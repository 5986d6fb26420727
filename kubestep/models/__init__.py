"""Core data structures for KubeStep."""

from kubestep.models.auth import (
    AccountCredentials,
    AssumedRole,
    AwsAuthenticationConfig,
    AwsCredentialSet,
    ResolvedIdentity,
    WorkerCredentials,
    parse_authentication,
)
from kubestep.models.config import KubeStepConfig
from kubestep.models.discovery import (
    DiscoveredCluster,
    DiscoveryEvent,
    TargetDiscoveryContext,
    TargetDiscoveryScope,
    TargetMatchResult,
)
from kubestep.models.messages import ServiceMessage, ServiceMessageNames
from kubestep.models.resources import (
    CheckState,
    ResourceIdentifier,
    ResourceState,
    ResourceStatus,
)

__all__ = [
    "AccountCredentials",
    "AssumedRole",
    "AwsAuthenticationConfig",
    "AwsCredentialSet",
    "CheckState",
    "DiscoveredCluster",
    "DiscoveryEvent",
    "KubeStepConfig",
    "ResolvedIdentity",
    "ResourceIdentifier",
    "ResourceState",
    "ResourceStatus",
    "ServiceMessage",
    "ServiceMessageNames",
    "TargetDiscoveryContext",
    "TargetDiscoveryScope",
    "TargetMatchResult",
    "WorkerCredentials",
    "parse_authentication",
]
