"""Target discovery scope, discovered clusters and discovery events."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from kubestep.models.auth import (
    AssumedRole,
    AwsAuthenticationConfig,
    ResolvedIdentity,
    parse_authentication,
)
from kubestep.models.messages import ServiceMessage, ServiceMessageNames, format_bool

ENVIRONMENT_TAG = "octopus-environment"
ROLE_TAG = "octopus-role"
SPACE_TAG = "octopus-space"
PROJECT_TAG = "octopus-project"
TENANT_TAG = "octopus-tenant"


@dataclass(frozen=True)
class TargetMatchResult:
    """Outcome of comparing a cluster's tags with the discovery scope."""

    role: str | None
    failure_reasons: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.role is not None and not self.failure_reasons


def _same(left: str, right: str) -> bool:
    return left.casefold() == right.casefold()


@dataclass(frozen=True)
class TargetDiscoveryScope:
    """Where discovered targets may be registered.

    A cluster matches when its ``octopus-environment`` tag names the scope's
    environment and its ``octopus-role`` tag names one of the scope's roles.
    Space, project and tenant tags are optional but restrict the match when
    present.
    """

    environment_name: str
    roles: tuple[str, ...]
    space_name: str = ""
    project_name: str = ""
    tenant_name: str = ""
    worker_pool_id: str | None = None

    def match(self, tags: Mapping[str, str]) -> TargetMatchResult:
        reasons: list[str] = []

        environment = tags.get(ENVIRONMENT_TAG)
        if environment is None:
            reasons.append(f"Missing environment tag. Match requires '{ENVIRONMENT_TAG}' tag with value '{self.environment_name}'.")
        elif not _same(environment, self.environment_name):
            reasons.append(f"Mismatched environment tag. Match requires '{ENVIRONMENT_TAG}' tag with value '{self.environment_name}', tag value '{environment}'.")

        role = tags.get(ROLE_TAG)
        matched_role: str | None = None
        if role is None:
            reasons.append(f"Missing role tag. Match requires '{ROLE_TAG}' tag with value from {list(self.roles)}.")
        else:
            matched_role = next((r for r in self.roles if _same(r, role)), None)
            if matched_role is None:
                reasons.append(f"Mismatched role tag. Match requires '{ROLE_TAG}' tag with value from {list(self.roles)}, tag value '{role}'.")

        for tag, expected in ((SPACE_TAG, self.space_name), (PROJECT_TAG, self.project_name), (TENANT_TAG, self.tenant_name)):
            actual = tags.get(tag)
            if actual is not None and not _same(actual, expected):
                reasons.append(f"Mismatched tag '{tag}'. Match requires value '{expected}', tag value '{actual}'.")

        return TargetMatchResult(role=matched_role, failure_reasons=tuple(reasons))


@dataclass(frozen=True)
class TargetDiscoveryContext:
    """Scope plus authentication, as supplied by a discovery request."""

    scope: TargetDiscoveryScope
    authentication: AwsAuthenticationConfig


def _field(document: Mapping[str, Any], name: str) -> Any:
    lowered = name.lower()
    for key, value in document.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def parse_discovery_context(document: Any) -> TargetDiscoveryContext:
    """Parse the ``{"scope": ..., "authentication": ...}`` discovery payload.

    Raises:
        ValueError: if either half is missing or malformed.
    """
    if not isinstance(document, Mapping):
        raise ValueError("Target discovery context must be an object")
    scope = _field(document, "scope")
    authentication = _field(document, "authentication")
    if not isinstance(scope, Mapping):
        raise ValueError("Target discovery context has no scope")
    if not isinstance(authentication, Mapping):
        raise ValueError("Target discovery context has no authentication")

    roles = _field(scope, "roles") or []
    if isinstance(roles, str) or not isinstance(roles, list):
        raise ValueError("Target discovery scope roles must be a list")
    environment = _field(scope, "environmentName")
    if not environment:
        raise ValueError("Target discovery scope has no environment")
    worker_pool = _field(scope, "workerPoolId")

    return TargetDiscoveryContext(
        scope=TargetDiscoveryScope(
            environment_name=str(environment),
            roles=tuple(str(r) for r in roles),
            space_name=str(_field(scope, "spaceName") or ""),
            project_name=str(_field(scope, "projectName") or ""),
            tenant_name=str(_field(scope, "tenantName") or ""),
            worker_pool_id=str(worker_pool) if worker_pool else None,
        ),
        authentication=parse_authentication(authentication),
    )


@dataclass(frozen=True)
class DiscoveredCluster:
    """An EKS cluster as described by the cloud provider."""

    name: str
    arn: str
    endpoint: str
    region: str
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DiscoveryEvent:
    """Announcement of a reachable cluster and how to target it.

    ``assumed_role`` is set only when role assumption was requested and
    succeeded; otherwise the role properties are absent from the event
    entirely rather than empty.
    """

    cluster_name: str
    cluster_arn: str
    cluster_url: str
    region: str
    role: str
    use_worker_credentials: bool
    worker_pool_id: str | None = None
    account_id: str | None = None
    assumed_role: AssumedRole | None = None
    skip_tls_verification: bool = True
    update_if_existing: bool = True
    is_dynamic: bool = True

    @classmethod
    def for_cluster(
        cls,
        cluster: DiscoveredCluster,
        identity: ResolvedIdentity,
        role: str,
        worker_pool_id: str | None,
        assumed_role: AssumedRole | None,
    ) -> DiscoveryEvent:
        return cls(
            cluster_name=cluster.name,
            cluster_arn=cluster.arn,
            cluster_url=cluster.endpoint,
            region=cluster.region,
            role=role,
            use_worker_credentials=identity.use_worker_credentials,
            worker_pool_id=worker_pool_id,
            account_id=None if identity.use_worker_credentials else identity.account_id,
            assumed_role=assumed_role,
        )

    def properties(self) -> dict[str, str]:
        props = {
            "name": self.cluster_arn,
            "clusterName": self.cluster_name,
            "clusterUrl": self.cluster_url,
            "skipTlsVerification": format_bool(self.skip_tls_verification),
        }
        if self.worker_pool_id:
            props["octopusDefaultWorkerPoolIdOrName"] = self.worker_pool_id
        if self.account_id:
            props["octopusAccountIdOrName"] = self.account_id
        props["octopusRoles"] = self.role
        props["updateIfExisting"] = format_bool(self.update_if_existing)
        props["isDynamic"] = format_bool(self.is_dynamic)
        props["awsUseWorkerCredentials"] = format_bool(self.use_worker_credentials)
        props["awsAssumeRole"] = format_bool(self.assumed_role is not None)
        if self.assumed_role is not None:
            props["awsAssumeRoleArn"] = self.assumed_role.arn
            if self.assumed_role.session_name:
                props["awsAssumeRoleSession"] = self.assumed_role.session_name
            if self.assumed_role.session_duration_seconds is not None:
                props["awsAssumeRoleSessionDurationSeconds"] = str(self.assumed_role.session_duration_seconds)
        return props

    def to_service_message(self) -> ServiceMessage:
        return ServiceMessage.create(ServiceMessageNames.CREATE_KUBERNETES_TARGET, self.properties())
