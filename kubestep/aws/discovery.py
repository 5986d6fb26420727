"""EKS cluster discovery.

Given a resolved identity, probe the credentials once (caller identity, or
role assumption when a role is configured), then list and describe the
clusters of every requested region and announce each one whose tags match
the discovery scope.
"""

from __future__ import annotations

from collections.abc import Sequence

from kubestep.aws.client import AwsClient
from kubestep.aws.credentials import warn_unauthorised
from kubestep.errors import AwsApiError
from kubestep.models.auth import AwsCredentialSet, ResolvedIdentity
from kubestep.models.discovery import DiscoveryEvent, TargetDiscoveryScope
from kubestep.observability.logging import get_logger
from kubestep.observability.metrics import discovered_targets_total
from kubestep.servicemessages.sink import EventSink

_log = get_logger("aws.discovery")

DEFAULT_SESSION_NAME = "KubeStepClusterDiscovery"


class ClusterDiscoveryEmitter:
    """Emits one discovery event per matching cluster per region."""

    def __init__(self, aws: AwsClient, sink: EventSink, default_session_name: str = DEFAULT_SESSION_NAME) -> None:
        self._aws = aws
        self._sink = sink
        self._default_session_name = default_session_name

    async def discover(
        self,
        identity: ResolvedIdentity,
        scope: TargetDiscoveryScope,
        regions: Sequence[str],
    ) -> list[DiscoveryEvent]:
        if identity.credentials is None:
            # The resolver has already warned; nothing may be probed.
            return []

        credentials = await self._probe(identity, identity.credentials)
        if credentials is None:
            return []

        if not regions:
            _log.info("No regions were specified for target discovery")
            return []

        events: list[DiscoveryEvent] = []
        for region in regions:
            events.extend(await self._discover_region(identity, credentials, scope, region))
        _log.info(f"Discovered {len(events)} Kubernetes cluster(s)", regions=list(regions))
        return events

    async def _probe(self, identity: ResolvedIdentity, credentials: AwsCredentialSet) -> AwsCredentialSet | None:
        credentials_type = "worker" if identity.use_worker_credentials else "account"
        try:
            if identity.role is None:
                await self._aws.caller_identity(credentials)
                return credentials
            session_name = identity.role.session_name or self._default_session_name
            return await self._aws.assume_role(credentials, identity.role, session_name)
        except AwsApiError as exc:
            warn_unauthorised(f"Credential check failed: {exc}", credentials_type)
            return None

    async def _discover_region(
        self,
        identity: ResolvedIdentity,
        credentials: AwsCredentialSet,
        scope: TargetDiscoveryScope,
        region: str,
    ) -> list[DiscoveryEvent]:
        try:
            names = await self._aws.list_clusters(credentials, region)
        except AwsApiError as exc:
            _log.warning(f"Unable to list EKS clusters in region {region}", error=str(exc))
            return []

        events = []
        for name in names:
            try:
                cluster = await self._aws.describe_cluster(credentials, region, name)
            except AwsApiError as exc:
                _log.warning(f"Unable to describe EKS cluster {name} in region {region}", error=str(exc))
                continue

            match = scope.match(cluster.tags)
            if not match.success or match.role is None:
                _log.debug("cluster_not_matched", cluster=name, region=region, reasons=list(match.failure_reasons))
                continue

            event = DiscoveryEvent.for_cluster(
                cluster,
                identity,
                role=match.role,
                worker_pool_id=scope.worker_pool_id,
                assumed_role=identity.role,
            )
            self._sink.emit(event.to_service_message())
            discovered_targets_total.labels(region=region).inc()
            _log.info(f"Discovered EKS cluster {cluster.name} in region {region}", role=match.role)
            events.append(event)
        return events
