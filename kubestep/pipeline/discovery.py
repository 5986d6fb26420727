"""Announce EKS clusters matching a target discovery request."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping

from kubestep.aws.client import AwsClient
from kubestep.aws.credentials import CredentialResolver
from kubestep.aws.discovery import ClusterDiscoveryEmitter
from kubestep.errors import ConfigurationError
from kubestep.models.discovery import TargetDiscoveryContext, parse_discovery_context
from kubestep.pipeline.base import Execution, ExecutionContext, ExecutionResult, StageKind, WrapperStage
from kubestep.servicemessages.sink import EventSink
from kubestep.variables import VariableNames as V
from kubestep.variables import VariableSet

EmitterFactory = Callable[[Mapping[str, str]], ClusterDiscoveryEmitter]


def load_discovery_context(variables: VariableSet) -> TargetDiscoveryContext:
    """Parse the discovery request carried by the deployment variables."""
    raw = variables.require(V.TARGET_DISCOVERY_CONTEXT)
    try:
        return parse_discovery_context(json.loads(raw))
    except ValueError as exc:
        raise ConfigurationError(f"The target discovery context is malformed: {exc}") from exc


class TargetDiscoveryStage(WrapperStage):
    """Runs discovery before the inner execution; never alters its result."""

    def __init__(
        self,
        sink: EventSink,
        resolver: CredentialResolver | None = None,
        emitter_factory: EmitterFactory | None = None,
    ) -> None:
        self._sink = sink
        self._resolver = resolver or CredentialResolver()
        self._emitter_factory = emitter_factory or self._default_emitter

    @property
    def kind(self) -> StageKind:
        return StageKind.DISCOVERY

    def applies_to(self, context: ExecutionContext) -> bool:
        return context.variables.get(V.TARGET_DISCOVERY_CONTEXT) is not None

    async def wrap(self, context: ExecutionContext, inner: Execution) -> ExecutionResult:
        discovery = load_discovery_context(context.variables)
        identity = self._resolver.resolve(discovery.authentication, context.environment)
        emitter = self._emitter_factory(context.environment)
        await emitter.discover(identity, discovery.scope, discovery.authentication.regions)
        return await inner(context)

    def _default_emitter(self, environment: Mapping[str, str]) -> ClusterDiscoveryEmitter:
        return ClusterDiscoveryEmitter(AwsClient(environment), self._sink)
