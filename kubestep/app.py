"""Application wiring for KubeStep.

Builds the fixed stage list and runs one deployment through it.
Order: variables -> config (validated up front) -> logging -> event sink
       -> stages -> pipeline
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from kubestep import __version__
from kubestep.aws.client import AwsClient
from kubestep.aws.credentials import CredentialResolver
from kubestep.aws.discovery import ClusterDiscoveryEmitter
from kubestep.config import load_config
from kubestep.models.config import KubeStepConfig
from kubestep.models.discovery import DiscoveryEvent
from kubestep.observability.logging import get_logger
from kubestep.pipeline.base import ExecutionContext, WrapperStage, run_pipeline
from kubestep.pipeline.context import KubernetesContextStage
from kubestep.pipeline.discovery import TargetDiscoveryStage, load_discovery_context
from kubestep.pipeline.script import Script, UserScriptStage
from kubestep.pipeline.status import ResourceStatusReportStage
from kubestep.servicemessages.sink import ConsoleEventSink, EventSink
from kubestep.variables import VariableSet

_log = get_logger("app")


def build_stages(sink: EventSink) -> list[WrapperStage]:
    """Every stage KubeStep knows; selection happens per deployment."""
    return [
        KubernetesContextStage(),
        TargetDiscoveryStage(sink),
        ResourceStatusReportStage(sink),
        UserScriptStage(),
    ]


class KubeStepApp:
    """Runs deployments and discovery requests for one variable set.

    ``environment`` is the snapshot handed to the script and to every
    credential lookup; it defaults to a copy of the process environment.
    """

    def __init__(
        self,
        variables: VariableSet,
        environment: Mapping[str, str] | None = None,
        sink: EventSink | None = None,
        stages: Sequence[WrapperStage] | None = None,
    ) -> None:
        self.variables = variables
        self.environment = dict(os.environ if environment is None else environment)
        self.sink = sink or ConsoleEventSink()
        self.stages = list(stages) if stages is not None else build_stages(self.sink)
        # Fail on malformed variables before anything touches the cluster.
        self.config: KubeStepConfig = load_config(variables)

    async def run(self, script: Script, working_directory: Path) -> int:
        """Run *script* through the pipeline and return its exit code."""
        _log.debug("kubestep starting", version=__version__, script=str(script.path))
        context = ExecutionContext(
            variables=self.variables,
            script=script,
            working_directory=working_directory,
            environment=dict(self.environment),
        )
        result = await run_pipeline(self.stages, context)
        _log.debug("kubestep finished", exit_code=result.exit_code)
        return result.exit_code

    async def discover(self) -> list[DiscoveryEvent]:
        """Handle a discovery request without running any script."""
        discovery = load_discovery_context(self.variables)
        identity = CredentialResolver().resolve(discovery.authentication, self.environment)
        emitter = ClusterDiscoveryEmitter(AwsClient(self.environment), self.sink)
        return await emitter.discover(identity, discovery.scope, discovery.authentication.regions)
