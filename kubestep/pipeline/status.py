"""Track the resources a successful script applied until they stabilize."""

from __future__ import annotations

from collections.abc import Callable

from kubestep.config import load_kubernetes_config, load_status_check_config
from kubestep.models.config import StatusCheckConfig
from kubestep.observability.logging import get_logger
from kubestep.pipeline.base import Execution, ExecutionContext, ExecutionResult, StageKind, WrapperStage
from kubestep.servicemessages.sink import EventSink
from kubestep.status.checker import ResourceStatusChecker
from kubestep.status.kubectl import Kubectl
from kubestep.status.manifests import discover_resources
from kubestep.status.reporter import ResourceUpdateReporter
from kubestep.status.retriever import ResourceRetriever
from kubestep.variables import VariableNames as V

_log = get_logger("pipeline.status")

CheckerFactory = Callable[[ExecutionContext, StatusCheckConfig], ResourceStatusChecker]


class ResourceStatusReportStage(WrapperStage):
    """Runs the status check after the script exits cleanly.

    A failed script skips the check. A check that does not end Successful
    turns an otherwise clean run into exit code 1.
    """

    def __init__(self, sink: EventSink, checker_factory: CheckerFactory | None = None) -> None:
        self._sink = sink
        self._checker_factory = checker_factory or self._default_checker

    @property
    def kind(self) -> StageKind:
        return StageKind.STATUS_REPORTING

    def applies_to(self, context: ExecutionContext) -> bool:
        variables = context.variables
        has_cluster = bool(variables.get(V.CLUSTER_URL) or variables.get(V.EKS_CLUSTER_NAME))
        return has_cluster and variables.get_flag(V.RESOURCE_STATUS_CHECK, False)

    async def wrap(self, context: ExecutionContext, inner: Execution) -> ExecutionResult:
        result = await inner(context)
        if not result.succeeded:
            _log.info("Skipping the resource status check because the script failed", exit_code=result.exit_code)
            return result

        config = load_status_check_config(context.variables)
        namespace = load_kubernetes_config(context.variables).namespace
        identifiers = discover_resources(context.variables, context.working_directory, namespace)
        if not identifiers:
            _log.info("No resources were found to check the status of")
            return result

        checker = self._checker_factory(context, config)
        verdict = await checker.check(
            identifiers,
            deployment_timeout=config.deployment_timeout_seconds,
            stabilization_timeout=config.stabilization_timeout_seconds,
        )
        return result if verdict.succeeded else ExecutionResult(exit_code=1)

    def _default_checker(self, context: ExecutionContext, config: StatusCheckConfig) -> ResourceStatusChecker:
        variables = context.variables
        kubectl = Kubectl(context.kubectl_executable or "kubectl", environment=context.environment)
        reporter = ResourceUpdateReporter(
            self._sink,
            action_id=variables.get(V.ACTION_ID, "") or "",
            step_name=variables.get(V.STEP_NAME, "") or "",
            task_id=variables.get(V.TASK_ID, "") or "",
        )
        return ResourceStatusChecker(
            ResourceRetriever(kubectl),
            reporter,
            poll_interval=config.poll_interval_seconds,
            retrieval_timeout=config.retrieval_timeout_seconds,
        )
