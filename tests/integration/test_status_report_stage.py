"""Status reporting stage end to end: manifest discovery, polling, events, verdict."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from kubestep.models.config import StatusCheckConfig
from kubestep.models.messages import ServiceMessageNames
from kubestep.pipeline.base import ExecutionContext, ExecutionResult, run_pipeline
from kubestep.pipeline.script import Script, ScriptExecutor, UserScriptStage
from kubestep.pipeline.status import ResourceStatusReportStage
from kubestep.servicemessages import InMemoryEventSink
from kubestep.status.checker import (
    FAILURE_SUMMARY,
    START_BANNER,
    SUCCESS_SUMMARY,
    TIMEOUT_SUMMARY,
    ResourceStatusChecker,
)
from kubestep.status.reporter import ResourceUpdateReporter
from kubestep.status.retriever import ResourceRetriever
from kubestep.status.scrubber import scrub_json
from kubestep.variables import VariableNames as V
from kubestep.variables import VariableSet

pytestmark = pytest.mark.integration

_NAMESPACE = "calamari-testing"
_SUMMARIES = {SUCCESS_SUMMARY, FAILURE_SUMMARY, TIMEOUT_SUMMARY}


class _ScriptResult(ScriptExecutor):
    def __init__(self, exit_code: int = 0) -> None:
        self.exit_code = exit_code
        self.runs = 0

    async def execute(self, script: Script, context: ExecutionContext) -> ExecutionResult:
        self.runs += 1
        return ExecutionResult(self.exit_code)


def _variables(**overrides: str) -> VariableSet:
    values = {
        V.CLUSTER_URL: "https://k8s.example.com",
        V.NAMESPACE: _NAMESPACE,
        V.RESOURCE_STATUS_CHECK: "True",
        V.CUSTOM_RESOURCE_YAML: "deployment.yml",
        V.DEPLOYMENT_TIMEOUT: "60",
        V.STABILIZATION_TIMEOUT: "10",
        V.ACTION_ID: "Actions-7",
        V.STEP_NAME: "Deploy nginx",
        V.TASK_ID: "ServerTasks-42",
    }
    values.update(overrides)
    return VariableSet(values)


def _stages(cluster, fake_clock, sink: InMemoryEventSink, executor: ScriptExecutor) -> list:
    def checker_factory(context: ExecutionContext, config: StatusCheckConfig) -> ResourceStatusChecker:
        variables = context.variables
        reporter = ResourceUpdateReporter(
            sink,
            action_id=variables.get(V.ACTION_ID, "") or "",
            step_name=variables.get(V.STEP_NAME, "") or "",
            task_id=variables.get(V.TASK_ID, "") or "",
        )
        return ResourceStatusChecker(
            ResourceRetriever(cluster),
            reporter,
            poll_interval=config.poll_interval_seconds,
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )

    return [ResourceStatusReportStage(sink, checker_factory), UserScriptStage(executor)]


def _context(variables: VariableSet, workspace: Path) -> ExecutionContext:
    return ExecutionContext(variables=variables, script=Script(workspace / "deploy.sh"), working_directory=workspace)


class TestNginxDeployment:
    async def test_successful_rollout_reports_every_owned_object(self, cluster, fake_clock, nginx_workspace: Path) -> None:
        cluster.deployment("nginx-deployment", _NAMESPACE, replicas=3)
        sink = InMemoryEventSink()

        with capture_logs() as logs:
            result = await run_pipeline(
                _stages(cluster, fake_clock, sink, _ScriptResult()), _context(_variables(), nginx_workspace)
            )

        assert result.exit_code == 0

        events = sink.of_type(ServiceMessageNames.RESOURCE_STATUS)
        assert len(events) == 5
        assert [e.get("kind") for e in events] == ["Deployment", "ReplicaSet", "Pod", "Pod", "Pod"]
        assert all(e.get("status") == "Successful" for e in events)
        assert all(e.get("namespace") == _NAMESPACE for e in events)
        assert {e.get("actionId") for e in events} == {"Actions-7"}
        assert {e.get("taskId") for e in events} == {"ServerTasks-42"}
        assert {e.get("stepName") for e in events} == {"Deploy nginx"}

        lines = [entry["event"] for entry in logs]
        assert lines.count("Deployment/nginx-deployment created") == 1
        banner = lines.index(START_BANNER)
        assert lines[banner + 1] == " - Deployment/nginx-deployment in namespace calamari-testing"
        assert [line for line in lines if line in _SUMMARIES] == [SUCCESS_SUMMARY]

    async def test_live_document_is_published_as_an_output_variable(
        self, cluster, fake_clock, nginx_workspace: Path
    ) -> None:
        cluster.deployment("nginx-deployment", _NAMESPACE, replicas=3)
        sink = InMemoryEventSink()

        await run_pipeline(_stages(cluster, fake_clock, sink, _ScriptResult()), _context(_variables(), nginx_workspace))

        (message,) = sink.of_type(ServiceMessageNames.SET_VARIABLE)
        assert message.get("name") == "CustomResources(nginx-deployment)"
        assert json.loads(scrub_json(message.get("value") or "")) == {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": "nginx-deployment", "namespace": _NAMESPACE, "generation": 1},
            "spec": {"replicas": 3},
            "status": {
                "observedGeneration": 1,
                "replicas": 3,
                "updatedReplicas": 3,
                "readyReplicas": 3,
                "availableReplicas": 3,
            },
        }
        # owned objects are reported but never published
        assert "CustomResources(nginx-deployment-5d59d67564)" not in {
            m.get("name") for m in sink.of_type(ServiceMessageNames.SET_VARIABLE)
        }

    async def test_rollout_that_never_finishes_fails_the_step(self, cluster, fake_clock, nginx_workspace: Path) -> None:
        cluster.deployment("nginx-deployment", _NAMESPACE, replicas=3, ready=1)
        sink = InMemoryEventSink()

        with capture_logs() as logs:
            result = await run_pipeline(
                _stages(cluster, fake_clock, sink, _ScriptResult()),
                _context(_variables(**{V.DEPLOYMENT_TIMEOUT: "6"}), nginx_workspace),
            )

        assert result.exit_code == 1
        assert [entry["event"] for entry in logs if entry["event"] in _SUMMARIES] == [TIMEOUT_SUMMARY]
        # the progress of a stuck rollout is reported once, not on every poll
        assert len([e for e in sink.messages if e.get("kind") == "Deployment"]) == 1
        assert len(sink.of_type(ServiceMessageNames.SET_VARIABLE)) == 1

    async def test_missing_deployment_fails_after_stabilization(self, cluster, fake_clock, nginx_workspace: Path) -> None:
        sink = InMemoryEventSink()

        with capture_logs() as logs:
            result = await run_pipeline(
                _stages(cluster, fake_clock, sink, _ScriptResult()),
                _context(_variables(**{V.STABILIZATION_TIMEOUT: "4"}), nginx_workspace),
            )

        assert result.exit_code == 1
        assert sink.messages == []
        assert [entry["event"] for entry in logs if entry["event"] in _SUMMARIES] == [FAILURE_SUMMARY]


class TestStageGuards:
    async def test_failed_script_skips_the_check(self, cluster, fake_clock, nginx_workspace: Path) -> None:
        sink = InMemoryEventSink()

        result = await run_pipeline(
            _stages(cluster, fake_clock, sink, _ScriptResult(exit_code=2)), _context(_variables(), nginx_workspace)
        )

        assert result.exit_code == 2
        assert cluster.gets == []
        assert sink.messages == []

    async def test_no_resources_leaves_the_result_alone(self, cluster, fake_clock, tmp_path: Path) -> None:
        sink = InMemoryEventSink()

        result = await run_pipeline(
            _stages(cluster, fake_clock, sink, _ScriptResult()),
            _context(_variables(**{V.CUSTOM_RESOURCE_YAML: ""}), tmp_path),
        )

        assert result.exit_code == 0
        assert cluster.gets == []

    @pytest.mark.parametrize(
        "overrides",
        [{V.RESOURCE_STATUS_CHECK: "False"}, {V.CLUSTER_URL: ""}],
        ids=["check-disabled", "no-cluster"],
    )
    async def test_stage_not_selected(self, cluster, fake_clock, nginx_workspace: Path, overrides: dict[str, str]) -> None:
        executor = _ScriptResult()

        result = await run_pipeline(
            _stages(cluster, fake_clock, InMemoryEventSink(), executor),
            _context(_variables(**overrides), nginx_workspace),
        )

        assert result.exit_code == 0
        assert executor.runs == 1
        assert cluster.gets == []
