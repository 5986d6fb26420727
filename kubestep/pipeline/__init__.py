"""Wrapper pipeline around user script execution.

Exports:
    StageKind, WrapperStage, ExecutionContext, ExecutionResult
    select_stages / compose / run_pipeline -- selection and nesting.
    KubernetesContextStage    -- kubeconfig and cluster authentication.
    TargetDiscoveryStage      -- EKS cluster discovery.
    ResourceStatusReportStage -- post-script resource status check.
    UserScriptStage           -- the script itself.
"""

from kubestep.pipeline.base import (
    ExecutionContext,
    ExecutionResult,
    StageKind,
    WrapperStage,
    compose,
    run_pipeline,
    select_stages,
)
from kubestep.pipeline.context import ClusterProbe, KubernetesContextStage
from kubestep.pipeline.discovery import TargetDiscoveryStage
from kubestep.pipeline.script import Script, ScriptExecutor, ScriptSyntax, SubprocessScriptExecutor, UserScriptStage
from kubestep.pipeline.status import ResourceStatusReportStage

__all__ = [
    "ClusterProbe",
    "ExecutionContext",
    "ExecutionResult",
    "KubernetesContextStage",
    "ResourceStatusReportStage",
    "Script",
    "ScriptExecutor",
    "ScriptSyntax",
    "StageKind",
    "SubprocessScriptExecutor",
    "TargetDiscoveryStage",
    "UserScriptStage",
    "WrapperStage",
    "compose",
    "run_pipeline",
    "select_stages",
]
