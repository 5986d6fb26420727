"""Wrapper stage contract and Russian-doll composition.

Stages form a closed set of kinds with a fixed nesting order. Selection is a
pure filter over ``applies_to``: inapplicable stages are skipped, never
reordered. Composition hands each stage a continuation that runs
everything nested inside it, ending with the user script.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from kubestep.observability.logging import get_logger
from kubestep.observability.metrics import stage_duration_seconds
from kubestep.variables import VariableSet

if TYPE_CHECKING:
    from kubestep.pipeline.script import Script

_log = get_logger("pipeline")


class StageKind(StrEnum):
    """Closed set of stage kinds, listed outermost first."""

    CONTEXT_SETUP = "ContextSetup"
    DISCOVERY = "Discovery"
    STATUS_REPORTING = "StatusReporting"
    USER_SCRIPT = "UserScript"

    @property
    def priority(self) -> int:
        return list(StageKind).index(self)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running the (wrapped) script."""

    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass
class ExecutionContext:
    """Everything one deployment's stages share.

    ``environment`` is the script's environment; outer stages may add to it
    (for example ``KUBECONFIG``) before inner stages and the script run.
    """

    variables: VariableSet
    script: Script
    working_directory: Path
    environment: dict[str, str] = field(default_factory=dict)
    kubectl_executable: str | None = None
    cluster_reachable: bool | None = None


Execution = Callable[[ExecutionContext], Awaitable[ExecutionResult]]


class WrapperStage(ABC):
    """A cross-cutting behaviour wrapped around script execution."""

    @property
    @abstractmethod
    def kind(self) -> StageKind:
        """Which slot of the fixed nesting order this stage occupies."""

    @abstractmethod
    def applies_to(self, context: ExecutionContext) -> bool:
        """Whether this stage takes part for *context*. Must not have side effects."""

    @abstractmethod
    async def wrap(self, context: ExecutionContext, inner: Execution) -> ExecutionResult:
        """Run around *inner*, which executes every stage nested inside this one."""


def select_stages(stages: Iterable[WrapperStage], context: ExecutionContext) -> list[WrapperStage]:
    """Applicable stages, outermost first.

    Raises:
        ValueError: two stages share a kind, or there is no applicable
            user script stage.
    """
    candidates = list(stages)
    kinds = [stage.kind for stage in candidates]
    duplicates = sorted({kind for kind in kinds if kinds.count(kind) > 1})
    if duplicates:
        raise ValueError(f"Duplicate wrapper stage kinds: {', '.join(duplicates)}")

    selected = sorted((s for s in candidates if s.applies_to(context)), key=lambda s: s.kind.priority)
    if not selected or selected[-1].kind != StageKind.USER_SCRIPT:
        raise ValueError("No applicable user script stage")
    return selected


def _bind(stage: WrapperStage, inner: Execution) -> Execution:
    async def run(context: ExecutionContext) -> ExecutionResult:
        started = time.monotonic()
        try:
            return await stage.wrap(context, inner)
        finally:
            stage_duration_seconds.labels(stage=str(stage.kind)).observe(time.monotonic() - started)

    return run


async def _no_inner(context: ExecutionContext) -> ExecutionResult:
    raise RuntimeError("The user script stage must not invoke an inner execution")


def compose(stages: Sequence[WrapperStage]) -> Execution:
    """Nest *stages* (outermost first) into a single execution."""
    execution: Execution = _no_inner
    for stage in reversed(stages):
        execution = _bind(stage, execution)
    return execution


async def run_pipeline(stages: Iterable[WrapperStage], context: ExecutionContext) -> ExecutionResult:
    selected = select_stages(stages, context)
    _log.debug("pipeline_selected", stages=[str(stage.kind) for stage in selected])
    result = await compose(selected)(context)
    _log.debug("pipeline_finished", exit_code=result.exit_code)
    return result
