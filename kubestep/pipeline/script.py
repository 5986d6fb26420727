"""The innermost stage: run the user's deployment script."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from kubestep.errors import CommandNotFoundError
from kubestep.observability.logging import get_logger
from kubestep.pipeline.base import Execution, ExecutionContext, ExecutionResult, StageKind, WrapperStage

_log = get_logger("pipeline.script")


class ScriptSyntax(StrEnum):
    BASH = "Bash"
    POWERSHELL = "PowerShell"

    @classmethod
    def from_path(cls, path: Path) -> ScriptSyntax:
        return cls.POWERSHELL if path.suffix.lower() == ".ps1" else cls.BASH


@dataclass(frozen=True)
class Script:
    """A script file and the interpreter syntax it is written in."""

    path: Path
    syntax: ScriptSyntax = ScriptSyntax.BASH


class ScriptExecutor(ABC):
    """Runs a script inside a prepared execution context."""

    @abstractmethod
    async def execute(self, script: Script, context: ExecutionContext) -> ExecutionResult:
        """Run *script* to completion and return its exit code."""


_INTERPRETERS: dict[ScriptSyntax, tuple[str, ...]] = {
    ScriptSyntax.BASH: ("bash",),
    ScriptSyntax.POWERSHELL: ("pwsh", "-NonInteractive", "-NoProfile", "-File"),
}


class SubprocessScriptExecutor(ScriptExecutor):
    """Runs the script with its interpreter; output goes straight to the task log."""

    async def execute(self, script: Script, context: ExecutionContext) -> ExecutionResult:
        command = [*_INTERPRETERS[script.syntax], str(script.path)]
        _log.debug("script_starting", script=str(script.path), syntax=str(script.syntax))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                env=context.environment or None,
                cwd=str(context.working_directory),
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(command) from exc
        exit_code = await process.wait()
        _log.debug("script_finished", script=str(script.path), exit_code=exit_code)
        return ExecutionResult(exit_code=exit_code)


class UserScriptStage(WrapperStage):
    """Always applicable; ignores its continuation because nothing nests inside it."""

    def __init__(self, executor: ScriptExecutor | None = None) -> None:
        self._executor = executor or SubprocessScriptExecutor()

    @property
    def kind(self) -> StageKind:
        return StageKind.USER_SCRIPT

    def applies_to(self, context: ExecutionContext) -> bool:
        return True

    async def wrap(self, context: ExecutionContext, inner: Execution) -> ExecutionResult:
        return await self._executor.execute(context.script, context)
