"""Async subprocess execution shared by the kubectl wrapper and the script executor."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from kubestep.errors import CommandError, CommandNotFoundError, CommandTimeoutError
from kubestep.observability.logging import get_logger

_log = get_logger("process")

_DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a finished command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs external commands with an optional base environment.

    ``environment`` replaces the inherited process environment when given;
    per-call ``env`` values are layered on top of it.
    """

    def __init__(
        self,
        environment: Mapping[str, str] | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._environment = dict(environment) if environment is not None else None
        self._timeout = timeout

    async def run(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
        check: bool = True,
    ) -> CommandResult:
        """Run *command* to completion.

        Raises:
            CommandNotFoundError: the executable does not exist.
            CommandTimeoutError: the command outlived *timeout*; it is killed.
            CommandError: the command exited non-zero and *check* is set.
        """
        budget = self._timeout if timeout is None else timeout
        process_env = dict(self._environment) if self._environment is not None else dict(os.environ)
        if env:
            process_env.update(env)

        _log.debug("command_starting", executable=command[0] if command else "", args=len(command) - 1)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=process_env,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(command) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=budget)
        except TimeoutError:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(command, budget) from None
        except asyncio.CancelledError:
            process.kill()
            await asyncio.shield(process.wait())
            raise

        result = CommandResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if check and not result.succeeded:
            raise CommandError.from_exit(command, result.exit_code, result.stderr)
        return result
