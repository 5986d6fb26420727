"""Thin async wrapper around the kubectl binary.

Every query asks for JSON output. A missing resource is reported as None
(``--ignore-not-found`` yields empty output), which keeps "not found"
distinguishable from a failed command or unparseable output, both of which
raise KubectlError.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from kubestep.errors import CommandError, CommandNotFoundError, CommandTimeoutError, KubectlError
from kubestep.models.resources import ResourceIdentifier
from kubestep.observability.logging import get_logger
from kubestep.process import CommandResult, CommandRunner

_log = get_logger("kubectl")


class Kubectl:
    """Runs kubectl against the cluster selected by the script environment.

    ``environment`` is read at call time, so a caller can point
    ``KUBECONFIG`` at a freshly written kubeconfig after construction.
    """

    def __init__(
        self,
        executable: str = "kubectl",
        runner: CommandRunner | None = None,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self.executable = executable
        self._runner = runner or CommandRunner()
        self._environment = environment

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run ``kubectl <args>``; non-zero exit raises KubectlError."""
        command = [self.executable, *args]
        env = dict(self._environment) if self._environment is not None else None
        try:
            return await self._runner.run(command, env=env, timeout=timeout)
        except (CommandTimeoutError, CommandNotFoundError):
            raise
        except CommandError as exc:
            raise KubectlError(f"kubectl {' '.join(args[:2])} failed: {exc}") from exc

    async def get(self, identifier: ResourceIdentifier, timeout: float | None = None) -> dict[str, Any] | None:
        """Fetch one resource, or None when the cluster reports it absent."""
        args = ["get", identifier.kind, identifier.name, "-o", "json", "--ignore-not-found"]
        if identifier.namespace:
            args += ["-n", identifier.namespace]
        result = await self.run(args, timeout=timeout)
        if not result.stdout.strip():
            return None
        document = _parse_json(result.stdout, str(identifier))
        if not isinstance(document, dict):
            raise KubectlError(f"kubectl returned a non-object document for {identifier}")
        return document

    async def list(self, kind: str, namespace: str = "", timeout: float | None = None) -> list[dict[str, Any]]:
        """List every resource of *kind* in *namespace*."""
        args = ["get", kind, "-o", "json"]
        if namespace:
            args += ["-n", namespace]
        result = await self.run(args, timeout=timeout)
        document = _parse_json(result.stdout, kind)
        items = document.get("items") if isinstance(document, dict) else None
        if not isinstance(items, list):
            raise KubectlError(f"kubectl returned no item list for {kind}")
        return [item for item in items if isinstance(item, dict)]

    async def config(self, *args: str) -> CommandResult:
        """Run ``kubectl config <args>`` against the active kubeconfig."""
        return await self.run(["config", *args])


def _parse_json(output: str, subject: str) -> Any:
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        _log.debug("kubectl_output_unparseable", subject=subject, error=str(exc))
        raise KubectlError(f"kubectl returned malformed JSON for {subject}: {exc}") from exc
