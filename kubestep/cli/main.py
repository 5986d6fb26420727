"""Click commands for KubeStep."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from kubestep import __version__
from kubestep.app import KubeStepApp
from kubestep.errors import KubeStepError
from kubestep.observability.logging import get_logger, setup_logging
from kubestep.pipeline.script import Script, ScriptSyntax
from kubestep.variables import VariableNames, VariableSet

_LOG_LEVELS = click.Choice(["debug", "info", "warning", "error"], case_sensitive=False)


def _load_variables(path: Path, log_level: str | None) -> VariableSet:
    variables = VariableSet.from_json_file(path)
    level = log_level or variables.get(VariableNames.LOG_LEVEL, "info") or "info"
    setup_logging(level.lower())
    return variables


def _fail(exc: KubeStepError) -> None:
    get_logger("cli").error(str(exc), error_type=type(exc).__name__)
    raise SystemExit(1)


@click.group()
@click.version_option(__version__, prog_name="kubestep")
def cli() -> None:
    """Run deployment scripts with Kubernetes context, discovery and status checks."""


@cli.command()
@click.option(
    "--variables",
    "variables_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file of deployment variables.",
)
@click.option(
    "--script",
    "script_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Deployment script to run.",
)
@click.option(
    "--syntax",
    type=click.Choice([s.value for s in ScriptSyntax], case_sensitive=False),
    default=None,
    help="Script syntax; inferred from the file extension when omitted.",
)
@click.option(
    "--working-directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory the script runs in (defaults to the script's directory).",
)
@click.option("--log-level", type=_LOG_LEVELS, default=None)
def run(
    variables_file: Path,
    script_file: Path,
    syntax: str | None,
    working_directory: Path | None,
    log_level: str | None,
) -> None:
    """Run SCRIPT through the wrapper pipeline and exit with its exit code."""
    try:
        variables = _load_variables(variables_file, log_level)
        resolved_syntax = (
            next(s for s in ScriptSyntax if s.value.lower() == syntax.lower())
            if syntax
            else ScriptSyntax.from_path(script_file)
        )
        script = Script(path=script_file.resolve(), syntax=resolved_syntax)
        app = KubeStepApp(variables)
        exit_code = asyncio.run(app.run(script, (working_directory or script_file.parent).resolve()))
    except KubeStepError as exc:
        _fail(exc)
        return
    raise SystemExit(exit_code)


@cli.command()
@click.option(
    "--variables",
    "variables_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file of deployment variables, including the discovery context.",
)
@click.option("--log-level", type=_LOG_LEVELS, default=None)
def discover(variables_file: Path, log_level: str | None) -> None:
    """Announce the EKS clusters matching the target discovery context."""
    try:
        variables = _load_variables(variables_file, log_level)
        asyncio.run(KubeStepApp(variables).discover())
    except KubeStepError as exc:
        _fail(exc)
