"""Work out which resources a deployment applied.

Resources come from two places: the YAML manifests named by the
custom-resource variable (glob patterns relative to the working directory,
searched recursively when the pattern has no directory part) and the
resource names a container step records in its variables.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml

from kubestep.errors import ConfigurationError
from kubestep.models.resources import ResourceIdentifier
from kubestep.observability.logging import get_logger
from kubestep.variables import VariableNames as V
from kubestep.variables import VariableSet

_log = get_logger("status.manifests")

_CONTAINER_STEP_RESOURCES: tuple[tuple[str, str], ...] = (
    (V.DEPLOYMENT_NAME, "Deployment"),
    (V.SERVICE_NAME, "Service"),
    (V.INGRESS_NAME, "Ingress"),
    (V.CONFIG_MAP_NAME, "ConfigMap"),
    (V.SECRET_NAME, "Secret"),
)


def _manifest_files(working_directory: Path, pattern: str) -> list[Path]:
    candidate = Path(pattern)
    if candidate.is_absolute():
        return [candidate] if candidate.is_file() else []
    if "/" in pattern or "\\" in pattern:
        matches = working_directory.glob(pattern.replace("\\", "/"))
    else:
        matches = working_directory.rglob(pattern)
    return sorted(path for path in matches if path.is_file())


def _documents(path: Path) -> Iterator[Mapping[str, Any]]:
    try:
        with path.open(encoding="utf-8") as f:
            documents = list(yaml.safe_load_all(f))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read manifest '{path}': {exc}") from exc

    for document in documents:
        if not isinstance(document, Mapping):
            continue
        kind = str(document.get("kind") or "")
        items = document.get("items")
        if kind.endswith("List") and isinstance(items, list):
            yield from (item for item in items if isinstance(item, Mapping))
        else:
            yield document


def identifiers_from_manifest(path: Path, default_namespace: str) -> list[ResourceIdentifier]:
    """Identifiers for every named resource in one multi-document YAML file."""
    identifiers = []
    for document in _documents(path):
        metadata = document.get("metadata")
        if not isinstance(metadata, Mapping):
            continue
        kind = document.get("kind")
        name = metadata.get("name")
        if not kind or not name:
            continue
        identifiers.append(
            ResourceIdentifier(
                kind=str(kind),
                name=str(name),
                namespace=str(metadata.get("namespace") or default_namespace),
            )
        )
    return identifiers


def discover_resources(
    variables: VariableSet,
    working_directory: Path,
    default_namespace: str,
) -> list[ResourceIdentifier]:
    """All resources the deployment applied, in first-seen order without duplicates."""
    found: list[ResourceIdentifier] = []

    for pattern in variables.get_list(V.CUSTOM_RESOURCE_YAML):
        files = _manifest_files(working_directory, pattern)
        if not files:
            _log.warning("manifest_pattern_matched_nothing", pattern=pattern, directory=str(working_directory))
        for path in files:
            found.extend(identifiers_from_manifest(path, default_namespace))

    for variable, kind in _CONTAINER_STEP_RESOURCES:
        name = variables.get(variable)
        if name:
            found.append(ResourceIdentifier(kind=kind, name=name, namespace=default_namespace))

    return list(dict.fromkeys(found))
