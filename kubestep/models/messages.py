"""Structured service messages written to the deployment event sink."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass


class ServiceMessageNames:
    """Type tags of the events KubeStep emits."""

    RESOURCE_STATUS = "k8s-status"
    CREATE_KUBERNETES_TARGET = "create-kubernetestarget"
    SET_VARIABLE = "setVariable"


RESOURCE_STATUS_KEYS: tuple[str, ...] = (
    "actionId",
    "stepName",
    "taskId",
    "uuid",
    "kind",
    "name",
    "namespace",
    "status",
    "data",
    "removed",
    "checkCount",
)

DISCOVERY_KEYS: tuple[str, ...] = (
    "name",
    "clusterName",
    "clusterUrl",
    "skipTlsVerification",
    "octopusDefaultWorkerPoolIdOrName",
    "octopusAccountIdOrName",
    "octopusRoles",
    "updateIfExisting",
    "isDynamic",
    "awsUseWorkerCredentials",
    "awsAssumeRole",
    "awsAssumeRoleArn",
    "awsAssumeRoleSession",
    "awsAssumeRoleSessionDurationSeconds",
)

SET_VARIABLE_KEYS: tuple[str, ...] = ("name", "value")

_KEYS_BY_NAME: dict[str, frozenset[str]] = {
    ServiceMessageNames.RESOURCE_STATUS: frozenset(RESOURCE_STATUS_KEYS),
    ServiceMessageNames.CREATE_KUBERNETES_TARGET: frozenset(DISCOVERY_KEYS),
    ServiceMessageNames.SET_VARIABLE: frozenset(SET_VARIABLE_KEYS),
}


def format_bool(value: bool) -> str:
    """Render a flag the way the event consumers parse it."""
    return "True" if value else "False"


@dataclass(frozen=True)
class ServiceMessage:
    """An event with a type tag and an ordered string-to-string property list.

    Known type tags have a closed key set; constructing a message with an
    unknown key for such a tag raises ValueError.
    """

    name: str
    properties: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Service message name must not be empty")
        allowed = _KEYS_BY_NAME.get(self.name)
        seen: set[str] = set()
        for key, value in self.properties:
            if not isinstance(value, str):
                raise ValueError(f"Service message property '{key}' must be a string, got {type(value).__name__}")
            if key in seen:
                raise ValueError(f"Duplicate service message property '{key}'")
            if allowed is not None and key not in allowed:
                raise ValueError(f"Property '{key}' is not valid for service message '{self.name}'")
            seen.add(key)

    @classmethod
    def create(cls, name: str, properties: Mapping[str, str]) -> ServiceMessage:
        return cls(name=name, properties=tuple(properties.items()))

    def get(self, key: str, default: str | None = None) -> str | None:
        for k, v in self.properties:
            if k == key:
                return v
        return default

    def as_dict(self) -> dict[str, str]:
        return dict(self.properties)

    def format(self) -> str:
        """Render as a console line; values are base64 so any text survives."""
        parts = [self.name]
        for key, value in self.properties:
            encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
            parts.append(f"{key}='{encoded}'")
        return f"##octopus[{' '.join(parts)}]"
