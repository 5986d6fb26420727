"""Deployment variable set.

Every value arrives as a string. Booleans use ``True``/``False`` tokens and
integers are decimal strings; parsing is explicit and a malformed value raises
ConfigurationError instead of silently falling back to a default.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path

from kubestep.errors import ConfigurationError


class VariableNames:
    """Wire names of the deployment variables KubeStep reads."""

    ACCOUNT_TYPE = "Octopus.Account.AccountType"
    ACCOUNT_TOKEN = "Octopus.Account.Token"
    ACCOUNT_USERNAME = "Octopus.Account.Username"
    ACCOUNT_PASSWORD = "Octopus.Account.Password"

    CLUSTER_URL = "Octopus.Action.Kubernetes.ClusterUrl"
    EKS_CLUSTER_NAME = "Octopus.Action.Kubernetes.EksClusterName"
    SKIP_TLS_VERIFICATION = "Octopus.Action.Kubernetes.SkipTlsVerification"
    NAMESPACE = "Octopus.Action.Kubernetes.Namespace"
    CONTAINERS_NAMESPACE = "Octopus.Action.KubernetesContainers.Namespace"
    CUSTOM_KUBECTL = "Octopus.Action.Kubernetes.CustomKubectlExecutable"
    CERTIFICATE_AUTHORITY = "Octopus.Action.Kubernetes.CertificateAuthority"

    AWS_REGION = "Octopus.Action.Aws.Region"
    AWS_ACCOUNT_VARIABLE = "Octopus.Action.AwsAccount.Variable"
    AWS_USE_INSTANCE_ROLE = "Octopus.Action.AwsAccount.UseInstanceRole"
    AWS_ASSUME_ROLE = "Octopus.Action.Aws.AssumeRole"
    AWS_ASSUME_ROLE_ARN = "Octopus.Action.Aws.AssumedRoleArn"
    AWS_ASSUME_ROLE_SESSION = "Octopus.Action.Aws.AssumedRoleSession"
    AWS_ASSUME_ROLE_DURATION = "Octopus.Action.Aws.AssumeRoleSessionDurationSeconds"

    RESOURCE_STATUS_CHECK = "Octopus.Action.Kubernetes.ResourceStatusCheck"
    DEPLOYMENT_TIMEOUT = "Octopus.Action.Kubernetes.DeploymentTimeout"
    STABILIZATION_TIMEOUT = "Octopus.Action.Kubernetes.StabilizationTimeout"

    CUSTOM_RESOURCE_YAML = "Octopus.Action.KubernetesContainers.CustomResourceYamlFileName"
    DEPLOYMENT_NAME = "Octopus.Action.KubernetesContainers.DeploymentName"
    SERVICE_NAME = "Octopus.Action.KubernetesContainers.ServiceName"
    INGRESS_NAME = "Octopus.Action.KubernetesContainers.IngressName"
    CONFIG_MAP_NAME = "Octopus.Action.KubernetesContainers.ComputedConfigMapName"
    SECRET_NAME = "Octopus.Action.KubernetesContainers.ComputedSecretName"

    TARGET_DISCOVERY_CONTEXT = "Octopus.TargetDiscovery.Context"

    ACTION_ID = "Octopus.Action.Id"
    STEP_NAME = "Octopus.Step.Name"
    TASK_ID = "Octopus.Task.Id"

    LOG_LEVEL = "KubeStep.LogLevel"

    @staticmethod
    def certificate_pem(certificate: str) -> str:
        return f"{certificate}.CertificatePem"

    @staticmethod
    def aws_access_key(account: str) -> str:
        return f"{account}.AccessKey"

    @staticmethod
    def aws_secret_key(account: str) -> str:
        return f"{account}.SecretKey"


_TRUE_TOKENS = frozenset({"true"})
_FALSE_TOKENS = frozenset({"false"})


class VariableSet(Mapping[str, str]):
    """Case-sensitive, string-keyed view over the deployment variables."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        for name, value in (values or {}).items():
            self.set(name, value)

    @classmethod
    def from_json_file(cls, path: Path) -> VariableSet:
        """Load a flat ``{"name": "value"}`` JSON document."""
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Unable to read variables file '{path}': {exc}") from exc
        if not isinstance(document, dict):
            raise ConfigurationError(f"Variables file '{path}' must contain a JSON object")
        return cls({str(k): "" if v is None else str(v) for k, v in document.items()})

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def set(self, name: str, value: str | None) -> None:
        if value is None:
            self._values.pop(name, None)
        else:
            self._values[name] = value

    def get(self, name: str, default: str | None = None) -> str | None:  # type: ignore[override]
        value = self._values.get(name)
        if value is None or value == "":
            return default
        return value

    def require(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise ConfigurationError(f"The variable '{name}' is required but has no value")
        return value

    def get_flag(self, name: str, default: bool = False) -> bool:
        value = self.get(name)
        if value is None:
            return default
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
        raise ConfigurationError(f"The variable '{name}' must be 'True' or 'False', got {value!r}")

    def get_int(self, name: str, default: int) -> int:
        value = self.get(name)
        if value is None:
            return default
        text = value.strip()
        if not text.isdecimal():
            raise ConfigurationError(f"The variable '{name}' must be a whole number, got {value!r}")
        return int(text)

    def get_list(self, name: str) -> list[str]:
        """Split a multi-value variable on newlines and semicolons."""
        value = self.get(name)
        if value is None:
            return []
        parts = value.replace(";", "\n").splitlines()
        return [part.strip() for part in parts if part.strip()]
