"""Configuration loading from deployment variables."""

from __future__ import annotations

from kubestep.errors import ConfigurationError
from kubestep.models.config import (
    AccountType,
    AssumeRoleConfig,
    AwsConfig,
    KubernetesConfig,
    KubeStepConfig,
    LogConfig,
    StatusCheckConfig,
)
from kubestep.variables import VariableNames as V
from kubestep.variables import VariableSet

_MIN_SESSION_DURATION = 900
_MAX_SESSION_DURATION = 43200


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_account_type(value: str | None) -> AccountType:
    if value is None:
        return AccountType.NONE
    try:
        return AccountType(value)
    except ValueError:
        raise ConfigurationError(f"Account type '{value}' is not supported for Kubernetes deployments") from None


def _positive(name: str, value: int) -> int:
    if value <= 0:
        raise ConfigurationError(f"The variable '{name}' must be greater than zero, got {value}")
    return value


def _session_duration(variables: VariableSet) -> int | None:
    if variables.get(V.AWS_ASSUME_ROLE_DURATION) is None:
        return None
    duration = variables.get_int(V.AWS_ASSUME_ROLE_DURATION, 0)
    if not _MIN_SESSION_DURATION <= duration <= _MAX_SESSION_DURATION:
        raise ConfigurationError(
            f"Assumed role session duration must be between {_MIN_SESSION_DURATION} and "
            f"{_MAX_SESSION_DURATION} seconds, got {duration}"
        )
    return duration


def load_kubernetes_config(variables: VariableSet) -> KubernetesConfig:
    certificate = variables.get(V.CERTIFICATE_AUTHORITY)
    return KubernetesConfig(
        cluster_url=variables.get(V.CLUSTER_URL, "") or "",
        eks_cluster_name=variables.get(V.EKS_CLUSTER_NAME, "") or "",
        namespace=(variables.get(V.CONTAINERS_NAMESPACE) or variables.get(V.NAMESPACE) or "default"),
        skip_tls_verification=variables.get_flag(V.SKIP_TLS_VERIFICATION, False),
        kubectl_executable=variables.get(V.CUSTOM_KUBECTL, "") or "",
        certificate_authority_pem=(variables.get(V.certificate_pem(certificate), "") or "") if certificate else "",
        account_type=_validate_account_type(variables.get(V.ACCOUNT_TYPE)),
        token=variables.get(V.ACCOUNT_TOKEN, "") or "",
        username=variables.get(V.ACCOUNT_USERNAME, "") or "",
        password=variables.get(V.ACCOUNT_PASSWORD, "") or "",
    )


def load_aws_config(variables: VariableSet) -> AwsConfig:
    account = variables.get(V.AWS_ACCOUNT_VARIABLE, "") or ""
    assume_role = None
    if variables.get_flag(V.AWS_ASSUME_ROLE, False):
        assume_role = AssumeRoleConfig(
            arn=variables.require(V.AWS_ASSUME_ROLE_ARN),
            session_name=variables.get(V.AWS_ASSUME_ROLE_SESSION),
            session_duration_seconds=_session_duration(variables),
        )
    return AwsConfig(
        region=variables.get(V.AWS_REGION, "") or "",
        account_variable=account,
        access_key=(variables.get(V.aws_access_key(account), "") or "") if account else "",
        secret_key=(variables.get(V.aws_secret_key(account), "") or "") if account else "",
        use_instance_role=variables.get_flag(V.AWS_USE_INSTANCE_ROLE, False),
        assume_role=assume_role,
    )


def load_status_check_config(variables: VariableSet) -> StatusCheckConfig:
    return StatusCheckConfig(
        enabled=variables.get_flag(V.RESOURCE_STATUS_CHECK, False),
        deployment_timeout_seconds=_positive(
            V.DEPLOYMENT_TIMEOUT, variables.get_int(V.DEPLOYMENT_TIMEOUT, 180)
        ),
        stabilization_timeout_seconds=variables.get_int(V.STABILIZATION_TIMEOUT, 10),
    )


def load_config(variables: VariableSet) -> KubeStepConfig:
    """Build the typed configuration from deployment variables."""
    return KubeStepConfig(
        kubernetes=load_kubernetes_config(variables),
        aws=load_aws_config(variables),
        status_check=load_status_check_config(variables),
        log=LogConfig(
            level=_validate_log_level(variables.get(V.LOG_LEVEL, "info") or "info"),
        ),
    )
