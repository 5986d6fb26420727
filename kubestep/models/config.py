"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class AccountType(StrEnum):
    """How the Kubernetes context authenticates against the cluster."""

    NONE = "None"
    AWS = "AmazonWebServicesAccount"
    TOKEN = "Token"
    USERNAME_PASSWORD = "UsernamePassword"


@dataclass
class AssumeRoleConfig:
    """Role assumption requested through deployment variables."""

    arn: str
    session_name: str | None = None
    session_duration_seconds: int | None = None


@dataclass
class AwsConfig:
    """AWS account configuration for EKS clusters."""

    region: str = ""
    account_variable: str = ""
    access_key: str = ""
    secret_key: str = ""
    use_instance_role: bool = False
    assume_role: AssumeRoleConfig | None = None


@dataclass
class KubernetesConfig:
    """Cluster connection configuration."""

    cluster_url: str = ""
    eks_cluster_name: str = ""
    namespace: str = "default"
    skip_tls_verification: bool = False
    kubectl_executable: str = ""
    certificate_authority_pem: str = ""
    account_type: AccountType = AccountType.NONE
    token: str = ""
    username: str = ""
    password: str = ""

    @property
    def has_cluster(self) -> bool:
        return bool(self.cluster_url or self.eks_cluster_name)


@dataclass
class StatusCheckConfig:
    """Resource status check configuration."""

    enabled: bool = False
    deployment_timeout_seconds: int = 180
    stabilization_timeout_seconds: int = 10
    poll_interval_seconds: float = 2.0
    retrieval_timeout_seconds: float = 30.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeStepConfig:
    """Top-level KubeStep configuration."""

    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)
    status_check: StatusCheckConfig = field(default_factory=StatusCheckConfig)
    log: LogConfig = field(default_factory=LogConfig)
