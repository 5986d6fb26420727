"""Kubernetes execution context setup.

Writes an isolated kubeconfig for the target cluster, points the script's
``KUBECONFIG`` at it and checks that the cluster answers. An unreachable
cluster is recorded and warned about but never stops the script: the script
itself decides whether that is fatal.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

import httpx

from kubestep.aws.client import AwsClient
from kubestep.config import load_aws_config, load_kubernetes_config
from kubestep.errors import AwsApiError, CommandError, ConfigurationError, KubectlError, KubernetesContextError
from kubestep.models.auth import AssumedRole, AwsCredentialSet
from kubestep.models.config import AccountType, AwsConfig, KubernetesConfig
from kubestep.observability.logging import get_logger
from kubestep.pipeline.base import Execution, ExecutionContext, ExecutionResult, StageKind, WrapperStage
from kubestep.status.kubectl import Kubectl
from kubestep.variables import VariableNames as V

_log = get_logger("pipeline.context")

CLUSTER_NAME = "kubestep-cluster"
USER_NAME = "kubestep-user"
CONTEXT_NAME = "kubestep-context"
EKS_SESSION_NAME = "KubeStepEksContext"
EXEC_API_VERSION = "client.authentication.k8s.io/v1beta1"

_PROBE_TIMEOUT_SECONDS = 10.0


class ClusterProbe:
    """Answers whether the cluster API server responds at all.

    Any HTTP response counts as reachable, including 401 and 403: the
    question is network reachability, not authorisation.
    """

    def __init__(self, timeout: float = _PROBE_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    async def is_reachable(self, url: str, verify: bool | str = True) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, verify=verify) as client:
                await client.get(f"{url.rstrip('/')}/version")
            return True
        except httpx.TimeoutException:
            _log.debug("cluster_probe_timeout", url=url)
            return False
        except httpx.HTTPError as exc:
            _log.debug("cluster_probe_failed", url=url, error=str(exc))
            return False


class KubernetesContextStage(WrapperStage):
    """Outermost stage: authenticate kubectl against the target cluster."""

    def __init__(
        self,
        probe: ClusterProbe | None = None,
        which: Callable[..., str | None] = shutil.which,
        aws_client_factory: Callable[[dict[str, str]], AwsClient] = AwsClient,
    ) -> None:
        self._probe = probe or ClusterProbe()
        self._which = which
        self._aws_client_factory = aws_client_factory

    @property
    def kind(self) -> StageKind:
        return StageKind.CONTEXT_SETUP

    def applies_to(self, context: ExecutionContext) -> bool:
        variables = context.variables
        return bool(variables.get(V.CLUSTER_URL) or variables.get(V.EKS_CLUSTER_NAME))

    async def wrap(self, context: ExecutionContext, inner: Execution) -> ExecutionResult:
        kubernetes = load_kubernetes_config(context.variables)
        aws = load_aws_config(context.variables)
        kubectl_path = self._resolve_kubectl(kubernetes, context)
        context.kubectl_executable = kubectl_path

        previous_kubeconfig = context.environment.get("KUBECONFIG")
        with tempfile.TemporaryDirectory(prefix="kubestep-") as work_dir:
            context.environment["KUBECONFIG"] = str(Path(work_dir) / "kubeconfig")
            try:
                kubectl = Kubectl(kubectl_path, environment=context.environment)
                cluster_url = await self._configure(kubectl, kubernetes, aws, context, Path(work_dir))

                verify: bool | str = True
                if kubernetes.skip_tls_verification:
                    verify = False
                elif kubernetes.certificate_authority_pem:
                    verify = str(Path(work_dir) / "ca.pem")
                context.cluster_reachable = await self._probe.is_reachable(cluster_url, verify=verify)

                if context.cluster_reachable:
                    await self._ensure_namespace(kubectl, kubernetes.namespace)
                else:
                    _log.warning(f"Unable to reach the Kubernetes cluster at {cluster_url}; the script will still run")

                return await inner(context)
            finally:
                if previous_kubeconfig is None:
                    context.environment.pop("KUBECONFIG", None)
                else:
                    context.environment["KUBECONFIG"] = previous_kubeconfig

    def _resolve_kubectl(self, kubernetes: KubernetesConfig, context: ExecutionContext) -> str:
        search_path = context.environment.get("PATH", os.environ.get("PATH"))
        if kubernetes.kubectl_executable:
            custom = kubernetes.kubectl_executable
            if Path(custom).is_file():
                return custom
            resolved = self._which(custom, path=search_path)
            if resolved is None:
                raise ConfigurationError(f"The custom kubectl executable '{custom}' could not be found")
            return resolved
        resolved = self._which("kubectl", path=search_path)
        if resolved is None:
            raise ConfigurationError(
                f"Could not find kubectl. Add it to the PATH or set the '{V.CUSTOM_KUBECTL}' variable"
            )
        return resolved

    async def _configure(
        self,
        kubectl: Kubectl,
        kubernetes: KubernetesConfig,
        aws: AwsConfig,
        context: ExecutionContext,
        work_dir: Path,
    ) -> str:
        """Write cluster, credentials and context entries; return the server URL."""
        cluster_url = kubernetes.cluster_url
        if kubernetes.account_type == AccountType.AWS:
            cluster_url = await self._configure_aws(kubernetes, aws, context)
        elif not cluster_url:
            raise ConfigurationError(f"The variable '{V.CLUSTER_URL}' is required but has no value")

        cluster_args = ["set-cluster", CLUSTER_NAME, f"--server={cluster_url}"]
        if kubernetes.skip_tls_verification:
            cluster_args.append("--insecure-skip-tls-verify=true")
        elif kubernetes.certificate_authority_pem:
            ca_path = work_dir / "ca.pem"
            ca_path.write_text(kubernetes.certificate_authority_pem, encoding="utf-8")
            cluster_args += [f"--certificate-authority={ca_path}", "--embed-certs=true"]

        try:
            await kubectl.config(*cluster_args)
            if kubernetes.account_type == AccountType.TOKEN:
                if not kubernetes.token:
                    raise ConfigurationError(f"The variable '{V.ACCOUNT_TOKEN}' is required but has no value")
                await kubectl.config("set-credentials", USER_NAME, f"--token={kubernetes.token}")
            elif kubernetes.account_type == AccountType.USERNAME_PASSWORD:
                if not kubernetes.username:
                    raise ConfigurationError(f"The variable '{V.ACCOUNT_USERNAME}' is required but has no value")
                await kubectl.config(
                    "set-credentials",
                    USER_NAME,
                    f"--username={kubernetes.username}",
                    f"--password={kubernetes.password}",
                )
            elif kubernetes.account_type == AccountType.AWS:
                await kubectl.config(*self._eks_credentials_args(kubernetes.eks_cluster_name, aws.region))
            else:
                await kubectl.config("set-credentials", USER_NAME)

            await kubectl.config(
                "set-context",
                CONTEXT_NAME,
                f"--cluster={CLUSTER_NAME}",
                f"--user={USER_NAME}",
                f"--namespace={kubernetes.namespace}",
            )
            await kubectl.config("use-context", CONTEXT_NAME)
        except KubectlError as exc:
            raise KubernetesContextError(f"Unable to configure the Kubernetes context: {exc}") from exc

        _log.info(
            "Kubernetes context configured",
            cluster_url=cluster_url,
            namespace=kubernetes.namespace,
            account_type=str(kubernetes.account_type),
        )
        return cluster_url

    async def _configure_aws(
        self,
        kubernetes: KubernetesConfig,
        aws: AwsConfig,
        context: ExecutionContext,
    ) -> str:
        """Put usable AWS credentials into the script environment for the exec plugin."""
        if not kubernetes.eks_cluster_name:
            raise ConfigurationError(f"The variable '{V.EKS_CLUSTER_NAME}' is required but has no value")
        if not aws.region:
            raise ConfigurationError(f"The variable '{V.AWS_REGION}' is required but has no value")

        credentials: AwsCredentialSet | None = None
        if not aws.use_instance_role and aws.account_variable:
            if not aws.access_key or not aws.secret_key:
                raise ConfigurationError(f"The AWS account '{aws.account_variable}' has no access key or secret key")
            credentials = AwsCredentialSet(access_key_id=aws.access_key, secret_access_key=aws.secret_key)

        client = self._aws_client_factory(context.environment)
        try:
            if aws.assume_role is not None:
                role = AssumedRole(
                    arn=aws.assume_role.arn,
                    session_name=aws.assume_role.session_name,
                    session_duration_seconds=aws.assume_role.session_duration_seconds,
                )
                credentials = await client.assume_role(credentials, role, role.session_name or EKS_SESSION_NAME)
            cluster_url = kubernetes.cluster_url
            if not cluster_url:
                cluster = await client.describe_cluster(credentials, aws.region, kubernetes.eks_cluster_name)
                cluster_url = cluster.endpoint
        except AwsApiError as exc:
            raise KubernetesContextError(f"Unable to authenticate with AWS: {exc}") from exc

        if credentials is not None:
            context.environment.pop("AWS_SESSION_TOKEN", None)
            context.environment.update(credentials.as_environment())
        context.environment["AWS_REGION"] = aws.region
        context.environment["AWS_DEFAULT_REGION"] = aws.region
        if not cluster_url:
            raise KubernetesContextError(f"EKS cluster '{kubernetes.eks_cluster_name}' has no endpoint")
        return cluster_url

    @staticmethod
    def _eks_credentials_args(cluster_name: str, region: str) -> list[str]:
        return [
            "set-credentials",
            USER_NAME,
            f"--exec-api-version={EXEC_API_VERSION}",
            "--exec-command=aws",
            "--exec-arg=eks",
            "--exec-arg=get-token",
            "--exec-arg=--cluster-name",
            f"--exec-arg={cluster_name}",
            "--exec-arg=--region",
            f"--exec-arg={region}",
        ]

    async def _ensure_namespace(self, kubectl: Kubectl, namespace: str) -> None:
        if not namespace or namespace == "default":
            return
        try:
            existing = await kubectl.run(["get", "namespace", namespace, "--ignore-not-found", "-o", "name"])
            if not existing.stdout.strip():
                await kubectl.run(["create", "namespace", namespace])
                _log.info(f"Created namespace {namespace}")
        except (KubectlError, CommandError) as exc:
            _log.warning(f"Unable to ensure namespace {namespace} exists", error=str(exc))
