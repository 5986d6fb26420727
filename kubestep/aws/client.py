"""The narrow slice of the AWS API that discovery and EKS contexts need.

A call given an explicit credential set builds its boto3 session from those
keys alone, so credentials found in the caller's environment snapshot can
never leak into a call made for a different identity. A call without one
builds the session from the snapshot: its access keys when present, else
its profile, else the default credential chain (instance roles).

boto3 is synchronous; every call runs in a worker thread so the event loop
keeps polling while AWS answers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import boto3
import botocore.config
import botocore.exceptions

from kubestep.errors import AwsApiError
from kubestep.models.auth import AssumedRole, AwsCredentialSet
from kubestep.models.discovery import DiscoveredCluster
from kubestep.observability.logging import get_logger

_log = get_logger("aws.client")

SessionFactory = Callable[[AwsCredentialSet | None, str | None], Any]


def session_from_environment(
    environment: Mapping[str, str],
    credentials: AwsCredentialSet | None,
    region: str | None,
) -> boto3.session.Session:
    """Build a session for *credentials*, falling back to the environment snapshot."""
    region = region or environment.get("AWS_REGION") or environment.get("AWS_DEFAULT_REGION") or None
    try:
        if credentials is not None:
            return boto3.session.Session(
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
                region_name=region,
            )
        if environment.get("AWS_ACCESS_KEY_ID") and environment.get("AWS_SECRET_ACCESS_KEY"):
            return boto3.session.Session(
                aws_access_key_id=environment["AWS_ACCESS_KEY_ID"],
                aws_secret_access_key=environment["AWS_SECRET_ACCESS_KEY"],
                aws_session_token=environment.get("AWS_SESSION_TOKEN") or None,
                region_name=region,
            )
        if environment.get("AWS_PROFILE"):
            return boto3.session.Session(profile_name=environment["AWS_PROFILE"], region_name=region)
        return boto3.session.Session(region_name=region)
    except botocore.exceptions.BotoCoreError as exc:
        raise AwsApiError(f"Unable to create an AWS session: {exc}") from exc


class AwsClient:
    """STS and EKS calls made through boto3 sessions."""

    def __init__(
        self,
        environment: Mapping[str, str],
        timeout: float = 60.0,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._environment = dict(environment)
        self._config = botocore.config.Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 3, "mode": "standard"},
        )
        self._session_factory = session_factory or (
            lambda credentials, region: session_from_environment(self._environment, credentials, region)
        )

    async def _call(
        self,
        service: str,
        operation: str,
        credentials: AwsCredentialSet | None,
        region: str | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            session = self._session_factory(credentials, region)
            client = session.client(service, config=self._config)
            return getattr(client, operation)(**params)

        try:
            return await asyncio.to_thread(call)
        except botocore.exceptions.ClientError as exc:
            error = exc.response.get("Error", {})
            raise AwsApiError(
                f"{service} {operation} failed: {error.get('Code', 'Unknown')}: {error.get('Message', '')}"
            ) from exc
        except botocore.exceptions.BotoCoreError as exc:
            raise AwsApiError(f"{service} {operation} failed: {exc}") from exc

    async def caller_identity(self, credentials: AwsCredentialSet | None) -> dict[str, Any]:
        document = await self._call("sts", "get_caller_identity", credentials)
        if not document.get("Arn"):
            raise AwsApiError("sts get_caller_identity returned no identity")
        return document

    async def assume_role(
        self, credentials: AwsCredentialSet | None, role: AssumedRole, session_name: str
    ) -> AwsCredentialSet:
        """Exchange *credentials* for temporary credentials of *role*."""
        params: dict[str, Any] = {"RoleArn": role.arn, "RoleSessionName": session_name}
        if role.session_duration_seconds is not None:
            params["DurationSeconds"] = role.session_duration_seconds
        document = await self._call("sts", "assume_role", credentials, **params)
        issued = document.get("Credentials") or {}
        if not issued.get("AccessKeyId") or not issued.get("SecretAccessKey"):
            raise AwsApiError(f"sts assume_role returned no credentials for {role.arn}")
        _log.debug("role_assumed", role_arn=role.arn, session_name=session_name)
        return AwsCredentialSet(
            access_key_id=str(issued["AccessKeyId"]),
            secret_access_key=str(issued["SecretAccessKey"]),
            session_token=str(issued["SessionToken"]) if issued.get("SessionToken") else None,
        )

    async def list_clusters(self, credentials: AwsCredentialSet, region: str) -> list[str]:
        names: list[str] = []
        params: dict[str, Any] = {}
        while True:
            document = await self._call("eks", "list_clusters", credentials, region, **params)
            names.extend(str(name) for name in document.get("clusters") or [])
            if not document.get("nextToken"):
                return names
            params["nextToken"] = document["nextToken"]

    async def describe_cluster(
        self, credentials: AwsCredentialSet | None, region: str, name: str
    ) -> DiscoveredCluster:
        document = await self._call("eks", "describe_cluster", credentials, region, name=name)
        cluster = document.get("cluster")
        if not cluster:
            raise AwsApiError(f"eks describe_cluster returned no cluster for {name}")
        tags = cluster.get("tags") or {}
        return DiscoveredCluster(
            name=str(cluster.get("name") or name),
            arn=str(cluster.get("arn") or ""),
            endpoint=str(cluster.get("endpoint") or ""),
            region=region,
            tags={str(k): str(v) for k, v in tags.items()},
        )
