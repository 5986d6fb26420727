"""Tests for AwsClient against botocore's Stubber.

Sessions are built by an injected factory that records which credentials and
region each call asked for and hands out stubbed clients, so no request ever
leaves the process.
"""

from __future__ import annotations

import datetime
from typing import Any

import boto3
import pytest
from botocore.stub import Stubber

from kubestep.aws.client import AwsClient, session_from_environment
from kubestep.errors import AwsApiError
from kubestep.models.auth import AssumedRole, AwsCredentialSet

_ACCOUNT = AwsCredentialSet("AKIAACCOUNT", "account-secret")
_SNAPSHOT = {"AWS_ACCESS_KEY_ID": "AKIAWORKER", "AWS_SECRET_ACCESS_KEY": "worker", "AWS_REGION": "eu-west-1"}


class _StubbedSessions:
    def __init__(self) -> None:
        self.calls: list[tuple[AwsCredentialSet | None, str | None]] = []
        self.clients: dict[str, Any] = {}
        self.stubbers: dict[str, Stubber] = {}
        for service in ("sts", "eks"):
            client = boto3.session.Session(
                aws_access_key_id="testing", aws_secret_access_key="testing", region_name="us-east-1"
            ).client(service)
            self.clients[service] = client
            self.stubbers[service] = Stubber(client)

    def __call__(self, credentials: AwsCredentialSet | None, region: str | None) -> _StubbedSessions:
        self.calls.append((credentials, region))
        return self

    def client(self, service: str, config: Any = None) -> Any:
        return self.clients[service]

    def activate(self) -> None:
        for stubber in self.stubbers.values():
            stubber.activate()

    def assert_no_pending_responses(self) -> None:
        for stubber in self.stubbers.values():
            stubber.assert_no_pending_responses()


@pytest.fixture
def sessions() -> _StubbedSessions:
    return _StubbedSessions()


class TestCallerIdentity:
    async def test_returns_identity_for_explicit_credentials(self, sessions: _StubbedSessions) -> None:
        sessions.stubbers["sts"].add_response(
            "get_caller_identity",
            {"UserId": "AIDA", "Account": "123456789012", "Arn": "arn:aws:iam::123456789012:user/deployer"},
            {},
        )
        sessions.activate()
        client = AwsClient(_SNAPSHOT, session_factory=sessions)

        identity = await client.caller_identity(_ACCOUNT)

        assert identity["Arn"] == "arn:aws:iam::123456789012:user/deployer"
        assert sessions.calls == [(_ACCOUNT, None)]
        sessions.assert_no_pending_responses()

    async def test_client_error_becomes_aws_api_error(self, sessions: _StubbedSessions) -> None:
        sessions.stubbers["sts"].add_client_error(
            "get_caller_identity",
            service_error_code="InvalidClientTokenId",
            service_message="The security token included in the request is invalid.",
            http_status_code=403,
        )
        sessions.activate()
        client = AwsClient({}, session_factory=sessions)

        with pytest.raises(AwsApiError, match="InvalidClientTokenId") as caught:
            await client.caller_identity(_ACCOUNT)

        assert caught.value.__cause__ is not None


class TestAssumeRole:
    async def test_exchanges_credentials_for_role_credentials(self, sessions: _StubbedSessions) -> None:
        role = AssumedRole("arn:aws:iam::123456789012:role/discovery", "S", 900)
        sessions.stubbers["sts"].add_response(
            "assume_role",
            {
                "Credentials": {
                    "AccessKeyId": "ASIAROLE",
                    "SecretAccessKey": "role-secret",
                    "SessionToken": "role-token",
                    "Expiration": datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc),
                }
            },
            {"RoleArn": role.arn, "RoleSessionName": "S", "DurationSeconds": 900},
        )
        sessions.activate()
        client = AwsClient({}, session_factory=sessions)

        credentials = await client.assume_role(_ACCOUNT, role, "S")

        assert credentials == AwsCredentialSet("ASIAROLE", "role-secret", "role-token")
        assert sessions.calls == [(_ACCOUNT, None)]
        sessions.assert_no_pending_responses()

    async def test_duration_is_omitted_when_unset(self, sessions: _StubbedSessions) -> None:
        role = AssumedRole("arn:aws:iam::123456789012:role/discovery", None, None)
        sessions.stubbers["sts"].add_response(
            "assume_role",
            {
                "Credentials": {
                    "AccessKeyId": "ASIAROLE",
                    "SecretAccessKey": "role-secret",
                    "SessionToken": "role-token",
                    "Expiration": datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc),
                }
            },
            {"RoleArn": role.arn, "RoleSessionName": "KubeStepClusterDiscovery"},
        )
        sessions.activate()

        await AwsClient({}, session_factory=sessions).assume_role(None, role, "KubeStepClusterDiscovery")

        sessions.assert_no_pending_responses()


class TestClusters:
    async def test_list_follows_next_token(self, sessions: _StubbedSessions) -> None:
        eks = sessions.stubbers["eks"]
        eks.add_response("list_clusters", {"clusters": ["prod"], "nextToken": "page-2"}, {})
        eks.add_response("list_clusters", {"clusters": ["staging"]}, {"nextToken": "page-2"})
        sessions.activate()
        client = AwsClient({}, session_factory=sessions)

        names = await client.list_clusters(_ACCOUNT, "us-east-1")

        assert names == ["prod", "staging"]
        assert sessions.calls == [(_ACCOUNT, "us-east-1"), (_ACCOUNT, "us-east-1")]

    async def test_describe_cluster(self, sessions: _StubbedSessions) -> None:
        sessions.stubbers["eks"].add_response(
            "describe_cluster",
            {
                "cluster": {
                    "name": "prod",
                    "arn": "arn:aws:eks:us-east-1:123456789012:cluster/prod",
                    "endpoint": "https://prod.eks.amazonaws.com",
                    "tags": {"octopus-environment": "Production"},
                }
            },
            {"name": "prod"},
        )
        sessions.activate()

        cluster = await AwsClient({}, session_factory=sessions).describe_cluster(_ACCOUNT, "us-east-1", "prod")

        assert cluster.arn == "arn:aws:eks:us-east-1:123456789012:cluster/prod"
        assert cluster.endpoint == "https://prod.eks.amazonaws.com"
        assert cluster.region == "us-east-1"
        assert cluster.tags == {"octopus-environment": "Production"}

    async def test_missing_cluster_is_an_error(self, sessions: _StubbedSessions) -> None:
        sessions.stubbers["eks"].add_client_error(
            "describe_cluster", service_error_code="ResourceNotFoundException", http_status_code=404
        )
        sessions.activate()

        with pytest.raises(AwsApiError, match="ResourceNotFoundException"):
            await AwsClient({}, session_factory=sessions).describe_cluster(_ACCOUNT, "us-east-1", "gone")


class TestSessionFromEnvironment:
    def test_explicit_credentials_replace_the_snapshot(self) -> None:
        session = session_from_environment(_SNAPSHOT, _ACCOUNT, "us-east-1")

        assert session.get_credentials().access_key == "AKIAACCOUNT"
        assert session.region_name == "us-east-1"

    def test_snapshot_keys_are_used_without_explicit_credentials(self) -> None:
        session = session_from_environment(_SNAPSHOT, None, None)

        assert session.get_credentials().access_key == "AKIAWORKER"
        assert session.region_name == "eu-west-1"

    def test_session_token_is_carried(self) -> None:
        session = session_from_environment({}, AwsCredentialSet("ASIA", "secret", "token"), "us-east-1")

        assert session.get_credentials().token == "token"
