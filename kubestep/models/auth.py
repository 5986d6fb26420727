"""AWS authentication configuration and resolved identities.

``AwsAuthenticationConfig`` is a tagged union over worker-inherited and
account-supplied credentials, optionally overlaid with role assumption.
Structurally malformed payloads are rejected when the config is built;
missing or empty key values are left for the credential resolver, which
treats them as "no usable credentials" rather than as an error.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

MIN_SESSION_DURATION_SECONDS = 900
MAX_SESSION_DURATION_SECONDS = 43200


@dataclass(frozen=True)
class WorkerCredentials:
    """Credentials inherited from the worker's execution environment."""

    type_name = "worker"


@dataclass(frozen=True)
class AccountCredentials:
    """Credentials supplied explicitly by an AWS account."""

    account_id: str
    access_key: str | None = field(default=None, repr=False)
    secret_key: str | None = field(default=None, repr=False)

    type_name = "account"

    def __post_init__(self) -> None:
        if not self.account_id:
            raise ValueError("Account credentials require an account id")


AwsCredentials = WorkerCredentials | AccountCredentials


@dataclass(frozen=True)
class AssumedRole:
    """Role to assume on top of the base credentials."""

    arn: str
    session_name: str | None = None
    session_duration_seconds: int | None = None

    def __post_init__(self) -> None:
        if not self.arn:
            raise ValueError("An assumed role requires an arn")
        duration = self.session_duration_seconds
        if duration is not None and not MIN_SESSION_DURATION_SECONDS <= duration <= MAX_SESSION_DURATION_SECONDS:
            raise ValueError(
                f"Session duration must be between {MIN_SESSION_DURATION_SECONDS} and "
                f"{MAX_SESSION_DURATION_SECONDS} seconds, got {duration}"
            )


@dataclass(frozen=True)
class AwsAuthenticationConfig:
    """Immutable authentication input for discovery."""

    credentials: AwsCredentials
    role: AssumedRole | None = None
    regions: tuple[str, ...] = ()


@dataclass(frozen=True)
class AwsCredentialSet:
    """A usable key pair, optionally with a session token. Secrets never appear in repr."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)

    def as_environment(self) -> dict[str, str]:
        env = {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
        }
        if self.session_token:
            env["AWS_SESSION_TOKEN"] = self.session_token
        return env


@dataclass(frozen=True)
class ResolvedIdentity:
    """Outcome of credential resolution.

    ``credentials`` is None when resolution failed; ``failure_reason`` then
    says why, for the verbose log only.
    """

    credentials: AwsCredentialSet | None
    use_worker_credentials: bool
    account_id: str | None = None
    role: AssumedRole | None = None
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.credentials is not None

    @classmethod
    def failed(cls, reason: str, use_worker_credentials: bool) -> ResolvedIdentity:
        return cls(credentials=None, use_worker_credentials=use_worker_credentials, failure_reason=reason)


# ---------------------------------------------------------------------------
# Parsing of the discovery context's authentication payload
# ---------------------------------------------------------------------------


def _field(document: Mapping[str, Any], name: str) -> Any:
    """Case-insensitive lookup; producers emit both camelCase and PascalCase."""
    if name in document:
        return document[name]
    lowered = name.lower()
    for key, value in document.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _parse_credentials(document: Any) -> AwsCredentials:
    if not isinstance(document, Mapping):
        raise ValueError("Authentication credentials must be an object")
    kind = str(_field(document, "type") or "").lower()
    if kind == WorkerCredentials.type_name:
        return WorkerCredentials()
    if kind == AccountCredentials.type_name:
        account = _field(document, "account")
        if not isinstance(account, Mapping):
            raise ValueError("Account credentials require an 'account' object")
        return AccountCredentials(
            account_id=_optional_str(_field(document, "accountId")) or "",
            access_key=_optional_str(_field(account, "accessKey")),
            secret_key=_optional_str(_field(account, "secretKey")),
        )
    raise ValueError(f"Unsupported AWS credentials type: {kind or '<missing>'}")


def _parse_role(document: Any) -> AssumedRole | None:
    if document is None:
        return None
    if not isinstance(document, Mapping):
        raise ValueError("Authentication role must be an object")
    kind = str(_field(document, "type") or "")
    if kind.lower() == "noassumedrole":
        return None
    if kind.lower() != "assumerole":
        raise ValueError(f"Unsupported AWS role type: {kind or '<missing>'}")
    duration = _field(document, "sessionDuration")
    if duration is not None and not isinstance(duration, int):
        text = str(duration).strip()
        if not text.isdecimal():
            raise ValueError(f"Session duration must be a whole number of seconds, got {duration!r}")
        duration = int(text)
    return AssumedRole(
        arn=_optional_str(_field(document, "arn")) or "",
        session_name=_optional_str(_field(document, "sessionName")),
        session_duration_seconds=duration,
    )


def _parse_regions(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValueError("Authentication regions must be a list")
    return tuple(str(region) for region in value if region)


def parse_authentication(document: Mapping[str, Any]) -> AwsAuthenticationConfig:
    """Build an AwsAuthenticationConfig from its JSON representation.

    Raises:
        ValueError: if the payload is structurally malformed.
    """
    kind = str(_field(document, "type") or "")
    if kind.lower() != "aws":
        raise ValueError(f"Unsupported authentication type: {kind or '<missing>'}")
    return AwsAuthenticationConfig(
        credentials=_parse_credentials(_field(document, "credentials")),
        role=_parse_role(_field(document, "role")),
        regions=_parse_regions(_field(document, "regions")),
    )
