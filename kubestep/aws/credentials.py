"""Resolve an authentication config into a usable AWS identity.

Resolution is a pure function of the config and an explicit environment
snapshot; the process environment is never read or modified. Missing key
material is not an error: it produces a failed ResolvedIdentity, one verbose
line with the reason and exactly one warning.
"""

from __future__ import annotations

from collections.abc import Mapping

from kubestep.models.auth import (
    AccountCredentials,
    AwsAuthenticationConfig,
    AwsCredentialSet,
    ResolvedIdentity,
    WorkerCredentials,
)
from kubestep.observability.logging import get_logger
from kubestep.observability.metrics import credential_resolution_failures_total

_log = get_logger("aws.credentials")

CREDENTIALS_WARNING = "Unable to authorise credentials, see verbose log for details."

ACCESS_KEY_VARIABLE = "AWS_ACCESS_KEY_ID"
SECRET_KEY_VARIABLE = "AWS_SECRET_ACCESS_KEY"
SESSION_TOKEN_VARIABLE = "AWS_SESSION_TOKEN"


def warn_unauthorised(reason: str, credentials_type: str) -> None:
    """Log the single user-facing warning for unusable credentials."""
    credential_resolution_failures_total.labels(credentials_type=credentials_type).inc()
    _log.debug(reason, credentials_type=credentials_type)
    _log.warning(CREDENTIALS_WARNING)


class CredentialResolver:
    """Turns worker or account credentials into an AwsCredentialSet."""

    def resolve(self, config: AwsAuthenticationConfig, environment: Mapping[str, str]) -> ResolvedIdentity:
        credentials = config.credentials
        if isinstance(credentials, WorkerCredentials):
            identity = self._from_worker(environment)
        elif isinstance(credentials, AccountCredentials):
            identity = self._from_account(credentials)
        else:
            raise TypeError(f"Unsupported credentials: {type(credentials).__name__}")

        if not identity.succeeded:
            warn_unauthorised(identity.failure_reason or "credential resolution failed", credentials.type_name)
            return identity

        if config.role is not None:
            return ResolvedIdentity(
                credentials=identity.credentials,
                use_worker_credentials=identity.use_worker_credentials,
                account_id=identity.account_id,
                role=config.role,
            )
        return identity

    def _from_worker(self, environment: Mapping[str, str]) -> ResolvedIdentity:
        access_key = environment.get(ACCESS_KEY_VARIABLE) or ""
        secret_key = environment.get(SECRET_KEY_VARIABLE) or ""
        missing = [name for name, value in ((ACCESS_KEY_VARIABLE, access_key), (SECRET_KEY_VARIABLE, secret_key)) if not value]
        if missing:
            return ResolvedIdentity.failed(
                f"Worker credentials are unavailable: {', '.join(missing)} not set in the environment",
                use_worker_credentials=True,
            )
        return ResolvedIdentity(
            credentials=AwsCredentialSet(
                access_key_id=access_key,
                secret_access_key=secret_key,
                session_token=environment.get(SESSION_TOKEN_VARIABLE) or None,
            ),
            use_worker_credentials=True,
        )

    def _from_account(self, credentials: AccountCredentials) -> ResolvedIdentity:
        missing = [name for name, value in (("access key", credentials.access_key), ("secret key", credentials.secret_key)) if not value]
        if missing:
            return ResolvedIdentity.failed(
                f"Account {credentials.account_id} has no {' or '.join(missing)}",
                use_worker_credentials=False,
            )
        assert credentials.access_key is not None and credentials.secret_key is not None
        return ResolvedIdentity(
            credentials=AwsCredentialSet(access_key_id=credentials.access_key, secret_access_key=credentials.secret_key),
            use_worker_credentials=False,
            account_id=credentials.account_id,
        )
