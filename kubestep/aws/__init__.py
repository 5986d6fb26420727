"""AWS authentication and EKS cluster discovery.

Exports:
    AwsClient               -- STS and EKS calls through boto3 sessions.
    CredentialResolver      -- Authentication config -> ResolvedIdentity.
    ClusterDiscoveryEmitter -- Probes credentials and announces matching clusters.
"""

from kubestep.aws.client import AwsClient
from kubestep.aws.credentials import CREDENTIALS_WARNING, CredentialResolver
from kubestep.aws.discovery import ClusterDiscoveryEmitter

__all__ = ["CREDENTIALS_WARNING", "AwsClient", "ClusterDiscoveryEmitter", "CredentialResolver"]
