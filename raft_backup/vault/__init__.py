"""
Vault client module.

Builds the hvac client used by the snapshotter and authenticates it with a
static token or the AWS IAM auth method.
"""

from .client import TOKEN_LENGTH, VaultAuthenticator, resolve_aws_credentials

__all__ = ["VaultAuthenticator", "TOKEN_LENGTH", "resolve_aws_credentials"]
