"""
Configuration management for the Vault Raft backup tool.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - Configuration is read once, at the entry point, and passed by reference
    - Pipeline stages never read the environment themselves
    - All records are immutable after construction
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep env var names aligned with the ones the Vault CLI and AWS SDKs read
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Token value that switches authentication to the AWS IAM auth method
AWS_IAM_SENTINEL = "aws-iam"

DEFAULT_VAULT_ADDR = "https://127.0.0.1:8200"

_TRUE_LITERALS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_LITERALS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(name: str, value: str) -> bool:
    """Parse a boolean literal the way the Vault CLI parses its flags.

    Args:
        name: Environment variable name (for the error message)
        value: Raw value

    Returns:
        Parsed boolean

    Raises:
        ConfigurationError: If value is not a recognised literal
    """
    if value in _TRUE_LITERALS:
        return True
    if value in _FALSE_LITERALS:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {value!r}", variable=name)


@dataclass(frozen=True)
class ClusterConfig:
    """Vault cluster connection and authentication configuration.

    Attributes:
        address: Vault address (URI)
        token: Vault token, or AWS_IAM_SENTINEL to log in with AWS IAM
        snapshot_path: Local staging file for the snapshot
        insecure: Skip TLS certificate verification
        ca_cert: Path to a CA bundle used to verify the Vault server
        client_cert: Path to a client certificate for mutual TLS
        client_key: Path to the client certificate's private key
        namespace: Vault Enterprise namespace
        aws_role: Vault role for AWS IAM login (Vault infers it when unset)
        aws_region: Region used to sign the STS GetCallerIdentity request
        aws_mount_point: Mount path of the AWS auth method
        aws_header_value: Value for the X-Vault-AWS-IAM-Server-ID header
    """

    address: str = DEFAULT_VAULT_ADDR
    token: str = field(default="", repr=False)
    snapshot_path: str = ""
    insecure: bool = False
    ca_cert: str | None = None
    client_cert: str | None = None
    client_key: str | None = None
    namespace: str | None = None
    aws_role: str | None = None
    aws_region: str = "us-east-1"
    aws_mount_point: str = "aws"
    aws_header_value: str | None = None

    @property
    def uses_aws_iam(self) -> bool:
        """Whether authentication is delegated to AWS IAM."""
        return self.token == AWS_IAM_SENTINEL

    @classmethod
    def from_env(cls) -> ClusterConfig:
        """Load configuration from environment variables."""
        return cls(
            address=os.getenv("VAULT_ADDR", DEFAULT_VAULT_ADDR),
            token=os.getenv("VAULT_TOKEN", ""),
            snapshot_path=os.getenv("VAULT_SNAPSHOT_PATH", ""),
            insecure=parse_bool("VAULT_SKIP_VERIFY", os.getenv("VAULT_SKIP_VERIFY", "false")),
            ca_cert=os.getenv("VAULT_CACERT") or None,
            client_cert=os.getenv("VAULT_CLIENT_CERT") or None,
            client_key=os.getenv("VAULT_CLIENT_KEY") or None,
            namespace=os.getenv("VAULT_NAMESPACE") or None,
            aws_role=os.getenv("VAULT_AWS_ROLE") or None,
            aws_region=os.getenv("VAULT_AWS_REGION", "us-east-1"),
            aws_mount_point=os.getenv("VAULT_AWS_MOUNT_POINT", "aws"),
            aws_header_value=os.getenv("VAULT_AWS_HEADER_VALUE") or None,
        )


@dataclass(frozen=True)
class TransferConfig:
    """S3 destination configuration.

    Attributes:
        bucket: Destination bucket name
        prefix: Key prefix; the object key is ``{prefix}-{basename}``
        region: AWS region of the bucket
        endpoint_url: Custom endpoint URL (for MinIO/LocalStack)
    """

    bucket: str = ""
    prefix: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None

    @classmethod
    def from_env(cls) -> TransferConfig:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", ""),
            prefix=os.getenv("S3_PREFIX", ""),
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT") or None,
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Observability and logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Complete backup configuration.

    Attributes:
        cluster: Vault cluster configuration
        transfer: S3 destination configuration
        observability: Logging configuration
    """

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load complete configuration from environment variables.

        Returns:
            BackupConfig with all sections populated from environment.

        Raises:
            ConfigurationError: If required configuration is missing or invalid.
        """
        config = cls(
            cluster=ClusterConfig.from_env(),
            transfer=TransferConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        parsed = urlparse(self.cluster.address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"VAULT_ADDR must be an http(s) URI, got {self.cluster.address!r}",
                variable="VAULT_ADDR",
            )

        if not self.cluster.snapshot_path:
            raise ConfigurationError(
                "VAULT_SNAPSHOT_PATH is required", variable="VAULT_SNAPSHOT_PATH"
            )

        if not self.transfer.bucket:
            raise ConfigurationError("S3_BUCKET is required", variable="S3_BUCKET")

        if self.observability.log_format not in ("json", "text"):
            raise ConfigurationError(
                f"LOG_FORMAT must be 'json' or 'text', got {self.observability.log_format!r}",
                variable="LOG_FORMAT",
            )

        if parsed.scheme == "http" and self.cluster.insecure:
            logger.warning("VAULT_SKIP_VERIFY has no effect for a plain http VAULT_ADDR")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Backup configuration loaded",
            extra={
                "vault_addr": self.cluster.address,
                "auth_method": "aws-iam" if self.cluster.uses_aws_iam else "token",
                "snapshot_path": self.cluster.snapshot_path,
                "tls_skip_verify": self.cluster.insecure,
                "vault_namespace": self.cluster.namespace,
                "s3_bucket": self.transfer.bucket,
                "s3_prefix": self.transfer.prefix,
                "s3_region": self.transfer.region,
                "s3_endpoint": self.transfer.endpoint_url,
                "log_level": self.observability.log_level,
            },
        )
