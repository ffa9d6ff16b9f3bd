"""
Error types for the Vault Raft backup pipeline.

Every failure the pipeline can report is one of these:
- BackupError: Base exception
- ConfigurationError: Environment could not be turned into a valid config
- ConnectionConfigError: Vault client TLS/connection settings are invalid
- AuthMethodError: External identity-provider login failed
- InvalidCredentialError: Static token has the wrong shape
- SnapshotIOError: Staging file could not be created or truncated
- SnapshotStreamError: Vault snapshot call failed while streaming
- UploadOpenError: Staging file could not be opened for reading
- UploadTransferError: Object store rejected or failed the put
- ResourceCloseError: Staging file failed to close

Invariants:
    - All errors inherit from BackupError
    - Every error names the pipeline stage it aborted
    - The underlying cause is chained with ``raise ... from``
    - Secrets never appear in messages or details
"""

from __future__ import annotations

from typing import Any

STAGE_CONFIGURE = "configure"
STAGE_AUTHENTICATE = "authenticate"
STAGE_SNAPSHOT = "snapshot"
STAGE_UPLOAD = "upload"


class BackupError(Exception):
    """Base exception for all backup pipeline errors.

    Attributes:
        message: Error message
        stage: Pipeline stage that failed
        code: Error code for programmatic handling
        details: Additional error context
    """

    default_stage = STAGE_CONFIGURE
    default_code = "BACKUP_ERROR"

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.code = self.default_code
        self.details = details or {}


class ConfigurationError(BackupError, ValueError):
    """Configuration loaded from the environment is invalid.

    Raised when:
    - VAULT_SKIP_VERIFY is not a boolean literal
    - A required variable is empty
    - VAULT_ADDR is not an http(s) URI
    """

    default_stage = STAGE_CONFIGURE
    default_code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, variable: str | None = None) -> None:
        super().__init__(message, details={"variable": variable})
        self.variable = variable


class ConnectionConfigError(BackupError):
    """Vault client could not be configured.

    Raised when:
    - CA bundle path does not exist
    - Only one half of a client certificate pair is given
    - hvac rejects the client settings
    """

    default_stage = STAGE_AUTHENTICATE
    default_code = "CONNECTION_CONFIG_ERROR"

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(message, details={"address": address})
        self.address = address


class AuthMethodError(BackupError):
    """External identity-provider authentication failed.

    The ``reason`` attribute tells the three failure sites apart:
    - ``provider_init``: AWS credentials could not be resolved
    - ``login``: the Vault login call failed
    - ``empty_session``: login returned no client token
    """

    default_stage = STAGE_AUTHENTICATE
    default_code = "AUTH_METHOD_ERROR"

    PROVIDER_INIT = "provider_init"
    LOGIN = "login"
    EMPTY_SESSION = "empty_session"

    def __init__(self, message: str, reason: str, mount_point: str | None = None) -> None:
        super().__init__(message, details={"reason": reason, "mount_point": mount_point})
        self.reason = reason
        self.mount_point = mount_point


class InvalidCredentialError(BackupError):
    """Static Vault token does not match the expected format."""

    default_stage = STAGE_AUTHENTICATE
    default_code = "INVALID_CREDENTIAL"

    def __init__(self, message: str, length: int) -> None:
        # Only the length is recorded, never the token itself
        super().__init__(message, details={"length": length})
        self.length = length


class SnapshotIOError(BackupError):
    """Staging file could not be created or truncated for writing."""

    default_stage = STAGE_SNAPSHOT
    default_code = "SNAPSHOT_IO_ERROR"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, details={"path": path})
        self.path = path


class SnapshotStreamError(BackupError):
    """Vault snapshot call failed.

    The staging file is closed but its contents are partial and must not
    be uploaded.
    """

    default_stage = STAGE_SNAPSHOT
    default_code = "SNAPSHOT_STREAM_ERROR"

    def __init__(self, message: str, path: str | None = None, bytes_written: int = 0) -> None:
        super().__init__(message, details={"path": path, "bytes_written": bytes_written})
        self.path = path
        self.bytes_written = bytes_written


class UploadOpenError(BackupError):
    """Staging file could not be opened for reading."""

    default_stage = STAGE_UPLOAD
    default_code = "UPLOAD_OPEN_ERROR"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, details={"path": path})
        self.path = path


class UploadTransferError(BackupError):
    """Object store put failed (auth, network, quota, bucket policy)."""

    default_stage = STAGE_UPLOAD
    default_code = "UPLOAD_TRANSFER_ERROR"

    def __init__(self, message: str, bucket: str | None = None, key: str | None = None) -> None:
        super().__init__(message, details={"bucket": bucket, "key": key})
        self.bucket = bucket
        self.key = key


class ResourceCloseError(BackupError):
    """Staging file failed to close.

    Overrides the outcome of the operation that opened the file: data that
    was not verified flushed and closed cannot be trusted as complete.
    """

    default_code = "RESOURCE_CLOSE_ERROR"

    def __init__(self, message: str, path: str | None = None, stage: str | None = None) -> None:
        super().__init__(message, stage=stage, details={"path": path})
        self.path = path
