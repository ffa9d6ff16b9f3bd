"""
Snapshot-and-transfer pipeline.

One run performs, in order:
1. Authenticate to Vault (token or AWS IAM)
2. Stream a Raft snapshot into the staging file
3. Upload the staging file to S3

Each stage's output is the next stage's only input: a client, then a file
path, then an upload location.

Invariants:
    - The first stage error ends the run; later stages are never entered
    - A failed run never reports a location
    - Stage errors are logged with the underlying cause, never swallowed
    - The pipeline never reads the environment; config is passed in
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import hvac

from .config import BackupConfig
from .errors import BackupError
from .snapshot import RaftSnapshotter
from .upload import SnapshotUploader, UploadLocation
from .vault import VaultAuthenticator

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Result of a backup run.

    Attributes:
        success: Whether the snapshot was uploaded
        location: Upload location (None unless success)
        stage: Stage that failed (None on success)
        error: Error message if failed
        snapshot_bytes: Size of the staged snapshot
        duration_ms: Total run duration
    """

    success: bool
    location: UploadLocation | None
    stage: str | None
    error: str | None
    snapshot_bytes: int
    duration_ms: int


class BackupPipeline:
    """Runs one snapshot-and-upload.

    Attributes:
        config: Complete backup configuration

    Example:
        >>> pipeline = BackupPipeline(BackupConfig.from_env())
        >>> result = pipeline.run()
        >>> print(result.location)
    """

    def __init__(
        self,
        config: BackupConfig,
        authenticator: VaultAuthenticator | None = None,
        snapshotter_factory: Callable[[hvac.Client], RaftSnapshotter] | None = None,
        uploader: SnapshotUploader | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Complete backup configuration
            authenticator: Vault authenticator (built from config by default)
            snapshotter_factory: Builds a snapshotter for an authenticated client
            uploader: S3 uploader (built from config by default)
        """
        self.config = config
        self.authenticator = authenticator or VaultAuthenticator(config.cluster)
        self.snapshotter_factory = snapshotter_factory or RaftSnapshotter
        self.uploader = uploader or SnapshotUploader(config.transfer)

    def run(self) -> BackupResult:
        """Execute the pipeline.

        Returns:
            BackupResult indicating success/failure
        """
        start_time = time.time()
        snapshot_bytes = 0
        path = self.config.cluster.snapshot_path

        try:
            client = self.authenticator.connect()

            snapshot = self.snapshotter_factory(client).snapshot(path)
            snapshot_bytes = snapshot.size_bytes

            location = self.uploader.upload(snapshot.path)

        except BackupError as e:
            logger.error(
                f"Vault Raft backup failed at {e.stage} stage: {e.message}",
                extra={"stage": e.stage, "code": e.code, **e.details},
                exc_info=e.__cause__ is not None,
            )
            return BackupResult(
                success=False,
                location=None,
                stage=e.stage,
                error=e.message,
                snapshot_bytes=snapshot_bytes,
                duration_ms=int((time.time() - start_time) * 1000),
            )

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Vault Raft backup completed",
            extra={
                "location": location.s3_uri,
                "snapshot_bytes": snapshot_bytes,
                "duration_ms": duration_ms,
            },
        )
        return BackupResult(
            success=True,
            location=location,
            stage=None,
            error=None,
            snapshot_bytes=snapshot_bytes,
            duration_ms=duration_ms,
        )
