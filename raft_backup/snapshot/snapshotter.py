"""
Raft snapshotter for Vault integrated storage.

The snapshotter asks Vault for a point-in-time snapshot of its Raft log and
streams the response body straight into a local staging file:

    GET /v1/sys/storage/raft/snapshot  ->  <VAULT_SNAPSHOT_PATH>

The snapshot payload is opaque binary; nothing here inspects it.

Invariants:
    - The staging file is created or truncated, never appended to
    - The staging file is closed before snapshot() returns or raises
    - A stream error leaves the file closed with undefined contents, and
      the caller must not upload it
    - One snapshot call per invocation, no retry

How to change safely:
    - Keep the staging file owned by scoped_file so close failures surface
    - Do not delete partial files here; the next run truncates them
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import IO

import hvac
from hvac.exceptions import VaultError
from requests.exceptions import RequestException

from ..errors import STAGE_SNAPSHOT, SnapshotIOError, SnapshotStreamError
from ..fileio import scoped_file

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class SnapshotInfo:
    """Information about a staged snapshot.

    Attributes:
        path: Staging file path
        size_bytes: Bytes written to the staging file
        duration_ms: Time spent streaming the snapshot
    """

    path: str
    size_bytes: int
    duration_ms: int


class RaftSnapshotter:
    """Streams a Vault Raft snapshot into a local file.

    Attributes:
        client: Authenticated hvac client
        chunk_size: Read size used while streaming the response body

    Example:
        >>> snapshotter = RaftSnapshotter(client)
        >>> info = snapshotter.snapshot("/var/backups/vault.snap")
        >>> print(info.size_bytes)
    """

    def __init__(self, client: hvac.Client, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.client = client
        self.chunk_size = chunk_size

    def snapshot(self, path: str) -> SnapshotInfo:
        """Take a Raft snapshot and stage it at ``path``.

        Args:
            path: Staging file path (created or truncated)

        Returns:
            SnapshotInfo describing the complete, closed file

        Raises:
            SnapshotIOError: If the file cannot be created or truncated
            SnapshotStreamError: If the snapshot call or stream fails
            ResourceCloseError: If the file cannot be closed
        """
        start_time = time.time()

        with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT) as sink:
            size_bytes = self._stream_into(sink, path)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Vault Raft snapshot written",
            extra={"path": path, "size_bytes": size_bytes, "duration_ms": duration_ms},
        )
        return SnapshotInfo(path=path, size_bytes=size_bytes, duration_ms=duration_ms)

    def _stream_into(self, sink: IO[bytes], path: str) -> int:
        """Copy the snapshot response body into ``sink``.

        Returns:
            Number of bytes written
        """
        written = 0
        try:
            response = self.client.sys.take_raft_snapshot()
        except (VaultError, RequestException) as e:
            logger.error(
                "Vault Raft snapshot invocation failed",
                extra={"path": path, "error": str(e)},
            )
            raise SnapshotStreamError(
                f"Vault Raft snapshot invocation failed: {e}", path=path
            ) from e

        try:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if chunk:
                    sink.write(chunk)
                    written += len(chunk)
            sink.flush()
        except (RequestException, OSError) as e:
            logger.error(
                "Vault Raft snapshot stream failed",
                extra={"path": path, "bytes_written": written, "error": str(e)},
            )
            raise SnapshotStreamError(
                f"Vault Raft snapshot stream failed after {written} bytes: {e}",
                path=path,
                bytes_written=written,
            ) from e
        finally:
            response.close()

        return written
