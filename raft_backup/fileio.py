"""
Scoped ownership of the snapshot staging file.

Whoever opens the staging file (the snapshotter for writing, the uploader
for reading) closes it before returning control, on every exit path.

Invariants:
    - Write mode always creates or truncates; a rerun never appends to a
      previous snapshot
    - The file is closed even when the body of the block raises
    - A failed close raises ResourceCloseError, which replaces a prior
      success and chains onto a prior failure
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO

from .errors import BackupError, ResourceCloseError

logger = logging.getLogger(__name__)

# Permission bits for a newly created staging file (before umask)
STAGING_FILE_MODE = 0o644


def _staging_opener(path: str, flags: int) -> int:
    return os.open(path, flags, STAGING_FILE_MODE)


@contextmanager
def scoped_file(
    path: str,
    mode: str,
    open_error: type[BackupError],
    stage: str,
) -> Iterator[IO[bytes]]:
    """Open a staging file for the duration of a block.

    Args:
        path: Staging file path
        mode: "wb" to create/truncate for writing, "rb" to read
        open_error: Error type raised when the file cannot be opened
        stage: Pipeline stage that owns the file (reported on close failure)

    Yields:
        Open binary file handle

    Raises:
        open_error: If the file cannot be opened
        ResourceCloseError: If the file cannot be closed
    """
    if mode not in ("wb", "rb"):
        raise ValueError(f"Unsupported staging file mode: {mode!r}")

    try:
        if mode == "wb":
            handle = open(path, mode, opener=_staging_opener)
        else:
            handle = open(path, mode)
    except OSError as e:
        action = "created" if mode == "wb" else "opened for reading"
        logger.error(
            f"Snapshot file at {path} could not be {action}",
            extra={"path": path, "stage": stage, "error": str(e)},
        )
        raise open_error(f"Snapshot file at {path} could not be {action}: {e}", path=path) from e

    try:
        yield handle
    finally:
        try:
            handle.close()
        except OSError as e:
            logger.error(
                "Vault raft snapshot file failed to close",
                extra={"path": path, "stage": stage, "error": str(e)},
            )
            raise ResourceCloseError(
                f"Snapshot file at {path} failed to close: {e}", path=path, stage=stage
            ) from e
