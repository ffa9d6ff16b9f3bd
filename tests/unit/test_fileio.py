"""
Unit tests for scoped staging file ownership.

Tests cover:
- Create/truncate semantics and permissions
- Close on success and on error
- Close failures overriding the block's outcome
"""

import os
import stat

import pytest

from raft_backup.errors import (
    STAGE_SNAPSHOT,
    STAGE_UPLOAD,
    ResourceCloseError,
    SnapshotIOError,
    UploadOpenError,
)
from raft_backup.fileio import scoped_file


class BrokenClose:
    """File wrapper whose close() fails after closing the real file."""

    def __init__(self, handle):
        self._handle = handle

    def __getattr__(self, name):
        return getattr(self._handle, name)

    def close(self):
        self._handle.close()
        raise OSError(5, "Input/output error")


@pytest.fixture
def broken_close(monkeypatch):
    real_open = open
    monkeypatch.setattr(
        "raft_backup.fileio.open",
        lambda *args, **kwargs: BrokenClose(real_open(*args, **kwargs)),
        raising=False,
    )


class TestScopedFile:
    """Tests for scoped_file."""

    def test_write_creates_file(self, tmp_path):
        path = str(tmp_path / "snap.out")

        with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT) as f:
            f.write(b"data")

        assert f.closed
        with open(path, "rb") as check:
            assert check.read() == b"data"

    def test_write_truncates_existing(self, tmp_path):
        path = tmp_path / "snap.out"
        path.write_bytes(b"old snapshot content")

        with scoped_file(str(path), "wb", SnapshotIOError, STAGE_SNAPSHOT) as f:
            f.write(b"new")

        assert path.read_bytes() == b"new"

    def test_new_file_mode(self, tmp_path):
        path = str(tmp_path / "snap.out")
        old_umask = os.umask(0)
        try:
            with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT):
                pass
        finally:
            os.umask(old_umask)

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o644

    def test_open_error_type(self, tmp_path):
        with pytest.raises(UploadOpenError):
            with scoped_file(str(tmp_path / "nope"), "rb", UploadOpenError, STAGE_UPLOAD):
                pass

    def test_closes_when_block_raises(self, tmp_path):
        path = str(tmp_path / "snap.out")

        with pytest.raises(RuntimeError):
            with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT) as f:
                raise RuntimeError("boom")

        assert f.closed

    def test_rejects_unknown_mode(self, tmp_path):
        with pytest.raises(ValueError):
            with scoped_file(str(tmp_path / "x"), "ab", SnapshotIOError, STAGE_SNAPSHOT):
                pass

    def test_close_failure_overrides_success(self, tmp_path, broken_close):
        path = str(tmp_path / "snap.out")

        with pytest.raises(ResourceCloseError) as exc_info:
            with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT) as f:
                f.write(b"data")

        assert exc_info.value.stage == STAGE_SNAPSHOT
        assert exc_info.value.path == path

    def test_close_failure_chains_block_error(self, tmp_path, broken_close):
        path = str(tmp_path / "snap.out")

        with pytest.raises(ResourceCloseError) as exc_info:
            with scoped_file(path, "wb", SnapshotIOError, STAGE_SNAPSHOT):
                raise RuntimeError("stream broke")

        close_error = exc_info.value.__cause__
        assert isinstance(close_error, OSError)
        assert isinstance(close_error.__context__, RuntimeError)
