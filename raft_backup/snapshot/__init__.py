"""
Snapshot module.

Streams a point-in-time snapshot of Vault's integrated storage (Raft) to a
local staging file.

Invariants:
    - Only a complete, closed staging file is handed to the uploader
"""

from .snapshotter import RaftSnapshotter, SnapshotInfo

__all__ = ["RaftSnapshotter", "SnapshotInfo"]
