"""
Vault Raft backup - one-shot snapshot of Vault integrated storage to S3.

Each invocation authenticates to Vault, streams a Raft snapshot into a local
staging file, uploads that file to S3 and exits.

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
    │    Vault     │────▶│   Staging    │────▶│      S3      │
    │ (raft/snap)  │     │     file     │     │ prefix-name  │
    └──────────────┘     └──────────────┘     └──────────────┘
          ▲                     ▲                    ▲
          │                     │                    │
    VaultAuthenticator   RaftSnapshotter      SnapshotUploader
          └─────────────────────┴────────────────────┘
                          BackupPipeline

Invariants:
    - Exactly one snapshot and one upload per run, no retry
    - Any stage failure aborts the run with a non-zero exit status
    - The staging file is truncated on every run and always closed
    - Secrets are never logged

How to change safely:
    - Keep the S3 key format ``{prefix}-{basename}`` stable
    - Keep environment variable names aligned with the Vault CLI
"""

from ._version import __version__

__all__ = ["__version__"]
