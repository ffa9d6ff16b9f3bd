"""
Upload module.

Transfers a staged snapshot file to S3 under ``{prefix}-{basename}``.
"""

from .uploader import SnapshotUploader, UploadLocation, build_key

__all__ = ["SnapshotUploader", "UploadLocation", "build_key"]
