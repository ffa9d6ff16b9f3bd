"""
Integration tests for the snapshot-and-upload pipeline.

Real authenticator, snapshotter, uploader and staging files; Vault and S3
are in-process fakes.
"""

import os

import pytest
from botocore.exceptions import ClientError
from hvac.exceptions import InternalServerError

from raft_backup.config import AWS_IAM_SENTINEL, BackupConfig, ClusterConfig, TransferConfig
from raft_backup.errors import STAGE_AUTHENTICATE, STAGE_SNAPSHOT, STAGE_UPLOAD
from raft_backup.pipeline import BackupPipeline
from raft_backup.snapshot import RaftSnapshotter
from raft_backup.upload import SnapshotUploader
from raft_backup.vault import VaultAuthenticator
from tests.fakes import VALID_TOKEN, FakeS3Session, FakeVaultClient


class Harness:
    """Builds a pipeline around fakes and exposes them for assertions."""

    def __init__(self, staging_path, token=VALID_TOKEN, s3_error=None, **vault_options):
        self.config = BackupConfig(
            cluster=ClusterConfig(
                address="https://vault.example.com:8200",
                token=token,
                snapshot_path=staging_path,
            ),
            transfer=TransferConfig(bucket="vault-backups", prefix="nightly", region="us-east-1"),
        )
        self.vault_clients = []
        self.session = FakeS3Session(error=s3_error)

        def client_factory(**kwargs):
            client = FakeVaultClient(**vault_options, **kwargs)
            self.vault_clients.append(client)
            return client

        self.pipeline = BackupPipeline(
            self.config,
            authenticator=VaultAuthenticator(
                self.config.cluster,
                client_factory=client_factory,
                credential_resolver=lambda: None,
            ),
            snapshotter_factory=RaftSnapshotter,
            uploader=SnapshotUploader(self.config.transfer, session=self.session),
        )

    def run(self):
        return self.pipeline.run()


class TestBackupPipeline:
    """Tests for BackupPipeline.run."""

    @pytest.fixture
    def staging_path(self, tmp_path):
        return str(tmp_path / "snap.out")

    def test_successful_run(self, staging_path):
        harness = Harness(staging_path, snapshot_chunks=[b"raft", b"-log"])

        result = harness.run()

        assert result.success
        assert result.stage is None
        assert result.error is None
        assert result.snapshot_bytes == 8
        assert result.location.key == "nightly-snap.out"
        assert result.location.bucket == "vault-backups"
        assert harness.session.objects == {("vault-backups", "nightly-snap.out"): b"raft-log"}

    def test_key_uses_staging_basename(self, staging_path):
        result = Harness(staging_path).run()

        assert result.location.key == f"nightly-{os.path.basename(staging_path)}"

    def test_invalid_token_stops_before_snapshot(self, staging_path):
        harness = Harness(staging_path, token="too-short")

        result = harness.run()

        assert not result.success
        assert result.stage == STAGE_AUTHENTICATE
        assert result.location is None
        assert harness.vault_clients[0].sys.snapshot_calls == 0
        assert not os.path.exists(staging_path)
        assert harness.session.put_calls == []

    def test_failed_iam_login_never_snapshots(self, staging_path):
        harness = Harness(staging_path, token=AWS_IAM_SENTINEL)

        result = harness.run()

        assert not result.success
        assert result.stage == STAGE_AUTHENTICATE
        assert harness.vault_clients[0].sys.snapshot_calls == 0

    def test_stream_failure_aborts_before_upload(self, staging_path):
        harness = Harness(staging_path, snapshot_chunks=[b"part", b"rest"], fail_after=1)

        result = harness.run()

        assert not result.success
        assert result.stage == STAGE_SNAPSHOT
        assert result.location is None
        assert harness.session.put_calls == []
        assert harness.vault_clients[0].sys.response.closed

    def test_snapshot_call_failure_aborts_before_upload(self, staging_path):
        harness = Harness(staging_path, snapshot_error=InternalServerError("sealed"))

        result = harness.run()

        assert result.stage == STAGE_SNAPSHOT
        assert harness.session.put_calls == []

    def test_upload_failure_reports_no_location(self, staging_path):
        error = ClientError({"Error": {"Code": "QuotaExceeded", "Message": "quota"}}, "PutObject")
        harness = Harness(staging_path, s3_error=error)

        result = harness.run()

        assert not result.success
        assert result.stage == STAGE_UPLOAD
        assert result.location is None
        assert len(harness.session.put_calls) == 1

    def test_rerun_replaces_staged_snapshot(self, staging_path):
        """Two runs against one path never concatenate snapshots."""
        Harness(staging_path, snapshot_chunks=[b"first-run-snapshot"]).run()
        harness = Harness(staging_path, snapshot_chunks=[b"second"])

        result = harness.run()

        assert result.success
        assert os.path.getsize(staging_path) == len(b"second")
        assert harness.session.objects[("vault-backups", "nightly-snap.out")] == b"second"

    def test_default_collaborators_built_from_config(self, staging_path):
        config = BackupConfig(
            cluster=ClusterConfig(snapshot_path=staging_path),
            transfer=TransferConfig(bucket="b"),
        )

        pipeline = BackupPipeline(config)

        assert pipeline.authenticator.config is config.cluster
        assert pipeline.uploader.config is config.transfer
        assert pipeline.snapshotter_factory is RaftSnapshotter
