"""
Unit tests for remote archival (backy/backup/remote.py).

rclone and tar are mocked (mock_rclone fixture).
"""

from datetime import date
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from backy.backup.latest import advance_latest
from backy.backup.remote import (
    RemoteArchiver,
    archive_to_remote,
    generate_artifact_filename,
    is_valid_remote,
    remote_name,
)
from backy.errors import (
    CompressionFailed,
    InvalidRemoteName,
    NoLatestSnapshot,
    RemoteUnreachable,
    RemoteUploadFailed,
    ToolUnavailable,
)


@pytest.fixture
def latest_snapshot(archive_root, make_snapshot):
    snapshot = make_snapshot(0)
    advance_latest(archive_root, snapshot)
    return snapshot


class TestHelpers:

    def test_artifact_filename(self):
        assert generate_artifact_filename(date(2024, 1, 5)) == 'backy_2024-01-05.tar.gz'

    @pytest.mark.parametrize("remote,expected", [
        ("gdrive:", "gdrive:"),
        ("gdrive:backups/daily", "gdrive:"),
        ("local", "local"),
    ])
    def test_remote_name(self, remote, expected):
        assert remote_name(remote) == expected

    @patch('backy.backup.tools.rclone_list_remotes', return_value=['gdrive:', 's3:'])
    def test_is_valid_remote(self, mock_list):
        assert is_valid_remote('gdrive:backups')
        assert is_valid_remote('s3:')
        assert not is_valid_remote('dropbox:backups')


class TestRemoteArchiver:

    @freeze_time("2024-01-15")
    def test_successful_upload(self, archive_root, latest_snapshot, mock_rclone):
        archiver = RemoteArchiver(archive_root, 'gdrive:backups')

        filename = archiver.archive()

        assert filename == 'backy_2024-01-15.tar.gz'
        assert archiver.snapshot == latest_snapshot.name
        mock_rclone['probe'].assert_called_once_with(archive_root / 'latest', 'gdrive:backups')

        tar_source, artifact = mock_rclone['tar'].call_args.args
        assert tar_source == latest_snapshot.resolve()
        assert artifact.name == filename

        upload_artifact, upload_remote = mock_rclone['upload'].call_args.args
        assert upload_artifact == artifact
        assert upload_remote == 'gdrive:backups'

        # Temporary directory is gone once the pipeline exits
        assert not artifact.parent.exists()

    def test_missing_tool(self, archive_root, latest_snapshot):
        with patch('backy.backup.tools.tool_available', return_value=False):
            with pytest.raises(ToolUnavailable):
                archive_to_remote(archive_root, 'gdrive:')

    def test_no_latest_snapshot(self, archive_root, mock_rclone):
        with pytest.raises(NoLatestSnapshot):
            archive_to_remote(archive_root, 'gdrive:')

        mock_rclone['tar'].assert_not_called()

    def test_unknown_remote(self, archive_root, latest_snapshot, mock_rclone):
        with pytest.raises(InvalidRemoteName):
            archive_to_remote(archive_root, 'onedrive:backups')

        mock_rclone['probe'].assert_not_called()
        mock_rclone['tar'].assert_not_called()
        mock_rclone['upload'].assert_not_called()

    def test_probe_failure_stops_pipeline(self, archive_root, latest_snapshot, mock_rclone):
        """No compression or upload when the remote is unreachable."""
        mock_rclone['probe'].return_value = 1

        with pytest.raises(RemoteUnreachable):
            archive_to_remote(archive_root, 'gdrive:backups')

        mock_rclone['tar'].assert_not_called()
        mock_rclone['upload'].assert_not_called()

    def test_compression_failure(self, archive_root, latest_snapshot, mock_rclone):
        mock_rclone['tar'].return_value = 2

        with pytest.raises(CompressionFailed):
            archive_to_remote(archive_root, 'gdrive:backups')

        mock_rclone['upload'].assert_not_called()
        artifact = mock_rclone['tar'].call_args.args[1]
        assert not artifact.parent.exists()

    def test_upload_failure_cleans_up(self, archive_root, latest_snapshot, mock_rclone):
        mock_rclone['upload'].return_value = 5

        with pytest.raises(RemoteUploadFailed):
            archive_to_remote(archive_root, 'gdrive:backups')

        artifact = mock_rclone['upload'].call_args.args[0]
        assert not artifact.parent.exists()
