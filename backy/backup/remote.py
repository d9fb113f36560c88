"""
Remote archival of the latest snapshot.

Workflow:
1. Check the remote is known to rclone
2. Probe connectivity with a dry-run sync
3. Compress the 'latest' snapshot into a temporary tarball
4. Upload the tarball to the remote
5. Remove the temporary directory (success or failure)
"""

import logging
import tempfile
from datetime import date
from pathlib import Path
from typing import Optional

from backy.errors import (
    CompressionFailed,
    InvalidRemoteName,
    NoLatestSnapshot,
    RemoteUnreachable,
    RemoteUploadFailed,
)
from . import tools
from .latest import latest_link, resolve_latest
from .snapshot import today

logger = logging.getLogger(__name__)


def generate_artifact_filename(day: Optional[date] = None) -> str:
    """Format: backy_{YYYY-MM-DD}.tar.gz"""
    return f"backy_{(day or today()).isoformat()}.tar.gz"


def remote_name(remote: str) -> str:
    """
    Name of the rclone remote in a destination.

    'gdrive:backups/daily' -> 'gdrive:'
    """
    name, sep, _ = remote.partition(':')
    return f"{name}{sep}" if sep else remote


def is_valid_remote(remote: str) -> bool:
    """Check the remote appears in `rclone listremotes`."""
    return remote_name(remote) in tools.rclone_list_remotes()


class RemoteArchiver:
    """
    Ships the current 'latest' snapshot to an rclone remote.
    """

    def __init__(self, archive_root: Path, remote: str):
        self.archive_root = Path(archive_root)
        self.remote = remote
        self.snapshot: Optional[str] = None
        self.uploaded: Optional[str] = None

    def archive(self) -> str:
        """
        Compress and upload the latest snapshot.

        Returns:
            Filename of the uploaded artifact

        Raises:
            ToolUnavailable: If rclone or tar is missing
            NoLatestSnapshot: If no successful backup exists yet
            InvalidRemoteName: If rclone doesn't know the remote
            RemoteUnreachable: If the dry-run probe fails
            CompressionFailed: If tar fails
            RemoteUploadFailed: If the upload fails
        """
        tools.require_tool(tools.RCLONE)
        tools.require_tool(tools.TAR)

        snapshot_dir = resolve_latest(self.archive_root)
        if snapshot_dir is None:
            raise NoLatestSnapshot(latest_link(self.archive_root))
        self.snapshot = snapshot_dir.name

        if not is_valid_remote(self.remote):
            raise InvalidRemoteName(self.remote)

        logger.info(f"Testing connection with remote '{self.remote}'")
        if tools.rclone_probe(latest_link(self.archive_root), self.remote) != 0:
            raise RemoteUnreachable(self.remote)

        filename = generate_artifact_filename()

        with tempfile.TemporaryDirectory(prefix='backy_remote_') as temp_dir:
            artifact = Path(temp_dir) / filename

            logger.info(f"Compressing snapshot {snapshot_dir.name} into {filename}")
            returncode = tools.run_tar(snapshot_dir, artifact)
            if returncode != 0:
                raise CompressionFailed(returncode)

            logger.info(f"Sending {filename} to '{self.remote}'")
            if tools.rclone_upload(artifact, self.remote) != 0:
                raise RemoteUploadFailed(self.remote)

        self.uploaded = filename
        logger.info(f"Uploaded {filename} to '{self.remote}'")
        return filename


def archive_to_remote(archive_root: Path, remote: str) -> str:
    """Compress and upload the latest snapshot; see RemoteArchiver.archive."""
    return RemoteArchiver(archive_root, remote).archive()
