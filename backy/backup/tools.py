"""
Wrappers around the external programs Backy delegates to.

- rsync: mirrored one-way sync with hard-link deduplication (--link-dest)
- tar: compression of a snapshot into a single artifact
- rclone: remote listing, connectivity probing and upload

Every wrapper returns the process exit status (zero = success); the caller
decides which error a failure maps to.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from backy.errors import ToolUnavailable

logger = logging.getLogger(__name__)

RSYNC = 'rsync'
TAR = 'tar'
RCLONE = 'rclone'


def tool_available(tool: str) -> bool:
    """Check if an executable can be resolved on PATH."""
    return shutil.which(tool) is not None


def require_tool(tool: str):
    """
    Raises:
        ToolUnavailable: If the executable is not on PATH
    """
    if not tool_available(tool):
        raise ToolUnavailable(tool)


def _run(args: List[str], timeout: Optional[float] = None, **kwargs) -> int:
    logger.debug(f"Running: {' '.join(args)}")
    try:
        completed = subprocess.run(args, timeout=timeout, **kwargs)
    except subprocess.TimeoutExpired:
        logger.error(f"{args[0]} timed out after {timeout} seconds")
        return -1
    except OSError as e:
        logger.error(f"Failed to run {args[0]}: {e}")
        return -1
    return completed.returncode


def rsync_args(
    source: Path,
    destination: Path,
    link_dest: Optional[Path] = None,
    exclude_patterns: Iterable[str] = ()
) -> List[str]:
    """
    Build the rsync command line for one target.

    The source always ends with a separator so rsync copies the directory
    contents into destination instead of nesting another level.
    """
    args = [RSYNC, '-a', '--delete']
    if link_dest is not None:
        args.append(f'--link-dest={link_dest}')
    for pattern in exclude_patterns:
        args.append(f'--exclude={pattern}')
    args.append(str(source).rstrip('/') + '/')
    args.append(str(destination))
    return args


def run_rsync(
    source: Path,
    destination: Path,
    link_dest: Optional[Path] = None,
    exclude_patterns: Iterable[str] = (),
    timeout: Optional[float] = None
) -> int:
    """Synchronize source into destination; returns rsync's exit status."""
    return _run(rsync_args(source, destination, link_dest, exclude_patterns), timeout=timeout)


def run_tar(source_dir: Path, artifact: Path) -> int:
    """Compress the contents of source_dir into a gzip tarball at artifact."""
    return _run(
        [TAR, '-czpf', str(artifact), '-C', str(source_dir), '.'],
        stdout=subprocess.DEVNULL
    )


def rclone_list_remotes() -> List[str]:
    """
    List remote names known to rclone (each ends with ':').

    Returns an empty list if rclone fails.
    """
    try:
        completed = subprocess.run(
            [RCLONE, 'listremotes'],
            capture_output=True,
            text=True
        )
    except OSError as e:
        logger.error(f"Failed to run rclone: {e}")
        return []

    if completed.returncode != 0:
        logger.error(f"rclone listremotes exited with status {completed.returncode}")
        return []

    return [line.strip() for line in completed.stdout.splitlines() if line.strip()]


def rclone_probe(source_dir: Path, remote: str) -> int:
    """Non-destructive dry-run sync used to check the remote is reachable."""
    return _run(
        [RCLONE, 'sync', '--dry-run', str(source_dir).rstrip('/') + '/', remote],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL
    )


def rclone_upload(artifact: Path, remote: str) -> int:
    """Copy a single file to the remote."""
    return _run([RCLONE, 'copy', str(artifact), remote])
