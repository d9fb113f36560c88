"""
Management of the 'latest' link.

The link points at the most recent snapshot whose every target was written
successfully. It is the hard-link reference for the next run and the source
of `backy remote`.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from backy.errors import LatestUpdateFailed

logger = logging.getLogger(__name__)

LATEST_NAME = 'latest'


def latest_link(archive_root: Path) -> Path:
    return Path(archive_root) / LATEST_NAME


def resolve_latest(archive_root: Path) -> Optional[Path]:
    """
    Return the snapshot directory 'latest' points at.

    A missing or dangling link is treated as "no successful run yet".
    """
    link = latest_link(archive_root)
    if not link.is_dir():
        return None
    return link.resolve()


def advance_latest(archive_root: Path, snapshot: Path) -> Path:
    """
    Point 'latest' at snapshot.

    The new link is created under a temporary name and renamed over the old
    one, so readers see either the previous snapshot or the new one.

    Args:
        archive_root: Archive directory holding the link
        snapshot: Snapshot directory (must live directly under archive_root)

    Returns:
        Path of the link

    Raises:
        LatestUpdateFailed: If the link cannot be created or replaced
    """
    link = latest_link(archive_root)
    staging = link.with_name(f".{LATEST_NAME}.{os.getpid()}")

    try:
        if staging.is_symlink() or staging.exists():
            staging.unlink()
        # Relative target keeps the archive relocatable
        staging.symlink_to(Path(snapshot).name, target_is_directory=True)
        os.replace(staging, link)
    except OSError as e:
        try:
            if staging.is_symlink():
                staging.unlink()
        except OSError:
            logger.warning(f"Could not remove staging link {staging}")
        raise LatestUpdateFailed(e)

    logger.info(f"'{LATEST_NAME}' now points at {Path(snapshot).name}")
    return link
