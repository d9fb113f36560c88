"""
Retention policy enforcement for snapshots.

Deletes snapshot directories older than the retention window. Only entries
named like a date (YYYYMMDD) are considered snapshots; anything else in the
archive directory, including the 'latest' link, is left alone. The snapshot
`latest` points at is never removed.
"""

import logging
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Tuple

from backy.errors import NoArchiveDirectory, PruneFailed
from .latest import resolve_latest
from .snapshot import SNAPSHOT_DATE_FORMAT, today

logger = logging.getLogger(__name__)

_SNAPSHOT_NAME = re.compile(r'^\d{8}$')


@dataclass(frozen=True)
class SnapshotInfo:
    """A snapshot directory found in the archive."""
    name: str
    path: Path
    day: date

    def age(self, reference: Optional[date] = None) -> int:
        """Age in whole days."""
        return ((reference or today()) - self.day).days


def parse_snapshot_name(name: str) -> Optional[date]:
    """Return the date encoded in a snapshot name, or None if it isn't one."""
    if not _SNAPSHOT_NAME.match(name):
        return None
    try:
        return datetime.strptime(name, SNAPSHOT_DATE_FORMAT).date()
    except ValueError:
        return None


def list_snapshots(archive_root: Path) -> List[SnapshotInfo]:
    """
    List snapshot directories under archive_root, oldest first.

    Raises:
        NoArchiveDirectory: If archive_root cannot be listed
    """
    try:
        entries = list(Path(archive_root).iterdir())
    except OSError as e:
        raise NoArchiveDirectory(e)

    snapshots = []
    for entry in entries:
        day = parse_snapshot_name(entry.name)
        if day is None or entry.is_symlink() or not entry.is_dir():
            continue
        snapshots.append(SnapshotInfo(entry.name, entry, day))

    return sorted(snapshots, key=lambda s: s.day)


class RetentionManager:
    """
    Removes expired snapshots from an archive directory.

    A snapshot is expired when its age in days is greater than or equal to
    the window. Pruning is skipped entirely when it would remove every
    snapshot. The snapshot behind `latest` is always kept.
    """

    def __init__(self, archive_root: Path, window_days: int, max_workers: int = 4):
        """
        Args:
            archive_root: Directory holding the snapshots
            window_days: Retention window in days
            max_workers: Number of directories removed concurrently
        """
        self.archive_root = Path(archive_root)
        self.window_days = window_days
        self.max_workers = max_workers
        self.removed: List[str] = []
        self.errors: List[Tuple[str, OSError]] = []

    def expired(self, snapshots: List[SnapshotInfo]) -> List[SnapshotInfo]:
        reference = today()
        return [s for s in snapshots if s.age(reference) >= self.window_days]

    def prune(self) -> int:
        """
        Delete expired snapshots.

        Returns:
            Number of snapshot directories removed

        Raises:
            NoArchiveDirectory: If the archive directory cannot be listed
            PruneFailed: If one or more expired snapshots could not be removed
        """
        logger.info(f"Removing backups older than {self.window_days} days.")
        self.removed = []
        self.errors = []

        snapshots = list_snapshots(self.archive_root)
        candidates = self.expired(snapshots)

        latest = resolve_latest(self.archive_root)
        if latest is not None:
            kept = [s for s in candidates if s.path.resolve() == latest]
            for snapshot in kept:
                logger.warning(f"Keeping expired backup '{snapshot.name}': it is the latest complete one")
            candidates = [s for s in candidates if s not in kept]

        if not candidates:
            logger.info(f"Nothing to remove ({len(snapshots)} snapshots kept)")
            return 0

        # Never empty the archive
        if len(candidates) == len(snapshots):
            logger.warning(
                f"All {len(snapshots)} snapshots are older than {self.window_days} days; "
                f"skipping cleanup so at least one backup remains"
            )
            return 0

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='backy-prune') as pool:
            outcomes = list(pool.map(self._remove, candidates))

        for snapshot, error in zip(candidates, outcomes):
            if error is None:
                self.removed.append(snapshot.name)
            else:
                self.errors.append((snapshot.name, error))

        logger.info(
            f"Retention cleanup complete. "
            f"Removed: {len(self.removed)}, "
            f"Kept: {len(snapshots) - len(self.removed)}, "
            f"Errors: {len(self.errors)}"
        )

        if self.errors:
            raise PruneFailed(self.errors, len(self.removed))

        return len(self.removed)

    def _remove(self, snapshot: SnapshotInfo) -> Optional[OSError]:
        logger.info(f"Removing backup '{snapshot.name}'")
        try:
            shutil.rmtree(snapshot.path)
        except OSError as e:
            logger.error(f"Failed to remove backup '{snapshot.name}': {e}")
            return e
        return None


def prune(archive_root: Path, window_days: int) -> int:
    """Delete expired snapshots; see RetentionManager.prune."""
    return RetentionManager(archive_root, window_days).prune()
