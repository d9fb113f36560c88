"""
Snapshot builder.

Creates today's snapshot directory and synchronizes every target into it in
parallel, hard-linking files unchanged since the 'latest' snapshot.

Layout:
    <archive_root>/<YYYYMMDD>/<target name>/...
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from backy.config import TargetSpec
from backy.errors import (
    ArchiveDirCreateFailed,
    BackupRootNotDirectory,
    BackyError,
    SyncFailed,
)
from . import tools
from .latest import latest_link

logger = logging.getLogger(__name__)

SNAPSHOT_DATE_FORMAT = '%Y%m%d'


def today() -> date:
    """Current calendar date (UTC), used to name and age snapshots."""
    return datetime.now(timezone.utc).date()


def snapshot_name(day: Optional[date] = None) -> str:
    return (day or today()).strftime(SNAPSHOT_DATE_FORMAT)


@dataclass(frozen=True)
class TargetResult:
    """Outcome of one target's synchronization job."""
    name: str
    destination: Path
    error: Optional[BackyError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def create_snapshot_dir(archive_root: Path, day: Optional[date] = None) -> Path:
    """
    Create (or reuse) the snapshot directory for a day.

    Raises:
        ArchiveDirCreateFailed: On any filesystem error
    """
    snapshot_dir = Path(archive_root) / snapshot_name(day)
    try:
        snapshot_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveDirCreateFailed(e)
    return snapshot_dir


def sync_target(
    target: TargetSpec,
    snapshot_dir: Path,
    reference_dir: Optional[Path],
    timeout: Optional[float] = None
) -> TargetResult:
    """
    Synchronize one target into its snapshot subdirectory.

    Never raises: failures are returned in TargetResult.error so the caller
    can wait for every sibling job before deciding the run's outcome.
    """
    destination = snapshot_dir / target.name
    source = Path(target.source_root)

    if not source.is_dir():
        logger.error(f"Target '{target.name}': {source} is not a directory")
        return TargetResult(target.name, destination, BackupRootNotDirectory(target.name, source))

    link_dest = None
    if reference_dir is not None:
        candidate = reference_dir / target.name
        # Same-day re-runs update the directory 'latest' already points at
        if candidate.is_dir() and candidate.resolve() != destination.resolve():
            link_dest = candidate.resolve()

    logger.info(f"Backing up '{target.name}' ({source})...")

    returncode = tools.run_rsync(
        source,
        destination,
        link_dest=link_dest,
        exclude_patterns=target.exclude_patterns,
        timeout=timeout
    )
    if returncode != 0:
        logger.error(f"Target '{target.name}': rsync exited with status {returncode}")
        return TargetResult(target.name, destination, SyncFailed(target.name, returncode))

    logger.debug(f"Target '{target.name}' synchronized into {destination}")
    return TargetResult(target.name, destination)


class SnapshotBuilder:
    """
    Builds today's snapshot for a set of targets.

    One worker thread runs per target. The builder always waits for every
    job before reporting; the first failure in target order is raised.
    """

    def __init__(
        self,
        archive_root: Path,
        targets: Sequence[TargetSpec],
        sync_timeout: Optional[float] = None,
        max_workers: Optional[int] = None
    ):
        """
        Args:
            archive_root: Directory holding snapshots and the 'latest' link
            targets: Targets in registration order
            sync_timeout: Optional per-target rsync timeout in seconds
            max_workers: Thread pool size (defaults to one thread per target)
        """
        self.archive_root = Path(archive_root)
        self.targets = list(targets)
        self.sync_timeout = sync_timeout
        self.max_workers = max_workers or max(len(self.targets), 1)
        self.results: List[TargetResult] = []

    def build(self) -> Path:
        """
        Create today's snapshot.

        Returns:
            Path of the snapshot directory

        Raises:
            ToolUnavailable: If rsync is not installed (nothing is touched)
            ArchiveDirCreateFailed: If the snapshot directory cannot be created
            BackupRootNotDirectory, SyncFailed: First failing target, after all jobs finished
        """
        tools.require_tool(tools.RSYNC)

        snapshot_dir = create_snapshot_dir(self.archive_root)
        logger.info(f"Building snapshot {snapshot_dir}")

        link = latest_link(self.archive_root)
        reference_dir = link if link.is_dir() else None
        if reference_dir is None:
            logger.info("No previous snapshot found, performing a full copy")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='backy-sync') as pool:
            futures = [
                pool.submit(sync_target, target, snapshot_dir, reference_dir, self.sync_timeout)
                for target in self.targets
            ]
            # Collected in registration order; every job is joined
            self.results = [future.result() for future in futures]

        failures = [result for result in self.results if not result.ok]
        if failures:
            for result in failures[1:]:
                logger.error(f"Additional failure: {result.error}")
            raise failures[0].error

        logger.info(f"Snapshot {snapshot_dir.name} complete ({len(self.results)} targets)")
        return snapshot_dir


def build_snapshot(
    archive_root: Path,
    targets: Sequence[TargetSpec],
    sync_timeout: Optional[float] = None
) -> Path:
    """Build today's snapshot; see SnapshotBuilder.build."""
    return SnapshotBuilder(archive_root, targets, sync_timeout=sync_timeout).build()
