"""
The closed set of Backy commands and their dispatch table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from backy.config import Settings
from backy.backup.latest import advance_latest
from backy.backup.remote import RemoteArchiver
from backy.backup.retention import RetentionManager
from backy.backup.snapshot import SnapshotBuilder

HELP_MSG = """\
Backy helps users to manage local and remote backups using the rclone and rsync tools.

USAGE:
    backy [OPTIONS] COMMAND

where COMMAND is one of:
    help       Write this help message.
    update     Update backup files to most recent version.
    clean      Remove old backups.
    remote     Send the latest backup to the configured rclone remote.
    snapshots  List the backups in the archive.
    history    Show recent runs.
    schedule   Run update/clean/remote on their configured cron schedules."""


class Command(Enum):
    """Modes of operation of the program."""
    HELP = 'help'
    UPDATE = 'update'
    CLEAN = 'clean'
    REMOTE = 'remote'


@dataclass
class CommandOutcome:
    """What a command produced, for reporting and run history."""
    snapshot: Optional[str] = None
    pruned_count: Optional[int] = None
    artifact: Optional[str] = None
    message: str = ''


def run_help(settings: Optional[Settings] = None) -> CommandOutcome:
    return CommandOutcome(message=HELP_MSG)


def run_update(settings: Settings) -> CommandOutcome:
    """Build today's snapshot, then point 'latest' at it."""
    builder = SnapshotBuilder(
        settings.archive_path,
        settings.targets,
        sync_timeout=settings.sync_timeout
    )
    snapshot_dir = builder.build()
    advance_latest(settings.archive_path, snapshot_dir)
    return CommandOutcome(
        snapshot=snapshot_dir.name,
        message=f"Backup {snapshot_dir.name} complete ({len(builder.results)} targets)"
    )


def run_clean(settings: Settings) -> CommandOutcome:
    """Remove snapshots older than the retention window."""
    removed = RetentionManager(settings.archive_path, settings.remove_older_than).prune()
    return CommandOutcome(
        pruned_count=removed,
        message=f"Removed {removed} old backup(s)"
    )


def run_remote(settings: Settings) -> CommandOutcome:
    """Compress the latest snapshot and upload it to the rclone remote."""
    archiver = RemoteArchiver(settings.archive_path, settings.rclone_remote)
    artifact = archiver.archive()
    return CommandOutcome(
        snapshot=archiver.snapshot,
        artifact=artifact,
        message=f"Sent {artifact} to '{settings.rclone_remote}'"
    )


DISPATCH: Dict[Command, Callable[..., CommandOutcome]] = {
    Command.HELP: run_help,
    Command.UPDATE: run_update,
    Command.CLEAN: run_clean,
    Command.REMOTE: run_remote,
}

# Commands that change the archive and are recorded in the run history
RECORDED_COMMANDS = (Command.UPDATE, Command.CLEAN, Command.REMOTE)
