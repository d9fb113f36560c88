"""
Error types raised by Backy operations.

Every error carries a single human-readable message; the CLI prints it on
stderr and exits non-zero.
"""

from typing import List, Tuple


class BackyError(Exception):
    """Base class for every error reported to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


# Configuration

class ConfigError(BackyError):
    """Raised when the configuration cannot be loaded."""
    pass


class NoConfigFile(ConfigError):
    def __init__(self, path):
        super().__init__(f"unable to open the configuration file {path} (maybe the file doesn't exist?)")
        self.path = path


class BadConfigFormat(ConfigError):
    def __init__(self, detail: str):
        super().__init__(f"unable to parse config:\n{detail}")
        self.detail = detail


# Run history

class HistoryUnavailable(BackyError):
    def __init__(self, cause: Exception):
        super().__init__(f"unable to open the run history database:\n{cause}")
        self.cause = cause


# Preconditions

class ToolUnavailable(BackyError):
    def __init__(self, tool: str):
        super().__init__(f"unable to find `{tool}` executable")
        self.tool = tool


# Snapshot building

class ArchiveDirCreateFailed(BackyError):
    def __init__(self, cause: OSError):
        super().__init__(f"unable to create backup dir:\n{cause}")
        self.cause = cause


class BackupRootNotDirectory(BackyError):
    def __init__(self, name: str, path):
        super().__init__(f"source of target '{name}' is not a directory: {path}")
        self.name = name
        self.path = path


class SyncFailed(BackyError):
    def __init__(self, name: str, returncode=None):
        detail = f" (exit status {returncode})" if returncode is not None else ""
        super().__init__(f"synchronization of target '{name}' failed{detail}")
        self.name = name
        self.returncode = returncode


class LatestUpdateFailed(BackyError):
    def __init__(self, cause: OSError):
        super().__init__(f"unable to update the 'latest' link (the snapshot itself is complete):\n{cause}")
        self.cause = cause


# Retention

class NoArchiveDirectory(BackyError):
    def __init__(self, cause: OSError):
        super().__init__(f"unable to read the archive dir:\n{cause}")
        self.cause = cause


class PruneFailed(BackyError):
    """Raised after pruning when one or more snapshots could not be removed."""

    def __init__(self, errors: List[Tuple[str, OSError]], removed: int):
        lines = '\n'.join(f"  {name}: {err}" for name, err in errors)
        super().__init__(
            f"failed to remove {len(errors)} snapshot(s) ({removed} removed):\n{lines}"
        )
        self.errors = errors
        self.removed = removed


# Remote archival

class NoLatestSnapshot(BackyError):
    def __init__(self, path):
        super().__init__(f"no successful backup found at {path} (run `backy update` first)")
        self.path = path


class InvalidRemoteName(BackyError):
    def __init__(self, remote: str):
        super().__init__(f"'{remote}' is not a remote known to rclone")
        self.remote = remote


class RemoteUnreachable(BackyError):
    def __init__(self, remote: str):
        super().__init__(f"unable to reach remote '{remote}'")
        self.remote = remote


class CompressionFailed(BackyError):
    def __init__(self, returncode=None):
        super().__init__(f"failed to compress the latest backup (exit status {returncode})")
        self.returncode = returncode


class RemoteUploadFailed(BackyError):
    def __init__(self, remote: str):
        super().__init__(f"failed to send the backup to remote '{remote}'")
        self.remote = remote
