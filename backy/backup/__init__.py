"""
Backup module for Backy.

This module handles the core backup functionality including:
- Snapshot creation with hard-link deduplication (rsync)
- The 'latest' link
- Retention policy enforcement
- Remote archival (tar + rclone)
"""

from .snapshot import SnapshotBuilder, build_snapshot
from .latest import advance_latest, resolve_latest
from .retention import RetentionManager, list_snapshots, prune
from .remote import RemoteArchiver, archive_to_remote

__all__ = [
    'SnapshotBuilder',
    'build_snapshot',
    'advance_latest',
    'resolve_latest',
    'RetentionManager',
    'list_snapshots',
    'prune',
    'RemoteArchiver',
    'archive_to_remote'
]
