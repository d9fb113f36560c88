"""
Shared pytest fixtures for Backy tests.

This module provides fixtures for:
- Application with an in-memory history database
- Archive directories with dated snapshots
- Source directories and targets
- Settings and configuration files
- Mock fixtures for external tools (rsync, tar, rclone)
"""

import shutil
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from backy import create_app
from backy.config import ScheduleSettings, Settings, TargetSpec


@pytest.fixture(scope='function')
def app():
    """
    Create app with test configuration.

    Uses in-memory SQLite database for fast, isolated tests.
    """
    app = create_app('testing', setup_logging=False)
    yield app
    app.dispose()


@pytest.fixture
def archive_root(tmp_path):
    """Empty archive directory."""
    root = tmp_path / 'archive'
    root.mkdir()
    return root


@pytest.fixture
def make_snapshot(archive_root):
    """
    Factory creating a snapshot directory dated `days_ago` days before today.

    Use together with freeze_time so "today" is stable.
    """
    def _make(days_ago, today=None, targets=('docs',)):
        day = (today or date.today()) - timedelta(days=days_ago)
        snapshot = archive_root / day.strftime('%Y%m%d')
        for name in targets:
            (snapshot / name).mkdir(parents=True, exist_ok=True)
            (snapshot / name / 'file.txt').write_text(f'snapshot {day}')
        return snapshot

    return _make


@pytest.fixture
def source_tree(tmp_path):
    """
    Create a source directory to back up.

    Creates:
    - notes.txt
    - report.log
    - nested/deep.txt
    - cache.tmp (excluded in tests)
    """
    source = tmp_path / 'source'
    source.mkdir()
    (source / 'notes.txt').write_text('Test content 1')
    (source / 'report.log').write_text('Test log content')
    nested = source / 'nested'
    nested.mkdir()
    (nested / 'deep.txt').write_text('Nested test content')
    (source / 'cache.tmp').write_text('temporary')
    return source


@pytest.fixture
def targets(source_tree):
    return (TargetSpec(name='docs', source_root=source_tree, exclude_patterns=('*.tmp',)),)


@pytest.fixture
def settings(archive_root, targets):
    return Settings(
        archive_path=archive_root,
        remove_older_than=15,
        rclone_remote='gdrive:backups',
        targets=targets,
        schedule=ScheduleSettings(update='0 2 * * *', clean='30 2 * * *'),
    )


@pytest.fixture
def config_file(tmp_path, archive_root, source_tree):
    """Write a valid TOML configuration file."""
    path = tmp_path / 'config.toml'
    path.write_text(
        f'archive_path = "{archive_root}"\n'
        f'remove_older_than = 15\n'
        f'rclone_remote = "gdrive:backups"\n'
        f'\n'
        f'[targets.docs]\n'
        f'source = "{source_tree}"\n'
        f'exclude = ["*.tmp"]\n'
    )
    return path


@pytest.fixture
def mock_rsync():
    """
    Patch rsync so it copies the directory tree with shutil.

    Yields the mock to inspect calls; set `return_value` or `side_effect`
    to simulate failures.
    """
    def fake_rsync(source, destination, link_dest=None, exclude_patterns=(), timeout=None):
        shutil.copytree(source, destination, dirs_exist_ok=True,
                        ignore=shutil.ignore_patterns(*exclude_patterns))
        return 0

    with patch('backy.backup.tools.run_rsync', side_effect=fake_rsync) as mocked, \
            patch('backy.backup.tools.tool_available', return_value=True):
        yield mocked


@pytest.fixture
def mock_rclone():
    """
    Patch every rclone/tar call used by the remote pipeline.

    Defaults simulate a reachable remote named 'gdrive:'.
    """
    with patch('backy.backup.tools.tool_available', return_value=True), \
            patch('backy.backup.tools.rclone_list_remotes', return_value=['gdrive:', 'dropbox:']) as list_remotes, \
            patch('backy.backup.tools.rclone_probe', return_value=0) as probe, \
            patch('backy.backup.tools.run_tar', return_value=0) as tar, \
            patch('backy.backup.tools.rclone_upload', return_value=0) as upload:
        yield {
            'list_remotes': list_remotes,
            'probe': probe,
            'tar': tar,
            'upload': upload,
        }
