import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from apscheduler.triggers.cron import CronTrigger

from backy.errors import BadConfigFormat, NoConfigFile


def _default_config_file() -> str:
    config_home = os.environ.get('XDG_CONFIG_HOME') or os.path.join(os.path.expanduser('~'), '.config')
    return os.path.join(config_home, 'backy', 'config.toml')


def _default_data_dir() -> str:
    data_home = os.environ.get('XDG_DATA_HOME') or os.path.join(os.path.expanduser('~'), '.local', 'share')
    return os.path.join(data_home, 'backy')


class Config:
    """Base configuration"""

    DEBUG = False

    # User settings file (TOML)
    CONFIG_FILE = os.environ.get('BACKY_CONFIG') or _default_config_file()

    # Logs and run history
    DATA_DIR = os.environ.get('BACKY_DATA_DIR') or _default_data_dir()
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
    DATABASE_URL = os.environ.get('DATABASE_URL') or f'sqlite:///{os.path.join(DATA_DIR, "backy.db")}'
    DATABASE_ECHO = False

    # Scheduler
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
    DATABASE_URL = f'sqlite:///{os.path.join(DATA_DIR, "backy.db")}'


class TestingConfig(Config):
    """Testing configuration"""
    DATABASE_URL = 'sqlite:///:memory:'
    LOG_DIR = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': Config,
    'default': Config
}


@dataclass(frozen=True)
class TargetSpec:
    """A named source directory backed up into its own snapshot subdirectory."""
    name: str
    source_root: Path
    exclude_patterns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScheduleSettings:
    """Cron expressions for the scheduler daemon (None = not scheduled)."""
    update: Optional[str] = None
    clean: Optional[str] = None
    remote: Optional[str] = None

    def items(self):
        return [(name, getattr(self, name)) for name in ('update', 'clean', 'remote')]


@dataclass(frozen=True)
class Settings:
    """
    User settings loaded once at startup and passed into every operation.

    Attributes:
        archive_path: Directory holding the dated snapshots and the 'latest' link
        remove_older_than: Retention window in days
        rclone_remote: rclone destination for `backy remote`
        targets: Backup targets in registration order
        sync_timeout: Optional per-target rsync timeout in seconds
        schedule: Cron expressions for `backy schedule`
    """
    archive_path: Path
    remove_older_than: int
    rclone_remote: str
    targets: Tuple[TargetSpec, ...]
    sync_timeout: Optional[float] = None
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)


def load_settings(path=None) -> Settings:
    """
    Load and validate the user settings file.

    Args:
        path: Path to the TOML file (defaults to Config.CONFIG_FILE)

    Returns:
        Settings instance

    Raises:
        NoConfigFile: If the file cannot be read
        BadConfigFormat: If the file is not valid TOML or misses required options
    """
    path = Path(path or Config.CONFIG_FILE).expanduser()

    try:
        raw = path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        raise BadConfigFormat(str(e))
    except OSError:
        raise NoConfigFile(path)

    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise BadConfigFormat(str(e))

    return parse_settings(data)


def parse_settings(data: dict) -> Settings:
    """
    Build Settings from an already parsed TOML document.

    Raises:
        BadConfigFormat: If a required option is missing or has the wrong type
    """
    archive_path = _require(data, 'archive_path', str)
    remove_older_than = _require(data, 'remove_older_than', int)
    rclone_remote = _require(data, 'rclone_remote', str)

    if isinstance(remove_older_than, bool) or remove_older_than < 0:
        raise BadConfigFormat("'remove_older_than' must be a non-negative number of days")

    sync_timeout = data.get('sync_timeout')
    if sync_timeout is not None:
        if isinstance(sync_timeout, bool) or not isinstance(sync_timeout, (int, float)) or sync_timeout <= 0:
            raise BadConfigFormat("'sync_timeout' must be a positive number of seconds")

    targets = _parse_targets(data)

    return Settings(
        archive_path=Path(archive_path).expanduser(),
        remove_older_than=remove_older_than,
        rclone_remote=rclone_remote,
        targets=targets,
        sync_timeout=sync_timeout,
        schedule=_parse_schedule(data.get('schedule', {})),
    )


def _require(data: dict, key: str, expected_type):
    if key not in data:
        raise BadConfigFormat(f"missing option '{key}'")
    value = data[key]
    if not isinstance(value, expected_type):
        raise BadConfigFormat(f"option '{key}' must be of type {expected_type.__name__}")
    return value


def _parse_targets(data: dict) -> Tuple[TargetSpec, ...]:
    targets = []

    # Shorthand: a plain list of directories, each named after its basename
    files = data.get('files', [])
    if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
        raise BadConfigFormat("'files' must be a list of paths")
    for entry in files:
        source = Path(entry).expanduser()
        name = source.name or str(source).strip(os.sep)
        targets.append(TargetSpec(name=name, source_root=source))

    table = data.get('targets', {})
    if not isinstance(table, dict):
        raise BadConfigFormat("'targets' must be a table of named targets")
    for name, options in table.items():
        if not isinstance(options, dict) or not isinstance(options.get('source'), str):
            raise BadConfigFormat(f"target '{name}' must define a 'source' path")
        exclude = options.get('exclude', [])
        if not isinstance(exclude, list) or not all(isinstance(p, str) for p in exclude):
            raise BadConfigFormat(f"'exclude' of target '{name}' must be a list of patterns")
        targets.append(TargetSpec(
            name=name,
            source_root=Path(options['source']).expanduser(),
            exclude_patterns=tuple(exclude),
        ))

    if not targets:
        raise BadConfigFormat("no backup targets configured (set 'files' or '[targets.<name>]')")

    seen = set()
    for target in targets:
        if not target.name or target.name in ('.', '..') or os.sep in target.name:
            raise BadConfigFormat(f"invalid target name '{target.name}'")
        if target.name in seen:
            raise BadConfigFormat(f"duplicate target name '{target.name}'")
        seen.add(target.name)

    return tuple(targets)


def _parse_schedule(table) -> ScheduleSettings:
    if not isinstance(table, dict):
        raise BadConfigFormat("'schedule' must be a table")

    unknown = set(table) - {'update', 'clean', 'remote'}
    if unknown:
        raise BadConfigFormat(f"unknown schedule entries: {', '.join(sorted(unknown))}")

    for command, expression in table.items():
        if not isinstance(expression, str):
            raise BadConfigFormat(f"schedule for '{command}' must be a cron expression")
        try:
            CronTrigger.from_crontab(expression)
        except ValueError as e:
            raise BadConfigFormat(f"invalid cron expression for '{command}': {e}")

    return ScheduleSettings(**table)
