"""
Command line interface for Backy.

    backy [--config PATH] [--verbose] COMMAND
"""

import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from backy import __version__, create_app
from backy.backup.executor import execute_command, recent_runs
from backy.backup.latest import resolve_latest
from backy.backup.retention import list_snapshots
from backy.commands import DISPATCH, Command
from backy.config import load_settings
from backy.errors import BackyError, HistoryUnavailable


class CliContext:
    """Lazily created application and settings shared by subcommands."""

    def __init__(self, config_path=None, verbose=False, config_name=None):
        self.config_path = config_path
        self.verbose = verbose
        self.config_name = config_name
        self._app = None
        self._settings = None

    @property
    def app(self):
        if self._app is None:
            try:
                self._app = create_app(self.config_name, verbose=self.verbose)
            except (OSError, SQLAlchemyError) as e:
                raise HistoryUnavailable(e)
        return self._app

    @property
    def settings(self):
        if self._settings is None:
            self._settings = load_settings(self.config_path)
        return self._settings


def fail(error: BackyError):
    """Print an error on stderr and exit non-zero."""
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def run_command(ctx: CliContext, command: Command):
    try:
        settings = ctx.settings
        outcome = execute_command(ctx.app.Session, settings, command)
    except BackyError as e:
        fail(e)
    click.echo(outcome.message)


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
              envvar='BACKY_CONFIG', help='Path of the TOML configuration file.')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging.')
@click.option('--env', 'config_name', type=click.Choice(['production', 'development', 'testing']),
              envvar='BACKY_ENV', default=None, help='Process configuration to use.')
@click.version_option(__version__, prog_name='backy')
@click.pass_context
def cli(ctx, config_path, verbose, config_name):
    """Manage local incremental backups and ship them to an rclone remote."""
    ctx.obj = CliContext(config_path, verbose, config_name)


@cli.command('help')
def help_command():
    """Write the help message."""
    click.echo(DISPATCH[Command.HELP]().message)


@cli.command()
@click.pass_obj
def update(ctx):
    """Update backup files to most recent version."""
    run_command(ctx, Command.UPDATE)


@cli.command()
@click.pass_obj
def clean(ctx):
    """Remove old backups."""
    run_command(ctx, Command.CLEAN)


@cli.command()
@click.pass_obj
def remote(ctx):
    """Send the latest backup to the rclone remote."""
    run_command(ctx, Command.REMOTE)


@cli.command()
@click.pass_obj
def snapshots(ctx):
    """List the backups in the archive."""
    try:
        settings = ctx.settings
        found = list_snapshots(settings.archive_path)
    except BackyError as e:
        fail(e)

    latest = resolve_latest(settings.archive_path)
    if not found:
        click.echo("No backups found")
        return

    for snapshot in found:
        marker = '  <- latest' if latest is not None and latest.name == snapshot.name else ''
        click.echo(f"{snapshot.name}  {snapshot.age():>4} days{marker}")


@cli.command()
@click.option('-n', '--limit', default=20, show_default=True, type=click.IntRange(min=1),
              help='Number of runs to show.')
@click.pass_obj
def history(ctx, limit):
    """Show recent runs."""
    try:
        runs = recent_runs(ctx.app.Session, limit=limit)
    except BackyError as e:
        fail(e)

    if not runs:
        click.echo("No runs recorded")
        return

    for run in runs:
        started = run.started_at.strftime('%Y-%m-%d %H:%M:%S')
        detail = run.snapshot or ''
        if run.error_message:
            detail = run.error_message.splitlines()[0]
        elif run.pruned_count is not None:
            detail = f"{run.pruned_count} removed"
        click.echo(f"{started}  {run.command:<7} {run.status:<8} {detail}".rstrip())


@cli.command()
@click.pass_obj
def schedule(ctx):
    """Run commands on their configured cron schedules."""
    from backy.scheduler import init_scheduler, start_scheduler, stop_scheduler

    try:
        settings = ctx.settings
        app = ctx.app
    except BackyError as e:
        fail(e)

    init_scheduler(app, settings)
    try:
        start_scheduler()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        stop_scheduler()


def main():
    cli(prog_name='backy')


if __name__ == '__main__':
    main()
