"""
Command executor - runs a command and records it in the run history.

Workflow:
1. Create RunRecord (status: running)
2. Dispatch the command
3. Update RunRecord (status: success/failed) with its outcome and logs
4. Re-raise any failure so the caller can report it
"""

import logging
from datetime import datetime, timezone

from backy.commands import DISPATCH, RECORDED_COMMANDS, Command, CommandOutcome
from backy.config import Settings
from backy.models import RunRecord, utcnow

logger = logging.getLogger(__name__)


class CommandExecutor:
    """
    Executes one command and keeps its history record up to date.
    """

    def __init__(self, session_factory, settings: Settings, command: Command):
        """
        Initialize command executor.

        Args:
            session_factory: SQLAlchemy sessionmaker for the history database
            settings: User settings
            command: Command to execute
        """
        self.Session = session_factory
        self.settings = settings
        self.command = command
        self.record_id = None
        self.logs = []

    def execute(self) -> CommandOutcome:
        """
        Execute the command.

        Returns:
            CommandOutcome of the command

        Raises:
            BackyError: Whatever the command raised, after it was recorded
        """
        handler = DISPATCH[self.command]

        if self.command not in RECORDED_COMMANDS:
            return handler(self.settings)

        with self.Session() as session:
            record = RunRecord(command=self.command.value, status='running', started_at=utcnow())
            session.add(record)
            session.commit()
            self.record_id = record.id

        self._log(f"Starting command: {self.command.value}")

        outcome = None
        error = None
        try:
            outcome = handler(self.settings)
            self._log(outcome.message or "Command completed successfully")
            return outcome
        except Exception as e:
            error = e
            self._log(f"Command failed: {e}")
            raise
        finally:
            self._finish(outcome, error)

    def _finish(self, outcome, error):
        """Store the final status, outcome and logs."""
        with self.Session() as session:
            record = session.get(RunRecord, self.record_id)
            record.completed_at = utcnow()
            record.logs = '\n'.join(self.logs)
            if outcome is not None:
                record.status = 'success'
                record.snapshot = outcome.snapshot
                record.pruned_count = outcome.pruned_count
                record.artifact = outcome.artifact
            else:
                # error is None when interrupted (KeyboardInterrupt)
                record.status = 'failed'
                record.error_message = str(error) if error is not None else 'interrupted'
            session.commit()

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)


def execute_command(session_factory, settings: Settings, command: Command) -> CommandOutcome:
    """
    Execute a command and record it.

    Returns:
        CommandOutcome of the command
    """
    return CommandExecutor(session_factory, settings, command).execute()


def recent_runs(session_factory, limit: int = 20):
    """
    Most recent history records, newest first.
    """
    with session_factory() as session:
        return (
            session.query(RunRecord)
            .order_by(RunRecord.started_at.desc(), RunRecord.id.desc())
            .limit(limit)
            .all()
        )
