import logging
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text, inspect
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RunRecord(Base):
    """Execution history and logs of a Backy command"""
    __tablename__ = 'runs'

    id = Column(Integer, primary_key=True)
    command = Column(String(20), nullable=False)  # update, clean, remote
    status = Column(String(20), nullable=False)  # running, success, failed
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime)
    snapshot = Column(String(255))  # Snapshot written (update) or uploaded from (remote)
    pruned_count = Column(Integer)  # Snapshots removed (clean)
    artifact = Column(String(255))  # Uploaded file name (remote)
    error_message = Column(Text)
    logs = Column(Text)  # Detailed execution logs

    @property
    def duration_seconds(self):
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def __repr__(self):
        return f'<RunRecord {self.command} status={self.status}>'


def init_database_schema(engine):
    """
    Create the history tables if they don't exist yet.
    """
    existing_tables = inspect(engine).get_table_names()
    missing = [name for name in Base.metadata.tables if name not in existing_tables]

    if missing:
        logger.info(f"Creating database tables: {', '.join(missing)}")
        Base.metadata.create_all(engine)
