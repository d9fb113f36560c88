import os
import logging
from logging.handlers import RotatingFileHandler

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

__version__ = '0.3.0'


class BackyApp:
    """
    Process-wide resources: configuration class and history database.

    User settings are not stored here; they are loaded separately and passed
    explicitly into each operation.
    """

    def __init__(self, config, engine, session_factory):
        self.config = config
        self.engine = engine
        self.Session = session_factory

    def dispose(self):
        self.engine.dispose()


def configure_logging(config, verbose=False):
    """Configure application logging"""

    # Set log level based on environment
    log_level = logging.DEBUG if (verbose or config.DEBUG) else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers = [console_handler]

    # File handler
    if config.LOG_DIR:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.LOG_DIR, 'backy.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setLevel(log_level)
        file_formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger(__name__).debug(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_app(config_name=None, verbose=False, setup_logging=True):
    """Application factory"""

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('BACKY_ENV', 'production')

    from backy.config import config
    app_config = config[config_name]

    if setup_logging:
        configure_logging(app_config, verbose=verbose)

    # Ensure the data directory exists for the default sqlite database
    database_url = app_config.DATABASE_URL
    engine_kwargs = {'echo': app_config.DATABASE_ECHO}
    if database_url.startswith('sqlite:///') and database_url != 'sqlite:///:memory:':
        os.makedirs(os.path.dirname(database_url.replace('sqlite:///', '')) or '.', exist_ok=True)
    elif database_url == 'sqlite:///:memory:':
        # One shared connection so every session sees the same in-memory database
        engine_kwargs.update(connect_args={'check_same_thread': False}, poolclass=StaticPool)

    engine = create_engine(database_url, **engine_kwargs)

    from backy.models import init_database_schema
    init_database_schema(engine)

    return BackyApp(app_config, engine, sessionmaker(bind=engine, expire_on_commit=False))
