"""
Logger Configuration Module

One named logger per backend component. Loggers start console-only at import
time; configure_loggers() adds a rotating <name>.log file per component once
the application knows where its data directory lives.
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from .config import settings

CONSOLE_FORMAT = '%(levelname)s - %(name)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

COMPONENTS = ('app', 'api', 'db', 'scraper', 'search', 'nlp', 'scorer', 'storage', 'redis_service', 'celery')


def _file_handler(logs_dir: str, log_file: str) -> RotatingFileHandler:
    os.makedirs(logs_dir, exist_ok=True)
    handler = RotatingFileHandler(os.path.join(logs_dir, log_file), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logger(name: str, log_file: str = None, level=None, logs_dir: str = None) -> logging.Logger:
    """
    (Re)build a logger's handlers: always a console handler, plus a rotating
    file handler when log_file is given.

    Args:
        name: Logger name, e.g. 'search' or 'scraper'
        log_file: File name under logs_dir; None for console only
        level: Log level; defaults to settings.LOG_LEVEL
        logs_dir: Directory for log_file; defaults to settings.LOGS_DIR

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(level or settings.LOG_LEVEL)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        try:
            logger.addHandler(_file_handler(logs_dir or settings.LOGS_DIR, log_file))
        except OSError as e:
            logger.warning(f"Could not open {log_file} for logger {name}: {str(e)}")

    return logger


log_level = getattr(logging, os.environ.get("LOG_LEVEL", settings.LOG_LEVEL).upper(), logging.INFO)

_known_loggers = {name: setup_logger(name, level=log_level) for name in COMPONENTS}

app_logger = _known_loggers['app']
api_logger = _known_loggers['api']
db_logger = _known_loggers['db']
scraper_logger = _known_loggers['scraper']
search_logger = _known_loggers['search']
nlp_logger = _known_loggers['nlp']
scorer_logger = _known_loggers['scorer']
storage_logger = _known_loggers['storage']
redis_service_logger = _known_loggers['redis_service']
celery_logger = _known_loggers['celery']

_loggers_configured = False


def configure_loggers(logs_dir):
    """Add a rotating file handler to every component logger. Runs once per process."""
    global _loggers_configured
    if _loggers_configured:
        return

    for name in COMPONENTS:
        setup_logger(name, f"{name}.log", level=log_level, logs_dir=logs_dir)

    app_logger.info(f"Loggers configured with directory: {logs_dir}")
    _loggers_configured = True


def get_logger(name: str, level=None) -> logging.Logger:
    """Component logger if known, otherwise a new console-only logger."""
    if name in _known_loggers:
        return _known_loggers[name]
    return setup_logger(name, level=level or log_level)


__all__ = [
    'app_logger',
    'api_logger',
    'db_logger',
    'scraper_logger',
    'search_logger',
    'nlp_logger',
    'scorer_logger',
    'storage_logger',
    'redis_service_logger',
    'celery_logger',
    'setup_logger',
    'get_logger',
    'configure_loggers',
]
