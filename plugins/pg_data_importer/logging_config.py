"""
Logging Setup

Process-wide logging for the command-line entry point. Under Airflow the
task logger is configured by Airflow and only the error log is added.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import os

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
ERROR_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def error_log_filename(now: Optional[datetime] = None) -> str:
    """
    Name of the error log file for a run started at ``now``.

    Examples:
        >>> error_log_filename(datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        'pgimport_errors_2024-05-01T12:30:00+00:00.log'
    """
    now = now or datetime.now(timezone.utc)
    return f"pgimport_errors_{now.isoformat(timespec='seconds')}.log"


def enable_error_log(directory: str = '.') -> str:
    """
    Write every ERROR record of the process to a dedicated file.

    Args:
        directory: Where to create the file

    Returns:
        Path of the error log file
    """
    path = os.path.join(directory, error_log_filename())
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setLevel(logging.ERROR)
    handler.setFormatter(logging.Formatter(ERROR_LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    logging.getLogger(__name__).info(f"Errors will be logged to {path}")
    return path
