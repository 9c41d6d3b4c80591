# app/utils/logger.py
"""
Logging setup for the settlement backend.
Console always; a rotating parking.log under LOG_DIR when LOG_TO_FILE is on.
Configured once, on the first get_logger() call.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine", "uvicorn.access")

_configured = False


def _file_handler(log_dir: str, level: str, fmt: logging.Formatter) -> logging.Handler:
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        filename=os.path.join(log_dir, "parking.log"),
        maxBytes=5 * 1024 * 1024,   # 10 files × 5MB
        backupCount=10,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def configure_logging(level: str = None, log_dir: str = None, to_file: bool = None):
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.LOG_LEVEL).upper()
    to_file = settings.LOG_TO_FILE if to_file is None else to_file
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)

    if to_file:
        root.addHandler(_file_handler(log_dir or settings.LOG_DIR or DEFAULT_LOG_DIR, level, fmt))

    for name in QUIET_LOGGERS:
        if not (name == "sqlalchemy.engine" and settings.DB_ECHO):
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    configure_logging()
    return logging.getLogger(name)
