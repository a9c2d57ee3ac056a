"""Logging for the API and the generation worker.

Both processes log to stdout and to their own rotating file under
``settings.LOG_DIR`` (``api.log`` / ``worker.log``), so a job can be traced
from the enqueue request to the worker run that handled it.
"""

import logging
import sys
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

LOG_DIR = settings.LOG_DIR
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s"

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,  # one line per TMDb / LLM request
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "celery.worker.strategy": logging.WARNING,  # "Task ... received" for every delivery
}


def log_file_for(process: str) -> str:
    return os.path.join(LOG_DIR, f"{process}.log")


def setup_logging(process: str = "api"):
    """
    Configures the root logger once per process: console plus
    ``<LOG_DIR>/<process>.log`` at ``settings.LOG_LEVEL``.
    Calling it again only adjusts the level.
    """
    os.makedirs(LOG_DIR, exist_ok=True)
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    handler_names = {handler.get_name() for handler in root_logger.handlers}
    formatter = logging.Formatter(LOG_FORMAT)

    if "blog-console" not in handler_names:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name("blog-console")
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    file_name = f"blog-file-{process}"
    if file_name not in handler_names:
        file_handler = RotatingFileHandler(log_file_for(process), maxBytes=1024*1024*5, backupCount=2) # 5MB per file, 2 backups
        file_handler.set_name(file_name)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("app").setLevel(level)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).info("Logging configured for %s at %s (%s)", process, logging.getLevelName(level), log_file_for(process))
