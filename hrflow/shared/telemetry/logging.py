"""Logging configuration for the service.

Standard library logging only; every module calls get_logger(__name__).
"""

import logging
import sys

from hrflow.core.config import get_settings

# Third-party loggers that are too chatty at INFO for an approval service.
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore")


def setup_logging() -> None:
    """Configure process-wide logging once at startup.

    DEBUG when settings.debug is True, otherwise INFO; output to stdout.
    SQL echo is left to settings.database_echo, so the SQLAlchemy and HTTP
    client loggers are held at WARNING unless debug is on.
    """
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if not settings.debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name (usually __name__)."""
    return logging.getLogger(name)
