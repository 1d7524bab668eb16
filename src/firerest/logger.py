"""Logging helpers for firerest.

Every logger lives under the ``firerest`` namespace. :class:`Logger` wraps a
standard :mod:`logging` logger, can carry bound context (a transaction id, a
project) that is appended to each record, and offers ``message`` whose level
follows the configured ``LOG_LEVEL``.
"""

import logging
from typing import Any, Dict, Optional

from firerest.settings import settings as api_settings

ROOT_LOGGER = "firerest"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_configured = False


def resolve_level(level: Optional[str]) -> int:
    """Map a level name to its numeric value; unknown or empty names mean INFO."""
    return _LEVELS.get((level or "").upper(), logging.INFO)


def setup_global_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once in a standardized format.

    Args:
        level: Log level name (defaults to ``LOG_LEVEL`` from settings)
    """
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=resolve_level(level or api_settings.LOG_LEVEL),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _configured = True


def _qualify(name: Optional[str]) -> str:
    if not name or name == ROOT_LOGGER:
        return ROOT_LOGGER
    if name.startswith(ROOT_LOGGER + "."):
        return name
    return f"{ROOT_LOGGER}.{name}"


def get_logger(name: Optional[str] = None, **context: Any) -> "Logger":
    """Return a logger below the ``firerest`` namespace."""
    return Logger(name, **context)


class Logger:
    """Thin wrapper over standard logging.

    - ``bind(**context)`` returns a logger that appends ``key=value`` pairs.
    - ``message(text)`` logs at the level named by ``LOG_LEVEL``.
    """

    def __init__(self, name: Optional[str] = None, **context: Any) -> None:
        if not _configured:
            setup_global_logging()
        self._logger = logging.getLogger(_qualify(name))
        self._context: Dict[str, Any] = context

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def bind(self, **context: Any) -> "Logger":
        return Logger(self.name, **{**self._context, **context})

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        if self._context:
            msg = msg + " [%s]"
            args = args + (" ".join(f"{key}={value}" for key, value in self._context.items()),)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def message(self, msg: str, *args, **kwargs) -> None:
        self._log(resolve_level(api_settings.LOG_LEVEL), msg, *args, **kwargs)
