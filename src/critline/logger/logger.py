"""Project-wide logging for critline.

All modules log through children of the ``critline`` logger so that a single
handler (stdout) and a single level control the whole package. The level is
read from ``CRITLINE_LOG_LEVEL`` and falls back to ``LOG_LEVEL``.
"""

import logging
import os
import sys

__all__ = ["logger", "setup_logger", "get_logger"]

ROOT_LOGGER_NAME = "critline"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: str | None) -> int:
    level = level or os.getenv("CRITLINE_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """Configure the package logger once and return it.

    Args:
        name: Logger name. Defaults to the package root logger.
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_string: Custom ``logging.Formatter`` format string.

    Returns:
        The configured logger. Repeated calls do not add handlers.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                fmt=format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(level))
        logger.propagate = False

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """Return a child of the package logger for ``module_name``.

    ``critline.cla.solver`` becomes ``critline.cla.solver``; names outside the
    package are nested under it (``foo`` becomes ``critline.foo``).
    """
    prefix = ROOT_LOGGER_NAME + "."
    suffix = module_name[len(prefix) :] if module_name.startswith(prefix) else module_name
    return logger.getChild(suffix)


logger = setup_logger()
