"""Logging setup shared by all installer modules.

Every module obtains its logger through :func:`get_logger` and the CLI calls
:func:`configure_logging` exactly once. Records are rendered with lower-case
level prefixes (``info: ...``, ``warning: ...``) so the output reads like a
classic install script.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "nocturne_installer"


class _PrefixFormatter(logging.Formatter):
    """Formatter that prints ``<level>: <message>``."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{record.levelname.lower()}: {message}"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the installer root logger."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the installer root logger.

    Installers report progress by default, so the baseline level is INFO.
    ``quiet`` wins over the other flags; ``debug`` enables DEBUG output.

    Args:
        debug: Enable debug logging.
        verbose: Enable info-level logging (the default level).
        quiet: Only show errors.
        stream: Output stream, defaults to stderr.
    """
    if quiet:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_PrefixFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
