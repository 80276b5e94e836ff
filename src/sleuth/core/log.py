"""Logging setup for the ``sleuth`` logger hierarchy."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sleuth.config.schema import LoggingConfig

ROOT_LOGGER = "sleuth"

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class KeyValueFormatter(logging.Formatter):
    """Render records as ``key=value`` pairs for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage().replace('"', '\\"')
        line = (
            f"ts={self.formatTime(record)} level={record.levelname} "
            f'logger={record.name} msg="{message}"'
        )
        if record.exc_info:
            exc = self.formatException(record.exc_info).replace("\n", "\\n")
            line += f' exc="{exc}"'
        return line


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Attach a single handler to the ``sleuth`` logger.

    Writes to ``config.file`` when set, stderr otherwise. Calling this
    again replaces the previously installed handler.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(config.level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    if config.structured:
        handler.setFormatter(KeyValueFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False
    return logger
