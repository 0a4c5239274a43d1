"""
Collected Logging

Exports degrade gracefully instead of aborting, so callers inspect what went
wrong afterwards. ``CollectingHandler`` attaches to the package logger and
keeps every record emitted during an export session.

Usage:
    with CollectingHandler() as log:
        ok = export.add_scene(roots)
    for message in log.warnings:
        print(message)
"""

import logging
from typing import List, Optional

PACKAGE_LOGGER = "gltf_export"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: int = logging.INFO):
    """Console logging for the CLI and the MCP server"""
    logging.basicConfig(level=level, format=LOG_FORMAT)


class CollectingHandler(logging.Handler):
    """Logging handler that stores records for later inspection"""

    def __init__(self, level: int = logging.WARNING, logger_name: str = PACKAGE_LOGGER):
        super().__init__(level)
        self.records: List[logging.LogRecord] = []
        self._logger_name = logger_name
        self._attached: Optional[logging.Logger] = None
        self._previous_level = logging.NOTSET

    def emit(self, record: logging.LogRecord):
        self.records.append(record)

    def _messages(self, levelno: int) -> List[str]:
        return [r.getMessage() for r in self.records if r.levelno == levelno]

    @property
    def warnings(self) -> List[str]:
        return self._messages(logging.WARNING)

    @property
    def errors(self) -> List[str]:
        return [r.getMessage() for r in self.records if r.levelno >= logging.ERROR]

    @property
    def flawless(self) -> bool:
        return not self.records

    def clear(self):
        self.records.clear()

    def attach(self) -> "CollectingHandler":
        logger = logging.getLogger(self._logger_name)
        logger.addHandler(self)
        self._previous_level = logger.level
        # Records below WARNING are dropped by the root default otherwise
        if logger.level == logging.NOTSET or logger.level > self.level:
            logger.setLevel(self.level)
        self._attached = logger
        return self

    def detach(self):
        if self._attached is not None:
            self._attached.removeHandler(self)
            self._attached.setLevel(self._previous_level)
            self._attached = None

    def __enter__(self) -> "CollectingHandler":
        return self.attach()

    def __exit__(self, exc_type, exc, tb):
        self.detach()
