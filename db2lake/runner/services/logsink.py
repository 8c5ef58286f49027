from __future__ import annotations

import logging
from typing import Any, Mapping

from db2lake.core.enums import LogLevel
from db2lake.runner.ports.logger import LogFn

_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def logging_sink(logger: logging.Logger | None = None) -> LogFn:
    """Adapt a stdlib logger to the pipeline ``LogFn`` signature."""
    log = logger or logging.getLogger("db2lake")

    def _sink(level: LogLevel, message: str, data: Mapping[str, Any] | None = None) -> None:
        if data:
            log.log(_LEVELS[LogLevel(level)], "%s %s", message, dict(data))
        else:
            log.log(_LEVELS[LogLevel(level)], "%s", message)

    return _sink
