# launchpad/core/logging/setup.py
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

from .formatters import CompactFormatter, DevFormatter, JsonFormatter
from .handlers import getLogBuffer
from .util import ROOT_LOGGER_NAME

if TYPE_CHECKING:
    from launchpad.app.settings import LoggingSettings

__all__ = ["NO_PROPAGATE", "configureLogging"]



# Disable propagation from noisy libraries
NO_PROPAGATE = [
    "asyncio", "concurrent.futures",
    "httpcore.connection", "httpcore.http11", "httpcore.http2",
    "hpack", "httpx",
]



def configureLogging(settings: LoggingSettings | None = None, logPath: Path | None = None) -> logging.Logger:
    """
    Initiate the loader's logging configuration.
    
      - Console logs (dev or compact format)
      - JSON file log with rotation (when logPath is given)
      - In-memory ring buffer for the in-app log view
    
    Returns the global "launchpad" logger.
    """
    levelName = str(getattr(settings, "level", "DEBUG") or "DEBUG").upper()
    level = getattr(logging, levelName, logging.DEBUG)
    compact = bool(getattr(settings, "compactLogs", False))
    
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(level)
    root.propagate = False
    
    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False
    
    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(level)
    consoleHandler.setFormatter(CompactFormatter() if compact else DevFormatter())
    root.addHandler(consoleHandler)
    
    if logPath is not None:
        Path(logPath).parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            str(logPath),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        fileHandler.setLevel(level)
        fileHandler.setFormatter(JsonFormatter())
        root.addHandler(fileHandler)
    
    bufferHandler = getLogBuffer()
    severities = getattr(settings, "severities", None)
    if severities is not None:
        bufferHandler.severities = frozenset(severities)
    bufferHandler.setLevel(level)
    root.addHandler(bufferHandler)
    
    logging.getLogger("httpx").setLevel(logging.WARNING)
    
    return root
