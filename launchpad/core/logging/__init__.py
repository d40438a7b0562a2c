# launchpad/core/logging/__init__.py
from __future__ import annotations

from .handlers import LogBufferHandler, LogLine, getLogBuffer
from .setup import configureLogging
from .util import Severity, getLogger, getModLogger, logSeverity

__all__ = [
    "configureLogging",
    "getLogger",
    "getModLogger",
    "logSeverity",
    "Severity",
    "LogBufferHandler",
    "LogLine",
    "getLogBuffer",
]
