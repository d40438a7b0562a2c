# launchpad/core/logging/util.py
from __future__ import annotations

import logging
from enum import Enum

__all__ = ["ROOT_LOGGER_NAME", "MOD_LOGGER_PREFIX", "Severity", "getLogger", "getModLogger", "logSeverity"]



ROOT_LOGGER_NAME = "launchpad"
MOD_LOGGER_PREFIX = f"{ROOT_LOGGER_NAME}.mod."



class Severity(str, Enum):
    """Severities shown in the loader's log view, mapped onto stdlib levels."""
    DEBUG = "debug"
    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"
    EXCEPTION = "exception"
    FATAL = "fatal"
    
    @property
    def level(self) -> int:
        return _LEVELS[self]
    
    @classmethod
    def fromRecord(cls, record: logging.LogRecord) -> Severity:
        if record.levelno >= logging.CRITICAL:
            return cls.FATAL
        if record.levelno >= logging.ERROR:
            return cls.EXCEPTION if record.exc_info else cls.ERROR
        if record.levelno >= logging.WARNING:
            return cls.WARNING
        if record.levelno >= logging.INFO:
            return cls.INFORMATION
        return cls.DEBUG



_LEVELS: dict[Severity, int] = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFORMATION: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.EXCEPTION: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}



def getLogger(name: str = "") -> logging.Logger:
    name = str(name).strip()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)



def getModLogger(displayName: str) -> logging.Logger:
    """Child logger scoped to one package. Dots would split the hierarchy, so they are replaced."""
    name = str(displayName).strip().replace(".", "_") or "unnamed"
    return logging.getLogger(f"{MOD_LOGGER_PREFIX}{name}")



def logSeverity(logger: logging.Logger, severity: Severity, message: str, *args, **kwargs) -> None:
    if severity is Severity.EXCEPTION:
        kwargs.setdefault("exc_info", True)
    logger.log(severity.level, message, *args, **kwargs)
