# launchpad/core/logging/formatters.py
from __future__ import annotations

import json
import logging

from .util import MOD_LOGGER_PREFIX, ROOT_LOGGER_NAME, Severity

__all__ = ["DevFormatter", "CompactFormatter", "JsonFormatter", "shortLoggerName"]



def shortLoggerName(name: str) -> str:
    """'launchpad.mod.Foo' -> 'Foo', 'launchpad' -> 'Global'."""
    if name == ROOT_LOGGER_NAME:
        return "Global"
    if name.startswith(MOD_LOGGER_PREFIX):
        return name[len(MOD_LOGGER_PREFIX):]
    return name



class JsonFormatter(logging.Formatter):
    """One-line JSON records for the log file."""
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": int(record.created * 1000),
            "level": Severity.fromRecord(record).value,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": {"id": record.thread, "name": record.threadName},
        }
        
        if record.exc_info:
            excType = record.exc_info[0]
            excValue = record.exc_info[1]
            try:
                typ = getattr(excType, "__name__", type(excType).__name__)
                msg = str(excValue)
                stack = self.formatException(record.exc_info)
            except Exception:
                typ, msg, stack = "Error", "format failed", None
            base["exc"] = {"type": typ, "message": msg, "stack": stack}
        
        return json.dumps(base, ensure_ascii=False, separators=(",", ":"), default=str)



class DevFormatter(logging.Formatter):
    """Human-friendly console formatter."""
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            msg += "\n" + str(record.stack_info)
        return f"{record.levelname}: [{shortLoggerName(record.name)}] {msg}"



class CompactFormatter(logging.Formatter):
    """Omits tracebacks and levels. Exceptions collapse to their message."""
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            msg = f"{msg} ({type(exc).__name__}: {exc})" if msg else f"{type(exc).__name__}: {exc}"
        return f"[{shortLoggerName(record.name)}] {msg}"
