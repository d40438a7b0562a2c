# launchpad/core/logging/handlers.py
from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

from .formatters import shortLoggerName
from .util import Severity

__all__ = ["DEFAULT_BUFFER_SIZE", "LogLine", "LogBufferHandler", "getLogBuffer"]



DEFAULT_BUFFER_SIZE = 512



@dataclass(frozen=True, slots=True)
class LogLine:
    loggerName: str
    severity: Severity
    message: str
    createdMs: int
    excText: str | None = None
    
    @property
    def source(self) -> str:
        return shortLoggerName(self.loggerName)
    
    def __str__(self) -> str:
        text = f"[{self.source}]: {self.message}"
        if self.excText:
            text += "\n" + self.excText
        return text



class LogBufferHandler(logging.Handler):
    """
    Keeps the most recent log lines in memory so a user can review failures
    before the host is allowed to continue.
    
    - Bounded ring buffer (oldest lines are dropped)
    - Optional severity filter (settings.logging.severities)
    - totalCount keeps counting past the buffer size
    """
    def __init__(self, size: int = DEFAULT_BUFFER_SIZE, severities: Iterable[Severity] | None = None):
        super().__init__()
        self._lines: deque[LogLine] = deque(maxlen=max(1, int(size)))
        self._lock = threading.Lock()
        self._totalCount = 0
        self.severities: frozenset[Severity] = frozenset(severities) if severities is not None else frozenset(Severity)
    
    def emit(self, record: logging.LogRecord) -> None:
        severity = Severity.fromRecord(record)
        if severity not in self.severities:
            return
        try:
            message = record.getMessage()
        except Exception:
            message = str(record.msg)
        excText = None
        if record.exc_info:
            excText = logging.Formatter().formatException(record.exc_info)
        line = LogLine(
            loggerName=record.name,
            severity=severity,
            message=message,
            createdMs=int(record.created * 1000),
            excText=excText,
        )
        with self._lock:
            self._lines.append(line)
            self._totalCount += 1
    
    @property
    def totalCount(self) -> int:
        return self._totalCount
    
    def __len__(self) -> int:
        return len(self._lines)
    
    def lines(self, loggerName: str | None = None) -> list[LogLine]:
        """Snapshot of buffered lines, optionally limited to one logger and its children."""
        with self._lock:
            snapshot = list(self._lines)
        if loggerName is None:
            return snapshot
        prefix = loggerName + "."
        return [line for line in snapshot if line.loggerName == loggerName or line.loggerName.startswith(prefix)]
    
    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
    
    def dump(self) -> str:
        """Plain text of the whole buffer (copy-to-clipboard in the UI)."""
        return "\n".join(str(line) for line in self.lines())



# Singleton accessor
__bufferHandler = LogBufferHandler()



def getLogBuffer() -> LogBufferHandler:
    return __bufferHandler
