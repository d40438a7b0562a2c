# tests/launchpad/core/test_logging.py
from __future__ import annotations

import json
import logging

import pytest

from launchpad.app.settings import LoggingSettings
from launchpad.core.logging import (
    LogBufferHandler,
    Severity,
    configureLogging,
    getLogBuffer,
    getLogger,
    getModLogger,
    logSeverity,
)
from launchpad.core.logging.formatters import CompactFormatter, DevFormatter, JsonFormatter, shortLoggerName


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger("launchpad")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield root
    for handler in root.handlers:
        if handler not in handlers and handler is not getLogBuffer():
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate


def _record(name: str, level: int, msg: str, exc: BaseException | None = None) -> logging.LogRecord:
    excInfo = (type(exc), exc, exc.__traceback__) if exc is not None else None
    return logging.LogRecord(name, level, __file__, 1, msg, (), excInfo)


def test_logger_names():
    assert getLogger().name == "launchpad"
    assert getLogger("mods").name == "launchpad.mods"
    assert getModLogger("My.Mod").name == "launchpad.mod.My_Mod"
    assert getModLogger("  ").name == "launchpad.mod.unnamed"


def test_short_logger_name():
    assert shortLoggerName("launchpad") == "Global"
    assert shortLoggerName("launchpad.mod.Foo") == "Foo"
    assert shortLoggerName("launchpad.mods.loader") == "launchpad.mods.loader"


def test_severity_from_record():
    try:
        raise ValueError("x")
    except ValueError as err:
        withExc = _record("a", logging.ERROR, "m", err)
    assert Severity.fromRecord(withExc) is Severity.EXCEPTION
    assert Severity.fromRecord(_record("a", logging.ERROR, "m")) is Severity.ERROR
    assert Severity.fromRecord(_record("a", logging.CRITICAL, "m")) is Severity.FATAL
    assert Severity.fromRecord(_record("a", logging.INFO, "m")) is Severity.INFORMATION
    assert Severity.EXCEPTION.level == logging.ERROR


def test_buffer_is_bounded_and_filtered():
    buffer = LogBufferHandler(size=2, severities=[Severity.WARNING, Severity.ERROR])
    for index in range(3):
        buffer.handle(_record("launchpad.mod.A", logging.WARNING, f"w{index}"))
    buffer.handle(_record("launchpad.mod.A", logging.INFO, "ignored"))
    buffer.handle(_record("launchpad.mod.B", logging.ERROR, "e"))

    assert len(buffer) == 2
    assert buffer.totalCount == 4
    assert [line.message for line in buffer.lines()] == ["w2", "e"]
    assert [line.message for line in buffer.lines("launchpad.mod.B")] == ["e"]
    assert buffer.dump() == "[A]: w2\n[B]: e"
    buffer.clear()
    assert buffer.lines() == []


def test_formatters():
    try:
        raise RuntimeError("bad")
    except RuntimeError as err:
        record = _record("launchpad.mod.Foo", logging.ERROR, "failed", err)

    assert CompactFormatter().format(record) == "[Foo] failed (RuntimeError: bad)"
    assert DevFormatter().format(record).startswith("ERROR: [Foo] failed\nTraceback")
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "exception"
    assert payload["logger"] == "launchpad.mod.Foo"
    assert payload["exc"]["type"] == "RuntimeError"


def test_log_severity_adds_exc_info(caplog):
    logger = getModLogger("Sev")
    with caplog.at_level(logging.DEBUG):
        try:
            raise KeyError("k")
        except KeyError:
            logSeverity(logger, Severity.EXCEPTION, "load failed: %s", "k")
        logSeverity(logger, Severity.INFORMATION, "fine")

    assert caplog.records[0].exc_info is not None
    assert caplog.records[0].levelno == logging.ERROR
    assert caplog.records[1].levelno == logging.INFO


def test_configure_logging(restore_root_logger, tmp_path):
    logPath = tmp_path / "logs" / "launchpad.log"
    settings = LoggingSettings(level="info", compactLogs=True, severities=[Severity.ERROR])

    root = configureLogging(settings, logPath)
    getModLogger("Configured").error("written")
    for handler in root.handlers:
        handler.flush()

    assert root is restore_root_logger
    assert root.level == logging.INFO
    assert root.propagate is False
    assert getLogBuffer() in root.handlers
    assert getLogBuffer().severities == frozenset({Severity.ERROR})
    assert any(line.message == "written" for line in getLogBuffer().lines("launchpad.mod.Configured"))
    lines = logPath.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["msg"] == "written"
    getLogBuffer().severities = frozenset(Severity)
    getLogBuffer().setLevel(logging.NOTSET)
