import json
import logging

import pytest

from packmanager.core.logger import clearLogContext, configureLogging, getLogContext, getLogger, setLogContext
from packmanager.core.logging.formatters import DevFormatter, JsonFormatter, RedactingFormatter


def _record(msg: str, *args) -> logging.LogRecord:
    return logging.LogRecord("packmanager.test", logging.INFO, __file__, 1, msg, args, None)


@pytest.fixture(autouse=True)
def reset_context():
    clearLogContext()
    yield
    clearLogContext()


def test_log_context_accumulates_and_clears():
    setLogContext(userId="alice", refId="main")
    setLogContext(command="select", ignored=None)
    assert getLogContext() == {"userId": "alice", "refId": "main", "command": "select"}
    clearLogContext()
    assert getLogContext() is None


def test_dev_formatter_appends_context():
    setLogContext(command="select", userId="alice", refId="main")
    line = DevFormatter().format(_record("Selected %s", "A"))
    assert line == "INFO: [packmanager.test] Selected A [select/alice/main]"


def test_json_formatter_redacts():
    setLogContext(command="refresh")
    formatter = RedactingFormatter(JsonFormatter())
    payload = json.loads(formatter.format(_record("Fetching https://bob:pw@example.org/repo.git")))
    assert payload["msg"] == "Fetching https://***@example.org/repo.git"
    assert payload["ctx"] == {"command": "refresh"}
    assert payload["level"] == "info"


def test_configureLogging_writes_json_file(tmp_path):
    logFile = tmp_path / "packmanager.log"
    root = logging.getLogger()
    savedHandlers, savedLevel = root.handlers[:], root.level
    try:
        configureLogging(logFile=logFile)
        getLogger("packs", side="test").info("hello %s", "file")
        for handler in root.handlers:
            handler.flush()
        lines = logFile.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["msg"] == "hello file"
        assert json.loads(lines[-1])["logger"] == "test.packs"
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = savedHandlers
        root.setLevel(savedLevel)
