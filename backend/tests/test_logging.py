"""Tests for logging configuration."""

import json
import logging
import sys

import pytest

from fintrack.core.logging import JSONFormatter, get_logger, setup_logging


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="fintrack.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record("hello")))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "fintrack.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry

    def test_message_is_escaped(self):
        """Quotes and newlines in messages never break the JSON line."""
        line = JSONFormatter().format(_record('bad "input"\nnext'))
        assert "\n" not in line
        assert json.loads(line)["message"] == 'bad "input"\nnext'

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(_record("login", user_id=7, event="login")))
        assert entry["user_id"] == 7
        assert entry["event"] == "login"
        assert "client_ip" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed")
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    handlers = list(logging.root.handlers)
    level = logging.root.level
    sqlalchemy_level = logging.getLogger("sqlalchemy.engine").level
    yield
    logging.root.handlers = handlers
    logging.root.setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(sqlalchemy_level)


@pytest.mark.usefixtures("restore_root_logger")
class TestSetupLogging:
    def test_structured(self):
        setup_logging(level="WARNING", format_type="structured")
        assert logging.root.level == logging.WARNING
        assert isinstance(logging.root.handlers[0].formatter, JSONFormatter)

    def test_dev(self):
        setup_logging(level="DEBUG", format_type="dev")
        assert logging.root.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.DEBUG

    def test_get_logger_prefix(self):
        assert get_logger("main").name == "fintrack.main"
