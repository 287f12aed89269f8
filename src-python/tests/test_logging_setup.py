"""Tests for core.logging_setup — JSON log lines and root handler setup."""

from __future__ import annotations

import json
import logging
import sys

from core.logging_setup import JSONFormatter, setup_logging


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("core.test", logging.INFO, __file__, 1, msg, args, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["message"] == "hello world"
        assert data["severity"] == "INFO"
        assert data["logger"] == "core.test"

    def test_known_extras_only(self):
        data = json.loads(JSONFormatter().format(_record(session_id="s1", page=3, secret="x")))
        assert data["session_id"] == "s1"
        assert data["page"] == 3
        assert "secret" not in data

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("core.test", logging.ERROR, __file__, 1, "boom", (), sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad"


class TestSetupLogging:
    def test_json_handler(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging("json", "debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])
