"""Tests for the structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from holder_scan.logging_config import (
    JSONFormatter,
    _RunIdFilter,
    generate_run_id,
    run_id_ctx,
    setup_logging,
)


def _record(name="test", level=logging.INFO, msg="hi", exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


class TestGenerateRunId:

    def test_shape(self):
        rid = generate_run_id()
        assert len(rid) == 12
        assert all(c in "0123456789abcdef" for c in rid)

    def test_unique(self):
        assert len({generate_run_id() for _ in range(100)}) == 100


class TestRunIdFilter:

    def test_injects_run_id(self):
        token = run_id_ctx.set("abc123")
        try:
            record = _record()
            _RunIdFilter().filter(record)
            assert record.run_id == "abc123"  # type: ignore[attr-defined]
        finally:
            run_id_ctx.reset(token)

    def test_default_dash(self):
        record = _record()
        _RunIdFilter().filter(record)
        assert record.run_id == "-"  # type: ignore[attr-defined]


class TestJSONFormatter:

    def test_basic_output(self):
        token = run_id_ctx.set("run999")
        try:
            data = json.loads(JSONFormatter().format(_record("holder_scan.scan", logging.WARNING, "slow")))
        finally:
            run_id_ctx.reset(token)
        assert data["level"] == "WARNING"
        assert data["logger"] == "holder_scan.scan"
        assert data["msg"] == "slow"
        assert data["run_id"] == "run999"

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("err", logging.ERROR, "fail", sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError" in data["exception"]


class TestSetupLogging:

    def test_json_handler_on_stderr(self):
        setup_logging(level="DEBUG", fmt="json")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.stream is sys.stderr
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_format(self):
        setup_logging(fmt="text")
        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, JSONFormatter)
