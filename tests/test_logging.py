"""Tests for structured JSON logging."""

import json
import logging
import sys

from utils.logging import StructuredFormatter, get_logger, request_id_var, setup_logging


def _record(msg="test", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="imgpress.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def test_structured_log_format():
    """Log output is valid JSON with required fields."""
    parsed = json.loads(StructuredFormatter().format(_record("Test error message", logging.ERROR)))
    assert parsed["severity"] == "ERROR"
    assert parsed["message"] == "Test error message"
    assert parsed["logger"] == "imgpress.test"
    assert "timestamp" in parsed


def test_log_includes_context_and_request_id():
    record = _record("Compression complete")
    record.context = {"format": "webp", "quality": 80, "ratio": 42.5}
    record.request_id = "test-uuid-123"

    parsed = json.loads(StructuredFormatter().format(record))
    assert parsed["context"]["format"] == "webp"
    assert parsed["context"]["ratio"] == 42.5
    assert parsed["request_id"] == "test-uuid-123"


def test_non_json_context_values_stringified():
    record = _record()
    record.context = {"path": object()}
    parsed = json.loads(StructuredFormatter().format(record))
    assert parsed["context"]["path"].startswith("<object")


def test_log_severity_mapping():
    formatter = StructuredFormatter()
    for level in (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL):
        parsed = json.loads(formatter.format(_record(level=level)))
        assert parsed["severity"] == logging.getLevelName(level)


def test_get_logger_namespace():
    """get_logger returns logger under 'imgpress' namespace."""
    assert get_logger("test.module").name == "imgpress.test.module"


def test_log_exception_includes_traceback():
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()

    parsed = json.loads(StructuredFormatter().format(_record("Caught", logging.ERROR, exc_info)))
    assert "ValueError: test error" in parsed["traceback"]


def test_setup_logging_is_idempotent():
    setup_logging("DEBUG")
    root = setup_logging("warning")
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    assert root.propagate is False
    assert isinstance(root.handlers[0].formatter, StructuredFormatter)


def test_setup_logging_unknown_level_defaults_to_info():
    assert setup_logging("chatty").level == logging.INFO


def test_request_id_taken_from_context():
    token = request_id_var.set("req-42")
    try:
        parsed = json.loads(StructuredFormatter().format(_record()))
    finally:
        request_id_var.reset(token)
    assert parsed["request_id"] == "req-42"


def test_no_request_id_outside_requests():
    parsed = json.loads(StructuredFormatter().format(_record()))
    assert "request_id" not in parsed
