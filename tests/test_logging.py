"""
Test structured logging.
"""

import json
import logging

from policyflow import logging as structured
from policyflow.logging import StructuredLogFormatter, StructuredLogger, clip
from policyflow.settings import settings


def make_record(message, level=logging.INFO, **fields):
    record = logging.LogRecord("policyflow.test", level, __file__, 10, message, None, None)
    record.structured_data = fields
    return record


class TestFormatter:
    """Tests for the JSON line formatter."""

    def test_fields_rendered(self):
        line = StructuredLogFormatter().format(make_record("case_validated", status="approved"))
        entry = json.loads(line)

        assert entry["event"] == "case_validated"
        assert entry["service"] == "policyflow"
        assert entry["level"] == "INFO"
        assert entry["status"] == "approved"
        assert "source" not in entry

    def test_errors_carry_source(self):
        line = StructuredLogFormatter().format(make_record("boom", level=logging.ERROR))
        assert "test_logging.py:10" in json.loads(line)["source"]

    def test_long_fields_clipped(self):
        line = StructuredLogFormatter().format(make_record("raw", preview="x" * 5000))
        preview = json.loads(line)["preview"]

        assert preview.startswith("x" * 2000)
        assert preview.endswith("[3000 more chars]")

    def test_clip_leaves_other_values(self):
        assert clip(42) == 42
        assert clip("short") == "short"


class TestStructuredLogger:
    """Tests for bound context."""

    def test_bind_adds_context(self, caplog):
        caplog.set_level(logging.INFO, logger="policyflow.test")
        log = StructuredLogger("policyflow.test").bind(policy_id="p-1")

        log.info("case_extracted", fields=3)

        record = caplog.records[-1]
        assert record.getMessage() == "case_extracted"
        assert record.structured_data == {"policy_id": "p-1", "fields": 3}

    def test_call_fields_override_context(self, caplog):
        caplog.set_level(logging.INFO, logger="policyflow.test")
        log = StructuredLogger("policyflow.test").bind(handle="files/1")

        log.warning("document_cleanup_failed", handle="files/2")

        assert caplog.records[-1].structured_data == {"handle": "files/2"}

    def test_bind_does_not_change_parent(self):
        parent = StructuredLogger("policyflow.test")
        child = parent.bind(title="Permit")

        assert child.name == parent.name
        assert parent._context == {}

    def test_exception_attaches_traceback(self, caplog):
        caplog.set_level(logging.INFO, logger="policyflow.test")
        log = StructuredLogger("policyflow.test")

        try:
            raise RuntimeError("delete failed")
        except RuntimeError:
            log.exception("document_cleanup_failed")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.exc_info is not None


class TestConfiguration:
    def test_get_logger_uses_settings(self, monkeypatch):
        calls = []
        monkeypatch.setattr(structured, "_configured", False)
        monkeypatch.setattr(structured, "configure_logging", lambda **kw: calls.append(kw))
        monkeypatch.setattr(settings, "log_file", "/tmp/policyflow.log")

        structured.get_logger("policyflow.test")

        assert calls == [{
            "level": settings.log_level,
            "json_output": settings.log_json,
            "log_file": "/tmp/policyflow.log",
        }]
