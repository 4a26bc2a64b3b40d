"""Tests for structured logging helpers."""

import logging

from app.core.logging import StructuredFormatter, get_logger, log_with_context


def _record(**attrs):
    record = logging.LogRecord("app.chains.test", logging.WARNING, __file__, 10, "Section truncated", None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """key=value rendering."""

    def test_context_fields_rendered(self):
        line = StructuredFormatter().format(_record(section_id=8, extra_data={"attempt": 2}))
        assert "level=WARNING" in line
        assert "message=Section truncated" in line
        assert line.endswith("section_id=8 attempt=2")

    def test_missing_context_omitted(self):
        line = StructuredFormatter().format(_record())
        assert "section_id" not in line


class TestLogWithContext:
    """Context promotion onto log records."""

    def test_section_id_promoted(self, caplog):
        logger = get_logger("app.tests.logging")
        with caplog.at_level(logging.INFO, logger="app.tests.logging"):
            log_with_context(logger, logging.INFO, "Section 8 completed", section_id=8, duration_ms=42)

        record = caplog.records[-1]
        assert record.section_id == 8
        assert record.extra_data == {"duration_ms": 42}

    def test_get_logger_configures_once(self):
        logger = get_logger("app.tests.logging.once")
        get_logger("app.tests.logging.once")
        assert len(logger.handlers) == 1
