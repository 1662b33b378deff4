"""
Tests for structured logging.
"""
import json
import logging
import sys

from proposalpilot.logging_config import JSONFormatter, configure_logging


def _record(**extra):
    record = logging.LogRecord(
        name="proposalpilot.engine.pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Group %s: %d proposals",
        args=("G100", 2),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_fields(self):
        entry = json.loads(JSONFormatter().format(_record(group_id="G100", run_id="abc")))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "proposalpilot.engine.pipeline"
        assert entry["message"] == "Group G100: 2 proposals"
        assert entry["group_id"] == "G100"
        assert entry["run_id"] == "abc"
        assert "batch" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestConfigureLogging:

    def test_single_handler(self):
        logger = configure_logging("debug", json_format=True)
        configure_logging("debug", json_format=True)
        assert logger.name == "proposalpilot"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_text_format(self):
        logger = configure_logging("warning", json_format=False)
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
