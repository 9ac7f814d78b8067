"""Unit tests for logging setup."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import json
import logging
import pytest
from logger import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def _record(message="Answered conversation c1", **extra):
    record = logging.LogRecord("services.chat_handler", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.chat_handler"
        assert data["message"] == "Answered conversation c1"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields_included(self):
        data = json.loads(JSONFormatter().format(_record(conversation_id="c1", documents_retrieved=2)))

        assert data["conversation_id"] == "c1"
        assert data["documents_retrieved"] == 2
        assert "args" not in data
        assert "levelno" not in data

    def test_exception_included(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad value" in data["exception"]


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_json_format(self, restore_root_logger):
        setup_logging("DEBUG", "json")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_format_replaces_handlers(self, restore_root_logger):
        setup_logging("info", "text")
        setup_logging("warning", "text")

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
