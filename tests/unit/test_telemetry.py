#
# tests/unit/test_telemetry.py
#
"""
Tests for structlog setup and custom processors.
"""

import io
import json
import logging

import structlog

from testfork.telemetry import setup_logging
from testfork.telemetry.logger.processors import add_emoji_processor, remove_extra_keys_processor


class TestProcessors:
    def test_emoji_from_key_wins_over_level(self) -> None:
        event = add_emoji_processor(None, "info", {"event": "spawned", "level": "info", "emoji_key": "fork"})
        assert event == {"event": "🍴 spawned", "level": "info"}

    def test_emoji_from_level(self) -> None:
        event = add_emoji_processor(None, "error", {"event": "bad", "level": "error"})
        assert event["event"] == "❌ bad"

    def test_none_values_are_dropped(self) -> None:
        assert remove_extra_keys_processor(None, "info", {"event": "x", "path": None, "n": 0}) == {"event": "x", "n": 0}


class TestSetupLogging:
    def test_json_logs_go_to_given_stream(self) -> None:
        stream = io.StringIO()
        try:
            setup_logging(level=logging.DEBUG, json_logs=True, stream=stream)
            structlog.get_logger("unit.telemetry").info("hello", answer=42)
        finally:
            structlog.reset_defaults()
            logging.getLogger().handlers.clear()

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        hello = next(record for record in records if record["event"].endswith("hello"))
        assert hello["answer"] == 42
        assert hello["logger"] == "unit.telemetry"
        assert hello["level"] == "info"

    def test_level_threshold(self) -> None:
        stream = io.StringIO()
        try:
            setup_logging(level=logging.WARNING, json_logs=True, stream=stream)
            structlog.get_logger("unit.telemetry").info("quiet")
            structlog.get_logger("unit.telemetry").warning("loud")
        finally:
            structlog.reset_defaults()
            logging.getLogger().handlers.clear()

        output = stream.getvalue()
        assert "quiet" not in output
        assert "loud" in output
