"""
Tests for the log formatters.
"""
import json
import logging

from chathub.core.logging import ROOT_LOGGER, JSONFormatter, TextFormatter, setup_logging


def make_record(message="Webhook processed", extra_data=None):
    record = logging.LogRecord(
        name="chathub.services.normalizer",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestFormatters:
    def test_json_merges_extra_data(self):
        line = JSONFormatter().format(make_record(extra_data={"event": "messages.upsert", "processed": 2}))
        data = json.loads(line)

        assert data["message"] == "Webhook processed"
        assert data["event"] == "messages.upsert"
        assert data["processed"] == 2

    def test_json_extra_never_hides_base_fields(self):
        line = JSONFormatter().format(make_record(extra_data={"message": "hola", "level": "x"}))
        data = json.loads(line)

        assert data["message"] == "Webhook processed"
        assert data["level"] == "INFO"
        assert data["extra_message"] == "hola"
        assert data["extra_level"] == "x"

    def test_text_appends_key_value_pairs(self):
        line = TextFormatter().format(make_record(extra_data={"instance": "sales"}))

        assert "Webhook processed" in line
        assert line.endswith("| instance=sales")


class TestSetupLogging:
    def test_repeated_setup_keeps_one_handler(self, settings):
        setup_logging(settings)
        logger = setup_logging(settings)

        assert logger.name == ROOT_LOGGER
        assert len(logger.handlers) == 1
        assert logger.propagate is False
