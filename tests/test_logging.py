"""
Tests for the structured logger and its formatters.
"""

import json
import logging

from shared.config.logging import (
    DevelopmentFormatter,
    StructuredFormatter,
    StructuredLogger,
    get_logger,
)
from shared.infrastructure.correlation import ConnectionIdFilter, connection_id_var


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []
        self.addFilter(ConnectionIdFilter())

    def emit(self, record):
        self.records.append(record)


def _capture(name):
    logger = get_logger(name)
    handler = _Capture()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, handler


class TestStructuredLogger:
    """Tests for keyword fields on log calls."""

    def test_logger_class(self):
        assert isinstance(get_logger("tests.logging.class"), StructuredLogger)

    def test_fields_become_extra_data(self):
        logger, handler = _capture("tests.logging.fields")

        logger.info("User registered", identity="alice", session_id="s-1")

        record = handler.records[0]
        assert record.getMessage() == "User registered"
        assert record.extra_data == {"identity": "alice", "session_id": "s-1"}

    def test_no_fields(self):
        logger, handler = _capture("tests.logging.plain")

        logger.warning("Liveness monitor already running")

        assert handler.records[0].extra_data is None

    def test_exc_info_is_not_a_field(self):
        logger, handler = _capture("tests.logging.exc")

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("Error in liveness task", task="sweep", exc_info=True)

        record = handler.records[0]
        assert record.exc_info is not None
        assert record.extra_data == {"task": "sweep"}

    def test_connection_id_attached(self):
        logger, handler = _capture("tests.logging.connection")

        token = connection_id_var.set("abc123")
        try:
            logger.info("inside")
        finally:
            connection_id_var.reset(token)
        logger.info("outside")

        assert handler.records[0].connection_id == "abc123"
        assert handler.records[1].connection_id == "-"


class TestFormatters:
    """Tests for the JSON and development formatters."""

    def _record(self, **extra_data):
        logger, handler = _capture("tests.logging.format")
        token = connection_id_var.set("c0ffee")
        try:
            logger.info("Client connected", **extra_data)
        finally:
            connection_id_var.reset(token)
        return handler.records[-1]

    def test_json_output(self):
        record = self._record(connection="c0ffee", users_online=2)

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Client connected"
        assert entry["connection_id"] == "c0ffee"
        assert entry["data"] == {"connection": "c0ffee", "users_online": 2}
        assert "source" not in entry

    def test_json_source_location(self):
        record = self._record()

        entry = json.loads(StructuredFormatter(include_source=True).format(record))

        assert entry["source"]

    def test_development_output(self):
        record = self._record(users_online=2)

        line = DevelopmentFormatter().format(record)

        assert "c0ffee" in line
        assert "Client connected" in line
        assert "users_online=2" in line
