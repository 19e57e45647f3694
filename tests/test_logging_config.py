"""Tests for logging configuration and formatters."""

import json
import logging
import sys
from datetime import datetime, timedelta, timezone

import pytest

from appointment_notifier.logging import ComponentLoggerAdapter, get_logger
from appointment_notifier.logging.config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from appointment_notifier.logging.context import log_context
from appointment_notifier.notifications.models import NotificationType


@pytest.fixture
def logger():
    """Create a test logger with handler for capturing output."""
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level changed by configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    apscheduler_level = logging.getLogger("apscheduler").level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("apscheduler").setLevel(apscheduler_level)


def make_record(logger, message="Test message", **extra):
    return logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None, extra=extra)


def test_json_formatter_basic(logger):
    """Test JSONFormatter produces valid JSON with mandatory fields."""
    log_obj = json.loads(JSONFormatter().format(make_record(logger)))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "test"
    assert "timestamp" in log_obj


def test_json_formatter_with_extra_fields(logger):
    """Test JSONFormatter includes extra fields."""
    record = make_record(logger, event="notification.queued", attempts=2, retry_remaining=True)

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "notification.queued"
    assert log_obj["attempts"] == 2
    assert log_obj["retry_remaining"] is True


def test_json_formatter_plain_values(logger):
    """Datetimes, timedeltas and enums are reduced to JSON values."""
    record = make_record(
        logger,
        scheduled_for=datetime(2023, 12, 15, 12, 0, tzinfo=timezone.utc),
        delay=timedelta(seconds=5),
        notification_type=NotificationType.REMINDER,
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["scheduled_for"] == "2023-12-15T12:00:00+00:00"
    assert log_obj["delay"] == 5.0
    assert log_obj["notification_type"] == "reminder"


def test_json_formatter_exception(logger):
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logger.makeRecord(
            "test", logging.ERROR, "test.py", 1, "Failed", (), sys.exc_info()
        )

    log_obj = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in log_obj["exc_info"]


def test_timestamp_format_in_json(logger):
    """Test that JSON formatter produces ISO-8601 UTC timestamps with milliseconds."""
    timestamp = json.loads(JSONFormatter().format(make_record(logger)))["timestamp"]

    assert timestamp.endswith("Z")
    assert "T" in timestamp
    assert len(timestamp) == 24  # 2023-12-15T10:30:00.123Z


def test_json_formatter_no_duplicate_fields(logger):
    """Standard record attributes are not repeated as extras."""
    log_obj = json.loads(JSONFormatter().format(make_record(logger, event="test.event")))

    assert "name" not in log_obj
    assert "levelname" not in log_obj
    assert log_obj["event"] == "test.event"


def test_contextual_filter_adds_static_fields(logger):
    """Test ContextualFilter adds static service and environment fields."""
    record = make_record(logger)

    ContextualFilter(environment="test").filter(record)

    assert record.service == SERVICE_NAME == "appointment-notifier"
    assert record.environment == "test"


def test_contextual_filter_adds_context_fields(logger):
    """Test ContextualFilter adds fields from log context."""
    with log_context(appointment_id="appt-123", notification_id="job-1"):
        record = make_record(logger)
        ContextualFilter().filter(record)

    assert record.appointment_id == "appt-123"
    assert record.notification_id == "job-1"


def test_contextual_filter_keeps_explicit_fields(logger):
    """Fields set at the call site win over the active context."""
    with log_context(appointment_id="from-context"):
        record = make_record(logger, appointment_id="explicit")
        ContextualFilter().filter(record)

    assert record.appointment_id == "explicit"


def test_json_formatter_with_context(logger):
    """Test full pipeline: context + filter + JSON formatter."""
    with log_context(appointment_id="appt-123", notification_type="reminder"):
        record = make_record(logger, "Sending reminder", event="notification.send.success")
        ContextualFilter(environment="test").filter(record)

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["message"] == "Sending reminder"
    assert log_obj["event"] == "notification.send.success"
    assert log_obj["service"] == "appointment-notifier"
    assert log_obj["environment"] == "test"
    assert log_obj["appointment_id"] == "appt-123"
    assert log_obj["notification_type"] == "reminder"


def test_key_value_formatter_basic(logger):
    """Test KeyValueFormatter produces readable output."""
    formatter = KeyValueFormatter("[%(levelname)s] %(name)s: %(message)s")

    output = formatter.format(make_record(logger))

    assert output == "[INFO] test: Test message"


def test_key_value_formatter_with_extras(logger):
    """Test KeyValueFormatter includes extra fields as key=value pairs."""
    formatter = KeyValueFormatter("[%(levelname)s] %(name)s: %(message)s")
    record = make_record(
        logger,
        event="notification.dispatch.retry",
        attempts=1,
        retry_remaining=False,
        error="Mailbox busy, try later",
        message_id=None,
    )

    output = formatter.format(record)

    assert "event=notification.dispatch.retry" in output
    assert "attempts=1" in output
    assert "retry_remaining=false" in output
    assert 'error="Mailbox busy, try later"' in output
    assert "message_id=null" in output


def test_key_value_formatter_skips_static_fields(logger):
    formatter = KeyValueFormatter("%(message)s")
    record = make_record(logger)
    ContextualFilter(environment="test").filter(record)

    assert formatter.format(record) == "Test message"


def test_configure_logging_invalid_level():
    """Test configure_logging rejects invalid log level."""
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    """Test configure_logging rejects invalid format type."""
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="invalid")


def test_configure_logging_json_format(restore_root_logger):
    """Test configure_logging with JSON format."""
    configure_logging(level="DEBUG", format_type="json", environment="test")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_configure_logging_key_value_format(restore_root_logger):
    """Test configure_logging with key-value format."""
    configure_logging(level="error", format_type="key-value", environment="test")

    root = restore_root_logger
    assert root.level == logging.ERROR
    assert isinstance(root.handlers[0].formatter, KeyValueFormatter)
    assert logging.getLogger("apscheduler").level == logging.ERROR


class TestGetLogger:
    """Tests for get_logger."""

    def test_plain_logger_without_component(self):
        assert isinstance(get_logger("appointment_notifier.test"), logging.Logger)

    def test_component_added_to_records(self, caplog):
        logger = get_logger("appointment_notifier.test", component="queue")
        assert isinstance(logger, ComponentLoggerAdapter)

        with caplog.at_level(logging.INFO):
            logger.info("Queued", extra={"event": "notification.queued"})

        record = caplog.records[-1]
        assert record.component == "queue"
        assert record.event == "notification.queued"

    def test_call_site_component_wins(self, caplog):
        logger = get_logger("appointment_notifier.test", component="queue")

        with caplog.at_level(logging.INFO):
            logger.info("Queued", extra={"component": "router"})

        assert caplog.records[-1].component == "router"
