"""Shared fixtures for the appointment notifier tests."""

import time
from datetime import datetime, timezone
from typing import Callable
from unittest.mock import Mock

import pytest

from appointment_notifier.domain.models import Appointment
from appointment_notifier.logging.context import clear_log_context
from appointment_notifier.notifications.models import SendResult
from appointment_notifier.utils.clock import FrozenClock


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.005) -> bool:
    """Poll predicate until it is true or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Polling helper for state changed by the dispatcher thread."""
    return _wait_for


@pytest.fixture(autouse=True)
def clean_log_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def appointment_data():
    """Appointment payload as produced by the booking API (camelCase)."""
    return {
        "id": "appt-123",
        "customerName": "Jane Doe",
        "customerEmail": "jane.doe@gmail.com",
        "serviceType": "Home Inspection",
        "scheduledDate": "2023-12-15T14:00:00.000Z",
        "duration": 120,
        "propertyAddress": "42 Elm Street, Springfield",
        "notes": "Side door is unlocked",
        "status": "confirmed",
    }


@pytest.fixture
def appointment(appointment_data):
    """Appointment on Friday, December 15, 2023 at 2:00 PM UTC."""
    return Appointment.model_validate(appointment_data)


@pytest.fixture
def frozen_clock():
    """Clock frozen at 2023-12-10 10:00 UTC, five days before the appointment."""
    return FrozenClock(datetime(2023, 12, 10, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def mock_renderer():
    """Template renderer returning a fixed rendering."""
    renderer = Mock()
    renderer.render.return_value = {
        "subject": "Test subject",
        "html": "<p>Test</p>",
        "text": "Test",
    }
    return renderer


@pytest.fixture
def mock_transport():
    """Mail transport that accepts every message."""
    transport = Mock()
    transport.send.return_value = SendResult.ok("<msg-1@smtp.test.com>")
    return transport


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Mock required environment variables for testing."""
    monkeypatch.setenv("SMTP_HOST", "smtp.test.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "user@test.com")
    monkeypatch.setenv("SMTP_PASS", "testpass123")
    monkeypatch.setenv("EMAIL_FROM", "bookings@fixwell.ca")
    for name in (
        "EMAIL_REPLY_TO",
        "SMTP_SENDER_NAME",
        "FRONTEND_URL",
        "NEXT_PUBLIC_FRONTEND_URL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
