"""Unit tests for the delivery client.

Tests the DeliveryClient for:
- Rendering and sending each notification type
- Type-specific template fields (booking URL fallback, old date/time)
- Synchronous retry with linear backoff
- Propagation of the final failure
- Template failures that are never retried
- Single-attempt delivery used by the dispatcher
"""

from unittest.mock import Mock, call

import pytest

from appointment_notifier.domain.models import Appointment
from appointment_notifier.notifications.delivery import DEFAULT_BOOKING_URL, DeliveryClient
from appointment_notifier.notifications.models import (
    DeliveryError,
    NotificationOptions,
    NotificationTemplateError,
    NotificationType,
    SendResult,
    UnknownNotificationTypeError,
)
from appointment_notifier.notifications.retry import RetryPolicy


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def client(mock_renderer, mock_transport, sleep):
    return DeliveryClient(
        template_renderer=mock_renderer,
        transport=mock_transport,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5),
        sleep=sleep,
    )


@pytest.fixture
def old_appointment(appointment_data):
    appointment_data["scheduledDate"] = "2023-12-13T10:00:00Z"
    return Appointment.model_validate(appointment_data)


def rendered_fields(renderer):
    """Fields passed to the most recent render call."""
    return renderer.render.call_args[0][1]


class TestSendSuccess:
    """Synchronous sends that succeed on the first attempt."""

    def test_confirmation(self, client, appointment, mock_renderer, mock_transport, sleep):
        result = client.send_confirmation_email(appointment)

        assert result.success is True
        assert result.message_id == "<msg-1@smtp.test.com>"
        mock_renderer.render.assert_called_once()
        assert mock_renderer.render.call_args[0][0] == "appointment-confirmation"
        assert rendered_fields(mock_renderer)["appointment_date"] == "Friday, December 15, 2023"

        message = mock_transport.send.call_args[0][0]
        assert message.to == "jane.doe@gmail.com"
        assert message.subject == "Test subject"
        assert message.html == "<p>Test</p>"
        assert message.text == "Test"
        assert message.appointment_id == "appt-123"
        assert message.type == "confirmation"
        sleep.assert_not_called()

    def test_reminder(self, client, appointment, mock_renderer):
        client.send_reminder_email(appointment)

        assert mock_renderer.render.call_args[0][0] == "appointment-reminder"

    def test_accepts_camel_case_mapping(self, client, appointment_data, mock_transport):
        client.send_confirmation_email(appointment_data)

        assert mock_transport.send.call_args[0][0].to == "jane.doe@gmail.com"

    def test_cancellation_default_booking_url(self, client, appointment, mock_renderer):
        client.send_cancellation_email(appointment)

        assert mock_renderer.render.call_args[0][0] == "appointment-cancellation"
        fields = rendered_fields(mock_renderer)
        assert fields["booking_url"] == DEFAULT_BOOKING_URL == "https://fixwell-services.com"
        assert fields["cancellation_reason"] == ""

    def test_cancellation_with_reason_and_url(self, client, appointment, mock_renderer):
        client.send_cancellation_email(appointment, "Weather", "https://book.fixwell.ca")

        fields = rendered_fields(mock_renderer)
        assert fields["booking_url"] == "https://book.fixwell.ca"
        assert fields["cancellation_reason"] == "Weather"

    def test_configured_default_booking_url(self, mock_renderer, mock_transport, appointment):
        client = DeliveryClient(
            mock_renderer, mock_transport, default_booking_url="https://book.fixwell.ca"
        )

        client.send_cancellation_email(appointment)

        assert rendered_fields(mock_renderer)["booking_url"] == "https://book.fixwell.ca"

    def test_reschedule(self, client, appointment, old_appointment, mock_renderer):
        client.send_reschedule_email(appointment, old_appointment, "Customer request")

        assert mock_renderer.render.call_args[0][0] == "appointment-reschedule"
        fields = rendered_fields(mock_renderer)
        assert fields["appointment_date"] == "Friday, December 15, 2023"
        assert fields["appointment_time"] == "2:00 PM"
        assert fields["old_appointment_date"] == "Wednesday, December 13, 2023"
        assert fields["old_appointment_time"] == "10:00 AM"
        assert fields["reschedule_reason"] == "Customer request"


class TestSendRetry:
    """Retry behaviour of the synchronous path."""

    def test_succeeds_on_third_attempt(self, client, appointment, mock_transport, sleep):
        mock_transport.send.side_effect = [
            SendResult.failed("Mailbox busy"),
            ConnectionError("connection reset"),
            SendResult.ok("<msg-3@smtp.test.com>"),
        ]

        result = client.send_confirmation_email(appointment)

        assert result.success is True
        assert result.message_id == "<msg-3@smtp.test.com>"
        assert mock_transport.send.call_count == 3
        assert sleep.call_args_list == [call(0.5), call(1.0)]

    def test_failure_result_raises_delivery_error(self, client, appointment, mock_transport, sleep):
        mock_transport.send.return_value = SendResult.failed("SMTP server down")

        with pytest.raises(DeliveryError, match="SMTP server down"):
            client.send_confirmation_email(appointment)

        assert mock_transport.send.call_count == 3
        assert sleep.call_count == 2

    def test_raised_exception_propagates_as_itself(self, client, appointment, mock_transport):
        mock_transport.send.side_effect = [
            TimeoutError("first"),
            TimeoutError("second"),
            TimeoutError("final"),
        ]

        with pytest.raises(TimeoutError, match="final"):
            client.send_reminder_email(appointment)

        assert mock_transport.send.call_count == 3

    def test_failure_without_error_text(self, client, appointment, mock_transport):
        mock_transport.send.return_value = SendResult(success=False)

        with pytest.raises(DeliveryError, match="Email send failed"):
            client.send_confirmation_email(appointment)

    def test_single_attempt_policy(self, mock_renderer, mock_transport, appointment, sleep):
        client = DeliveryClient(
            mock_renderer, mock_transport, retry_policy=RetryPolicy(max_attempts=1), sleep=sleep
        )
        mock_transport.send.return_value = SendResult.failed("nope")

        with pytest.raises(DeliveryError):
            client.send_confirmation_email(appointment)

        assert mock_transport.send.call_count == 1
        sleep.assert_not_called()

    def test_template_error_not_retried(self, client, appointment, mock_renderer, mock_transport, sleep):
        mock_renderer.render.side_effect = NotificationTemplateError("broken template")

        with pytest.raises(NotificationTemplateError):
            client.send_confirmation_email(appointment)

        mock_renderer.render.assert_called_once()
        mock_transport.send.assert_not_called()
        sleep.assert_not_called()


class TestDeliver:
    """Single-attempt delivery used by the dispatcher."""

    def test_deliver_success(self, client, appointment, mock_transport):
        result = client.deliver(NotificationType.REMINDER, appointment)

        assert result.success is True
        mock_transport.send.assert_called_once()

    def test_deliver_accepts_type_string(self, client, appointment, mock_renderer):
        client.deliver("reminder", appointment)

        assert mock_renderer.render.call_args[0][0] == "appointment-reminder"

    def test_deliver_does_not_retry(self, client, appointment, mock_transport, sleep):
        mock_transport.send.return_value = SendResult.failed("SMTP server down")

        with pytest.raises(DeliveryError):
            client.deliver(NotificationType.REMINDER, appointment)

        assert mock_transport.send.call_count == 1
        sleep.assert_not_called()

    def test_deliver_unknown_type(self, client, appointment, mock_renderer):
        with pytest.raises(UnknownNotificationTypeError, match="invoice"):
            client.deliver("invoice", appointment)

        mock_renderer.render.assert_not_called()

    def test_deliver_with_options(self, client, appointment, mock_renderer):
        options = NotificationOptions(cancellation_reason="Storm")

        client.deliver(NotificationType.CANCELLATION, appointment, options)

        assert rendered_fields(mock_renderer)["cancellation_reason"] == "Storm"


def test_reschedule_fields_without_old_appointment(client, appointment):
    fields = client.build_fields(NotificationType.RESCHEDULE, appointment, NotificationOptions())

    assert fields["old_appointment_date"] == "Invalid Date"
    assert fields["old_appointment_time"] == "Invalid Time"
    assert fields["reschedule_reason"] == ""
