"""Delivery client: render an appointment email and hand it to the transport.

Synchronous send_* methods retry transient transport failures according to
the shared RetryPolicy and raise the last failure once attempts run out.
deliver() makes exactly one attempt and is what the queue dispatcher uses,
since the dispatcher applies the retry policy itself.
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

from appointment_notifier.domain.models import Appointment, PreviousAppointment
from appointment_notifier.logging import get_logger
from appointment_notifier.logging.context import log_context

from .formatting import format_appointment_data, format_date, format_time
from .models import (
    DeliveryError,
    MailTransport,
    NotificationOptions,
    NotificationTemplateError,
    NotificationType,
    OutboundMessage,
    SendResult,
    TemplateRendererProtocol,
    UnknownNotificationTypeError,
)
from .retry import RetryPolicy

logger = get_logger(__name__, component="delivery")

DEFAULT_BOOKING_URL = "https://fixwell-services.com"

AppointmentInput = Union[Appointment, Mapping[str, Any]]
PreviousAppointmentInput = Union[PreviousAppointment, Appointment, Mapping[str, Any]]


class DeliveryClient:
    """Renders and sends appointment notifications.

    The flow for every notification:
    1. Build template fields from the appointment (plus type-specific extras)
    2. Render subject/html/text for the type's template key
    3. Send through the mail transport, retrying on failure (send_* only)

    Template errors happen before any send and are never retried.
    """

    def __init__(
        self,
        template_renderer: TemplateRendererProtocol,
        transport: MailTransport,
        retry_policy: Optional[RetryPolicy] = None,
        default_booking_url: str = DEFAULT_BOOKING_URL,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize delivery client.

        Args:
            template_renderer: Renders template keys into subject/html/text
            transport: Mail transport used for sending
            retry_policy: Retry rules (defaults to 3 attempts, 5s linear backoff)
            default_booking_url: Rebooking link when a cancellation has none
            sleep: Blocking wait used between synchronous retries
            logger_instance: Logger instance (uses module logger if None)
        """
        self.template_renderer = template_renderer
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_booking_url = default_booking_url
        self._sleep = sleep
        self.logger = logger_instance or logger

    def send_confirmation_email(self, appointment: AppointmentInput) -> SendResult:
        """Send an appointment confirmation, retrying on transport failure."""
        return self._send_with_retry(NotificationType.CONFIRMATION, appointment)

    def send_reminder_email(self, appointment: AppointmentInput) -> SendResult:
        """Send an upcoming-visit reminder, retrying on transport failure."""
        return self._send_with_retry(NotificationType.REMINDER, appointment)

    def send_cancellation_email(
        self,
        appointment: AppointmentInput,
        cancellation_reason: Optional[str] = None,
        booking_url: Optional[str] = None,
    ) -> SendResult:
        """Send a cancellation notice with an optional reason and rebooking link."""
        options = NotificationOptions(
            cancellation_reason=cancellation_reason,
            booking_url=booking_url,
        )
        return self._send_with_retry(NotificationType.CANCELLATION, appointment, options)

    def send_reschedule_email(
        self,
        new_appointment: AppointmentInput,
        old_appointment: PreviousAppointmentInput,
        reschedule_reason: Optional[str] = None,
    ) -> SendResult:
        """Send a reschedule notice showing both the old and the new date and time."""
        options = NotificationOptions(
            old_appointment=PreviousAppointment.from_value(old_appointment),
            reschedule_reason=reschedule_reason,
        )
        return self._send_with_retry(NotificationType.RESCHEDULE, new_appointment, options)

    def deliver(
        self,
        notification_type: Union[NotificationType, str],
        appointment: AppointmentInput,
        options: Optional[NotificationOptions] = None,
    ) -> SendResult:
        """Render and send once, without retrying.

        Raises:
            UnknownNotificationTypeError: If the type is not a known notification
            NotificationTemplateError: If rendering fails
            DeliveryError: If the transport reports a failure
            Exception: Whatever the transport raises
        """
        message = self.prepare_message(notification_type, appointment, options)
        return self._attempt(message)

    def build_fields(
        self,
        notification_type: NotificationType,
        appointment: Appointment,
        options: NotificationOptions,
    ) -> Dict[str, Any]:
        """Build the template fields for a notification type."""
        fields = format_appointment_data(appointment)

        if notification_type == NotificationType.CANCELLATION:
            fields["cancellation_reason"] = options.cancellation_reason or ""
            fields["booking_url"] = options.booking_url or self.default_booking_url
        elif notification_type == NotificationType.RESCHEDULE:
            old_date = options.old_appointment.scheduled_date if options.old_appointment else None
            fields["old_appointment_date"] = format_date(old_date)
            fields["old_appointment_time"] = format_time(old_date)
            fields["reschedule_reason"] = options.reschedule_reason or ""

        return fields

    def prepare_message(
        self,
        notification_type: Union[NotificationType, str],
        appointment: AppointmentInput,
        options: Optional[NotificationOptions] = None,
    ) -> OutboundMessage:
        """Render a notification into an OutboundMessage."""
        try:
            notification_type = NotificationType(notification_type)
        except ValueError:
            raise UnknownNotificationTypeError(
                f"Unknown notification type: {notification_type}"
            ) from None

        appointment = Appointment.from_value(appointment)
        options = options or NotificationOptions()

        fields = self.build_fields(notification_type, appointment, options)
        rendered = self.template_renderer.render(notification_type.template_key, fields)

        return OutboundMessage(
            to=appointment.customer_email,
            subject=rendered["subject"],
            html=rendered["html"],
            text=rendered["text"],
            appointment_id=appointment.id,
            type=notification_type.value,
        )

    def _attempt(self, message: OutboundMessage) -> SendResult:
        """One transport call; a failure result becomes DeliveryError."""
        result = self.transport.send(message)
        if not result.success:
            raise DeliveryError(result.error or "Email send failed")
        return result

    def _send_with_retry(
        self,
        notification_type: NotificationType,
        appointment: AppointmentInput,
        options: Optional[NotificationOptions] = None,
    ) -> SendResult:
        appointment = Appointment.from_value(appointment)

        with log_context(appointment_id=appointment.id, notification_type=notification_type.value):
            try:
                message = self.prepare_message(notification_type, appointment, options)
            except NotificationTemplateError:
                self.logger.error(
                    f"Template rendering failed for {notification_type.value} email "
                    f"for appointment {appointment.id}",
                    extra={"event": "notification.send.failure", "retry_remaining": False},
                )
                raise

            max_attempts = self.retry_policy.max_attempts
            last_error: Optional[Exception] = None

            for attempt in range(1, max_attempts + 1):
                try:
                    result = self._attempt(message)
                except Exception as e:
                    last_error = e
                else:
                    self.logger.info(
                        f"{notification_type.value.capitalize()} email sent for appointment "
                        f"{appointment.id} (attempts: {attempt})",
                        extra={
                            "event": "notification.send.success",
                            "attempt": attempt,
                            "message_id": result.message_id,
                        },
                    )
                    return result

                if self.retry_policy.should_retry(attempt):
                    delay = self.retry_policy.next_delay(attempt)
                    self.logger.warning(
                        f"Email send attempt {attempt}/{max_attempts} failed for appointment "
                        f"{appointment.id}: {last_error}; retrying in {delay:.2f}s",
                        extra={
                            "event": "notification.send.failure",
                            "attempt": attempt,
                            "error_type": type(last_error).__name__,
                            "retry_remaining": True,
                        },
                    )
                    self._sleep(delay)
                else:
                    self.logger.error(
                        f"Failed to send {notification_type.value} email for appointment "
                        f"{appointment.id} after {attempt} attempts: {last_error}",
                        extra={
                            "event": "notification.send.failure",
                            "attempt": attempt,
                            "error_type": type(last_error).__name__,
                            "retry_remaining": False,
                        },
                    )

            raise last_error
