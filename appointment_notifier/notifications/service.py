"""Appointment notification service.

This module provides AppointmentNotificationService, the per-process facade
the booking subsystem talks to. It wires together:
- DeliveryClient: synchronous render + send with retry
- NotificationQueue: deferred jobs drained by a dispatcher thread
- EventRouter: lifecycle events mapped to sends and deferred jobs

All collaborators (renderer, transport, clock, retry policy, sleep) are
injected so the service can be driven deterministically in tests.
"""

import logging
import time
from typing import Callable, Optional, Union

from appointment_notifier.config.environment import EnvironmentConfig
from appointment_notifier.config.models import AppConfig
from appointment_notifier.logging import get_logger
from appointment_notifier.utils.clock import Clock, SystemClock

from .delivery import (
    DEFAULT_BOOKING_URL,
    AppointmentInput,
    DeliveryClient,
    PreviousAppointmentInput,
)
from .models import (
    MailTransport,
    NotificationJob,
    NotificationType,
    QueueStatus,
    SendResult,
    TemplateRendererProtocol,
)
from .queue import DEFAULT_IDLE_INTERVAL, NotificationQueue
from .retry import RetryPolicy
from .router import DEFAULT_REMINDER_HOURS, AppointmentEvent, EventRouter, OptionsInput
from .smtp_client import SMTPClient
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")


class AppointmentNotificationService:
    """Public entry point for appointment notifications.

    Synchronous send_* calls block for up to max_attempts attempts and
    raise the last failure. queue_notification() and the reminders scheduled
    by handle_appointment_event() are fire-and-forget; their failures are
    only logged.
    """

    def __init__(
        self,
        template_renderer: Optional[TemplateRendererProtocol] = None,
        transport: Optional[MailTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        default_booking_url: str = DEFAULT_BOOKING_URL,
        reminder_hours_before: float = DEFAULT_REMINDER_HOURS,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the notification service.

        Args:
            template_renderer: Template renderer (packaged Jinja2 templates if None)
            transport: Mail transport; required
            retry_policy: Retry rules for both send paths (3 attempts, 5s if None)
            clock: Source of "now" (system clock if None)
            default_booking_url: Rebooking link for cancellations without one
            reminder_hours_before: Default reminder lead time in hours
            idle_interval: Dispatcher pause between iterations, in seconds
            sleep: Blocking wait used for backoff and the dispatcher pause
            logger_instance: Logger instance (uses module logger if None)
        """
        if transport is None:
            raise ValueError("A mail transport is required")

        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock or SystemClock()
        self.logger = logger_instance or logger

        self.delivery_client = DeliveryClient(
            template_renderer=template_renderer or TemplateRenderer(),
            transport=transport,
            retry_policy=self.retry_policy,
            default_booking_url=default_booking_url,
            sleep=sleep,
        )
        self.queue = NotificationQueue(
            deliver=self._deliver_job,
            retry_policy=self.retry_policy,
            clock=self.clock,
            idle_interval=idle_interval,
            sleep=sleep,
        )
        self.router = EventRouter(
            delivery_client=self.delivery_client,
            queue=self.queue,
            clock=self.clock,
            reminder_hours_before=reminder_hours_before,
        )

    @classmethod
    def from_config(
        cls,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        transport: Optional[MailTransport] = None,
        clock: Optional[Clock] = None,
    ) -> "AppointmentNotificationService":
        """Build a service from loaded configuration.

        Uses an SMTP transport unless one is supplied. FRONTEND_URL, when set,
        takes precedence over booking.default_url.
        """
        if transport is None:
            transport = SMTPClient(env_config, use_tls=app_config.email.use_tls)

        return cls(
            transport=transport,
            retry_policy=RetryPolicy(
                max_attempts=app_config.retry.max_attempts,
                base_delay=app_config.retry.base_delay_seconds,
            ),
            clock=clock,
            default_booking_url=env_config.frontend_url or app_config.booking.default_url,
            reminder_hours_before=app_config.reminders.lead_time_hours,
            idle_interval=app_config.queue.idle_interval_seconds,
        )

    # Synchronous sends

    def send_confirmation_email(self, appointment: AppointmentInput) -> SendResult:
        return self.delivery_client.send_confirmation_email(appointment)

    def send_reminder_email(self, appointment: AppointmentInput) -> SendResult:
        return self.delivery_client.send_reminder_email(appointment)

    def send_cancellation_email(
        self,
        appointment: AppointmentInput,
        cancellation_reason: Optional[str] = None,
        booking_url: Optional[str] = None,
    ) -> SendResult:
        return self.delivery_client.send_cancellation_email(
            appointment, cancellation_reason, booking_url
        )

    def send_reschedule_email(
        self,
        new_appointment: AppointmentInput,
        old_appointment: PreviousAppointmentInput,
        reschedule_reason: Optional[str] = None,
    ) -> SendResult:
        return self.delivery_client.send_reschedule_email(
            new_appointment, old_appointment, reschedule_reason
        )

    # Deferred sends and events

    def queue_notification(
        self,
        notification_type: Union[NotificationType, str],
        appointment: AppointmentInput,
        options: OptionsInput = None,
    ) -> str:
        """Enqueue a notification for the dispatcher and return its job id."""
        return self.router.queue_notification(notification_type, appointment, options)

    def schedule_reminder_email(
        self,
        appointment: AppointmentInput,
        hours_before: Optional[float] = None,
    ) -> Optional[str]:
        """Queue a reminder; returns None when the reminder time has passed."""
        return self.router.schedule_reminder_email(appointment, hours_before)

    def handle_appointment_event(
        self,
        event: Union[AppointmentEvent, str],
        appointment: AppointmentInput,
        options: OptionsInput = None,
    ) -> None:
        self.router.handle_appointment_event(event, appointment, options)

    # Queue administration

    def get_queue_status(self) -> QueueStatus:
        return self.queue.status()

    def clear_queue(self) -> None:
        self.queue.clear()

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the dispatcher has drained the queue."""
        return self.queue.wait_until_idle(timeout)

    def _deliver_job(self, job: NotificationJob) -> SendResult:
        return self.delivery_client.deliver(job.type, job.appointment, job.options)
