"""Routing of appointment lifecycle events to notifications."""

import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Mapping, Optional, Union

from appointment_notifier.domain.models import Appointment
from appointment_notifier.logging import get_logger
from appointment_notifier.logging.context import log_context
from appointment_notifier.utils.clock import Clock, SystemClock
from appointment_notifier.utils.timestamps import format_timestamp

from .delivery import AppointmentInput, DeliveryClient
from .models import NotificationOptions, NotificationType
from .queue import NotificationQueue

logger = get_logger(__name__, component="router")

DEFAULT_REMINDER_HOURS = 24

OptionsInput = Union[NotificationOptions, Mapping[str, Any], None]


class AppointmentEvent(str, Enum):
    """Lifecycle events published by the booking subsystem."""

    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EventRouter:
    """Maps lifecycle events to immediate sends and deferred jobs.

    - created: confirmation now, reminder before the visit
    - updated: reschedule notice and a new reminder when the date moved
    - cancelled: cancellation notice with a rebooking link
    - completed: nothing yet
    Unknown events are logged and ignored.

    Reminders already queued for an old date are left in place when an
    appointment is rescheduled.
    """

    def __init__(
        self,
        delivery_client: DeliveryClient,
        queue: NotificationQueue,
        clock: Optional[Clock] = None,
        reminder_hours_before: float = DEFAULT_REMINDER_HOURS,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.delivery_client = delivery_client
        self.queue = queue
        self.clock = clock or SystemClock()
        self.reminder_hours_before = reminder_hours_before
        self.logger = logger_instance or logger

    def queue_notification(
        self,
        notification_type: Union[NotificationType, str],
        appointment: AppointmentInput,
        options: OptionsInput = None,
    ) -> str:
        """Snapshot the appointment and enqueue a deferred notification.

        Returns:
            The new job id
        """
        job = self.queue.create_job(
            notification_type,
            Appointment.from_value(appointment),
            NotificationOptions.from_value(options),
        )
        self.queue.enqueue(job)
        return job.id

    def schedule_reminder_email(
        self,
        appointment: AppointmentInput,
        hours_before: Optional[float] = None,
    ) -> Optional[str]:
        """Queue a reminder hours_before the visit, if that moment is still ahead.

        Returns:
            The job id, or None when the reminder time has already passed
        """
        appointment = Appointment.from_value(appointment)
        if hours_before is None:
            hours_before = self.reminder_hours_before

        if appointment.scheduled_at is None:
            self.logger.info(
                f"Appointment {appointment.id} has an invalid scheduled date, not scheduling reminder",
                extra={
                    "event": "notification.reminder.skipped",
                    "appointment_id": appointment.id,
                    "scheduled_date": appointment.scheduled_date,
                },
            )
            return None

        reminder_time = appointment.scheduled_at - timedelta(hours=hours_before)

        if reminder_time <= self.clock.now():
            self.logger.info(
                f"Reminder time has passed for appointment {appointment.id}, not scheduling",
                extra={
                    "event": "notification.reminder.skipped",
                    "appointment_id": appointment.id,
                    "reminder_time": format_timestamp(reminder_time),
                },
            )
            return None

        job_id = self.queue_notification(
            NotificationType.REMINDER,
            appointment,
            NotificationOptions(scheduled_for=reminder_time),
        )
        self.logger.info(
            f"Scheduled reminder email for appointment {appointment.id} at {format_timestamp(reminder_time)}",
            extra={
                "event": "notification.reminder.scheduled",
                "appointment_id": appointment.id,
                "notification_id": job_id,
            },
        )
        return job_id

    def handle_appointment_event(
        self,
        event: Union[AppointmentEvent, str],
        appointment: AppointmentInput,
        options: OptionsInput = None,
    ) -> None:
        """Run the notifications for a lifecycle event.

        Synchronous sends that fail after all retries propagate to the caller.
        """
        appointment = Appointment.from_value(appointment)
        options = NotificationOptions.from_value(options)

        try:
            event = AppointmentEvent(event)
        except ValueError:
            self.logger.warning(
                f"Unknown appointment event: {event}",
                extra={"event": "appointment.event.unknown", "appointment_id": appointment.id},
            )
            return

        with log_context(appointment_id=appointment.id, appointment_event=event.value):
            try:
                self._route(event, appointment, options)
            except Exception as e:
                self.logger.error(
                    f"Failed to handle appointment event {event.value} for {appointment.id}: {e}",
                    extra={"event": "appointment.event.failed", "error_type": type(e).__name__},
                )
                raise

    def _route(
        self,
        event: AppointmentEvent,
        appointment: Appointment,
        options: NotificationOptions,
    ) -> None:
        if event == AppointmentEvent.CREATED:
            self.delivery_client.send_confirmation_email(appointment)
            self.schedule_reminder_email(appointment)

        elif event == AppointmentEvent.UPDATED:
            old = options.old_appointment
            if old is None or old.scheduled_date == appointment.scheduled_date:
                self.logger.debug(
                    f"Appointment {appointment.id} updated without a date change",
                    extra={"event": "appointment.event.no_reschedule"},
                )
                return
            self.delivery_client.send_reschedule_email(
                appointment, old, options.reschedule_reason
            )
            self.schedule_reminder_email(appointment)

        elif event == AppointmentEvent.CANCELLED:
            self.delivery_client.send_cancellation_email(
                appointment, options.cancellation_reason, options.booking_url
            )

        elif event == AppointmentEvent.COMPLETED:
            self.logger.info(
                f"Appointment {appointment.id} completed",
                extra={"event": "appointment.completed"},
            )

