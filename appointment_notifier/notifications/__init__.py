"""Appointment notifications: immediate sends, deferred jobs and event routing.

This module provides the complete notification pipeline:
- AppointmentNotificationService: Facade used by the booking subsystem
- EventRouter: Lifecycle events mapped to sends and deferred jobs
- NotificationQueue: In-memory deferred queue with a dispatcher thread
- DeliveryClient: Render + send with the shared retry policy
- TemplateRenderer: Jinja2-based email template rendering
- SMTPClient: SMTP mail transport with TLS/SSL support
- Formatting utilities: Display-ready template fields
"""

from .delivery import DEFAULT_BOOKING_URL, DeliveryClient
from .formatting import (
    INVALID_DATE,
    INVALID_TIME,
    format_appointment_data,
    format_date,
    format_time,
)
from .models import (
    TEMPLATE_KEYS,
    DeliveryError,
    MailTransport,
    NotificationError,
    NotificationJob,
    NotificationOptions,
    NotificationTemplateError,
    NotificationType,
    OutboundMessage,
    PendingNotification,
    QueueStatus,
    SendResult,
    TemplateRendererProtocol,
    UnknownNotificationTypeError,
)
from .queue import NotificationQueue
from .retry import RetryPolicy
from .router import AppointmentEvent, EventRouter
from .service import AppointmentNotificationService
from .smtp_client import SMTPClient, build_sender_address
from .templates import TemplateRenderer

__all__ = [
    # Main service
    "AppointmentNotificationService",
    # Components
    "EventRouter",
    "NotificationQueue",
    "DeliveryClient",
    "RetryPolicy",
    "TemplateRenderer",
    "SMTPClient",
    # Models and contracts
    "AppointmentEvent",
    "NotificationType",
    "NotificationOptions",
    "NotificationJob",
    "OutboundMessage",
    "SendResult",
    "PendingNotification",
    "QueueStatus",
    "MailTransport",
    "TemplateRendererProtocol",
    "TEMPLATE_KEYS",
    "DEFAULT_BOOKING_URL",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "DeliveryError",
    "UnknownNotificationTypeError",
    # Utilities
    "format_appointment_data",
    "format_date",
    "format_time",
    "INVALID_DATE",
    "INVALID_TIME",
    "build_sender_address",
]
