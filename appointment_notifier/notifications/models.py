"""Data models, collaborator contracts and exceptions for notifications.

This module defines the notification job that lives in the deferred queue,
the message and result types exchanged with the mail transport, the queue
status snapshot, and the exception hierarchy used by both send paths.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from appointment_notifier.domain.models import Appointment, PreviousAppointment
from appointment_notifier.utils.timestamps import ensure_utc, format_timestamp


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when a template key is unknown or rendering fails. Never retried."""

    pass


class DeliveryError(NotificationError):
    """Raised when the mail transport reports a failed send."""

    pass


class UnknownNotificationTypeError(NotificationError):
    """Raised when a queued job carries a type the dispatcher cannot deliver."""

    pass


class NotificationType(str, Enum):
    """Kinds of appointment notification."""

    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    RESCHEDULE = "reschedule"

    @property
    def template_key(self) -> str:
        """Template identifier used by the renderer."""
        return TEMPLATE_KEYS[self]


TEMPLATE_KEYS: Dict[NotificationType, str] = {
    NotificationType.CONFIRMATION: "appointment-confirmation",
    NotificationType.REMINDER: "appointment-reminder",
    NotificationType.CANCELLATION: "appointment-cancellation",
    NotificationType.RESCHEDULE: "appointment-reschedule",
}


def coerce_notification_type(value: Union[NotificationType, str]) -> Union[NotificationType, str]:
    """Map a string onto NotificationType, leaving unknown strings as they are.

    Unknown types are allowed into the queue; they fail at dispatch time.
    """
    if isinstance(value, NotificationType):
        return value
    try:
        return NotificationType(value)
    except ValueError:
        return value


class NotificationOptions(BaseModel):
    """Type-specific extras for a notification.

    Accepts camelCase keys (cancellationReason, oldAppointment, ...) from the
    booking API as well as snake_case.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    cancellation_reason: Optional[str] = None
    booking_url: Optional[str] = None
    old_appointment: Optional[PreviousAppointment] = None
    reschedule_reason: Optional[str] = None
    scheduled_for: Optional[datetime] = None

    @field_validator("scheduled_for")
    @classmethod
    def scheduled_for_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @field_validator("old_appointment", mode="before")
    @classmethod
    def previous_snapshot(cls, v: Any) -> Any:
        """Reduce a full Appointment to the previous-state snapshot."""
        if isinstance(v, Appointment):
            return PreviousAppointment.from_value(v)
        return v

    @classmethod
    def from_value(
        cls, value: Union["NotificationOptions", Mapping[str, Any], None]
    ) -> "NotificationOptions":
        """Accept an options model, a raw mapping, or None."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)


@dataclass
class NotificationJob:
    """A deferred notification waiting in the queue.

    Attributes:
        id: Unique per enqueue: appointment id, type, creation millis, sequence
        type: Notification type (unknown strings fail at dispatch)
        appointment: Frozen appointment snapshot taken at enqueue time
        options: Frozen type-specific extras
        created_at: When the job was enqueued (UTC)
        scheduled_for: Earliest dispatch time (UTC), never before created_at at creation
        attempts: Failed delivery attempts so far
    """

    id: str
    type: Union[NotificationType, str]
    appointment: Appointment
    options: NotificationOptions
    created_at: datetime
    scheduled_for: datetime
    attempts: int = 0

    @property
    def appointment_id(self) -> str:
        return self.appointment.id

    def is_due(self, now: datetime) -> bool:
        """Check whether the job may be dispatched at the given instant."""
        return now >= self.scheduled_for


@dataclass(frozen=True)
class OutboundMessage:
    """A rendered message handed to the mail transport."""

    to: str
    subject: str
    html: str
    text: str
    appointment_id: Optional[str] = None
    type: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    """Outcome of a single transport send.

    Attributes:
        success: Whether the transport accepted the message
        message_id: Transport message identifier on success
        error: Failure description when success is False
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message_id: str) -> "SendResult":
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        return cls(success=False, error=error)


class TemplateRendererProtocol(Protocol):
    """Contract for rendering a template into subject, html and text."""

    def render(self, template_key: str, fields: Dict[str, Any]) -> Dict[str, str]:
        ...


class MailTransport(Protocol):
    """Contract for the mail transport. May return a failure or raise."""

    def send(self, message: OutboundMessage) -> SendResult:
        ...


@dataclass(frozen=True)
class PendingNotification:
    """Public view of one queued job."""

    id: str
    type: str
    appointment_id: str
    attempts: int
    scheduled_for: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "appointmentId": self.appointment_id,
            "attempts": self.attempts,
            "scheduledFor": format_timestamp(self.scheduled_for, include_milliseconds=True),
        }


@dataclass(frozen=True)
class QueueStatus:
    """Snapshot of the deferred queue for operational tooling."""

    queue_length: int
    is_processing: bool
    pending_notifications: List[PendingNotification]

    def to_dict(self) -> Dict[str, Any]:
        """Render with the camelCase keys the admin tooling expects."""
        return {
            "queueLength": self.queue_length,
            "isProcessing": self.is_processing,
            "pendingNotifications": [p.to_dict() for p in self.pending_notifications],
        }
