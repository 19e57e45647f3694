"""Domain models for appointments as seen by the notifier.

The booking subsystem owns appointments; the notifier only receives
snapshots of them. Models are frozen so a snapshot captured for a deferred
notification cannot change after it was queued.

Scheduled dates that cannot be parsed are kept as their raw text rather
than rejected: emails still go out with the "Invalid Date" placeholder,
and anything that needs the actual instant (reminders) checks
scheduled_at first.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from appointment_notifier.utils.timestamps import coerce_datetime


class AppointmentStatus(str, Enum):
    """Booking-side appointment status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class _ScheduledSnapshot(BaseModel):
    """Base for appointment snapshots that carry a scheduled date."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    scheduled_date: Union[datetime, str] = Field(
        ..., description="Start of the visit (UTC), or the raw value when unparseable"
    )

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def scheduled_date_utc(cls, v: Any) -> Union[datetime, str]:
        """Normalize parseable dates to UTC; keep anything else as raw text.

        Naive datetimes are treated as UTC.
        """
        if v is None:
            raise ValueError("scheduled_date is required")
        parsed = coerce_datetime(v)
        if parsed is not None:
            return parsed
        return str(v)

    @property
    def scheduled_at(self) -> Optional[datetime]:
        """The visit start as a UTC datetime, or None when the date is malformed."""
        if isinstance(self.scheduled_date, datetime):
            return self.scheduled_date
        return None


class Appointment(_ScheduledSnapshot):
    """Read-only snapshot of a booked house-visit appointment.

    Accepts the booking API's camelCase payloads (customerName,
    scheduledDate, ...) as well as snake_case field names.
    """

    id: str = Field(..., description="Appointment identifier from the booking store")
    customer_name: str = Field(..., description="Customer display name")
    customer_email: str = Field(..., description="Address notifications are sent to")
    service_type: str = Field(..., description="Kind of visit, e.g. Home Inspection")
    duration: Optional[int] = Field(None, ge=0, description="Visit length in minutes")
    property_address: str = Field("", description="Where the visit takes place")
    notes: Optional[str] = Field(None, description="Free-text customer notes")
    status: AppointmentStatus = Field(AppointmentStatus.SCHEDULED, description="Booking status")

    @field_validator("id", "customer_name", "customer_email", "service_type")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Strip whitespace from required string fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    @classmethod
    def from_value(cls, value: Union["Appointment", Mapping[str, Any]]) -> "Appointment":
        """Accept either an Appointment or a raw mapping from the booking API."""
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)


class PreviousAppointment(_ScheduledSnapshot):
    """The earlier state of a rescheduled appointment.

    Only the scheduled date is needed to describe the change, so the booking
    subsystem may send just {"scheduledDate": ...}. A full Appointment is
    accepted too.
    """

    id: Optional[str] = None
    service_type: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)

    @classmethod
    def from_value(
        cls, value: Union["PreviousAppointment", Appointment, Mapping[str, Any]]
    ) -> "PreviousAppointment":
        """Accept a PreviousAppointment, an Appointment, or a raw mapping."""
        if isinstance(value, cls):
            return value
        if isinstance(value, BaseModel):
            value = value.model_dump()
        return cls.model_validate(value)
