"""Domain models for the appointment notifier."""

from .models import Appointment, AppointmentStatus, PreviousAppointment

__all__ = ["Appointment", "AppointmentStatus", "PreviousAppointment"]
