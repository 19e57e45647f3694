"""Appointment Notifier: customer emails for appointment lifecycle events."""

__version__ = "0.1.0"
