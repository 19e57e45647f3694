"""Display formatting of appointment data for email templates.

Formatting never raises: unparseable dates come back as the sentinel
strings INVALID_DATE / INVALID_TIME, which templates render as-is.
Dates and times are rendered in UTC.
"""

from datetime import date, datetime
from typing import Any, Dict, Union

from appointment_notifier.domain.models import Appointment
from appointment_notifier.logging import get_logger
from appointment_notifier.utils.timestamps import coerce_datetime

logger = get_logger(__name__, component="formatting")

INVALID_DATE = "Invalid Date"
INVALID_TIME = "Invalid Time"

DateInput = Union[str, date, datetime, None]


def format_date(value: DateInput) -> str:
    """Format as full weekday, month name, day and year.

    Example:
        >>> format_date("2023-12-15T14:00:00.000Z")
        'Friday, December 15, 2023'
    """
    dt = coerce_datetime(value)
    if dt is None:
        logger.warning(
            f"Cannot format date from {value!r}",
            extra={"event": "formatting.invalid_date"},
        )
        return INVALID_DATE
    return f"{dt:%A}, {dt:%B} {dt.day}, {dt.year}"


def format_time(value: DateInput) -> str:
    """Format as a 12-hour clock time with AM/PM.

    Example:
        >>> format_time("2023-12-15T14:00:00.000Z")
        '2:00 PM'
    """
    dt = coerce_datetime(value)
    if dt is None:
        logger.warning(
            f"Cannot format time from {value!r}",
            extra={"event": "formatting.invalid_time"},
        )
        return INVALID_TIME
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {meridiem}"


def format_appointment_data(appointment: Appointment) -> Dict[str, Any]:
    """Build the flat template fields shared by every appointment email.

    Returns:
        Dictionary with customer_name, service_type, appointment_date,
        appointment_time, duration, property_address, confirmation_number
        and notes (empty string when the appointment has none)
    """
    return {
        "customer_name": appointment.customer_name,
        "service_type": appointment.service_type,
        "appointment_date": format_date(appointment.scheduled_date),
        "appointment_time": format_time(appointment.scheduled_date),
        "duration": appointment.duration,
        "property_address": appointment.property_address,
        "confirmation_number": appointment.id.upper(),
        "notes": appointment.notes or "",
    }
