"""Tests for the Jinja2 email template renderer.

Renders the packaged templates for real, covering:
- Subject, HTML and text output for each template key
- Optional sections (duration, notes, reasons)
- HTML auto-escaping
- Unknown keys and missing variables
- Required field validation
"""

import logging

import pytest

from appointment_notifier.notifications.formatting import format_appointment_data
from appointment_notifier.notifications.models import NotificationTemplateError
from appointment_notifier.notifications.templates import TemplateRenderer


@pytest.fixture
def renderer():
    return TemplateRenderer()


@pytest.fixture
def fields(appointment):
    return format_appointment_data(appointment)


def test_available_templates(renderer):
    assert renderer.available_templates() == [
        "appointment-cancellation",
        "appointment-confirmation",
        "appointment-reminder",
        "appointment-reschedule",
    ]


def test_render_confirmation(renderer, fields):
    rendered = renderer.render("appointment-confirmation", fields)

    assert rendered["subject"] == "Appointment Confirmed - Home Inspection on Friday, December 15, 2023"
    assert "Hi Jane Doe," in rendered["html"]
    assert "APPT-123" in rendered["html"]
    assert "Duration: 120 minutes" in rendered["text"]
    assert "Time: 2:00 PM" in rendered["text"]
    assert "Your Notes: Side door is unlocked" in rendered["text"]
    assert rendered["text"].startswith("Hi Jane Doe,")


def test_render_without_duration_or_notes(renderer, fields):
    fields["duration"] = None
    fields["notes"] = ""

    rendered = renderer.render("appointment-confirmation", fields)

    assert "Duration:" not in rendered["text"]
    assert "Duration</td>" not in rendered["html"]
    assert "Your Notes" not in rendered["text"]


def test_render_reminder(renderer, fields):
    rendered = renderer.render("appointment-reminder", fields)

    assert rendered["subject"] == "Reminder: Your Home Inspection Appointment Tomorrow"
    assert "PREPARATION CHECKLIST" in rendered["text"]


def test_render_cancellation(renderer, fields):
    fields["cancellation_reason"] = "Technician unavailable"
    fields["booking_url"] = "https://book.fixwell.ca"

    rendered = renderer.render("appointment-cancellation", fields)

    assert rendered["subject"] == "Appointment Cancelled - Home Inspection on Friday, December 15, 2023"
    assert "Cancellation Reason: Technician unavailable" in rendered["text"]
    assert "Book a new appointment: https://book.fixwell.ca" in rendered["text"]
    assert 'href="https://book.fixwell.ca"' in rendered["html"]


def test_render_cancellation_without_reason(renderer, fields):
    fields["cancellation_reason"] = ""
    fields["booking_url"] = "https://fixwell-services.com"

    rendered = renderer.render("appointment-cancellation", fields)

    assert "Cancellation Reason" not in rendered["text"]


def test_render_reschedule(renderer, fields):
    fields["old_appointment_date"] = "Wednesday, December 13, 2023"
    fields["old_appointment_time"] = "10:00 AM"
    fields["reschedule_reason"] = "Customer request"

    rendered = renderer.render("appointment-reschedule", fields)

    assert rendered["subject"] == "Appointment Rescheduled - New Date: Friday, December 15, 2023"
    assert "Date: Wednesday, December 13, 2023" in rendered["text"]
    assert "Time: 10:00 AM" in rendered["text"]
    assert "Reason for Rescheduling: Customer request" in rendered["text"]
    assert "Wednesday, December 13, 2023 at 10:00 AM" in rendered["html"]


def test_html_is_escaped_text_is_not(renderer, fields):
    fields["customer_name"] = "<b>Jane</b>"

    rendered = renderer.render("appointment-confirmation", fields)

    assert "&lt;b&gt;Jane&lt;/b&gt;" in rendered["html"]
    assert "<b>Jane</b>" not in rendered["html"]
    assert "Hi <b>Jane</b>," in rendered["text"]


def test_subject_is_single_line(renderer, fields):
    fields["service_type"] = "Roof\nRepair"

    rendered = renderer.render("appointment-reminder", fields)

    assert "\n" not in rendered["subject"]
    assert rendered["subject"] == "Reminder: Your Roof Repair Appointment Tomorrow"


def test_unknown_template_key(renderer, fields):
    with pytest.raises(NotificationTemplateError, match="Unknown email template"):
        renderer.render("appointment-invoice", fields)


def test_missing_variable_raises(renderer, fields):
    del fields["customer_name"]

    with pytest.raises(NotificationTemplateError, match="appointment-confirmation"):
        renderer.render("appointment-confirmation", fields)


def test_validate_fields_complete(renderer, fields):
    assert renderer.validate_fields("appointment-confirmation", fields) == []


def test_validate_fields_reports_missing(renderer, fields):
    fields["property_address"] = "  "

    errors = renderer.validate_fields("appointment-cancellation", fields)

    assert "Missing required field: property_address" in errors
    assert "Missing required field: booking_url" in errors


def test_validate_fields_unknown_template(renderer, fields):
    assert renderer.validate_fields("nope", fields) == ["Unknown template: nope"]


def test_render_warns_on_blank_required_field(renderer, fields, caplog):
    fields["property_address"] = ""

    with caplog.at_level(logging.WARNING, logger="appointment_notifier.notifications.templates"):
        result = renderer.render("appointment-confirmation", fields)

    assert result["subject"]
    records = [r for r in caplog.records if getattr(r, "event", None) == "template.fields.incomplete"]
    assert len(records) == 1
    assert "property_address" in records[0].getMessage()


def test_render_complete_fields_does_not_warn(renderer, fields, caplog):
    fields["duration"] = None

    with caplog.at_level(logging.WARNING, logger="appointment_notifier.notifications.templates"):
        renderer.render("appointment-reminder", fields)

    assert not [r for r in caplog.records if getattr(r, "event", None) == "template.fields.incomplete"]
