"""Template rendering for appointment emails using Jinja2.

Each template key maps to three files in the email_templates package
directory: ``<key>.subject.j2``, ``<key>.html.j2`` and ``<key>.txt.j2``.
"""

import logging
from typing import Any, Dict, List, Mapping

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import TEMPLATE_KEYS, NotificationTemplateError, NotificationType

logger = logging.getLogger(__name__)

COMMON_REQUIRED_FIELDS = (
    "customer_name",
    "service_type",
    "appointment_date",
    "appointment_time",
    "property_address",
    "confirmation_number",
)

REQUIRED_FIELDS: Dict[str, tuple] = {
    TEMPLATE_KEYS[NotificationType.CONFIRMATION]: COMMON_REQUIRED_FIELDS,
    TEMPLATE_KEYS[NotificationType.REMINDER]: COMMON_REQUIRED_FIELDS,
    TEMPLATE_KEYS[NotificationType.CANCELLATION]: COMMON_REQUIRED_FIELDS + ("booking_url",),
    TEMPLATE_KEYS[NotificationType.RESCHEDULE]: COMMON_REQUIRED_FIELDS
    + ("old_appointment_date", "old_appointment_time"),
}


class TemplateRenderer:
    """Renders appointment emails from the packaged Jinja2 templates.

    Only the known appointment template keys are accepted. Undefined
    variables raise instead of rendering blank, and HTML output is
    auto-escaped. Jinja2 caches compiled templates between calls.
    """

    def __init__(self, template_dir: str = "email_templates"):
        """Initialize template renderer with Jinja2 environment.

        Args:
            template_dir: Directory name within the notifications package
        """
        self.env = Environment(
            loader=PackageLoader("appointment_notifier.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def available_templates(self) -> List[str]:
        """List the template keys this renderer accepts."""
        return sorted(REQUIRED_FIELDS)

    def validate_fields(self, template_key: str, fields: Mapping[str, Any]) -> List[str]:
        """Report required fields that are missing or blank for a template.

        Returns:
            List of error messages; empty when the fields are complete
        """
        if template_key not in REQUIRED_FIELDS:
            return [f"Unknown template: {template_key}"]

        errors = []
        for name in REQUIRED_FIELDS[template_key]:
            value = fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"Missing required field: {name}")
        return errors

    def render(self, template_key: str, fields: Dict[str, Any]) -> Dict[str, str]:
        """Render subject, HTML body and text body for a template key.

        Args:
            template_key: One of the appointment-* template identifiers
            fields: Template variables

        Returns:
            Dictionary with "subject" (single line), "html" and "text"

        Raises:
            NotificationTemplateError: If the key is unknown or rendering fails
        """
        if template_key not in REQUIRED_FIELDS:
            raise NotificationTemplateError(f"Unknown email template: {template_key}")

        missing = self.validate_fields(template_key, fields)
        if missing:
            logger.warning(
                f"Rendering {template_key} with incomplete fields: {', '.join(missing)}",
                extra={"event": "template.fields.incomplete", "template_key": template_key},
            )

        try:
            subject_template = self.env.get_template(f"{template_key}.subject.j2")
            html_template = self.env.get_template(f"{template_key}.html.j2")
            text_template = self.env.get_template(f"{template_key}.txt.j2")

            subject = " ".join(subject_template.render(fields).split())
            html = html_template.render(fields)
            text = text_template.render(fields).strip()

        except TemplateError as e:
            error_msg = f"Failed to render email template {template_key}: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        logger.debug(f"Rendered template {template_key}")

        return {
            "subject": subject,
            "html": html,
            "text": text,
        }
