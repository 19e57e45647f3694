"""SMTP mail transport.

Thin wrapper around smtplib implementing the MailTransport contract:
send() returns a SendResult rather than raising for delivery problems, so
callers see the same success/failure shape whichever transport is plugged in.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from appointment_notifier.config.environment import EnvironmentConfig

from .models import OutboundMessage, SendResult

logger = logging.getLogger(__name__)


class SMTPClient:
    """Sends OutboundMessages over SMTP.

    Handles connection lifecycle, TLS/SSL negotiation, authentication and
    recipient validation. The SMTP factories can be injected for testing.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """Initialize SMTP client.

        Args:
            env_config: Environment configuration with SMTP settings
            use_tls: Whether to use TLS (STARTTLS or implicit SSL)
            smtp_factory: Factory for SMTP instances (for mocking)
            smtp_ssl_factory: Factory for SMTP_SSL instances (for mocking)
        """
        self.env_config = env_config
        self.use_tls = use_tls
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(self, message: OutboundMessage) -> SendResult:
        """Send a rendered message.

        Args:
            message: Message to deliver

        Returns:
            SendResult with the generated Message-ID on success, or the
            failure reason when the recipient is invalid or SMTP fails
        """
        try:
            recipient = validate_email(message.to, check_deliverability=False).normalized
        except EmailNotValidError as e:
            error_msg = f"Invalid recipient address '{message.to}': {e}"
            logger.error(error_msg)
            return SendResult.failed(error_msg)

        email_message = self.build_message(message, recipient)
        message_id = email_message["Message-ID"]

        smtp = None
        try:
            smtp = self._connect()

            if self.use_tls and self.env_config.smtp_port != 465:
                logger.debug("Upgrading connection with STARTTLS")
                smtp.starttls(context=ssl.create_default_context())

            if self.env_config.smtp_user and self.env_config.smtp_pass:
                logger.debug(f"Authenticating as {self.env_config.smtp_user}")
                smtp.login(self.env_config.smtp_user, self.env_config.smtp_pass)

            smtp.send_message(email_message)
            logger.debug(f"Message {message_id} sent to {recipient}")
            return SendResult.ok(message_id)

        except smtplib.SMTPException as e:
            error_msg = f"SMTP error during message delivery: {e}"
            logger.error(error_msg)
            return SendResult.failed(error_msg)
        except OSError as e:
            error_msg = f"Network error during SMTP connection: {e}"
            logger.error(error_msg)
            return SendResult.failed(error_msg)
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")

    def build_message(self, message: OutboundMessage, recipient: str) -> EmailMessage:
        """Build a multipart (text + HTML) EmailMessage with tracking headers."""
        sender = build_sender_address(self.env_config)

        email_message = EmailMessage()
        email_message["Subject"] = message.subject
        email_message["From"] = sender
        email_message["To"] = recipient
        email_message["Reply-To"] = self.env_config.email_reply_to or sender
        email_message["Message-ID"] = make_msgid(domain=self.env_config.smtp_host)

        if message.appointment_id:
            email_message["X-Appointment-Id"] = message.appointment_id
        if message.type:
            email_message["X-Notification-Type"] = message.type
        for header, value in message.metadata.items():
            email_message[header] = value

        email_message.set_content(message.text)
        email_message.add_alternative(message.html, subtype="html")
        return email_message

    def _connect(self):
        """Open an SMTP connection, with implicit TLS on port 465."""
        host = self.env_config.smtp_host
        port = self.env_config.smtp_port

        if port == 465:
            logger.debug(f"Connecting to {host}:{port} with implicit TLS")
            return self.smtp_ssl_factory(host, port, context=ssl.create_default_context())

        logger.debug(f"Connecting to {host}:{port}")
        return self.smtp_factory(host, port)


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the 'From' address for outgoing emails.

    Prefers EMAIL_FROM, then SMTP_USER, then noreply@<smtp host>.

    Returns:
        Formatted sender address (e.g., "Fixwell Services <bookings@fixwell.ca>")
    """
    sender_email = (
        env_config.email_from
        or env_config.smtp_user
        or f"noreply@{env_config.smtp_host}"
    )
    return formataddr((env_config.smtp_sender_name, sender_email))
