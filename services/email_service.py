"""
Centralized Email Service using SendGrid with SMTP fallback.
Sends the savings digests and planner emails; replaces Flask-Mail.
"""
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Union

import certifi
from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

DEFAULT_SENDER = 'no-reply@pensioncrm.test'


class EmailDeliveryError(Exception):
    """Raised when neither SendGrid nor the SMTP fallback accepted a message."""
    pass


class EmailService:
    """Centralized email service: SendGrid first, SMTP second."""

    def __init__(self, api_key=None, sender=None, smtp_server=None, smtp_port=587,
                 smtp_use_tls=True, smtp_username=None, smtp_password=None):
        self.api_key = api_key
        self.sender = sender or DEFAULT_SENDER
        self._client = None

        # SMTP fallback configuration
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_use_tls = smtp_use_tls
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_enabled = bool(smtp_server and smtp_username and smtp_password)

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get('SENDGRID_API_KEY'),
            sender=config.get('EMAIL_FROM'),
            smtp_server=config.get('MAIL_SERVER'),
            smtp_port=config.get('MAIL_PORT', 587),
            smtp_use_tls=config.get('MAIL_USE_TLS', True),
            smtp_username=config.get('MAIL_USERNAME'),
            smtp_password=config.get('MAIL_PASSWORD'),
        )

    @property
    def client(self):
        """Lazy-load SendGrid client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("SENDGRID_API_KEY not configured")
            self._client = SendGridAPIClient(self.api_key)
        return self._client

    def _send_via_sendgrid(self, recipients: List[str], subject: str, html_content: str,
                           text_content: Optional[str]) -> bool:
        if not self.api_key:
            current_app.logger.info("SendGrid not configured - skipping to SMTP fallback")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender),
                to_emails=[To(address) for address in recipients],
                subject=subject,
            )
            if text_content:
                message.add_content(Content('text/plain', text_content))
            message.add_content(Content('text/html', html_content))

            response = self.client.send(message)
            if response.status_code in (200, 201, 202):
                current_app.logger.info(
                    f"✓ SendGrid email sent: to={', '.join(recipients)}, status={response.status_code}"
                )
                return True

            current_app.logger.warning(
                f"SendGrid failed: to={', '.join(recipients)}, status={response.status_code}"
            )
            current_app.logger.warning(f"Response body: {response.body}")
        except Exception as e:
            current_app.logger.warning(f"SendGrid error: to={', '.join(recipients)}, error={str(e)}")
        return False

    def _send_via_smtp(self, recipients: List[str], subject: str, html_content: str,
                       text_content: Optional[str]) -> bool:
        if not self.smtp_enabled:
            current_app.logger.warning("SMTP fallback not configured - missing MAIL_SERVER, MAIL_USERNAME or MAIL_PASSWORD")
            return False

        try:
            current_app.logger.info(f"Attempting SMTP fallback for {', '.join(recipients)}")

            msg = MIMEMultipart('alternative')
            msg['From'] = self.sender
            msg['To'] = ', '.join(recipients)
            msg['Subject'] = subject
            if text_content:
                msg.attach(MIMEText(text_content, 'plain', 'utf-8'))
            msg.attach(MIMEText(html_content, 'html', 'utf-8'))

            context = ssl.create_default_context(cafile=certifi.where())
            if self.smtp_port == 465:
                with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, context=context) as server:
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                    if self.smtp_use_tls:
                        server.starttls(context=context)
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)

            current_app.logger.info(f"✓ SMTP fallback successful for {', '.join(recipients)}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            current_app.logger.error(f"SMTP fallback failed for {', '.join(recipients)}: {str(e)}")
            return False

    def send_email(self, to: Union[str, List[str]], subject: str, html_content: str,
                   text_content: Optional[str] = None):
        """
        Send one message with automatic SMTP fallback.

        Args:
            to: Recipient address or list of addresses
            subject: Email subject line
            html_content: HTML body
            text_content: Plain-text alternative (optional)

        Raises:
            EmailDeliveryError: If both SendGrid and SMTP failed
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            raise EmailDeliveryError("Email delivery failed: no recipients")

        if self._send_via_sendgrid(recipients, subject, html_content, text_content):
            return
        if self._send_via_smtp(recipients, subject, html_content, text_content):
            return

        current_app.logger.error(f"✗ All email methods failed: to={', '.join(recipients)}")
        raise EmailDeliveryError(f"Email delivery failed: {', '.join(recipients)}")


def get_email_service() -> EmailService:
    """Get or create the email service for the current app."""
    service = current_app.extensions.get('email_service')
    if service is None:
        service = EmailService.from_config(current_app.config)
        current_app.extensions['email_service'] = service
    return service


def send_savings_digest_email(to: Union[str, List[str]], subject: str, html: str, text: str):
    get_email_service().send_email(to, subject, html, text)
