import smtplib
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from services.email_service import EmailDeliveryError, EmailService, get_email_service


def smtp_service(**overrides):
    settings = dict(api_key=None, sender='ofis@example.com', smtp_server='smtp.example.com', smtp_port=587,
                    smtp_use_tls=True, smtp_username='ofis', smtp_password='gizli')
    settings.update(overrides)
    return EmailService(**settings)


class TestEmailService:
    def test_sendgrid_used_when_configured(self, app):
        service = smtp_service(api_key='SG.test')
        with patch('services.email_service.SendGridAPIClient') as client_class, \
                patch('services.email_service.smtplib.SMTP') as smtp:
            client_class.return_value.send.return_value = SimpleNamespace(status_code=202, body=b'')
            service.send_email('ayse@example.com', 'Konu', '<p>Merhaba</p>', 'Merhaba')

        client_class.assert_called_once_with('SG.test')
        smtp.assert_not_called()

    def test_smtp_fallback_when_sendgrid_fails(self, app):
        service = smtp_service(api_key='SG.test')
        with patch('services.email_service.SendGridAPIClient') as client_class, \
                patch('services.email_service.smtplib.SMTP') as smtp:
            client_class.return_value.send.return_value = SimpleNamespace(status_code=500, body=b'error')
            service.send_email(['ayse@example.com'], 'Konu', '<p>Merhaba</p>')

        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with('ofis', 'gizli')
        message = server.send_message.call_args.args[0]
        assert message['To'] == 'ayse@example.com'
        assert message['Subject'] == 'Konu'

    def test_ssl_port_uses_smtp_ssl(self, app):
        service = smtp_service(smtp_port=465)
        with patch('services.email_service.smtplib.SMTP_SSL') as smtp_ssl:
            service.send_email('ayse@example.com', 'Konu', '<p>Merhaba</p>')
        smtp_ssl.return_value.__enter__.return_value.send_message.assert_called_once()

    def test_both_transports_failing_raises(self, app):
        service = smtp_service()
        with patch('services.email_service.smtplib.SMTP') as smtp:
            smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b'no')
            with pytest.raises(EmailDeliveryError):
                service.send_email('ayse@example.com', 'Konu', '<p>Merhaba</p>')

    def test_unconfigured_service_raises(self, app):
        service = EmailService()
        with pytest.raises(EmailDeliveryError):
            service.send_email('ayse@example.com', 'Konu', '<p>Merhaba</p>')

    def test_no_recipients(self, app):
        with pytest.raises(EmailDeliveryError):
            smtp_service().send_email([], 'Konu', '<p>Merhaba</p>')

    def test_service_built_from_app_config(self, app):
        app.config['MAIL_USERNAME'] = 'ofis'
        app.config['MAIL_PASSWORD'] = 'gizli'
        service = get_email_service()

        assert service is get_email_service()
        assert service.smtp_enabled is True
        assert service.sender == app.config['EMAIL_FROM']
