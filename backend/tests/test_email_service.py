"""
Tests unitaires de l'envoi d'email de réinitialisation (SMTP mocké).
"""

from unittest.mock import patch

from coursedesk.config import settings
from coursedesk.services.email_service import send_password_reset_email


@patch("coursedesk.services.email_service.smtplib.SMTP")
def test_email_contient_le_lien(mock_smtp, monkeypatch):
    monkeypatch.setattr(settings, "FRONTEND_URL", "https://coursedesk.ecole.be")
    monkeypatch.setattr(settings, "SMTP_USERNAME", "")
    server = mock_smtp.return_value.__enter__.return_value

    send_password_reset_email("alice@ecole.be", "Alice Martin", "abc123")

    server.starttls.assert_called_once()
    server.login.assert_not_called()
    msg = server.send_message.call_args.args[0]
    assert msg["To"] == "alice@ecole.be"
    plain = msg.get_payload()[0].get_payload(decode=True).decode("utf-8")
    assert "https://coursedesk.ecole.be/reset-password/abc123" in plain


@patch("coursedesk.services.email_service.smtplib.SMTP")
def test_email_authentification_smtp(mock_smtp, monkeypatch):
    monkeypatch.setattr(settings, "SMTP_USERNAME", "robot")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "motdepasse")
    monkeypatch.setattr(settings, "SMTP_USE_TLS", False)
    server = mock_smtp.return_value.__enter__.return_value

    send_password_reset_email("alice@ecole.be", "Alice", "abc123")

    server.starttls.assert_not_called()
    server.login.assert_called_once_with("robot", "motdepasse")
