"""
Tests for the SMTP email service.
"""
import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from pickup_orders import config
from pickup_orders import email_service
from pickup_orders.errors import NotificationError


@pytest.fixture
def smtp_configured(monkeypatch):
    monkeypatch.setattr(config, "SMTP_HOST", "smtp.test.local")
    monkeypatch.setattr(config, "SMTP_PORT", 587)
    monkeypatch.setattr(config, "SMTP_USERNAME", "orders")
    monkeypatch.setattr(config, "SMTP_PASSWORD", "secret")
    monkeypatch.setattr(config, "SMTP_FROM_EMAIL", "orders@zsmokeshop.test")


def test_normalize_email_address():
    assert email_service.normalize_email_address("  Jordan@Gmail.com ") == "Jordan@gmail.com"
    assert email_service.normalize_email_address("not-an-email") is None
    assert email_service.normalize_email_address("") is None


def test_mock_mode_logs_instead_of_sending(monkeypatch, caplog):
    monkeypatch.setattr(config, "SMTP_HOST", None)

    with caplog.at_level(logging.INFO, logger="pickup_orders"):
        result = email_service.send_order_email("jordan@gmail.com", "Hello", "Body text")

    assert result is None
    assert any("MOCK EMAIL to jordan@gmail.com" in r.getMessage() for r in caplog.records)


def test_sends_multipart_over_starttls(smtp_configured):
    with patch("smtplib.SMTP") as smtp_cls:
        server = smtp_cls.return_value.__enter__.return_value

        message_id = email_service.send_order_email(
            "jordan@gmail.com", "Order ZS-000001 Confirmed", "text", "<p>html</p>",
        )

    smtp_cls.assert_called_once_with("smtp.test.local", 587)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("orders", "secret")
    sender, recipient, raw = server.sendmail.call_args[0]
    assert (sender, recipient) == ("orders@zsmokeshop.test", "jordan@gmail.com")
    assert "multipart/alternative" in raw
    assert "Subject: Order ZS-000001 Confirmed" in raw
    assert message_id.startswith("<")


def test_smtp_failure_raises_notification_error(smtp_configured):
    with patch("smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        smtp_cls.return_value.__enter__.return_value = server

        with pytest.raises(NotificationError) as exc_info:
            email_service.send_order_email("jordan@gmail.com", "Hi", "text")

    assert exc_info.value.channel == "email"


def test_build_order_summary(lifecycle, make_request):
    order = lifecycle.place_order(make_request(items=(("prod-a", 2), ("prod-b", 1))))

    text, html = email_service.build_order_summary(order)

    assert "2x Glass Hand Pipe - $20.00" in text
    assert "Total: $37.89" in text
    assert "Herb Grinder" in html
