"""
Email service for customers who chose email notifications.

Sends real emails via SMTP when configured, falls back to logging in mock mode.

Environment variables:
- SMTP_HOST: SMTP server hostname (e.g., smtp.gmail.com)
- SMTP_PORT: SMTP server port (default: 587 for TLS)
- SMTP_USERNAME: SMTP authentication username
- SMTP_PASSWORD: SMTP authentication password (for Gmail, use App Password)
- SMTP_FROM_EMAIL: Sender email address
"""

import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from . import config
from .errors import NotificationError
from .schemas.orders import Order

logger = logging.getLogger(__name__)


def is_email_configured() -> bool:
    """Check if SMTP is properly configured."""
    return all([
        config.SMTP_HOST,
        config.SMTP_USERNAME,
        config.SMTP_PASSWORD,
        config.SMTP_FROM_EMAIL,
    ])


def normalize_email_address(email: str) -> Optional[str]:
    """
    Validate an email address and return its normalized form.

    Only syntax is checked (no DNS/MX lookups); returns None if invalid.
    """
    if not email:
        return None
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug("Email validation failed: %s", str(e))
        return None
    return result.normalized


def build_order_summary(order: Order) -> tuple[str, str]:
    """Plain text and HTML item tables for an order email."""
    items_text = "\nItems:\n"
    items_html = (
        "<table style='border-collapse: collapse; width: 100%; max-width: 500px; border: 1px solid #eee;'>"
        "<tr style='background: #f5f5f5;'>"
        "<th style='padding: 8px; text-align: left; border-bottom: 1px solid #ddd;'>Item</th>"
        "<th style='padding: 8px; text-align: right; border-bottom: 1px solid #ddd;'>Price</th></tr>"
    )

    for item in order.items:
        name = item.display_name
        items_text += f"  {item.quantity}x {name} - ${item.total_price:.2f}\n"
        items_html += (
            f"<tr><td style='padding: 8px; border-bottom: 1px solid #eee;'>{item.quantity}x {html.escape(name)}</td>"
            f"<td style='padding: 8px; border-bottom: 1px solid #eee; text-align: right;'>${item.total_price:.2f}</td></tr>"
        )

    items_text += f"\nSubtotal: ${order.subtotal:.2f}\n"
    items_text += f"Tax: ${order.tax:.2f}\n"
    items_text += f"Total: ${order.total:.2f}\n"

    items_html += (
        f"<tr><td style='padding: 8px; text-align: right; border-top: 1px solid #ddd;'>Subtotal:</td>"
        f"<td style='padding: 8px; text-align: right; border-top: 1px solid #ddd;'>${order.subtotal:.2f}</td></tr>"
        f"<tr><td style='padding: 8px; text-align: right;'>Tax:</td>"
        f"<td style='padding: 8px; text-align: right;'>${order.tax:.2f}</td></tr>"
        f"<tr style='background: #f9f9f9;'><td style='padding: 8px; text-align: right;'><strong>Total:</strong></td>"
        f"<td style='padding: 8px; text-align: right;'><strong>${order.total:.2f}</strong></td></tr>"
        "</table>"
    )
    return items_text, items_html


def send_order_email(
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> Optional[str]:
    """
    Send an order email.

    Args:
        to_email: Customer's email address
        subject: Subject line
        body_text: Plain text body
        body_html: Optional HTML alternative

    Returns:
        The Message-ID of the sent email, or None in mock mode

    Raises:
        NotificationError: If the SMTP server refused the message
    """
    if not is_email_configured():
        # Mock mode - just log the email
        logger.info(
            "MOCK EMAIL to %s: Subject: %s | Body: %s",
            to_email,
            subject,
            body_text[:200] + "...",
        )
        return None

    if body_html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))
    else:
        msg = MIMEText(body_text, "plain")

    message_id = make_msgid()
    msg["Subject"] = subject
    msg["From"] = config.SMTP_FROM_EMAIL
    msg["To"] = to_email
    msg["Message-ID"] = message_id

    try:
        # Connect and send with secure SSL context
        context = ssl.create_default_context()
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT) as server:
            server.starttls(context=context)
            server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
            server.sendmail(config.SMTP_FROM_EMAIL, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email: %s", str(e))
        raise NotificationError(f"SMTP error: {e}", channel="email") from e

    logger.info("Email sent successfully (%s)", message_id)
    return message_id
