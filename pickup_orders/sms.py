"""
SMS service for pickup order notifications.

Sends real SMS via Twilio when configured, falls back to logging in mock mode.
Also owns phone number handling: every phone number is normalized here
before it is stored, compared or dialed.

Environment variables:
- TWILIO_ACCOUNT_SID: Twilio Account SID (starts with AC)
- TWILIO_AUTH_TOKEN: Twilio Auth Token
- TWILIO_PHONE_NUMBER: Twilio phone number to send from (e.g., +15125550100)
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

import phonenumbers
from phonenumbers.phonenumberutil import NumberParseException

from . import config
from .errors import NotificationError

logger = logging.getLogger(__name__)


# =============================================================================
# Phone Numbers
# =============================================================================

def normalize_phone_number(phone: str) -> str:
    """
    Normalize phone number to E.164 format for storage and Twilio.

    Examples:
        "512-555-1234" -> "+15125551234"
        "(512) 555-1234" -> "+15125551234"
        "+1 512 555 1234" -> "+15125551234"

    Returns an empty string when the input has no digits.
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return ""

    # Add US country code if not present
    if len(digits) == 10:
        digits = "1" + digits

    return "+" + digits


def is_valid_phone_number(phone: str) -> bool:
    """
    Check that a phone number has a plausible US digit count.

    Accepts 10 digits, or 11 digits starting with the US country code, and
    asks phonenumbers whether that length is possible for the region.
    """
    digits = re.sub(r"\D", "", phone or "")
    if not (len(digits) == 10 or (len(digits) == 11 and digits.startswith("1"))):
        return False

    try:
        parsed = phonenumbers.parse(normalize_phone_number(digits), None)
    except NumberParseException as e:
        logger.debug("Phone parse failed: %s", e)
        return False
    return phonenumbers.is_possible_number(parsed)


def phones_match(a: str, b: str) -> bool:
    """True when both numbers normalize to the same non-empty value."""
    left = normalize_phone_number(a)
    return bool(left) and left == normalize_phone_number(b)


# =============================================================================
# Inbound Messages
# =============================================================================

@dataclass
class IncomingSms:
    """An SMS received through the provider webhook."""
    from_number: str
    to_number: str
    body: str
    message_sid: str


def parse_incoming_sms(form: Mapping[str, str]) -> IncomingSms:
    """Extract the fields we use from a Twilio messaging webhook form."""
    return IncomingSms(
        from_number=form.get("From", "") or "",
        to_number=form.get("To", "") or "",
        body=(form.get("Body", "") or "").strip(),
        message_sid=form.get("MessageSid", "") or "",
    )


# =============================================================================
# Providers
# =============================================================================

def is_twilio_configured() -> bool:
    """Check if Twilio is properly configured."""
    return all([
        config.TWILIO_ACCOUNT_SID,
        config.TWILIO_AUTH_TOKEN,
        config.TWILIO_PHONE_NUMBER,
    ])


class BaseSmsProvider(ABC):
    """Abstract base class for SMS providers."""

    name = "base"

    @abstractmethod
    def send(self, to: str, body: str) -> Optional[str]:
        """
        Send a text message.

        Args:
            to: Destination phone number (any format)
            body: Message text

        Returns:
            Provider message id, or None when the provider has none

        Raises:
            NotificationError: If the provider rejected the message
        """
        pass


class TwilioSmsProvider(BaseSmsProvider):
    """Sends through the Twilio REST API."""

    name = "twilio"

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        from twilio.rest import Client

        self.from_number = from_number or config.TWILIO_PHONE_NUMBER
        self.client = Client(
            account_sid or config.TWILIO_ACCOUNT_SID,
            auth_token or config.TWILIO_AUTH_TOKEN,
        )

    def send(self, to: str, body: str) -> Optional[str]:
        normalized = normalize_phone_number(to)
        try:
            message = self.client.messages.create(
                body=body,
                from_=self.from_number,
                to=normalized,
            )
        except Exception as e:
            # Twilio API errors and transport failures (connection, timeout) alike
            logger.error("Failed to send SMS: %s", str(e))
            raise NotificationError(f"SMS send failed: {e}", channel="sms") from e

        logger.info("SMS sent successfully (SID: %s)", message.sid)
        return message.sid


class MockSmsProvider(BaseSmsProvider):
    """Logs messages instead of sending them (Twilio not configured)."""

    name = "mock"

    def send(self, to: str, body: str) -> Optional[str]:
        logger.info("MOCK SMS to %s: %s", normalize_phone_number(to), body)
        return None


def get_sms_provider() -> BaseSmsProvider:
    """Twilio when all credentials are present, otherwise the logging mock."""
    if is_twilio_configured():
        return TwilioSmsProvider()
    logger.info("Twilio not configured, SMS will be logged only")
    return MockSmsProvider()
