"""
Configuration Module for Pickup Orders
======================================

This module centralizes all configuration settings, environment variables, and
business constants used throughout the pickup orders service.

Configuration Categories:
-------------------------
- **Business Constants**: Tax rate, pickup window, order number format. These
  are facts of the business, not deployment settings, so they are not read
  from the environment.

- **Store Locations**: The two physical shops. Orders are assigned to exactly
  one of them. Store phones (for new-order texts) come from the environment.

- **Messaging**: Twilio credentials for SMS and SMTP settings for email. When
  they are missing the service runs in mock mode and only logs messages.

- **Security**: Admin HTTP Basic credentials and the shared cron secret.

- **Rate Limiting / CORS**: Same conventions as the rest of the API layer.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy URL (default: local SQLite file)
- ADMIN_USERNAME / ADMIN_PASSWORD: Admin credentials (password required)
- CRON_SECRET: Bearer token for the expiration sweeper endpoint
- TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_PHONE_NUMBER
- SMTP_HOST / SMTP_PORT / SMTP_USERNAME / SMTP_PASSWORD / SMTP_FROM_EMAIL
- STORE_PHONE_WILLIAM_CANNON / STORE_PHONE_CAMERON_RD
- RATE_LIMIT_PUBLIC: Limit for public order endpoints (default: "30 per minute")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")
- LOG_LEVEL: see logging_config.py

Usage:
------
    from pickup_orders import config

    tax = subtotal * config.TAX_RATE
"""

import os
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# Business Constants
# =============================================================================
# Austin, TX combined sales tax. Applied to the order subtotal.
TAX_RATE: float = 0.0825

# Customers must pick up within this many minutes of the order being ready.
PICKUP_WINDOW_MINUTES: int = 60

# Quoted to the customer in the confirmation text.
ESTIMATED_READY_MINUTES: int = 30

# Ready orders with less than this many minutes left are flagged on the dashboard.
EXPIRING_SOON_MINUTES: int = 15

# Human-readable order numbers look like "ZS-001234".
ORDER_NUMBER_PREFIX: str = "ZS"
ORDER_NUMBER_DIGITS: int = 6

# "Today" in order statistics is the store's calendar day.
STORE_TIMEZONE: str = "America/Chicago"

BUSINESS_NAME: str = "Z SMOKE SHOP"


# =============================================================================
# Store Locations
# =============================================================================

STORE_LOCATIONS: Dict[str, Dict[str, str]] = {
    "william-cannon": {
        "name": "William Cannon",
        "address": "719 W William Cannon Dr #105",
        "city": "Austin, TX 78745",
        "phone": os.getenv("STORE_PHONE_WILLIAM_CANNON", ""),
    },
    "cameron-rd": {
        "name": "Cameron Rd",
        "address": "5318 Cameron Rd",
        "city": "Austin, TX 78723",
        "phone": os.getenv("STORE_PHONE_CAMERON_RD", ""),
    },
}


def get_store_info(location: str) -> Dict[str, str]:
    """Return display details for a store location slug."""
    return STORE_LOCATIONS[location]


# =============================================================================
# Database
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pickup_orders.db")


# =============================================================================
# Messaging Configuration
# =============================================================================

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")


# =============================================================================
# Admin and Cron Authentication
# =============================================================================
# ADMIN_PASSWORD and CRON_SECRET must be set in production. When they are
# missing the protected endpoints answer 503 instead of running unprotected.

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")
CRON_SECRET: str = os.getenv("CRON_SECRET", "")


# =============================================================================
# Rate Limiting Configuration
# =============================================================================
# Applies to the unauthenticated customer endpoints (place order, track order).

RATE_LIMIT_PUBLIC: str = os.getenv("RATE_LIMIT_PUBLIC", "30 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_public() -> str:
    """Return the current public rate limit (allows dynamic override in tests)."""
    return RATE_LIMIT_PUBLIC


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]
