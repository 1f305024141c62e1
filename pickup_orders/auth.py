"""
Authentication Module for Pickup Orders
=======================================

This module handles authentication for the protected endpoints of the pickup
orders service.

Authentication Methods:
-----------------------
1. **HTTP Basic Auth (Admin)**: Used for all /admin/* endpoints (the staff
   order dashboard). Credentials are configured via environment variables
   (ADMIN_USERNAME, ADMIN_PASSWORD).

2. **Bearer Secret (Cron)**: The expiration sweeper endpoint is called by a
   scheduler with `Authorization: Bearer <CRON_SECRET>`.

Security Features:
------------------
- **Timing Attack Prevention**: Uses `secrets.compare_digest()` for every
  credential comparison.

- **Fail Closed**: If ADMIN_PASSWORD or CRON_SECRET is not configured, the
  matching endpoints return 503 Service Unavailable rather than allowing
  unauthenticated access.

Usage:
------
    from pickup_orders.auth import verify_admin_credentials

    @router.post("/admin/orders/{order_id}/update-status")
    def update_status(
        order_id: str,
        admin_user: str = Depends(verify_admin_credentials),
    ):
        # admin_user contains the authenticated username
        ...
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)

from . import config

logger = logging.getLogger(__name__)


# =============================================================================
# Security Schemes
# =============================================================================
# The realm is shared across all admin routes so browsers cache credentials.

security = HTTPBasic(realm="Pickup Orders Admin")
cron_security = HTTPBearer(auto_error=False)


def _matches(provided: str, expected: str) -> bool:
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


# =============================================================================
# Admin Authentication Dependency
# =============================================================================

def verify_admin_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """
    Verify HTTP Basic Auth credentials for admin endpoints.

    Returns:
        str: The authenticated username (recorded as `suggested_by` on
        replacements and in rejection notes).

    Raises:
        HTTPException (503): If ADMIN_PASSWORD is not set.
        HTTPException (401): If credentials are invalid. Includes a
                            WWW-Authenticate header so browsers prompt.
    """
    # Fail closed: if password not configured, deny all access
    if not config.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured. Set ADMIN_PASSWORD environment variable.",
        )

    username_correct = _matches(credentials.username, config.ADMIN_USERNAME)
    password_correct = _matches(credentials.password, config.ADMIN_PASSWORD)

    if not (username_correct and password_correct):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# =============================================================================
# Cron Authentication Dependency
# =============================================================================

def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_security),
) -> None:
    """
    Verify the scheduler's bearer token.

    Raises:
        HTTPException (503): If CRON_SECRET is not set.
        HTTPException (401): If the header is missing or the token is wrong.
    """
    if not config.CRON_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron authentication not configured. Set CRON_SECRET environment variable.",
        )

    if credentials is None or not _matches(credentials.credentials, config.CRON_SECRET):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
