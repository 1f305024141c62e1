"""
Routes Package for Pickup Orders
================================

This package contains all API route definitions organized by audience. Each
module defines a FastAPI APIRouter with related endpoints grouped together.

Architecture Overview:
----------------------
**Customer-Facing Routes:**
- orders.py: Place an order, track an order (rate limited, no auth)

**Admin Routes (require authentication):**
- admin_orders.py: Order dashboard, status changes, replacements

**Integration Routes:**
- webhooks.py: Inbound SMS from Twilio (TwiML replies)
- cron.py: Expiration sweeper trigger (bearer secret)

Router Registration:
--------------------
All routers are registered in main.py under two prefixes:
1. /api/v1/* - Versioned API (recommended)
2. /* - Root paths

Route Dependencies:
-------------------
Common dependencies are injected via FastAPI's Depends():
- dependencies.get_lifecycle / get_negotiation / get_sweeper: Services
  bound to the request's database session
- verify_admin_credentials: Admin authentication
- verify_cron_secret: Scheduler authentication
- limiter.limit(): Rate limiting

Error Handling:
---------------
Routes let service errors (errors.OrderServiceError) propagate; main.py maps
them to JSON responses:
- 400: Bad request (validation errors, illegal status transitions)
- 401: Unauthorized (invalid credentials)
- 403: Tracking contact mismatch
- 404: Order or product not found
- 409: Order modified concurrently
- 429: Too many requests (rate limited)
- 503: Service unavailable (missing configuration)
"""

from .orders import orders_router, limiter
from .admin_orders import admin_orders_router
from .webhooks import webhooks_router
from .cron import cron_router

__all__ = [
    "orders_router",
    "admin_orders_router",
    "webhooks_router",
    "cron_router",
    "limiter",
]
