"""
Public Order Routes for Pickup Orders
=====================================

Customer-facing endpoints used by the storefront checkout and the "track my
order" page. No authentication; both write-ish endpoints are rate limited
per client IP.

Endpoints:
----------
- POST /orders: Place a pickup order
- GET /orders/track: Look up an order by number plus phone or email
- GET /orders/{order_id}: Fetch an order by internal id

Tracking:
---------
The tracking lookup needs the order number and the phone (or email) the
order was placed with. Phone formatting does not matter ("512-555-1234"
matches "+15125551234"); email is compared case-insensitively. A mismatch
returns 403 with a message that does not say which field was wrong.

Usage:
------
    POST /orders
    {
        "customer_name": "Alex",
        "customer_phone": "512-555-1234",
        "notification_method": "sms",
        "store_location": "william-cannon",
        "items": [{"product_id": "grav-bong", "quantity": 1}]
    }

    GET /orders/track?order_number=ZS-001234&phone=5125551234
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import RATE_LIMIT_ENABLED, get_rate_limit_public
from ..dependencies import get_lifecycle, get_order_store
from ..errors import ContactMismatchError, OrderNotFoundError, OrderValidationError
from ..schemas.orders import CreateOrderRequest, OrderResponse
from ..services.lifecycle import LifecycleEngine
from ..services.order_store import OrderStore
from ..sms import phones_match


logger = logging.getLogger(__name__)

# Router definition
orders_router = APIRouter(prefix="/orders", tags=["Orders"])


# =============================================================================
# Rate Limiting Setup
# =============================================================================

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


# =============================================================================
# Order Endpoints
# =============================================================================

@orders_router.post("", response_model=OrderResponse, status_code=201)
@limiter.limit(get_rate_limit_public)
def create_order(
    request: Request,
    body: CreateOrderRequest,
    lifecycle: LifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """
    Place a pickup order.

    Prices are taken from the catalog at this moment. The customer gets a
    confirmation (SMS or email) and the store gets a new-order text.
    """
    order = lifecycle.place_order(body)
    return OrderResponse(
        order=order,
        message=f"Order {order.order_number} placed successfully",
    )


@orders_router.get("/track", response_model=OrderResponse)
@limiter.limit(get_rate_limit_public)
def track_order(
    request: Request,
    order_number: Optional[str] = Query(None, description="Order number, e.g. ZS-001234"),
    phone: Optional[str] = Query(None, description="Phone the order was placed with"),
    email: Optional[str] = Query(None, description="Email the order was placed with"),
    store: OrderStore = Depends(get_order_store),
) -> OrderResponse:
    """Let a customer check their order with its number and their contact."""
    if not order_number or not (phone or email):
        raise OrderValidationError("Order number and phone or email are required")

    order = store.get_by_number(order_number)
    if order is None:
        raise OrderNotFoundError(order_number)

    matched = False
    if phone:
        matched = phones_match(phone, order.customer_phone)
    if not matched and email and order.customer_email:
        matched = email.strip().lower() == order.customer_email.lower()

    if not matched:
        logger.info("Tracking lookup for %s did not match contact details", order.order_number)
        raise ContactMismatchError()

    return OrderResponse(order=order)


@orders_router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    store: OrderStore = Depends(get_order_store),
) -> OrderResponse:
    order = store.get_by_id(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return OrderResponse(order=order)
