"""
Admin Orders Routes for Pickup Orders
=====================================

Staff dashboard endpoints for viewing and moving pickup orders through
their lifecycle.

Endpoints:
----------
- GET /admin/orders: List orders with filtering (or dashboard stats)
- GET /admin/orders/{id}: Get one order
- POST /admin/orders/{id}/update-status: Change status, append store notes
- POST /admin/orders/{id}/suggest-replacement: Ask the customer (by SMS) to
  approve a substitute for an out-of-stock item
- POST /admin/orders/{id}/actions: Quick actions from the order card
  (accept, reject, or swap an item immediately)

Authentication:
---------------
All endpoints require admin authentication via HTTP Basic Auth. The admin
username is recorded on rejections and replacement suggestions.

Filtering:
----------
- ?status=pending,confirmed - One or more statuses, comma-separated
- ?location=cameron-rd - One store
- ?date_from=...&date_to=... - created_at range, inclusive (ISO 8601)
- ?search=smith - Order number, customer name or phone
- ?since=... - Only orders created after this instant (dashboard polling)
- ?summary=true - Compact rows with pickup countdown
- ?stats=true - Counters for the dashboard header instead of a list

Usage:
------
    # Ready orders at William Cannon, with countdowns
    GET /admin/orders?status=ready&location=william-cannon&summary=true

    # Mark an order ready for pickup
    POST /admin/orders/{id}/update-status {"status": "ready"}
"""

import logging
from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query

from ..auth import verify_admin_credentials
from ..dependencies import get_lifecycle, get_negotiation, get_order_store
from ..errors import OrderNotFoundError, OrderValidationError
from ..schemas.orders import (
    OrderActionRequest,
    OrderActionType,
    OrderFilters,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatus,
    StoreLocation,
    SuggestReplacementRequest,
    UpdateOrderStatusRequest,
)
from ..services.lifecycle import LifecycleEngine, order_to_list_item
from ..services.order_store import OrderStore
from ..services.replacement import ReplacementNegotiation


logger = logging.getLogger(__name__)

# Router definition
admin_orders_router = APIRouter(prefix="/admin/orders", tags=["Admin - Orders"])


def _parse_statuses(raw: Optional[str]) -> Optional[List[OrderStatus]]:
    """Parse "pending,ready" into statuses; an empty value means all."""
    if not raw:
        return None
    statuses = []
    for value in raw.split(","):
        value = value.strip()
        if not value:
            continue
        try:
            statuses.append(OrderStatus(value))
        except ValueError:
            raise OrderValidationError(f"Invalid status: {value}")
    return statuses or None


# =============================================================================
# Order Endpoints
# =============================================================================

@admin_orders_router.get(
    "",
    response_model=Union[OrderStatsResponse, OrderListResponse],
)
def list_orders(
    _admin: str = Depends(verify_admin_credentials),
    store: OrderStore = Depends(get_order_store),
    status: Optional[str] = Query(
        None,
        description="Comma-separated statuses, e.g. pending,confirmed. Empty for all.",
    ),
    location: Optional[StoreLocation] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    summary: bool = Query(False),
    stats: bool = Query(False),
) -> Union[OrderStatsResponse, OrderListResponse]:
    """
    Return orders for the dashboard, newest first.

    With stats=true the filters are ignored and the dashboard counters are
    returned instead.
    """
    if stats:
        return OrderStatsResponse(stats=store.stats())

    filters = OrderFilters(
        statuses=_parse_statuses(status),
        store_location=location,
        date_from=date_from,
        date_to=date_to,
        search=search,
        since=since,
    )
    orders = store.list(filters)

    if summary:
        now = store.clock()
        return OrderListResponse(
            summaries=[order_to_list_item(o, now) for o in orders],
            count=len(orders),
        )
    return OrderListResponse(orders=orders, count=len(orders))


@admin_orders_router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    _admin: str = Depends(verify_admin_credentials),
    store: OrderStore = Depends(get_order_store),
) -> OrderResponse:
    order = store.get_by_id(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return OrderResponse(order=order)


@admin_orders_router.post("/{order_id}/update-status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    admin: str = Depends(verify_admin_credentials),
    lifecycle: LifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """
    Move an order to a new status.

    Marking an order ready starts its 1-hour pickup window and texts the
    customer. Illegal transitions (e.g. anything out of a terminal status)
    return 400.
    """
    order = lifecycle.update_status(order_id, body.status, body.store_notes)
    logger.info("%s set order %s to %s", admin, order.order_number, order.status.value)
    return OrderResponse(
        order=order,
        message=f"Order status updated to {order.status.value}",
    )


@admin_orders_router.post("/{order_id}/suggest-replacement", response_model=OrderResponse)
def suggest_replacement(
    order_id: str,
    body: SuggestReplacementRequest,
    admin: str = Depends(verify_admin_credentials),
    negotiation: ReplacementNegotiation = Depends(get_negotiation),
) -> OrderResponse:
    """Ask the customer by SMS to approve a substitute; totals change on approval."""
    order = negotiation.suggest(
        order_id,
        body.order_item_index,
        body.replacement_product_id,
        staff=admin,
        note=body.replacement_note,
    )
    return OrderResponse(order=order, message="Replacement suggestion sent to customer")


@admin_orders_router.post("/{order_id}/actions", response_model=OrderResponse)
def order_action(
    order_id: str,
    body: OrderActionRequest,
    admin: str = Depends(verify_admin_credentials),
    lifecycle: LifecycleEngine = Depends(get_lifecycle),
    negotiation: ReplacementNegotiation = Depends(get_negotiation),
) -> OrderResponse:
    """
    Quick actions from the order card.

    - accept: confirm the items are in stock
    - reject: cancel the order with a reason
    - suggest-replacement: swap an item right away (no customer round trip)
    """
    if body.action == OrderActionType.ACCEPT:
        order = lifecycle.accept(order_id)
        message = "Order accepted"
    elif body.action == OrderActionType.REJECT:
        order = lifecycle.reject(order_id, reason=body.reason, staff=admin)
        message = "Order rejected"
    else:
        if body.product_index is None or not body.replacement_product_id:
            raise OrderValidationError(
                "product_index and replacement_product_id are required"
            )
        order = negotiation.apply_immediately(
            order_id,
            body.product_index,
            body.replacement_product_id,
            staff=admin,
            note=body.replacement_note,
        )
        message = "Replacement applied"

    logger.info("%s ran %s on order %s", admin, body.action.value, order.order_number)
    return OrderResponse(order=order, message=message)
